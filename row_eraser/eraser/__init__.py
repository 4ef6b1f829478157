"""Eraser layer - plan building and execution."""

from __future__ import annotations

from row_eraser.eraser.builder import PlanBuilder
from row_eraser.eraser.deleter import Deleter
from row_eraser.eraser.manager import Manager
from row_eraser.eraser.nullifier import Nullifier
from row_eraser.eraser.plan import DeletionPlan, NullificationPlan

__all__ = [
    "Manager",
    "PlanBuilder",
    "Nullifier",
    "Deleter",
    "DeletionPlan",
    "NullificationPlan",
]
