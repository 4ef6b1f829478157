"""Shared plumbing for the eraser stages."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any, TypeVar

from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection

logger = logging.getLogger(__name__)

NO_ERRORS_TO_MERGE = "<NO ERRORS FOUND TO MERGE>"

_WHITESPACE = re.compile(r"\s*\n\s*")

T = TypeVar("T")


def chunked(values: Sequence[T], size: int | None) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of `values`; a size of None yields it whole."""
    if size is None:
        if values:
            yield values
        return
    for start in range(0, len(values), size):
        yield values[start : start + size]


class Stage:
    """Base for PlanBuilder, Nullifier, Deleter and Manager.

    Holds the options and the list of human-readable errors a stage reports.
    """

    # scope map consulted before `scopes_per_entity`
    stage_scopes_option: str | None = None

    def __init__(self, options: EraserOptions | None = None) -> None:
        self.options = options or EraserOptions()
        self.errors: list[str] = []

    def execute(self) -> bool:
        raise NotImplementedError

    def report_error(self, message: str) -> None:
        """Record an error, collapsing line breaks and surrounding whitespace."""
        normalized = _WHITESPACE.sub(" ", message.strip())
        self.errors.append(normalized)
        logger.warning("%s: %s", type(self).__name__, normalized)

    def merge_errors(self, errors: Sequence[str], prefix: str | None = None) -> None:
        """Adopt another stage's errors, optionally namespacing them."""
        local = list(errors) or [NO_ERRORS_TO_MERGE]
        if prefix:
            local = [prefix + error for error in local]
        self.errors.extend(local)

    def uniqify_errors(self) -> None:
        self.errors = list(dict.fromkeys(self.errors))

    def custom_scope(self, selection: Selection) -> Selection:
        """Apply the highest-priority scope override configured for the entity."""
        name = selection.entity.name
        stage_scopes: Mapping[str, Callable[..., Any]] = (
            getattr(self.options, self.stage_scopes_option) if self.stage_scopes_option else {}
        )
        if name in stage_scopes:
            return stage_scopes[name](selection)
        if name in self.options.scopes_per_entity:
            return self.options.scopes_per_entity[name](selection)

        scoped = self.options.scope(selection)
        return selection if scoped is None else scoped

    def log(self, message: str, *args: Any) -> None:
        """Progress message: INFO when verbose, DEBUG otherwise."""
        logger.log(logging.INFO if self.options.verbose else logging.DEBUG, message, *args)
