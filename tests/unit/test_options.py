"""Unit tests for EraserOptions."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from row_eraser.core.options import DEFAULT_BATCH_SIZES, EraserOptions


class TestEraserOptions:
    def test_defaults(self) -> None:
        options = EraserOptions()
        assert not options.verbose
        assert not options.force_destroy_restricted
        assert options.ignore_tables == []
        assert options.scopes_per_entity == {}
        assert options.scope("anything") is None
        assert options.db_read_wrapper(lambda: 42) == 42

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EraserOptions(batch_sise=10)

    def test_frozen(self) -> None:
        options = EraserOptions()
        with pytest.raises(ValidationError):
            options.verbose = True

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EraserOptions(delete_batch_size=0)

    def test_default_batch_sizes(self) -> None:
        options = EraserOptions()
        for stage, size in DEFAULT_BATCH_SIZES.items():
            assert options.batch_size_for(stage) == size

    def test_batch_size_priority(self) -> None:
        options = EraserOptions(batch_size=50, delete_batch_size=5)
        assert options.batch_size_for("delete") == 5
        assert options.batch_size_for("nullify") == 50
        assert options.batch_size_for("read") == 50

    def test_batching_flags(self) -> None:
        options = EraserOptions(disable_batching=True, disable_read_batching=False)
        assert not options.batching_disabled_for("read")
        assert options.batching_disabled_for("nullify")
        assert options.page_size_for("delete") is None
        assert options.page_size_for("read") == DEFAULT_BATCH_SIZES["read"]

    def test_lists_are_not_shared(self) -> None:
        first = EraserOptions()
        second = EraserOptions(ignore_tables=["audits"])
        assert first.ignore_tables == []
        assert second.ignore_tables == ["audits"]
