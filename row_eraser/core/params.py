"""SQL parameter binding helpers.

Statements are compiled with `:name` placeholders and converted to the
driver-specific format right before execution. Handles string literal
exclusion and PostgreSQL `::typecast` syntax.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from typing import Any

# Matches :name but not ::typecast and not inside words
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)")

# Matches single-quoted string literals (with escaped quotes handled)
_STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'")


def normalize_params(sql: str, paramstyle: str) -> str:
    """Convert :name parameters to the target param style.

    Args:
        sql: SQL string with :name parameters.
        paramstyle: Target style - 'named' (no conversion) or 'pyformat' (%(name)s).

    Returns:
        SQL with parameters converted to the target style.
    """
    if paramstyle == "named":
        return sql
    return _convert_to_pyformat(sql)


@lru_cache(maxsize=256)
def _convert_to_pyformat(sql: str) -> str:
    """Convert :name params to %(name)s, preserving string literals."""
    parts: list[str] = []
    last_end = 0

    for match in _STRING_LITERAL_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:start]))
        parts.append(match.group())
        last_end = end

    if last_end < len(sql):
        parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:]))

    return "".join(parts)


class ParamBinder:
    """Hands out unique placeholder names while a statement is compiled.

    Usage:
        binder = ParamBinder()
        sql = f"id IN ({binder.bind_many([1, 2, 3])})"
        cursor = adapter.execute(conn, sql, binder.params)
    """

    def __init__(self, prefix: str = "bind_") -> None:
        self._prefix = prefix
        self._counter = 0
        self.params: dict[str, Any] = {}

    def bind(self, value: Any) -> str:
        """Bind a single value and return its `:name` placeholder."""
        name = f"{self._prefix}{self._counter}"
        self._counter += 1
        self.params[name] = value
        return f":{name}"

    def bind_many(self, values: Iterable[Any]) -> str:
        """Bind each value and return a comma-separated placeholder list."""
        return ", ".join(self.bind(value) for value in values)

    def merge(self, params: dict[str, Any]) -> None:
        """Add caller-named parameters (from raw SQL fragments)."""
        for name, value in params.items():
            if name in self.params:
                raise ValueError(f"Parameter '{name}' is already bound")
            self.params[name] = value
