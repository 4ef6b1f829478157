"""Deletion and nullification plans.

Both plans keep their keys in discovery order; executors walk them in
reverse so that dependents are processed before the rows they point at.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from typing import Any

_KEY_PATTERN = re.compile(r"^(?P<name>.+?)(?:\.(?P<index>\d+))?$")


def deletion_key(name: str, index: int | None = None) -> str:
    """Build a deletion key: `Name`, or `Name.<index>` for a cyclic bucket."""
    return name if index is None else f"{name}.{index}"


def split_key(key: str) -> tuple[str, int | None]:
    """Split a deletion key into (entity name, cyclic index or None)."""
    match = _KEY_PATTERN.match(key)
    if match is None:
        raise ValueError(f"Invalid deletion key: {key!r}")
    index = match.group("index")
    return match.group("name"), None if index is None else int(index)


class DeletionPlan:
    """Ordered mapping of deletion key -> ordered, de-duplicated ids."""

    def __init__(self, entries: dict[str, Iterable[Any]] | None = None) -> None:
        self._entries: dict[str, dict[Any, None]] = {}
        for key, ids in (entries or {}).items():
            self.add(key, ids)

    def ensure(self, key: str) -> None:
        self._entries.setdefault(key, {})

    def add(self, key: str, ids: Iterable[Any]) -> None:
        bucket = self._entries.setdefault(key, {})
        for value in ids:
            bucket[value] = None

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def pop(self, key: str) -> list[Any]:
        return list(self._entries.pop(key))

    def ids(self, key: str) -> list[Any]:
        return list(self._entries.get(key, ()))

    def family_keys(self, name: str) -> list[str]:
        """Every key holding rows of entity type `name`, cyclic buckets included."""
        return [key for key in self._entries if split_key(key)[0] == name]

    def family_ids(self, name: str) -> set[Any]:
        return {value for key in self.family_keys(name) for value in self._entries[key]}

    def cyclic_indexes(self, name: str) -> list[int]:
        indexes = (split_key(key)[1] for key in self.family_keys(name))
        return [index for index in indexes if index is not None]

    def keys(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, list[Any]]]:
        for key, bucket in self._entries.items():
            yield key, list(bucket)

    def to_dict(self) -> dict[str, list[Any]]:
        return {key: list(bucket) for key, bucket in self._entries.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"DeletionPlan({self.to_dict()!r})"


ColumnGroup = tuple[str, ...]


class NullificationPlan:
    """Ordered mapping of entity name -> {column group -> ordered ids}."""

    def __init__(self, entries: dict[str, dict[Any, Iterable[Any]]] | None = None) -> None:
        self._entries: dict[str, dict[ColumnGroup, dict[Any, None]]] = {}
        for name, groups in (entries or {}).items():
            for columns, ids in groups.items():
                self.add(name, columns, ids)

    def add(self, name: str, columns: str | Iterable[str], ids: Iterable[Any]) -> None:
        group: ColumnGroup = (columns,) if isinstance(columns, str) else tuple(columns)
        bucket = self._entries.setdefault(name, {}).setdefault(group, {})
        for value in ids:
            bucket[value] = None

    def pop(self, name: str) -> dict[ColumnGroup, list[Any]]:
        return {group: list(ids) for group, ids in self._entries.pop(name).items()}

    def groups(self, name: str) -> dict[ColumnGroup, list[Any]]:
        return {group: list(ids) for group, ids in self._entries.get(name, {}).items()}

    def merge_matching_columns(self) -> None:
        """Combine column groups of one entity whose id sets are identical.

        Merged groups are updated in a single statement; ids are sorted.
        """
        for name, groups in self._entries.items():
            merged: dict[ColumnGroup, list[Any]] = {}
            for group, ids in groups.items():
                sorted_ids = sorted(ids)
                match = next((g for g, existing in merged.items() if existing == sorted_ids), None)
                if match is None:
                    merged[group] = sorted_ids
                else:
                    del merged[match]
                    merged[match + tuple(c for c in group if c not in match)] = sorted_ids
            self._entries[name] = {
                group: dict.fromkeys(ids) for group, ids in merged.items()
            }

    def keys(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, dict[ColumnGroup, list[Any]]]]:
        for name in self._entries:
            yield name, self.groups(name)

    def to_dict(self) -> dict[str, dict[Any, list[Any]]]:
        """Plain dict; a single-column group is keyed by the column name."""
        return {
            name: {
                (group[0] if len(group) == 1 else group): list(ids)
                for group, ids in groups.items()
            }
            for name, groups in self._entries.items()
        }

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"NullificationPlan({self.to_dict()!r})"
