"""Bidirectional name <-> position mapping.

Both directions are rebuilt off to the side and swapped in together, so a
reader never sees the ordered list and the inverse dict disagree.
"""
from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Tuple

from .errors import ConfigurationError


class NameIndex:
    def __init__(self, names: Iterable[str] = ()):
        ordered: List[str] = []
        positions: Dict[str, int] = {}
        for name in names:
            if name in positions:
                raise ConfigurationError(f"Duplicate document name in enumeration: {name!r}")
            positions[name] = len(ordered)
            ordered.append(name)
        self._names = ordered
        self._positions = positions

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._positions

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._names))

    def names(self) -> Tuple[str, ...]:
        return tuple(self._names)

    def name_at(self, index: int) -> str:
        if index < 0 or index >= len(self._names):
            raise IndexError(f"Index {index} out of range for collection of size {len(self._names)}")
        return self._names[index]

    def index_of(self, name: str) -> int:
        return self._positions.get(name, -1)

    def append(self, name: str) -> int:
        if name in self._positions:
            raise ValueError(f"Name already present: {name!r}")
        index = len(self._names)
        names = self._names + [name]
        positions = dict(self._positions)
        positions[name] = index
        self._names, self._positions = names, positions
        return index

    def remove(self, index: int) -> str:
        """Drop the entry at index; later entries move down by one."""
        name = self.name_at(index)
        names = self._names[:index] + self._names[index + 1:]
        positions = {n: i for i, n in enumerate(names)}
        self._names, self._positions = names, positions
        return name
