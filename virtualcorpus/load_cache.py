"""Session cache of decoded documents.

Load once, keep for the session: there is no size bound and nothing is evicted
except through evict(). The cache never talks to a backend; callers fetch and
store. Loaded flags are kept per index and move with NameIndex via
add_slot()/drop_slot().
"""
from __future__ import annotations
from typing import Any, Dict, List


class LoadCache:
    def __init__(self, size: int = 0):
        self._documents: Dict[str, Any] = {}
        self._loaded: List[bool] = [False] * size

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, name: object) -> bool:
        return name in self._documents

    def is_loaded(self, index: int) -> bool:
        if index < 0 or index >= len(self._loaded):
            return False
        return self._loaded[index]

    def get(self, name: str) -> Any:
        """Return the cached document; KeyError on a miss."""
        return self._documents[name]

    def store(self, name: str, document: Any) -> None:
        if document is None:
            raise ValueError("Cannot cache None")
        self._documents[name] = document

    def mark_loaded(self, index: int, name: str) -> None:
        if name not in self._documents:
            raise KeyError(f"Cannot mark {name!r} loaded before it is stored")
        self._loaded[index] = True

    def evict(self, name: str) -> None:
        self._documents.pop(name, None)

    def add_slot(self) -> int:
        self._loaded.append(False)
        return len(self._loaded) - 1

    def drop_slot(self, index: int) -> None:
        del self._loaded[index]

    def loaded_count(self) -> int:
        return sum(1 for flag in self._loaded if flag)
