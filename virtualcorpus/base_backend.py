"""Backend abstraction layer.

Defines the minimal interface a document store must offer so the collection
can mirror it: enumerate names once, fetch one document's raw content, and,
where the capability flags allow, write content back, insert or delete.

KISS: only the operations the collection needs are abstracted.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class RawContent:
    """Undecoded document content as the backend stores it."""
    data: str
    mime_type: str
    encoding: str


@dataclass(frozen=True)
class Capabilities:
    insert: bool
    delete: bool
    update: bool

    @classmethod
    def of(cls, backend: "Backend") -> "Capabilities":
        return cls(insert=backend.supports_insert(),
                   delete=backend.supports_delete(),
                   update=backend.supports_update())


class Backend(Protocol):
    read_only: bool
    mime_type: str
    encoding: str

    def list_names(self) -> Sequence[str]:
        """Names in enumeration order; computed once at open time."""
        ...

    def fetch(self, name: str) -> RawContent:
        """Raise DocumentNotFoundError / AmbiguousDocumentError as appropriate."""
        ...

    def mime_type_for(self, name: str) -> str:
        """Serialization format content for name must be produced in."""
        ...

    def persist(self, name: str, content: str) -> None:
        """Overwrite existing content. MUST be a silent no-op when read_only."""
        ...

    def insert(self, name: str, content: str) -> None: ...
    def delete(self, name: str) -> None: ...
    def supports_insert(self) -> bool: ...
    def supports_delete(self) -> bool: ...
    def supports_update(self) -> bool: ...
    def close(self) -> None: ...


def env_read_only(environ=None) -> bool:
    """Default mode: writes only when ALLOW_WRITES=1."""
    env = os.environ if environ is None else environ
    return env.get("ALLOW_WRITES", "0") != "1"
