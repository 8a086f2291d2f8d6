"""Error taxonomy shared by backends and the collection facade.

Index problems are caller errors and use the builtin IndexError; everything
raised here is a CorpusError so callers can catch the whole family at once.
"""
from __future__ import annotations


class CorpusError(Exception):
    """Base class for collection and backend failures."""


class ConfigurationError(CorpusError, ValueError):
    """Missing/empty required parameter or malformed placeholder. Fatal at open."""


class BackendConnectionError(CorpusError, ConnectionError):
    """Backend unreachable, or the held connection has been closed/dropped."""


class DocumentNotFoundError(CorpusError, KeyError):
    """Name is in the index but the backing store no longer has it."""

    def __init__(self, name: str, where: str = ""):
        self.name = name
        msg = f"Document not found: {name}"
        if where:
            msg += f" ({where})"
        super().__init__(msg)

    def __str__(self) -> str:  # KeyError would repr() the message
        return self.args[0]


class AmbiguousDocumentError(CorpusError):
    """More than one backend record matches one name (data integrity violation)."""

    def __init__(self, name: str, matches: int):
        self.name = name
        self.matches = matches
        super().__init__(f"{matches} records match document name {name!r}; names must be unique")


class UnsupportedMutationError(CorpusError, NotImplementedError):
    """Mutation attempted against a backend or mode that forbids it."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} not supported: {reason}")
