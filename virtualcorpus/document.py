"""In-memory document model and the ownership marker attached to it."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_MIME_TYPE = "application/xml"
DEFAULT_ENCODING = "utf-8"


class OwnershipMarker:
    """Tags documents materialized by one collection.

    Hosts that track object ownership treat untagged documents as transient;
    the marker carries nothing but the owning collection's label.
    """
    __slots__ = ("label",)

    def __init__(self, label: str):
        self.label = label

    def adopt(self, document: "Document") -> None:
        if document.owner is not None and document.owner is not self:
            raise ValueError(
                f"Document {document.name!r} already belongs to {document.owner.label!r}"
            )
        document.owner = self

    def release(self, document: "Document") -> None:
        if document.owner is self:
            document.owner = None

    def owns(self, document: "Document") -> bool:
        return document.owner is self

    def __repr__(self) -> str:
        return f"OwnershipMarker({self.label!r})"


@dataclass(eq=False)
class Document:
    name: str
    text: str = ""
    features: Dict[str, Any] = field(default_factory=dict)
    mime_type: str = DEFAULT_MIME_TYPE
    encoding: str = DEFAULT_ENCODING
    owner: Optional[OwnershipMarker] = field(default=None, repr=False)
