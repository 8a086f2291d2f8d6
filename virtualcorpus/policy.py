"""Simple policy layer deciding which collection mutations are legal.

Current rule set (minimal, extendable):
  - Nothing is writable when the collection is opened read-only
  - add requires a backend that can insert
  - remove/clear require a backend that can delete
  - save requires a backend that can update existing content
The collection asks before any I/O, so a denied mutation never touches the store.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .base_backend import Capabilities
from .errors import UnsupportedMutationError


@dataclass(frozen=True)
class CollectionContext:
    read_only: bool
    capabilities: Capabilities


class MutationPolicy:
    def can_insert(self, ctx: CollectionContext) -> bool:
        return not ctx.read_only and ctx.capabilities.insert

    def can_delete(self, ctx: CollectionContext) -> bool:
        return not ctx.read_only and ctx.capabilities.delete

    def can_update(self, ctx: CollectionContext) -> bool:
        return not ctx.read_only and ctx.capabilities.update

    def denial_reason(self, ctx: CollectionContext, capability: str) -> Optional[str]:
        if ctx.read_only:
            return "collection is read-only"
        if not getattr(ctx.capabilities, capability):
            return f"backend does not support {capability}"
        return None

    def require(self, ctx: CollectionContext, capability: str, operation: str) -> None:
        """Raise UnsupportedMutationError unless can_<capability> allows it."""
        check = getattr(self, f"can_{capability}", None)
        if check is None:
            raise ValueError(f"Unknown capability: {capability!r}")
        if not check(ctx):
            reason = self.denial_reason(ctx, capability) or "denied by policy"
            raise UnsupportedMutationError(operation, reason)
