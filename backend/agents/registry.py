"""
HandlerRegistry — the read-only map from capability tag to handler.
"""

from types import MappingProxyType
from typing import Iterable, Optional

from agents.base import CapabilityHandler
from core.types import AgentTag


class HandlerRegistry:
    """Built once at startup; never mutated afterwards, so lookups need no locking."""

    def __init__(self, handlers: Iterable[CapabilityHandler]):
        table = {}
        for handler in handlers:
            tag = AgentTag(handler.tag)
            if tag in table:
                raise ValueError(f"Duplicate handler for tag '{tag.value}'")
            table[tag] = handler
        if AgentTag.GENERAL not in table:
            raise ValueError("A general handler is required as the routing fallback")
        self._handlers = MappingProxyType(table)

    def get(self, tag: AgentTag) -> Optional[CapabilityHandler]:
        """Get the handler for a tag, or None if it is not registered."""
        return self._handlers.get(tag)

    def resolve(self, tag: AgentTag) -> tuple[AgentTag, CapabilityHandler]:
        """Return (effective_tag, handler); unregistered tags resolve to general."""
        handler = self._handlers.get(tag)
        if handler is None:
            return AgentTag.GENERAL, self._handlers[AgentTag.GENERAL]
        return tag, handler

    def tags(self) -> list[AgentTag]:
        """Return all registered tags."""
        return list(self._handlers.keys())

    def all(self) -> list[CapabilityHandler]:
        return list(self._handlers.values())

    def __contains__(self, tag) -> bool:
        return tag in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
