"""Named tool handlers and dispatch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

ToolHandler = Callable[[dict[str, object], str], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """Raised for unknown tools and malformed tool arguments."""

    code: str
    message: str


@dataclass(slots=True)
class ToolRegistry:
    """Tool registry preserving insertion order."""

    _handlers: dict[str, ToolHandler] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    def get(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def names(self) -> tuple[str, ...]:
        """Return registered tool names in registration order."""
        return tuple(self._handlers.keys())

    def dispatch(
        self, name: str, arguments: dict[str, object], request_id: str
    ) -> dict[str, object]:
        """Call the handler registered under ``name``."""
        handler = self.get(name)
        if handler is None:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}")
        return handler(arguments, request_id)
