from __future__ import annotations

"""Static tool provider.

Maps tool names to in-process async handlers. Used for tests, local demos and
for wiring Python-native tools next to remote MCP tool groups.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from ...core.logging_config import get_logger
from ..errors import TransientToolError
from .base import ToolErrorKind, ToolResult, ToolSpec

logger = get_logger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class StaticToolProvider:
    """
    In-memory mapping of tool names to handler coroutines.

    Notes:
        - ``register`` overwrites any existing handler for the tool name.
        - ``invoke`` never raises for an unknown tool or a failing handler; it
          returns a tagged ``ToolResult`` instead. ``TransientToolError`` raised
          by a handler propagates so the engine can retry it.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: Optional[str] = None,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Register a tool handler.

        Args:
            name: Tool name the model will use to call it.
            handler: Coroutine function receiving the call arguments.
            description: Human readable description forwarded to the model.
            input_schema: JSON schema of the arguments.
        """
        self._tools[name] = ToolSpec(
            name=name,
            description=description,
            input_schema=input_schema or {"type": "object", "properties": {}},
        )
        self._handlers[name] = handler

    def has(self, name: str) -> bool:
        return name in self._handlers

    async def list_tools(self) -> List[ToolSpec]:
        return list(self._tools.values())

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolResult.failure(ToolErrorKind.not_found, f"tool not found: {name}")
        try:
            output = await handler(dict(arguments))
        except TransientToolError:
            raise
        except Exception as e:
            logger.warning("Tool %s raised %s: %s", name, type(e).__name__, e)
            return ToolResult.failure(ToolErrorKind.invocation_failed, str(e))
        return ToolResult.success(output)
