"""Tool provider port and adapters."""

from .base import ToolErrorKind, ToolProvider, ToolResult, ToolSpec, tool_matches_declaration
from .registry import StaticToolProvider

__all__ = [
    "StaticToolProvider",
    "ToolErrorKind",
    "ToolProvider",
    "ToolResult",
    "ToolSpec",
    "tool_matches_declaration",
]
