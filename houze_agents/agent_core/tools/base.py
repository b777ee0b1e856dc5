from __future__ import annotations

"""Tool provider port and tagged tool results.

A tool provider exposes a catalogue of callable tools (name + JSON input
schema) and invokes one by name. Expected failures (unknown tool, tool raised)
come back as a ``ToolResult`` tagged with a ``ToolErrorKind`` so the engine
can record them in the conversation instead of aborting the run. Transport
failures worth retrying are raised as ``TransientToolError``.

Providers never decide whether an agent may call a tool; the engine checks
declared-tool membership before dispatching.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


class ToolErrorKind(str, Enum):
    not_found = "not_found"
    invocation_failed = "invocation_failed"
    not_declared = "not_declared"


@dataclass(frozen=True)
class ToolSpec:
    """Description of a callable tool."""

    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Tagged outcome of a tool invocation: ``Ok(output)`` or ``Err(kind)``."""

    ok: bool
    output: Any = None
    error_kind: Optional[ToolErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, output: Any) -> "ToolResult":
        return cls(ok=True, output=output)

    @classmethod
    def failure(cls, kind: ToolErrorKind, message: str) -> "ToolResult":
        return cls(ok=False, error_kind=kind, error=message)


class ToolProvider(Protocol):
    """Protocol for tool provider implementations."""

    async def list_tools(self) -> List[ToolSpec]: ...

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult: ...


def tool_matches_declaration(tool_name: str, declared: List[str]) -> bool:
    """Return True when ``tool_name`` is covered by the agent's declared tools.

    A declaration matches a tool either by exact name or as a group prefix:
    declaring ``ledgerapi`` covers ``ledgerapi.get_balance``. Matching is
    case-insensitive.
    """
    name = tool_name.lower()
    for entry in declared:
        decl = entry.lower()
        if name == decl or name.startswith(decl + "."):
            return True
    return False
