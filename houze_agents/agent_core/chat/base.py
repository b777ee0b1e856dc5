from __future__ import annotations

"""Chat model port.

The engine never talks to a model SDK directly. It assembles an ordered list
of ``ChatMessage`` objects and hands them, together with the agent's
generation options, to a ``ChatModel`` implementation.

Implementations must:

- return a ``ChatCompletion`` holding the assistant text and zero or more
  ``ChatToolCallRequest`` entries,
- raise ``TransientModelError`` for failures worth retrying (network,
  timeout, rate limiting, malformed responses) and ``FatalModelError`` for
  everything else.

Retries, timeouts and cancellation are the engine's job, not the model's.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..schemas.domain import AgentConfig, TurnRole
from ..tools.base import ToolSpec


@dataclass(frozen=True)
class ChatToolCallRequest:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatMessage:
    """One message in the prompt sent to the model."""

    role: TurnRole
    content: str
    tool_calls: List[ChatToolCallRequest] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None


@dataclass(frozen=True)
class ChatCompletion:
    """Assistant reply returned by the model."""

    content: str
    tool_calls: List[ChatToolCallRequest] = field(default_factory=list)


class ChatModel(Protocol):
    """Protocol for chat model implementations."""

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: AgentConfig,
        *,
        tools: Sequence[ToolSpec] = (),
    ) -> ChatCompletion: ...
