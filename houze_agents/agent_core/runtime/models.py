from __future__ import annotations

"""Runtime dependency bundle, per-run context and LangGraph state types.

The execution engine is designed to be dependency-injected.

- ``EngineDeps`` collects the repositories and ports the engine needs.
- ``RetryPolicy`` holds the exponential backoff parameters shared by model,
  tool and goal-evaluation calls.
- ``RunControl`` carries the asynchronous pause/cancel signals of one run.
- ``RunContext`` is the worker-owned, mutable view of a run being executed.
- ``_TurnState`` is the state passed between LangGraph nodes for one turn.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, NotRequired, Optional, Required, TypedDict

from ...server.core.config import EngineConfig
from ..chat.base import ChatCompletion, ChatModel
from ..repos.interfaces import AgentRepository, RunRepository
from ..schemas.domain import Agent, AgentRun
from ..tools.base import ToolProvider, ToolSpec
from .events import RunEventBroadcaster


class TurnOutcome(str, Enum):
    """Result of one turn-loop iteration."""

    proceed = "continue"
    paused = "paused"
    cancelled = "cancelled"
    completed = "completed"
    failed = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``initial * factor**(attempt-1)`` capped at ``max``."""

    max_attempts: int = 3
    backoff_initial: float = 0.5
    backoff_factor: float = 2.0
    backoff_max: float = 8.0

    @classmethod
    def from_config(cls, cfg: EngineConfig) -> "RetryPolicy":
        return cls(
            max_attempts=cfg.max_attempts,
            backoff_initial=cfg.backoff_initial,
            backoff_factor=cfg.backoff_factor,
            backoff_max=cfg.backoff_max,
        )

    def delay(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt (1-indexed)."""
        return min(self.backoff_max, self.backoff_initial * (self.backoff_factor ** (attempt - 1)))


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``ExecutionEngine``.

    This object is typically constructed by ``agent_core.factory`` and holds:

    - persistence repositories (agents, runs),
    - the chat model and tool provider ports,
    - the optional push channel for run progress events.
    """

    agents: AgentRepository
    runs: RunRepository
    chat_model: ChatModel
    tools: ToolProvider
    events: Optional[RunEventBroadcaster] = None


@dataclass
class RunControl:
    """Pause/cancel signals for one run.

    Written by the control surface, read by the owning worker at turn and
    tool-call boundaries. Cancel takes precedence over pause.
    """

    pause_requested: bool = False
    cancel_requested: bool = False


@dataclass
class RunContext:
    """Everything the turn loop needs to drive one run."""

    run: AgentRun
    agent: Agent
    control: RunControl
    worker_id: str
    claimed_at: datetime
    tools: List[ToolSpec] = field(default_factory=list)
    published_turns: int = 0
    published_logs: int = 0


class _TurnState(TypedDict):
    """Mutable LangGraph state for a single turn.

    Required keys:

    - ``ctx``: the run being driven.

    Optional keys:

    - ``outcome``: set by the node that decides how the turn ends.
    - ``completion``: the assistant reply of this turn.
    - ``tool_calls_made``: whether the assistant requested any tool.
    """

    ctx: Required[RunContext]
    outcome: NotRequired[str]
    completion: NotRequired[ChatCompletion]
    tool_calls_made: NotRequired[bool]
