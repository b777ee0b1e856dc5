from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class AgentRunStatus(str, Enum):
    pending = "pending"
    running = "running"
    paused = "paused"
    cancelling = "cancelling"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({AgentRunStatus.completed, AgentRunStatus.failed, AgentRunStatus.cancelled})


class TurnRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"


class RunEventType(str, Enum):
    status_changed = "run.status"
    turn_appended = "run.turn"
    log_appended = "run.log"


class AgentConfig(BaseSchema):
    """Generation options plus the multi-turn behavior of an agent."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2000
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    max_turns: int = Field(default=10, ge=1)
    enable_multi_turn: bool = True
    goal_completion_prompt: Optional[str] = None


class AgentInputVariable(BaseSchema):
    name: str
    description: str = ""
    required: bool = True


class Agent(BaseSchema):
    id: str = Field(default_factory=_new_id)
    owner: Optional[str] = None

    name: str
    description: str = ""
    prompt: str

    config: AgentConfig = Field(default_factory=AgentConfig)
    tools: List[str] = Field(default_factory=list)
    input_variables: List[AgentInputVariable] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class ToolCall(BaseSchema):
    id: str = Field(default_factory=_new_id)
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None
    error: Optional[str] = None


class ConversationTurn(BaseSchema):
    turn_number: int = Field(ge=1)
    role: TurnRole
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)


class AgentRunLog(BaseSchema):
    timestamp: datetime = Field(default_factory=_utc_now)
    level: LogLevel = LogLevel.info
    message: str
    data: Optional[Dict[str, Any]] = None


class AgentRun(BaseSchema):
    id: str = Field(default_factory=_new_id)
    agent_id: str
    owner: Optional[str] = None

    status: AgentRunStatus = AgentRunStatus.pending
    input_values: Dict[str, str] = Field(default_factory=dict)

    conversation_history: List[ConversationTurn] = Field(default_factory=list)
    turn_count: int = 0
    max_turns: int = Field(default=10, ge=1)
    goal: Optional[str] = None
    goal_achieved: bool = False

    result: Optional[str] = None
    error: Optional[str] = None
    logs: List[AgentRunLog] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_utc_now)
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    last_updated: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None

    def append_turn(
        self,
        role: TurnRole,
        content: str,
        *,
        tool_calls: Optional[List[ToolCall]] = None,
        tool_call_id: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> ConversationTurn:
        """Append a turn numbered one past the current history length."""
        turn = ConversationTurn(
            turn_number=len(self.conversation_history) + 1,
            role=role,
            content=content,
            tool_calls=tool_calls,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
        )
        self.conversation_history.append(turn)
        self.last_updated = turn.timestamp
        return turn

    def add_log(self, level: LogLevel, message: str, data: Optional[Dict[str, Any]] = None) -> AgentRunLog:
        entry = AgentRunLog(level=level, message=message, data=data)
        self.logs.append(entry)
        self.last_updated = entry.timestamp
        return entry


class RunSummary(BaseSchema):
    """Point-in-time view of a run held by a worker."""

    run_id: str
    agent_id: str
    status: AgentRunStatus
    turn_count: int
    max_turns: int
    worker_id: str
    claimed_at: datetime


class RunEvent(BaseSchema):
    """Progress notification published on the run event channel."""

    id: str = Field(default_factory=_new_id)
    type: RunEventType
    run_id: str
    agent_id: str
    created_at: datetime = Field(default_factory=_utc_now)
    payload: Dict[str, Any] = Field(default_factory=dict)
