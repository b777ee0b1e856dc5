"""Schemas for the agent core."""

from .domain import (
    TERMINAL_STATUSES,
    Agent,
    AgentConfig,
    AgentInputVariable,
    AgentRun,
    AgentRunLog,
    AgentRunStatus,
    ConversationTurn,
    LogLevel,
    RunEvent,
    RunEventType,
    RunSummary,
    ToolCall,
    TurnRole,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentInputVariable",
    "AgentRun",
    "AgentRunLog",
    "AgentRunStatus",
    "ConversationTurn",
    "LogLevel",
    "RunEvent",
    "RunEventType",
    "RunSummary",
    "TERMINAL_STATUSES",
    "ToolCall",
    "TurnRole",
]
