"""Agent execution engine core.

This package contains the "engine room" of the agent service.

Design overview
---------------

- ``schemas``: pydantic records (agents, runs, turns, logs) with the camelCase
  wire encoding shared with the dashboards.
- ``chat`` and ``tools``: the two outbound ports. The engine never talks to a
  model SDK or a tool transport directly.
- ``repos``: the run store, in-memory or async SQLAlchemy.
- ``runtime``: the execution queue, worker pool, turn loop, goal evaluator and
  lifecycle state machine.

Typical usage
-------------

1. Build the dependencies with ``agent_core.factory``.
2. ``await engine.start()``.
3. ``run_id = await engine.enqueue(agent_id, {"customer": "alice"})``.
4. Observe with ``get_run``/``list_active`` or subscribe to run events.
"""

from .errors import (
    AgentEngineError,
    ConfigurationError,
    FatalModelError,
    InvalidStateError,
    MalformedModelResponseError,
    NotFoundError,
    QueueFullError,
    TransientModelError,
    TransientToolError,
    ValidationError,
)
from .schemas.domain import Agent, AgentConfig, AgentRun, AgentRunStatus

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentEngineError",
    "AgentRun",
    "AgentRunStatus",
    "ConfigurationError",
    "FatalModelError",
    "InvalidStateError",
    "MalformedModelResponseError",
    "NotFoundError",
    "QueueFullError",
    "TransientModelError",
    "TransientToolError",
    "ValidationError",
]
