"""Error types for the agent execution engine.

The hierarchy separates errors rejected synchronously at the control surface
(``ValidationError``, ``NotFoundError``, ``InvalidStateError``,
``QueueFullError``) from errors raised while a run executes. The latter are
split into transient errors, which the turn loop retries with backoff, and
errors that fail the run immediately.
"""

from __future__ import annotations

from typing import Optional


class AgentEngineError(Exception):
    """Base error for all engine exceptions."""


class ValidationError(AgentEngineError):
    """Raised when enqueue input is rejected; no run is created."""


class NotFoundError(AgentEngineError):
    """Raised when an agent or run id does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class InvalidStateError(AgentEngineError):
    """Raised when an operation is not permitted in the run's current status."""


class QueueFullError(AgentEngineError):
    """Raised by enqueue when the execution queue is at capacity."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Execution queue is full (capacity={capacity})")
        self.capacity = capacity


class ConfigurationError(AgentEngineError):
    """Raised for agent misconfiguration; the run fails without retry."""


class TransientError(AgentEngineError):
    """Base for errors worth retrying with backoff."""


class TransientModelError(TransientError):
    """Network, timeout or rate-limit class failure of the chat model."""


class MalformedModelResponseError(TransientModelError):
    """The chat model returned a response the engine cannot use."""


class FatalModelError(AgentEngineError):
    """Non-retryable chat model failure (auth, bad request, unknown model)."""


class TransientToolError(TransientError):
    """Transport-level tool failure worth retrying."""

    def __init__(self, tool_name: str, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Transient failure invoking tool '{tool_name}': {message}")
        self.tool_name = tool_name
        self.cause = cause
