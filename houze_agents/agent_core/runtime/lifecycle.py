"""Run lifecycle state machine.

The allowed edges are::

    pending    -> running | cancelling
    running    -> paused | cancelling | completed | failed
    paused     -> running | cancelling
    cancelling -> cancelled

``completed``, ``failed`` and ``cancelled`` are terminal. Every status write
in the engine goes through ``transition`` so an illegal edge can never reach
the store.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from ..errors import InvalidStateError
from ..schemas.domain import AgentRun, AgentRunStatus, LogLevel, _utc_now

S = AgentRunStatus

ALLOWED_TRANSITIONS: Dict[AgentRunStatus, FrozenSet[AgentRunStatus]] = {
    S.pending: frozenset({S.running, S.cancelling}),
    S.running: frozenset({S.paused, S.cancelling, S.completed, S.failed}),
    S.paused: frozenset({S.running, S.cancelling}),
    S.cancelling: frozenset({S.cancelled}),
    S.completed: frozenset(),
    S.failed: frozenset(),
    S.cancelled: frozenset(),
}


def can_transition(current: AgentRunStatus, target: AgentRunStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AgentRunStatus, target: AgentRunStatus) -> None:
    """Raise ``InvalidStateError`` unless ``current -> target`` is an allowed edge."""
    if not can_transition(current, target):
        raise InvalidStateError(f"illegal run transition {current.value} -> {target.value}")


def transition(run: AgentRun, target: AgentRunStatus, *, reason: str | None = None) -> None:
    """Move ``run`` to ``target``, stamping timestamps and appending a run log."""
    ensure_transition(run.status, target)
    previous = run.status
    now = _utc_now()
    run.status = target
    if target == S.running and run.started_at is None:
        run.started_at = now
    if target == S.paused:
        run.paused_at = now
    elif previous == S.paused:
        run.paused_at = None
    if target.is_terminal:
        run.completed_at = now
    message = f"Status changed from {previous.value} to {target.value}"
    if reason:
        message = f"{message}: {reason}"
    run.add_log(LogLevel.error if target == S.failed else LogLevel.info, message)
