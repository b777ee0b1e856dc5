from __future__ import annotations

import pytest

from houze_agents.agent_core.errors import InvalidStateError
from houze_agents.agent_core.runtime.lifecycle import ALLOWED_TRANSITIONS, can_transition, ensure_transition, transition
from houze_agents.agent_core.schemas.domain import AgentRun, AgentRunStatus, LogLevel

S = AgentRunStatus

EXPECTED_EDGES = {
    (S.pending, S.running),
    (S.pending, S.cancelling),
    (S.running, S.paused),
    (S.running, S.cancelling),
    (S.running, S.completed),
    (S.running, S.failed),
    (S.paused, S.running),
    (S.paused, S.cancelling),
    (S.cancelling, S.cancelled),
}


def test_allowed_transitions_are_exactly_the_documented_edges() -> None:
    edges = {(src, dst) for src, targets in ALLOWED_TRANSITIONS.items() for dst in targets}
    assert edges == EXPECTED_EDGES
    assert set(ALLOWED_TRANSITIONS) == set(S)


@pytest.mark.parametrize("src", list(S))
@pytest.mark.parametrize("dst", list(S))
def test_ensure_transition_rejects_everything_else(src: S, dst: S) -> None:
    if (src, dst) in EXPECTED_EDGES:
        ensure_transition(src, dst)
        assert can_transition(src, dst)
    else:
        assert not can_transition(src, dst)
        with pytest.raises(InvalidStateError):
            ensure_transition(src, dst)


def test_terminal_statuses_have_no_exits() -> None:
    for status in (S.completed, S.failed, S.cancelled):
        assert status.is_terminal
        assert ALLOWED_TRANSITIONS[status] == frozenset()
    assert not S.paused.is_terminal


def test_transition_stamps_timestamps_and_logs() -> None:
    run = AgentRun(agent_id="a-1")

    transition(run, S.running, reason="claimed by worker-1")
    started = run.started_at
    assert started is not None
    assert run.logs[-1].message == "Status changed from pending to running: claimed by worker-1"

    transition(run, S.paused)
    assert run.paused_at is not None

    transition(run, S.running)
    assert run.paused_at is None
    assert run.started_at == started

    transition(run, S.failed, reason="boom")
    assert run.completed_at is not None
    assert run.logs[-1].level == LogLevel.error


def test_transition_refuses_illegal_edge_without_mutating() -> None:
    run = AgentRun(agent_id="a-1")
    with pytest.raises(InvalidStateError):
        transition(run, S.completed)
    assert run.status == S.pending
    assert run.logs == []
