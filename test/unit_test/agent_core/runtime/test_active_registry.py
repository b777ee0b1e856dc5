from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from houze_agents.agent_core.runtime.registry import ActiveRunRegistry
from houze_agents.agent_core.schemas.domain import AgentRunStatus, RunSummary


def _register(registry: ActiveRunRegistry, run_id: str, worker_id: str = "worker-1") -> None:
    registry.register(
        run_id=run_id,
        agent_id="agent-1",
        status=AgentRunStatus.running,
        turn_count=0,
        max_turns=5,
        worker_id=worker_id,
        claimed_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


def _entry(registry: ActiveRunRegistry, run_id: str) -> Optional[RunSummary]:
    return next((e for e in registry.snapshot() if e.run_id == run_id), None)


def test_register_update_deregister() -> None:
    registry = ActiveRunRegistry()
    _register(registry, "r-1")
    _register(registry, "r-2", worker_id="worker-2")

    assert len(registry) == 2
    assert registry.contains("r-1")

    registry.update("r-1", turn_count=3)
    entry = _entry(registry, "r-1")
    assert entry is not None
    assert entry.turn_count == 3
    assert entry.status == AgentRunStatus.running

    registry.deregister("r-1")
    registry.deregister("r-1")
    assert not registry.contains("r-1")
    assert [e.run_id for e in registry.snapshot()] == ["r-2"]


def test_update_of_unknown_run_is_ignored() -> None:
    registry = ActiveRunRegistry()
    registry.update("ghost", turn_count=1)
    assert _entry(registry, "ghost") is None
    assert len(registry) == 0


def test_snapshot_returns_copies() -> None:
    registry = ActiveRunRegistry()
    _register(registry, "r-1")

    snap = registry.snapshot()
    snap[0].turn_count = 99

    entry = _entry(registry, "r-1")
    assert entry is not None and entry.turn_count == 0
