from __future__ import annotations

"""Active run registry.

Holds one ``RunSummary`` per run currently claimed by a worker. The engine
registers a run when a worker claims it and deregisters it when the worker
releases it (terminal or paused). Readers get copies, so listing never blocks
and never observes a half-updated entry.
"""

from datetime import datetime
from typing import Dict, List

from ..schemas.domain import AgentRunStatus, RunSummary


class ActiveRunRegistry:
    """Engine-owned map of ``run_id -> RunSummary``.

    Notes:
        - ``register`` overwrites any existing entry for the run id.
        - All mutation happens on the event loop thread; ``snapshot`` returns
          copies.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RunSummary] = {}

    def register(
        self,
        *,
        run_id: str,
        agent_id: str,
        status: AgentRunStatus,
        turn_count: int,
        max_turns: int,
        worker_id: str,
        claimed_at: datetime,
    ) -> None:
        self._entries[run_id] = RunSummary(
            run_id=run_id,
            agent_id=agent_id,
            status=status,
            turn_count=turn_count,
            max_turns=max_turns,
            worker_id=worker_id,
            claimed_at=claimed_at,
        )

    def update(self, run_id: str, *, turn_count: int) -> None:
        current = self._entries.get(run_id)
        if current is None:
            return
        self._entries[run_id] = current.model_copy(update={"turn_count": turn_count})

    def deregister(self, run_id: str) -> None:
        self._entries.pop(run_id, None)

    def contains(self, run_id: str) -> bool:
        return run_id in self._entries

    def snapshot(self) -> List[RunSummary]:
        return [e.model_copy() for e in list(self._entries.values())]

    def __len__(self) -> int:
        return len(self._entries)
