from __future__ import annotations

"""In-memory repository implementations.

Used when no ``DATABASE_URL`` is configured and throughout the unit tests.
Every read and write goes through a deep copy so callers can never alias the
stored state.
"""

from typing import Dict, List, Optional

from ..schemas.domain import Agent, AgentRun
from .interfaces import RepoBundle


def _visible(record_owner: Optional[str], owner: Optional[str]) -> bool:
    return owner is None or record_owner == owner


class InMemoryAgentRepository:
    """Dict-backed ``AgentRepository``."""

    def __init__(self) -> None:
        self._agents: Dict[str, Agent] = {}

    async def create(self, agent: Agent) -> None:
        self._agents[agent.id] = agent.model_copy(deep=True)

    async def get(self, agent_id: str, *, owner: Optional[str] = None) -> Optional[Agent]:
        agent = self._agents.get(agent_id)
        if agent is None or not _visible(agent.owner, owner):
            return None
        return agent.model_copy(deep=True)

    async def list(self, *, owner: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Agent]:
        agents = [a for a in self._agents.values() if _visible(a.owner, owner)]
        agents.sort(key=lambda a: a.created_at)
        return [a.model_copy(deep=True) for a in agents[offset : offset + limit]]

    async def update(self, agent: Agent) -> bool:
        if agent.id not in self._agents:
            return False
        self._agents[agent.id] = agent.model_copy(deep=True)
        return True

    async def delete(self, agent_id: str, *, owner: Optional[str] = None) -> bool:
        agent = self._agents.get(agent_id)
        if agent is None or not _visible(agent.owner, owner):
            return False
        del self._agents[agent_id]
        return True


class InMemoryRunRepository:
    """Dict-backed ``RunRepository``."""

    def __init__(self) -> None:
        self._runs: Dict[str, AgentRun] = {}

    async def create(self, run: AgentRun) -> None:
        self._runs[run.id] = run.model_copy(deep=True)

    async def get(self, run_id: str, *, owner: Optional[str] = None) -> Optional[AgentRun]:
        run = self._runs.get(run_id)
        if run is None or not _visible(run.owner, owner):
            return None
        return run.model_copy(deep=True)

    async def list_by_agent(
        self,
        agent_id: str,
        *,
        owner: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AgentRun]:
        runs = [r for r in self._runs.values() if r.agent_id == agent_id and _visible(r.owner, owner)]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in runs[offset : offset + limit]]

    async def update(self, run: AgentRun) -> None:
        if run.id not in self._runs:
            return
        self._runs[run.id] = run.model_copy(deep=True)


def build_memory_repos() -> RepoBundle:
    """Build a ``RepoBundle`` backed by process memory."""
    return RepoBundle(agents=InMemoryAgentRepository(), runs=InMemoryRunRepository())
