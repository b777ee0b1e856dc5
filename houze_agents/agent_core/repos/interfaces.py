from __future__ import annotations

"""Repository interface contracts.

The runtime depends on these Protocols instead of concrete persistence
implementations.

Contract guidelines
-------------------

- All methods are async.
- Records are keyed by id; an optional ``owner`` scopes reads and deletes to
  one tenant. A record owned by someone else behaves as if it did not exist.
- Returned objects are detached copies: mutating them never changes the
  stored record until ``update`` is called.
- Run records have a single writer (the worker executing the run); the
  control surface only reads them or writes status before a worker claims.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol

from ..schemas.domain import Agent, AgentRun


class AgentRepository(Protocol):
    """Persist and query agent definitions."""

    async def create(self, agent: Agent) -> None:
        """
        Create a new agent record.

        Args:
            agent: The agent to persist.
        """
        ...

    async def get(self, agent_id: str, *, owner: Optional[str] = None) -> Optional[Agent]:
        """
        Retrieve an agent by its ID.

        Args:
            agent_id: The agent identifier.
            owner: Optional owner the agent must belong to.

        Returns:
            The Agent if found, else None.
        """
        ...

    async def list(self, *, owner: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Agent]:
        """
        List agents, optionally filtered by owner.

        Args:
            owner: Optional owner to filter by.
            limit: Max number of records to return.
            offset: Pagination offset.

        Returns:
            A list of Agent objects ordered by creation time.
        """
        ...

    async def update(self, agent: Agent) -> bool:
        """
        Replace an existing agent record.

        Args:
            agent: The new agent state; ``agent.id`` selects the record.

        Returns:
            True if a record was replaced, False if it does not exist.
        """
        ...

    async def delete(self, agent_id: str, *, owner: Optional[str] = None) -> bool:
        """
        Delete an agent record.

        Args:
            agent_id: The agent identifier.
            owner: Optional owner the agent must belong to.

        Returns:
            True if a record was deleted.
        """
        ...


class RunRepository(Protocol):
    """Persist and query agent runs, including their history and logs."""

    async def create(self, run: AgentRun) -> None:
        """
        Create a new run record.

        Args:
            run: The initial run state to persist.
        """
        ...

    async def get(self, run_id: str, *, owner: Optional[str] = None) -> Optional[AgentRun]:
        """
        Retrieve a run by its ID.

        Args:
            run_id: The run identifier.
            owner: Optional owner the run must belong to.

        Returns:
            The AgentRun if found, else None.
        """
        ...

    async def list_by_agent(
        self,
        agent_id: str,
        *,
        owner: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AgentRun]:
        """
        List runs of one agent, newest first.

        Args:
            agent_id: The agent identifier.
            owner: Optional owner to filter by.
            limit: Max number of records to return.
            offset: Pagination offset.

        Returns:
            A list of AgentRun objects.
        """
        ...

    async def update(self, run: AgentRun) -> None:
        """
        Replace the stored state of a run.

        Args:
            run: The full run state; ``run.id`` selects the record.
        """
        ...


@dataclass(frozen=True)
class RepoBundle:
    """The repositories the engine needs, wired to one backend."""

    agents: AgentRepository
    runs: RunRepository
