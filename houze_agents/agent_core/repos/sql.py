from __future__ import annotations

"""Async SQLAlchemy run store.

Agents and runs are stored as JSON documents next to the few columns the
store filters on (id, agent id, owner, status, created_at). Reads validate the
document back into the domain model, so callers always get detached copies.

Wiring
------

``build_store`` in ``houze_agents.agent_core.factory`` covers the usual case.
By hand: ``create_engine`` from a database URL, ``create_all`` once at
startup, then ``build_sql_repos`` over ``create_sessionmaker(engine)``.

Writes
------

Every method runs in its own short ``AsyncSession`` and commits before
returning. ``update`` replaces the whole run document; only the worker
holding a run writes its content.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..schemas.domain import Agent, AgentRun
from .interfaces import AgentRepository, RepoBundle, RunRepository
from .models import AgentRow, Base, RunRow


def create_engine(db_url: str) -> AsyncEngine:
    """Build the async engine for ``db_url``.

    Any ``postgres``/``postgresql`` URL, with or without a driver suffix, is
    pointed at asyncpg; other URLs (``sqlite+aiosqlite://``) pass through.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create the agent and run tables if they are missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@dataclass(frozen=True)
class SqlAgentRepository(AgentRepository):
    """SQL implementation of ``AgentRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, agent: Agent) -> None:
        async with self.session_factory() as s:
            s.add(
                AgentRow(
                    id=agent.id,
                    owner=agent.owner,
                    name=agent.name,
                    document=agent.to_document(),
                    created_at=agent.created_at,
                    updated_at=agent.updated_at,
                )
            )
            await s.commit()

    async def get(self, agent_id: str, *, owner: Optional[str] = None) -> Optional[Agent]:
        async with self.session_factory() as s:
            row = await s.get(AgentRow, agent_id)
            if row is None or (owner is not None and row.owner != owner):
                return None
            return Agent.model_validate(row.document)

    async def list(self, *, owner: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Agent]:
        async with self.session_factory() as s:
            stmt = select(AgentRow)
            if owner is not None:
                stmt = stmt.where(AgentRow.owner == owner)
            stmt = stmt.order_by(AgentRow.created_at).offset(offset).limit(limit)
            result = await s.execute(stmt)
            return [Agent.model_validate(row.document) for row in result.scalars().all()]

    async def update(self, agent: Agent) -> bool:
        async with self.session_factory() as s:
            row = await s.get(AgentRow, agent.id)
            if row is None:
                return False
            row.owner = agent.owner
            row.name = agent.name
            row.document = agent.to_document()
            row.updated_at = agent.updated_at
            await s.commit()
            return True

    async def delete(self, agent_id: str, *, owner: Optional[str] = None) -> bool:
        async with self.session_factory() as s:
            row = await s.get(AgentRow, agent_id)
            if row is None or (owner is not None and row.owner != owner):
                return False
            await s.delete(row)
            await s.commit()
            return True


@dataclass(frozen=True)
class SqlRunRepository(RunRepository):
    """SQL implementation of ``RunRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, run: AgentRun) -> None:
        async with self.session_factory() as s:
            s.add(
                RunRow(
                    id=run.id,
                    agent_id=run.agent_id,
                    owner=run.owner,
                    status=run.status.value,
                    turn_count=run.turn_count,
                    document=run.to_document(),
                    created_at=run.created_at,
                    last_updated=run.last_updated,
                )
            )
            await s.commit()

    async def get(self, run_id: str, *, owner: Optional[str] = None) -> Optional[AgentRun]:
        async with self.session_factory() as s:
            row = await s.get(RunRow, run_id)
            if row is None or (owner is not None and row.owner != owner):
                return None
            return AgentRun.model_validate(row.document)

    async def list_by_agent(
        self,
        agent_id: str,
        *,
        owner: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AgentRun]:
        async with self.session_factory() as s:
            stmt = select(RunRow).where(RunRow.agent_id == agent_id)
            if owner is not None:
                stmt = stmt.where(RunRow.owner == owner)
            stmt = stmt.order_by(RunRow.created_at.desc()).offset(offset).limit(limit)
            result = await s.execute(stmt)
            return [AgentRun.model_validate(row.document) for row in result.scalars().all()]

    async def update(self, run: AgentRun) -> None:
        async with self.session_factory() as s:
            row = await s.get(RunRow, run.id)
            if row is None:
                return
            row.status = run.status.value
            row.turn_count = run.turn_count
            row.document = run.to_document()
            row.last_updated = run.last_updated
            await s.commit()


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> RepoBundle:
    """Build a ``RepoBundle`` from a session factory."""
    return RepoBundle(
        agents=SqlAgentRepository(session_factory=session_factory),
        runs=SqlRunRepository(session_factory=session_factory),
    )
