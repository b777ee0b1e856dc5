from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio

from houze_agents.agent_core.repos.interfaces import RepoBundle
from houze_agents.agent_core.repos.memory import build_memory_repos
from houze_agents.agent_core.repos.sql import build_sql_repos, create_all, create_engine, create_sessionmaker
from houze_agents.agent_core.schemas.domain import (
    Agent,
    AgentConfig,
    AgentInputVariable,
    AgentRun,
    AgentRunStatus,
    LogLevel,
    ToolCall,
    TurnRole,
)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path) -> AsyncIterator[RepoBundle]:
    if request.param == "memory":
        yield build_memory_repos()
        return
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'houze_agents.db'}")
    await create_all(engine)
    await create_all(engine)
    yield build_sql_repos(session_factory=create_sessionmaker(engine))
    await engine.dispose()


def _agent(**overrides) -> Agent:
    fields = dict(
        name="Loan Officer",
        prompt="Review {{customer}}",
        config=AgentConfig(model="gpt-4o-mini", max_turns=4, goal_completion_prompt="Decision recorded"),
        tools=["ledgerapi", "crmapi"],
        input_variables=[AgentInputVariable(name="customer", description="Applicant name")],
    )
    fields.update(overrides)
    return Agent(**fields)


@pytest.mark.asyncio
async def test_agent_crud(store: RepoBundle) -> None:
    agent = _agent(owner="tenant-a")
    await store.agents.create(agent)

    loaded = await store.agents.get(agent.id)
    assert loaded is not None
    assert loaded.model_dump() == agent.model_dump()
    assert await store.agents.get(agent.id, owner="tenant-a") is not None
    assert await store.agents.get(agent.id, owner="tenant-b") is None

    loaded.description = "Handles first-time buyers"
    loaded.config.max_turns = 7
    assert await store.agents.update(loaded) is True
    again = await store.agents.get(agent.id)
    assert again is not None
    assert again.description == "Handles first-time buyers"
    assert again.config.max_turns == 7

    assert await store.agents.update(_agent()) is False
    assert await store.agents.delete(agent.id, owner="tenant-b") is False
    assert await store.agents.delete(agent.id) is True
    assert await store.agents.get(agent.id) is None
    assert await store.agents.delete(agent.id) is False


@pytest.mark.asyncio
async def test_agent_list_filters_by_owner_and_pages(store: RepoBundle) -> None:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    for i in range(3):
        await store.agents.create(_agent(name=f"a-{i}", owner="tenant-a", created_at=base + timedelta(minutes=i)))
    await store.agents.create(_agent(name="b-0", owner="tenant-b", created_at=base))

    assert [a.name for a in await store.agents.list(owner="tenant-a")] == ["a-0", "a-1", "a-2"]
    assert [a.name for a in await store.agents.list(owner="tenant-a", limit=1, offset=1)] == ["a-1"]
    assert len(await store.agents.list()) == 4


@pytest.mark.asyncio
async def test_run_roundtrip_keeps_history_and_logs(store: RepoBundle) -> None:
    run = AgentRun(agent_id="agent-1", owner="tenant-a", input_values={"customer": "Ada"}, max_turns=4, goal="g")
    await store.runs.create(run)

    call = ToolCall(id="c-1", name="ledgerapi.get_balance", arguments={"accountId": "A-1"})
    run.status = AgentRunStatus.running
    run.append_turn(TurnRole.assistant, "Checking", tool_calls=[call])
    run.append_turn(
        TurnRole.tool,
        '{"balance": 10}',
        tool_calls=[call.model_copy(update={"result": {"balance": 10}})],
        tool_call_id="c-1",
        tool_name="ledgerapi.get_balance",
    )
    run.turn_count = 1
    run.add_log(LogLevel.info, "Turn 1 finished", data={"tokens": 42})
    await store.runs.update(run)

    loaded = await store.runs.get(run.id)
    assert loaded is not None
    assert loaded.status == AgentRunStatus.running
    assert loaded.turn_count == 1
    assert loaded.conversation_history[1].tool_calls[0].result == {"balance": 10}
    assert loaded.logs[-1].data == {"tokens": 42}
    assert loaded.model_dump() == run.model_dump()

    assert await store.runs.get(run.id, owner="tenant-b") is None


@pytest.mark.asyncio
async def test_reads_are_detached_copies(store: RepoBundle) -> None:
    run = AgentRun(agent_id="agent-1")
    await store.runs.create(run)

    loaded = await store.runs.get(run.id)
    assert loaded is not None
    loaded.append_turn(TurnRole.user, "not persisted")

    fresh = await store.runs.get(run.id)
    assert fresh is not None and fresh.conversation_history == []


@pytest.mark.asyncio
async def test_list_runs_by_agent_newest_first(store: RepoBundle) -> None:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    ids = []
    for i in range(3):
        run = AgentRun(agent_id="agent-1", owner="tenant-a", created_at=base + timedelta(seconds=i))
        await store.runs.create(run)
        ids.append(run.id)
    await store.runs.create(AgentRun(agent_id="agent-2"))

    listed = await store.runs.list_by_agent("agent-1")
    assert [r.id for r in listed] == list(reversed(ids))
    assert [r.id for r in await store.runs.list_by_agent("agent-1", limit=1)] == [ids[-1]]
    assert await store.runs.list_by_agent("agent-1", owner="tenant-b") == []


@pytest.mark.asyncio
async def test_update_of_unknown_run_is_ignored(store: RepoBundle) -> None:
    await store.runs.update(AgentRun(agent_id="agent-1"))
    assert await store.runs.list_by_agent("agent-1") == []


def test_create_engine_normalizes_postgres_urls() -> None:
    engine = create_engine("postgres://user:pw@db:5432/houze")
    try:
        assert engine.url.drivername == "postgresql+asyncpg"
    finally:
        engine.sync_engine.dispose()
