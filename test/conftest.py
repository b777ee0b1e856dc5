from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio

from houze_agents.agent_core.chat.base import ChatCompletion, ChatMessage
from houze_agents.agent_core.repos.interfaces import RepoBundle
from houze_agents.agent_core.repos.memory import build_memory_repos
from houze_agents.agent_core.runtime import EngineDeps, ExecutionEngine, RunEventBroadcaster
from houze_agents.agent_core.schemas.domain import Agent, AgentConfig, AgentRun, AgentRunStatus, TurnRole
from houze_agents.agent_core.tools.base import ToolProvider
from houze_agents.agent_core.tools.registry import StaticToolProvider
from houze_agents.server.core.config import EngineConfig

Reply = Union[ChatCompletion, BaseException, Callable[[Sequence[ChatMessage]], Awaitable[ChatCompletion]]]


def _is_goal_check(messages: Sequence[ChatMessage]) -> bool:
    return bool(messages) and messages[0].role == TurnRole.system and messages[0].content.startswith(
        "You are evaluating if a goal has been achieved"
    )


class ScriptedChatModel:
    """Chat model double answering from scripts.

    Turn calls consume ``replies`` and goal checks consume ``goal_answers``.
    A reply may be a ``ChatCompletion``, an exception to raise, or an async
    callable receiving the messages. When a script runs dry the model answers
    "working" (turns) or "no" (goal checks).

    When ``gate`` is set, turn calls signal ``entered`` and then wait on the
    gate, which lets tests act while a model call is in flight.
    """

    def __init__(
        self,
        replies: Optional[List[Reply]] = None,
        *,
        goal_answers: Optional[List[Reply]] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.replies: List[Reply] = list(replies or [])
        self.goal_answers: List[Reply] = list(goal_answers or [])
        self.gate = gate
        self.entered = asyncio.Event()
        self.calls: List[List[ChatMessage]] = []
        self.goal_calls: List[List[ChatMessage]] = []
        self.tools_seen: List[List[str]] = []
        self.options_seen: List[AgentConfig] = []

    async def complete(self, messages, options, *, tools=()) -> ChatCompletion:
        if _is_goal_check(messages):
            self.goal_calls.append(list(messages))
            reply = self.goal_answers.pop(0) if self.goal_answers else ChatCompletion(content="no")
        else:
            self.calls.append(list(messages))
            self.tools_seen.append([t.name for t in tools])
            self.options_seen.append(options)
            self.entered.set()
            if self.gate is not None:
                await self.gate.wait()
            reply = self.replies.pop(0) if self.replies else ChatCompletion(content="working")
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply(messages)
        return reply


async def wait_for_status(
    engine: ExecutionEngine,
    run_id: str,
    *statuses: AgentRunStatus,
    timeout: float = 5.0,
) -> AgentRun:
    """Poll the store until the run reaches one of ``statuses``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        run = await engine.get_run(run_id)
        if run is not None and run.status in statuses:
            return run
        if loop.time() > deadline:
            current = run.status.value if run is not None else None
            raise AssertionError(f"run {run_id} did not reach {[s.value for s in statuses]} (status={current})")
        await asyncio.sleep(0.01)


@pytest.fixture
def repos() -> RepoBundle:
    return build_memory_repos()


@pytest.fixture
def backoff_delays() -> List[float]:
    return []


@pytest_asyncio.fixture
async def make_engine(repos: RepoBundle, backoff_delays: List[float]):
    """Factory building engines over the shared in-memory repos.

    Backoff sleeps are recorded in ``backoff_delays`` instead of waited for.
    Engines are stopped at teardown.
    """
    created: List[ExecutionEngine] = []

    async def _sleep(delay: float) -> None:
        backoff_delays.append(delay)

    def _make(
        chat_model: Any,
        *,
        tools: Optional[ToolProvider] = None,
        events: Optional[RunEventBroadcaster] = None,
        **config: Any,
    ) -> ExecutionEngine:
        deps = EngineDeps(
            agents=repos.agents,
            runs=repos.runs,
            chat_model=chat_model,
            tools=tools or StaticToolProvider(),
            events=events,
        )
        engine = ExecutionEngine(deps=deps, config=EngineConfig(**config), sleep=_sleep)
        created.append(engine)
        return engine

    yield _make

    for engine in created:
        await engine.stop()


@pytest.fixture
def save_agent(repos: RepoBundle):
    """Persist an agent built from keyword overrides and return it."""

    async def _save(*, config: Optional[Dict[str, Any]] = None, **fields: Any) -> Agent:
        fields.setdefault("name", "Loan Officer")
        fields.setdefault("prompt", "You review mortgage applications.")
        agent = Agent(config=AgentConfig(**(config or {})), **fields)
        await repos.agents.create(agent)
        return agent

    return _save


@pytest.fixture
def scripted_model():
    """The ``ScriptedChatModel`` class, for tests to build scripted models."""
    return ScriptedChatModel


@pytest.fixture
def wait_status():
    """The ``wait_for_status`` polling helper."""
    return wait_for_status
