from __future__ import annotations

"""Convenience factories for wiring the agent core.

This module contains small helpers to build the repositories, ports and the
``ExecutionEngine`` from application settings.

The intent is to keep application wiring and tests concise, while still
allowing deployments to pass their own chat model, tool provider or
repositories.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from ..server.core.config import Settings
from .chat.base import ChatModel
from .chat.pydantic_ai import PydanticAIChatModel
from .repos.interfaces import RepoBundle
from .repos.memory import build_memory_repos
from .repos.sql import create_all, create_engine, create_sessionmaker, build_sql_repos
from .runtime import EngineDeps, ExecutionEngine, RunEventBroadcaster
from .tools.base import ToolProvider
from .tools.mcp import McpToolProvider


@dataclass(frozen=True)
class StoreHandle:
    """Repositories plus the SQL engine backing them, when there is one."""

    repos: RepoBundle
    sql_engine: Optional[AsyncEngine] = None

    async def initialize(self) -> None:
        if self.sql_engine is not None:
            await create_all(self.sql_engine)

    async def dispose(self) -> None:
        if self.sql_engine is not None:
            await self.sql_engine.dispose()


def build_store(database_url: Optional[str]) -> StoreHandle:
    """In-memory repositories when ``database_url`` is empty, SQL otherwise."""
    if not database_url:
        return StoreHandle(repos=build_memory_repos())
    engine = create_engine(database_url)
    return StoreHandle(repos=build_sql_repos(session_factory=create_sessionmaker(engine)), sql_engine=engine)


def build_chat_model(settings: Settings) -> ChatModel:
    return PydanticAIChatModel(openai=settings.openai)


def build_tool_provider(settings: Settings) -> ToolProvider:
    return McpToolProvider(settings.mcp_tool_endpoints)


def build_engine(
    settings: Settings,
    *,
    repos: RepoBundle,
    chat_model: Optional[ChatModel] = None,
    tools: Optional[ToolProvider] = None,
    events: Optional[RunEventBroadcaster] = None,
) -> ExecutionEngine:
    """Construct an ``ExecutionEngine`` from settings and dependencies."""
    deps = EngineDeps(
        agents=repos.agents,
        runs=repos.runs,
        chat_model=chat_model or build_chat_model(settings),
        tools=tools or build_tool_provider(settings),
        events=events or RunEventBroadcaster(),
    )
    return ExecutionEngine(deps=deps, config=settings.engine)
