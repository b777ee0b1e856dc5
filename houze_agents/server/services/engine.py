"""
Engine Service.

Owns the process-wide execution engine, its run store and its event channel,
and exposes a singleton for API endpoints.
"""

from typing import Optional

from houze_agents.agent_core.chat.base import ChatModel
from houze_agents.agent_core.factory import StoreHandle, build_engine, build_store
from houze_agents.agent_core.repos.interfaces import AgentRepository
from houze_agents.agent_core.runtime import ExecutionEngine, RunEventBroadcaster
from houze_agents.agent_core.tools.base import ToolProvider
from houze_agents.core.logging_config import get_logger
from houze_agents.server.core.config import Settings, settings

logger = get_logger(__name__)


class EngineService:
    """
    Service layer for the HTTP API.

    Wraps the ``ExecutionEngine`` and the repositories it runs against so the
    routes have one object to depend on.
    """

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        *,
        store: Optional[StoreHandle] = None,
        chat_model: Optional[ChatModel] = None,
        tools: Optional[ToolProvider] = None,
    ) -> None:
        cfg = app_settings or settings
        self.store = store or build_store(cfg.database_url)
        self.events = RunEventBroadcaster()
        self.engine: ExecutionEngine = build_engine(
            cfg,
            repos=self.store.repos,
            chat_model=chat_model,
            tools=tools,
            events=self.events,
        )

    @property
    def agents(self) -> AgentRepository:
        return self.store.repos.agents

    async def startup(self) -> None:
        await self.store.initialize()
        await self.engine.start()
        logger.info("Engine service started")

    async def shutdown(self) -> None:
        await self.engine.stop()
        await self.store.dispose()
        logger.info("Engine service stopped")


_engine_service: Optional[EngineService] = None


def get_engine_service() -> EngineService:
    global _engine_service
    if _engine_service is None:
        _engine_service = EngineService()
    return _engine_service


def set_engine_service(service: Optional[EngineService]) -> None:
    """Replace the process-wide service (used by tests and custom wiring)."""
    global _engine_service
    _engine_service = service
