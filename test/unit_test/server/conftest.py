from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from houze_agents.agent_core.factory import StoreHandle
from houze_agents.agent_core.repos.memory import build_memory_repos
from houze_agents.agent_core.tools.registry import StaticToolProvider
from houze_agents.server.core.config import Settings


@pytest.fixture
def chat_model(scripted_model):
    """Scripted chat model shared by the service under test."""
    return scripted_model()


@pytest_asyncio.fixture
async def engine_service(chat_model):
    """Started engine service over in-memory repositories."""
    from houze_agents.server.services.engine import EngineService, set_engine_service

    service = EngineService(
        Settings(AGENT_ENGINE_WORKER_COUNT=2, AGENT_ENGINE_QUEUE_CAPACITY=5),
        store=StoreHandle(repos=build_memory_repos()),
        chat_model=chat_model,
        tools=StaticToolProvider(),
    )
    set_engine_service(service)
    await service.startup()
    yield service
    await service.shutdown()
    set_engine_service(None)


@pytest_asyncio.fixture(name="client")
async def client_fixture(engine_service) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app; the lifespan is not run."""
    from houze_agents.server.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client
