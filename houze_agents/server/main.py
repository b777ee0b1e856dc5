"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
registers exception handlers and includes all API routers. The lifespan
starts the execution engine's workers and stops them on shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from houze_agents import __version__
from houze_agents.core.logging_config import get_logger, setup_logging

from .api.v1 import agents, health, models, runs
from .core import constant
from .exception_handlers import setup_exception_handlers
from .services.engine import get_engine_service

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Starts the execution engine (and creates SQL tables when a database is
    configured) on startup; stops the workers and disposes the store on
    shutdown.
    """
    service = get_engine_service()
    logger.info("Starting up houze-agents server...")
    await service.startup()

    yield

    logger.info("Shutting down houze-agents server...")
    await service.shutdown()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    houze-agents Server API

    Control surface of the agent execution engine: manage agent definitions,
    queue background runs, pause/resume/cancel them and stream their progress.
    """,
    version=__version__,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(agents.router, prefix=f"{constant.API_V1_STR}/agents", tags=["agents"])
app.include_router(runs.router, prefix=f"{constant.API_V1_STR}/runs", tags=["runs"])
app.include_router(models.router, prefix=f"{constant.API_V1_STR}/models", tags=["models"])
