"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification.
"""

from fastapi import APIRouter

from houze_agents import __version__
from houze_agents.server.services.deps import EngineServiceDep

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server and its execution engine.",
    response_description="Status object.",
)
async def health_check(service: EngineServiceDep):
    """
    Health check endpoint.

    Reports whether the worker pool is running, the queue depth and how many runs are active.
    """
    engine = service.engine
    return {
        "status": "ok",
        "engine": {
            "running": engine.is_running,
            "workers": engine.config.worker_count,
            "queueDepth": engine.queue_depth,
            "queueCapacity": engine.config.queue_capacity,
            "activeRuns": len(engine.list_active()),
        },
    }


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    """
    Get API version.
    """
    return {"version": __version__, "schema_version": "v1"}
