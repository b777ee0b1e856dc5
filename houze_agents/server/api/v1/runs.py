"""
Agent Runs API Endpoints.

This module provides the control interface for background runs: reading run
state, pausing, resuming and cancelling, listing what the workers currently
hold, and following a run in real time.

Includes:
- Run inspection (get, active runs)
- Control signals (pause, resume, cancel)
- Real-time progress streaming via Server-Sent Events (SSE)
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from houze_agents.agent_core.schemas.domain import AgentRun, RunEventType
from houze_agents.core.logging_config import get_logger, sanitize_for_log
from houze_agents.server.schemas import ActiveRunsResponse, RunControlResponse
from houze_agents.server.services.deps import EngineServiceDep

logger = get_logger(__name__)
router = APIRouter()

KEEPALIVE_SECONDS = 15.0


@router.get(
    "/active",
    response_model=ActiveRunsResponse,
    summary="List Active Runs",
    description="Snapshot of the runs currently held by a worker.",
)
async def list_active_runs(service: EngineServiceDep):
    active = service.engine.list_active()
    return ActiveRunsResponse(active_runs=active, count=len(active))


@router.get(
    "/{run_id}",
    response_model=AgentRun,
    summary="Get Run Details",
    description="Retrieve the full state of a run, including conversation history and logs.",
    responses={404: {"description": "Run not found"}},
)
async def get_run(run_id: str, service: EngineServiceDep, owner: Optional[str] = None):
    run = await service.engine.get_run(run_id, owner=owner)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


async def _control_response(service, run_id: str) -> RunControlResponse:
    run = await service.engine.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunControlResponse(run_id=run.id, status=run.status)


@router.post(
    "/{run_id}/pause",
    response_model=RunControlResponse,
    summary="Pause Run",
    description="Ask the run to pause at its next turn boundary.",
    responses={404: {"description": "Run not found"}, 409: {"description": "Run already finished"}},
)
async def pause_run(run_id: str, service: EngineServiceDep):
    await service.engine.pause(run_id)
    logger.info("Pause requested via API for run %s", sanitize_for_log(run_id))
    return await _control_response(service, run_id)


@router.post(
    "/{run_id}/resume",
    response_model=RunControlResponse,
    summary="Resume Run",
    description="Resume a paused run at the turn where it stopped.",
    responses={
        404: {"description": "Run not found"},
        409: {"description": "Run already finished or being cancelled"},
        503: {"description": "Execution queue is full"},
    },
)
async def resume_run(run_id: str, service: EngineServiceDep):
    await service.engine.resume(run_id)
    logger.info("Resume requested via API for run %s", sanitize_for_log(run_id))
    return await _control_response(service, run_id)


@router.post(
    "/{run_id}/cancel",
    response_model=RunControlResponse,
    summary="Cancel Run",
    description="Cancel a run. Conversation history and logs are kept.",
    responses={404: {"description": "Run not found"}, 409: {"description": "Run already finished"}},
)
async def cancel_run(run_id: str, service: EngineServiceDep):
    await service.engine.cancel(run_id)
    logger.info("Cancel requested via API for run %s", sanitize_for_log(run_id))
    return await _control_response(service, run_id)


@router.get(
    "/{run_id}/events",
    summary="Stream Run Events",
    description="Server-Sent Events stream of status changes, new turns and new log entries of a run.",
    responses={404: {"description": "Run not found"}},
)
async def stream_run_events(run_id: str, request: Request, service: EngineServiceDep):
    """
    Stream events for a run.

    The first event is a `snapshot` of the current run; the stream ends after
    the run reaches a terminal status.
    """
    if await service.engine.get_run(run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")

    async def event_generator():
        async with service.events.subscribe(run_id) as sub:
            snapshot = await service.engine.get_run(run_id)
            if snapshot is None:
                return
            yield {"event": "snapshot", "data": snapshot.model_dump_json(by_alias=True)}
            if snapshot.status.is_terminal:
                return
            while True:
                if await request.is_disconnected():
                    logger.info("Client disconnected from stream for run %s", sanitize_for_log(run_id))
                    break
                event = await sub.get(timeout=KEEPALIVE_SECONDS)
                if event is None:
                    continue
                yield {"event": event.type.value, "id": event.id, "data": event.model_dump_json(by_alias=True)}
                if event.type == RunEventType.status_changed and event.payload.get("status") in (
                    "completed",
                    "failed",
                    "cancelled",
                ):
                    break

    return EventSourceResponse(event_generator())
