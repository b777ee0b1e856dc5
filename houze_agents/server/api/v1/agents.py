"""
Agents API Endpoints.

CRUD for agent definitions plus the entry points that run an agent.

Includes:
- Agent CRUD operations (create, list, get, replace, delete)
- Synchronous runs (`run`) and background run submission (`run-async`)
- Run history per agent
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Response, status

from houze_agents.agent_core.schemas.domain import Agent, AgentRun, _utc_now
from houze_agents.core.logging_config import get_logger, sanitize_for_log
from houze_agents.server.schemas import AgentCreate, RunAccepted, RunAsyncRequest
from houze_agents.server.services.deps import EngineServiceDep

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "",
    response_model=List[Agent],
    summary="List Agents",
    description="Retrieve agent definitions, optionally filtered by owner.",
)
async def list_agents(service: EngineServiceDep, owner: Optional[str] = None, limit: int = 100, offset: int = 0):
    return await service.agents.list(owner=owner, limit=limit, offset=offset)


@router.post(
    "",
    response_model=Agent,
    status_code=status.HTTP_201_CREATED,
    summary="Create Agent",
    description="Create a new agent definition.",
)
async def create_agent(agent_in: AgentCreate, service: EngineServiceDep):
    agent = Agent(**agent_in.model_dump())
    await service.agents.create(agent)
    logger.info("Created agent %s (%s)", sanitize_for_log(agent.id), sanitize_for_log(agent.name))
    return agent


@router.get(
    "/{agent_id}",
    response_model=Agent,
    summary="Get Agent",
    responses={404: {"description": "Agent not found"}},
)
async def get_agent(agent_id: str, service: EngineServiceDep, owner: Optional[str] = None):
    agent = await service.agents.get(agent_id, owner=owner)
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.put(
    "/{agent_id}",
    response_model=Agent,
    summary="Replace Agent",
    description="Replace an agent definition. Runs already queued keep the settings they were created with.",
    responses={404: {"description": "Agent not found"}},
)
async def update_agent(agent_id: str, agent_in: AgentCreate, service: EngineServiceDep):
    current = await service.agents.get(agent_id, owner=agent_in.owner)
    if current is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    updated = Agent(**agent_in.model_dump(), id=current.id, created_at=current.created_at, updated_at=_utc_now())
    await service.agents.update(updated)
    logger.info("Updated agent %s", sanitize_for_log(agent_id))
    return updated


@router.delete(
    "/{agent_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Agent",
    responses={404: {"description": "Agent not found"}},
)
async def delete_agent(agent_id: str, service: EngineServiceDep, owner: Optional[str] = None):
    if not await service.agents.delete(agent_id, owner=owner):
        raise HTTPException(status_code=404, detail="Agent not found")
    logger.info("Deleted agent %s", sanitize_for_log(agent_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{agent_id}/run",
    response_model=AgentRun,
    summary="Run Agent",
    description="Run the agent to completion within the request and return the settled run.",
    responses={
        404: {"description": "Agent not found"},
        422: {"description": "Missing required input variables"},
    },
)
async def run_agent(
    agent_id: str,
    service: EngineServiceDep,
    run_in: Optional[RunAsyncRequest] = None,
    owner: Optional[str] = None,
):
    values = run_in.input_values if run_in is not None else {}
    return await service.engine.execute(agent_id, values, owner=owner)


@router.post(
    "/{agent_id}/run-async",
    response_model=RunAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start Background Run",
    description="Queue a run of the agent. Poll the run or subscribe to its events to follow progress.",
    responses={
        404: {"description": "Agent not found"},
        422: {"description": "Missing required input variables"},
        503: {"description": "Execution queue is full"},
    },
)
async def run_agent_async(
    agent_id: str,
    service: EngineServiceDep,
    run_in: Optional[RunAsyncRequest] = None,
    owner: Optional[str] = None,
):
    values = run_in.input_values if run_in is not None else {}
    run_id = await service.engine.enqueue(agent_id, values, owner=owner)
    return RunAccepted(run_id=run_id, agent_id=agent_id)


@router.get(
    "/{agent_id}/runs",
    response_model=List[AgentRun],
    summary="List Agent Runs",
    description="Runs of one agent, newest first.",
)
async def list_agent_runs(agent_id: str, service: EngineServiceDep, owner: Optional[str] = None, limit: int = 100):
    return await service.engine.list_runs(agent_id, owner=owner, limit=limit)
