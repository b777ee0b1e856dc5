"""
Models API Endpoints.

Lists the chat model deployments the agent editor offers.
"""

from typing import List

from fastapi import APIRouter

from houze_agents.server.schemas import ModelDeployment

router = APIRouter()

AVAILABLE_MODELS: List[ModelDeployment] = [
    ModelDeployment(
        deployment_name="gpt-4o",
        display_name="gpt-4o",
        description="Flagship reasoning model for logic-heavy tasks, deep analytics, and code generation",
    ),
    ModelDeployment(
        deployment_name="gpt-4o-mini",
        display_name="gpt-4o Mini",
        description="Lightweight gpt-4o for cost-sensitive use cases with reasoning capabilities",
    ),
    ModelDeployment(
        deployment_name="gpt-5-nano",
        display_name="gpt-5 Nano",
        description="Fastest low-latency model for lightweight tasks and quick agent responses",
    ),
]


@router.get(
    "",
    response_model=List[ModelDeployment],
    summary="List Models",
    description="Chat model deployments an agent's `config.model` can name.",
)
async def list_models():
    return AVAILABLE_MODELS
