"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
Field names are camelCase on the wire, like the domain records they wrap.
"""

from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from houze_agents.agent_core.schemas.base import BaseSchema
from houze_agents.agent_core.schemas.domain import AgentConfig, AgentInputVariable, AgentRunStatus, RunSummary


class AgentCreate(BaseSchema):
    """
    Schema for creating or replacing an agent definition.
    """

    name: str = Field(..., min_length=1, description="Display name of the agent.", examples=["Loan Officer"])
    description: str = Field(default="", description="What the agent is for.")
    prompt: str = Field(
        ...,
        min_length=1,
        description="System prompt template; `{{name}}` placeholders are filled from run inputs.",
        examples=["You review the mortgage application of {{customer}}."],
    )
    owner: Optional[str] = Field(default=None, description="Owner (tenant) of the agent.")
    config: AgentConfig = Field(default_factory=AgentConfig)
    tools: List[str] = Field(default_factory=list, description="Declared tool names or tool groups.")
    input_variables: List[AgentInputVariable] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Loan Officer",
                "prompt": "You review the mortgage application of {{customer}}.",
                "config": {"model": "gpt-4o-mini", "maxTurns": 5, "goalCompletionPrompt": "A decision was recorded"},
                "tools": ["ledgerapi", "crmapi"],
                "inputVariables": [{"name": "customer", "required": True}],
            }
        }
    )


class RunAsyncRequest(BaseSchema):
    """
    Schema for starting a run, inline or in the background.
    """

    input_values: Dict[str, str] = Field(default_factory=dict, description="Values for the agent's input variables.")


class RunAccepted(BaseSchema):
    """
    Response for an accepted background run.
    """

    run_id: str
    agent_id: str
    status: str = "queued"


class RunControlResponse(BaseSchema):
    """
    Response of a pause/resume/cancel request: the run status after the signal was recorded.
    """

    run_id: str
    status: AgentRunStatus


class ActiveRunsResponse(BaseSchema):
    """
    Snapshot of the runs currently held by workers.
    """

    active_runs: List[RunSummary]
    count: int


class ModelDeployment(BaseSchema):
    """
    A chat model deployment agents can be configured with.
    """

    deployment_name: str = Field(..., description="Value for the agent's `config.model`.", examples=["gpt-4o-mini"])
    display_name: str
    description: str = ""
