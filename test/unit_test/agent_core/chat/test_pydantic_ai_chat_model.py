from __future__ import annotations

from typing import Any, Dict, List

import pytest
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.openai import OpenAIChatModel

from houze_agents.agent_core.chat.base import ChatMessage, ChatToolCallRequest
from houze_agents.agent_core.chat.pydantic_ai import PydanticAIChatModel, from_model_response, to_model_messages
from houze_agents.agent_core.errors import FatalModelError, MalformedModelResponseError, TransientModelError
from houze_agents.agent_core.schemas.domain import AgentConfig, TurnRole
from houze_agents.agent_core.tools.base import ToolSpec
from houze_agents.server.core.config import OpenAIConfig

CONVERSATION = [
    ChatMessage(role=TurnRole.system, content="You review mortgage applications."),
    ChatMessage(role=TurnRole.user, content="Start."),
    ChatMessage(
        role=TurnRole.assistant,
        content="",
        tool_calls=[ChatToolCallRequest(id="c-1", name="ledgerapi.get_balance", arguments={"accountId": "A-1"})],
    ),
    ChatMessage(role=TurnRole.tool, content='{"balance": 10}', tool_call_id="c-1", tool_name="ledgerapi.get_balance"),
]


def test_to_model_messages_groups_requests_and_responses() -> None:
    messages = to_model_messages(CONVERSATION)

    assert [type(m) for m in messages] == [ModelRequest, ModelResponse, ModelRequest]
    first, response, tool_return = messages
    assert [type(p) for p in first.parts] == [SystemPromptPart, UserPromptPart]
    assert len(response.parts) == 1
    call = response.parts[0]
    assert isinstance(call, ToolCallPart)
    assert call.tool_call_id == "c-1"
    assert call.args == {"accountId": "A-1"}
    ret = tool_return.parts[0]
    assert isinstance(ret, ToolReturnPart)
    assert ret.tool_call_id == "c-1"
    assert ret.tool_name == "ledgerapi.get_balance"


def test_from_model_response_collects_text_and_calls() -> None:
    completion = from_model_response(
        ModelResponse(
            parts=[
                TextPart(content="Let me check. "),
                ToolCallPart(tool_name="crmapi.find", args='{"name": "Ada"}', tool_call_id="t-1"),
                TextPart(content="One moment."),
            ]
        )
    )
    assert completion.content == "Let me check. One moment."
    assert completion.tool_calls == [ChatToolCallRequest(id="t-1", name="crmapi.find", arguments={"name": "Ada"})]


def test_from_model_response_rejects_empty_and_bad_arguments() -> None:
    with pytest.raises(MalformedModelResponseError):
        from_model_response(ModelResponse(parts=[]))
    with pytest.raises(MalformedModelResponseError):
        from_model_response(ModelResponse(parts=[ToolCallPart(tool_name="x", args="{not json", tool_call_id="t")]))


@pytest.mark.asyncio
async def test_complete_through_function_model() -> None:
    seen: Dict[str, Any] = {}

    def respond(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen["messages"] = messages
        seen["tools"] = [t.name for t in info.function_tools]
        return ModelResponse(
            parts=[
                TextPart(content="Balance looks fine."),
                ToolCallPart(tool_name="crmapi.find", args={"name": "Ada"}, tool_call_id="t-2"),
            ]
        )

    chat = PydanticAIChatModel(model_factory=lambda name: FunctionModel(respond))
    completion = await chat.complete(
        CONVERSATION,
        AgentConfig(model="loan-reviewer", temperature=0.2),
        tools=[ToolSpec(name="crmapi.find", description="Find a customer")],
    )

    assert completion.content == "Balance looks fine."
    assert completion.tool_calls[0].name == "crmapi.find"
    assert completion.tool_calls[0].arguments == {"name": "Ada"}
    assert seen["tools"] == ["crmapi.find"]
    assert len(seen["messages"]) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected",
    [
        (ModelHTTPError(status_code=429, model_name="m"), TransientModelError),
        (ModelHTTPError(status_code=503, model_name="m"), TransientModelError),
        (ModelHTTPError(status_code=401, model_name="m"), FatalModelError),
        (ModelHTTPError(status_code=400, model_name="m"), FatalModelError),
        (UnexpectedModelBehavior("garbled"), MalformedModelResponseError),
    ],
)
async def test_complete_maps_model_errors(error: Exception, expected: type) -> None:
    def respond(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise error

    chat = PydanticAIChatModel(model_factory=lambda name: FunctionModel(respond))
    with pytest.raises(expected):
        await chat.complete(CONVERSATION[:2], AgentConfig())


def test_model_resolution_and_caching() -> None:
    chat = PydanticAIChatModel(openai=OpenAIConfig(api_key="sk-test", base_url="http://localhost:9999/v1"))

    assert chat._resolve_model("openai:gpt-4o") == "openai:gpt-4o"
    bare = chat._resolve_model("gpt-4o-mini")
    assert isinstance(bare, OpenAIChatModel)
    assert bare.model_name == "gpt-4o-mini"
    assert chat._resolve_model("gpt-4o-mini") is bare
