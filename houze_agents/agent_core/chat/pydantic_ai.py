"""Pydantic AI chat model adapter.

Implements the ``ChatModel`` port on top of ``pydantic_ai.direct.model_request``
so the engine keeps full control of the conversation loop: every call sends
the complete message list and returns one assistant response, and tool calls
are surfaced to the engine instead of being executed by pydantic-ai.

Model resolution:
    - names containing ``:`` (``openai:gpt-4o``, ``anthropic:claude-...``) are
      handed to pydantic-ai as known model names,
    - bare names (``gpt-4o-mini``) are bound to an ``OpenAIChatModel`` using the
      configured OpenAI credentials and optional base URL.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx
from openai import APIConnectionError, APITimeoutError
from pydantic_ai import ModelSettings
from pydantic_ai.direct import model_request
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.tools import ToolDefinition

from ...core.logging_config import get_logger
from ...server.core.config import OpenAIConfig
from ..errors import FatalModelError, MalformedModelResponseError, TransientModelError
from ..schemas.domain import AgentConfig, TurnRole
from ..tools.base import ToolSpec
from .base import ChatCompletion, ChatMessage, ChatToolCallRequest

logger = get_logger(__name__)

TRANSIENT_HTTP_STATUSES = frozenset({408, 409, 425, 429})

ModelFactory = Callable[[str], Union[Model, str]]


class PydanticAIChatModel:
    """``ChatModel`` implementation backed by pydantic-ai models."""

    def __init__(
        self,
        *,
        openai: Optional[OpenAIConfig] = None,
        model_factory: Optional[ModelFactory] = None,
    ) -> None:
        self._openai = openai or OpenAIConfig()
        self._model_factory = model_factory
        self._models: Dict[str, Union[Model, str]] = {}

    def _resolve_model(self, name: str) -> Union[Model, str]:
        cached = self._models.get(name)
        if cached is not None:
            return cached
        if self._model_factory is not None:
            model = self._model_factory(name)
        elif ":" in name:
            model = name
        else:
            provider = OpenAIProvider(api_key=self._openai.api_key, base_url=self._openai.base_url)
            model = OpenAIChatModel(name, provider=provider)
        self._models[name] = model
        return model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: AgentConfig,
        *,
        tools: Sequence[ToolSpec] = (),
    ) -> ChatCompletion:
        model = self._resolve_model(options.model)
        params = ModelRequestParameters(function_tools=[_tool_definition(t) for t in tools])
        try:
            response = await model_request(
                model,
                to_model_messages(messages),
                model_settings=_model_settings(options),
                model_request_parameters=params,
            )
        except ModelHTTPError as e:
            if e.status_code in TRANSIENT_HTTP_STATUSES or e.status_code >= 500:
                raise TransientModelError(f"model HTTP {e.status_code}: {e.message}") from e
            raise FatalModelError(f"model HTTP {e.status_code}: {e.message}") from e
        except UnexpectedModelBehavior as e:
            raise MalformedModelResponseError(str(e)) from e
        except (APIConnectionError, APITimeoutError, httpx.TransportError) as e:
            raise TransientModelError(f"model transport failure: {e}") from e
        return from_model_response(response)


def _model_settings(options: AgentConfig) -> ModelSettings:
    return ModelSettings(
        temperature=options.temperature,
        top_p=options.top_p,
        max_tokens=options.max_tokens,
        frequency_penalty=options.frequency_penalty,
        presence_penalty=options.presence_penalty,
    )


def _tool_definition(spec: ToolSpec) -> ToolDefinition:
    schema = spec.input_schema or {"type": "object", "properties": {}}
    return ToolDefinition(name=spec.name, description=spec.description, parameters_json_schema=schema)


def to_model_messages(messages: Sequence[ChatMessage]) -> List[ModelMessage]:
    """Translate engine chat messages into pydantic-ai request/response messages.

    Consecutive system, user and tool messages are merged into one
    ``ModelRequest``; each assistant message becomes a ``ModelResponse``.
    """
    result: List[ModelMessage] = []
    pending: List[ModelRequestPart] = []

    def flush() -> None:
        if pending:
            result.append(ModelRequest(parts=list(pending)))
            pending.clear()

    for msg in messages:
        if msg.role == TurnRole.system:
            pending.append(SystemPromptPart(content=msg.content))
        elif msg.role == TurnRole.user:
            pending.append(UserPromptPart(content=msg.content))
        elif msg.role == TurnRole.tool:
            pending.append(
                ToolReturnPart(
                    tool_name=msg.tool_name or "",
                    content=msg.content,
                    tool_call_id=msg.tool_call_id or "",
                )
            )
        else:
            flush()
            parts: List[Any] = []
            if msg.content or not msg.tool_calls:
                parts.append(TextPart(content=msg.content))
            for call in msg.tool_calls:
                parts.append(ToolCallPart(tool_name=call.name, args=dict(call.arguments), tool_call_id=call.id))
            result.append(ModelResponse(parts=parts))
    flush()
    return result


def from_model_response(response: ModelResponse) -> ChatCompletion:
    """Translate a pydantic-ai response into a ``ChatCompletion``.

    Raises:
        MalformedModelResponseError: The response carries no usable parts or
            tool arguments that are not a JSON object.
    """
    if not response.parts:
        raise MalformedModelResponseError("model returned an empty response")
    texts: List[str] = []
    calls: List[ChatToolCallRequest] = []
    for part in response.parts:
        if isinstance(part, TextPart):
            texts.append(part.content)
        elif isinstance(part, ToolCallPart):
            try:
                args = part.args_as_dict()
            except (ValueError, json.JSONDecodeError, AssertionError) as e:
                raise MalformedModelResponseError(f"invalid arguments for tool '{part.tool_name}': {e}") from e
            calls.append(ChatToolCallRequest(id=part.tool_call_id, name=part.tool_name, arguments=args))
    return ChatCompletion(content="".join(texts), tool_calls=calls)
