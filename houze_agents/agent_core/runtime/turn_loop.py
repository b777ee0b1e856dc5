from __future__ import annotations

"""LangGraph turn loop.

``TurnLoopController`` executes exactly one iteration of the multi-turn
conversation per ``run_turn`` call. The worker calls it repeatedly until the
returned ``TurnOutcome`` is not ``proceed``.

Execution model
---------------

The iteration is a compiled LangGraph state machine over ``_TurnState``::

    check_signals -> call_model -> invoke_tools -> advance
                                                     |-> evaluate_goal -> prepare_next
                                                     '-> prepare_next

Any node may set ``outcome`` and end the turn early. The graph is compiled
once per controller and invoked once per turn, so a long run never grows the
graph's step count.

Signals
-------

Pause and cancel are read from ``RunContext.control`` at the top of the turn
and before every tool invocation; cancel wins over pause. Cancel
is checked again once the turn is counted and after the goal check, so it
also wins over completion. A transient error exhausting its retries while a
cancel is pending ends the turn as cancelled.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

from langgraph.graph import END, StateGraph

from ...core.logging_config import get_logger, sanitize_for_log
from ..chat.base import ChatCompletion, ChatMessage, ChatModel, ChatToolCallRequest
from ..errors import (
    ConfigurationError,
    FatalModelError,
    MalformedModelResponseError,
    TransientError,
    TransientModelError,
    TransientToolError,
)
from ..schemas.domain import Agent, AgentRun, ConversationTurn, LogLevel, ToolCall, TurnRole, _new_id
from ..tools.base import ToolErrorKind, ToolProvider, ToolResult, ToolSpec, tool_matches_declaration
from .goal import GoalEvaluator
from .models import RetryPolicy, RunContext, TurnOutcome, _TurnState
from .prompt import render_prompt
from .retry import call_with_retry

logger = get_logger(__name__)

CONTINUATION_MESSAGE = "Continue working towards the goal."


def build_messages(system_prompt: str, history: List[ConversationTurn]) -> List[ChatMessage]:
    """Rendered system prompt followed by the full turn history."""
    messages = [ChatMessage(role=TurnRole.system, content=system_prompt)]
    for turn in history:
        requested: List[ChatToolCallRequest] = []
        if turn.role == TurnRole.assistant and turn.tool_calls:
            requested = [ChatToolCallRequest(id=c.id, name=c.name, arguments=dict(c.arguments)) for c in turn.tool_calls]
        messages.append(
            ChatMessage(
                role=turn.role,
                content=turn.content,
                tool_calls=requested,
                tool_call_id=turn.tool_call_id,
                tool_name=turn.tool_name,
            )
        )
    return messages


def _result_text(result: ToolResult) -> str:
    if not result.ok:
        return f"Error ({result.error_kind.value if result.error_kind else 'error'}): {result.error}"
    if isinstance(result.output, str):
        return result.output
    return json.dumps(result.output, default=str)


async def resolve_agent_tools(
    agent: Agent,
    provider: ToolProvider,
    *,
    retry: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[ToolSpec]:
    """Return the provider tools covered by the agent's declarations.

    Raises:
        ConfigurationError: A declared tool (or tool group) matches nothing the
            provider exposes, or the catalogue cannot be listed.
    """
    if not agent.tools:
        return []
    try:
        available = await call_with_retry(provider.list_tools, policy=retry, sleep=sleep)
    except TransientError as e:
        raise ConfigurationError(f"Tool catalogue unavailable: {e}") from e

    selected = [t for t in available if tool_matches_declaration(t.name, agent.tools)]
    unknown = [d for d in agent.tools if not any(tool_matches_declaration(t.name, [d]) for t in available)]
    if unknown:
        raise ConfigurationError(f"Agent declares tools the provider does not offer: {', '.join(unknown)}")
    return selected


class TurnLoopController:
    """Drive one turn of a run through the chat model and tool provider."""

    def __init__(
        self,
        *,
        chat_model: ChatModel,
        tools: ToolProvider,
        retry: RetryPolicy,
        goal_evaluator: Optional[GoalEvaluator] = None,
        model_timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._chat = chat_model
        self._tools = tools
        self._retry = retry
        self._model_timeout = model_timeout_seconds
        self._sleep = sleep
        self._goal = goal_evaluator or GoalEvaluator(
            chat_model, retry=retry, timeout_seconds=model_timeout_seconds, sleep=sleep
        )
        self._graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_TurnState)
        g.add_node("check_signals", self._node_check_signals)
        g.add_node("call_model", self._node_call_model)
        g.add_node("invoke_tools", self._node_invoke_tools)
        g.add_node("advance", self._node_advance)
        g.add_node("evaluate_goal", self._node_evaluate_goal)
        g.add_node("prepare_next", self._node_prepare_next)

        g.set_entry_point("check_signals")
        g.add_conditional_edges("check_signals", self._route_or_stop, {"stop": END, "next": "call_model"})
        g.add_conditional_edges("call_model", self._route_or_stop, {"stop": END, "next": "invoke_tools"})
        g.add_conditional_edges("invoke_tools", self._route_or_stop, {"stop": END, "next": "advance"})
        g.add_conditional_edges(
            "advance",
            self._route_after_advance,
            {"stop": END, "goal": "evaluate_goal", "next": "prepare_next"},
        )
        g.add_conditional_edges("evaluate_goal", self._route_or_stop, {"stop": END, "next": "prepare_next"})
        g.add_edge("prepare_next", END)
        return g.compile()

    async def run_turn(self, ctx: RunContext) -> TurnOutcome:
        """Execute one loop iteration and report how it ended."""
        final = await self._graph.ainvoke({"ctx": ctx})
        return TurnOutcome(final["outcome"])

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _node_check_signals(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        if ctx.control.cancel_requested:
            ctx.run.add_log(LogLevel.info, "Cancellation requested; stopping before next turn")
            return {"outcome": TurnOutcome.cancelled.value}
        if ctx.control.pause_requested:
            ctx.run.add_log(LogLevel.info, "Execution paused by user")
            return {"outcome": TurnOutcome.paused.value}
        ctx.run.add_log(LogLevel.info, f"Starting turn {ctx.run.turn_count + 1}/{ctx.run.max_turns}")
        return {}

    async def _node_call_model(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        run = ctx.run
        try:
            system_prompt = render_prompt(ctx.agent.prompt, run.input_values, ctx.agent.input_variables)
        except ConfigurationError as e:
            return self._fail(ctx, str(e))

        messages = build_messages(system_prompt, run.conversation_history)

        def _on_retry(attempt: int, error: BaseException, delay: float) -> None:
            run.add_log(
                LogLevel.warning,
                f"Chat model attempt {attempt}/{self._retry.max_attempts} failed: {error}; retrying in {delay:.2f}s",
            )

        try:
            completion = await call_with_retry(
                lambda: self._complete(messages, ctx),
                policy=self._retry,
                retry_on=(TransientModelError,),
                on_retry=_on_retry,
                abort=lambda: ctx.control.cancel_requested,
                sleep=self._sleep,
            )
        except TransientModelError as e:
            if ctx.control.cancel_requested:
                return {"outcome": TurnOutcome.cancelled.value}
            return self._fail(ctx, f"Chat model failed after retries: {e}")
        except FatalModelError as e:
            return self._fail(ctx, f"Chat model error: {e}")
        return {"completion": completion}

    async def _node_invoke_tools(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        run = ctx.run
        completion = state["completion"]

        requested = [
            ToolCall(id=c.id or _new_id(), name=c.name, arguments=dict(c.arguments)) for c in completion.tool_calls
        ]
        run.append_turn(TurnRole.assistant, completion.content, tool_calls=requested or None)
        run.add_log(
            LogLevel.info,
            f"Turn {run.turn_count + 1}: generated response ({len(completion.content)} chars, {len(requested)} tool calls)",
        )

        for call in requested:
            if ctx.control.cancel_requested:
                run.add_log(LogLevel.info, f"Cancellation requested; skipping tool '{call.name}'")
                return {"outcome": TurnOutcome.cancelled.value, "tool_calls_made": True}

            if not tool_matches_declaration(call.name, ctx.agent.tools):
                message = f"Tool '{call.name}' is not declared for this agent"
                run.add_log(LogLevel.warning, message)
                rejected = ToolResult.failure(ToolErrorKind.not_declared, message)
                self._append_tool_turn(run, call, error=message, content=_result_text(rejected))
                continue

            def _on_retry(attempt: int, error: BaseException, delay: float, name: str = call.name) -> None:
                run.add_log(
                    LogLevel.warning,
                    f"Tool '{name}' attempt {attempt}/{self._retry.max_attempts} failed: {error}; retrying in {delay:.2f}s",
                )

            try:
                result = await call_with_retry(
                    lambda call=call: self._tools.invoke(call.name, dict(call.arguments)),
                    policy=self._retry,
                    retry_on=(TransientToolError,),
                    on_retry=_on_retry,
                    abort=lambda: ctx.control.cancel_requested,
                    sleep=self._sleep,
                )
            except TransientToolError as e:
                if ctx.control.cancel_requested:
                    return {"outcome": TurnOutcome.cancelled.value, "tool_calls_made": True}
                return self._fail(ctx, f"Tool '{call.name}' failed after retries: {e}")

            if result.ok:
                self._append_tool_turn(run, call, result=result.output, content=_result_text(result))
            else:
                run.add_log(LogLevel.warning, f"Tool '{call.name}' returned an error: {result.error}")
                self._append_tool_turn(run, call, error=result.error or "", content=_result_text(result))

        return {"tool_calls_made": bool(requested)}

    async def _node_advance(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        run = ctx.run
        run.turn_count += 1

        if ctx.control.cancel_requested:
            run.add_log(LogLevel.info, f"Cancellation requested; stopping after turn {run.turn_count}")
            return {"outcome": TurnOutcome.cancelled.value}

        if not ctx.agent.config.enable_multi_turn:
            run.result = "Completed single turn"
            run.add_log(LogLevel.info, "Single-turn agent completed")
            return {"outcome": TurnOutcome.completed.value}

        if run.turn_count >= run.max_turns:
            run.result = "Max turns reached"
            run.add_log(LogLevel.info, f"Agent completed after reaching max turns ({run.max_turns})")
            return {"outcome": TurnOutcome.completed.value}
        return {}

    async def _node_evaluate_goal(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        run = ctx.run
        try:
            system_prompt = render_prompt(ctx.agent.prompt, run.input_values, ctx.agent.input_variables)
        except ConfigurationError as e:
            return self._fail(ctx, str(e))
        achieved = await self._goal.evaluate(run, ctx.agent.config, system_prompt)
        if ctx.control.cancel_requested:
            run.add_log(LogLevel.info, "Cancellation requested; stopping after goal check")
            return {"outcome": TurnOutcome.cancelled.value}
        if achieved:
            run.goal_achieved = True
            run.result = "Goal achieved"
            run.add_log(LogLevel.info, f"Goal achieved after {run.turn_count} turns")
            return {"outcome": TurnOutcome.completed.value}
        return {}

    async def _node_prepare_next(self, state: _TurnState) -> Dict[str, Any]:
        ctx = state["ctx"]
        if not state.get("tool_calls_made"):
            ctx.run.append_turn(TurnRole.user, CONTINUATION_MESSAGE)
        return {"outcome": TurnOutcome.proceed.value}

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _route_or_stop(self, state: _TurnState) -> str:
        return "stop" if state.get("outcome") else "next"

    def _route_after_advance(self, state: _TurnState) -> str:
        if state.get("outcome"):
            return "stop"
        if state["ctx"].run.goal:
            return "goal"
        return "next"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _complete(self, messages: List[ChatMessage], ctx: RunContext) -> ChatCompletion:
        coro = self._chat.complete(messages, ctx.agent.config, tools=ctx.tools)
        if self._model_timeout is None:
            completion = await coro
        else:
            try:
                completion = await asyncio.wait_for(coro, timeout=self._model_timeout)
            except asyncio.TimeoutError as e:
                raise TransientModelError(f"chat model call timed out after {self._model_timeout}s") from e
        if not isinstance(completion, ChatCompletion) or not isinstance(completion.content, str):
            raise MalformedModelResponseError(f"unexpected chat model response: {completion!r}")
        return completion

    @staticmethod
    def _append_tool_turn(
        run: AgentRun,
        call: ToolCall,
        *,
        result: Any = None,
        error: Optional[str] = None,
        content: Optional[str] = None,
    ) -> None:
        record = call.model_copy(update={"result": result, "error": error})
        if content is None:
            content = f"Error: {error}" if error is not None else _result_text(ToolResult.success(result))
        run.append_turn(TurnRole.tool, content, tool_calls=[record], tool_call_id=call.id, tool_name=call.name)

    @staticmethod
    def _fail(ctx: RunContext, message: str) -> Dict[str, Any]:
        ctx.run.error = message
        ctx.run.add_log(LogLevel.error, message)
        logger.error("Run %s failed: %s", sanitize_for_log(ctx.run.id), message)
        return {"outcome": TurnOutcome.failed.value}
