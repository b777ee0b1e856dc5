from __future__ import annotations

"""Goal completion check.

After each multi-turn iteration the engine asks the chat model whether the
run's goal has been reached. The question is a separate, stateless model call
that sees the goal and a plain-text transcript; only an answer whose first
word is "yes" counts as achieved. Any failure degrades to "not achieved" and
never fails the run.
"""

import asyncio
import re
from typing import Awaitable, Callable, List, Optional

from ...core.logging_config import get_logger, sanitize_for_log
from ..chat.base import ChatCompletion, ChatMessage, ChatModel
from ..errors import TransientModelError
from ..schemas.domain import AgentConfig, AgentRun, ConversationTurn, LogLevel, TurnRole
from .models import RetryPolicy
from .retry import call_with_retry

logger = get_logger(__name__)

GOAL_SYSTEM_PROMPT = "You are evaluating if a goal has been achieved. The goal is: {goal}"
GOAL_USER_PROMPT = (
    "Based on the following conversation, has the goal been achieved? "
    "Answer only 'yes' or 'no'.\n\nConversation:\n{transcript}"
)

_FIRST_WORD = re.compile(r"[a-z]+")


def is_affirmative(answer: str) -> bool:
    match = _FIRST_WORD.search(answer.lower())
    return match is not None and match.group(0) == "yes"


def format_transcript(system_prompt: str, history: List[ConversationTurn]) -> str:
    lines = [f"system: {system_prompt}"]
    for turn in history:
        role = turn.role.value
        if turn.role == TurnRole.tool and turn.tool_name:
            role = f"tool[{turn.tool_name}]"
        lines.append(f"{role}: {turn.content}")
    return "\n".join(lines)


class GoalEvaluator:
    """Ask the chat model whether ``run.goal`` has been achieved."""

    def __init__(
        self,
        chat_model: ChatModel,
        *,
        retry: RetryPolicy,
        timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._chat = chat_model
        self._retry = retry
        self._timeout = timeout_seconds
        self._sleep = sleep

    async def evaluate(self, run: AgentRun, options: AgentConfig, system_prompt: str) -> bool:
        if not run.goal:
            return False
        messages = [
            ChatMessage(role=TurnRole.system, content=GOAL_SYSTEM_PROMPT.format(goal=run.goal)),
            ChatMessage(
                role=TurnRole.user,
                content=GOAL_USER_PROMPT.format(transcript=format_transcript(system_prompt, run.conversation_history)),
            ),
        ]

        async def _ask():
            coro = self._chat.complete(messages, options)
            if self._timeout is None:
                return await coro
            try:
                return await asyncio.wait_for(coro, timeout=self._timeout)
            except asyncio.TimeoutError as e:
                raise TransientModelError(f"goal check timed out after {self._timeout}s") from e

        try:
            completion = await call_with_retry(_ask, policy=self._retry, sleep=self._sleep)
        except Exception as e:
            logger.warning(
                "Goal check failed for run %s, assuming not achieved: %s", sanitize_for_log(run.id), e
            )
            run.add_log(LogLevel.warning, f"Goal check failed, assuming not achieved: {e}")
            return False

        if not isinstance(completion, ChatCompletion) or not isinstance(completion.content, str):
            logger.warning(
                "Goal check for run %s returned an unusable response, assuming not achieved: %r",
                sanitize_for_log(run.id),
                completion,
            )
            run.add_log(LogLevel.warning, "Goal check returned an unusable response, assuming not achieved")
            return False

        achieved = is_affirmative(completion.content)
        run.add_log(LogLevel.debug, f"Goal check answered {'yes' if achieved else 'no'}")
        return achieved
