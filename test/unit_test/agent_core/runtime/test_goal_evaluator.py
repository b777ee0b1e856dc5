from __future__ import annotations

import asyncio
from typing import List

import pytest

from houze_agents.agent_core.chat.base import ChatCompletion
from houze_agents.agent_core.errors import MalformedModelResponseError, TransientModelError
from houze_agents.agent_core.runtime.goal import GoalEvaluator, format_transcript, is_affirmative
from houze_agents.agent_core.runtime.models import RetryPolicy
from houze_agents.agent_core.schemas.domain import AgentConfig, AgentRun, LogLevel, TurnRole


async def _no_sleep(delay: float) -> None:
    return None


def _run(goal: str | None = "The applicant's income was verified") -> AgentRun:
    run = AgentRun(agent_id="a-1", goal=goal)
    run.append_turn(TurnRole.assistant, "I checked the payslips.")
    run.append_turn(TurnRole.tool, '{"verified": true}', tool_name="documentsapi.verify_income")
    return run


@pytest.mark.parametrize(
    "answer, expected",
    [
        ("yes", True),
        ("Yes.", True),
        ("  YES, the goal is met", True),
        ("no", False),
        ("No, not yet", False),
        ("yesterday it was", False),
        ("", False),
        ("I think yes", False),
        ("**Yes**", True),
    ],
)
def test_is_affirmative_reads_first_word(answer: str, expected: bool) -> None:
    assert is_affirmative(answer) is expected


def test_format_transcript_labels_tool_turns() -> None:
    transcript = format_transcript("You verify income.", _run().conversation_history)
    assert transcript.splitlines() == [
        "system: You verify income.",
        "assistant: I checked the payslips.",
        'tool[documentsapi.verify_income]: {"verified": true}',
    ]


@pytest.mark.asyncio
async def test_evaluate_sends_goal_and_transcript(scripted_model) -> None:
    chat = scripted_model(goal_answers=[ChatCompletion(content="Yes")])
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(), sleep=_no_sleep)
    run = _run()

    assert await evaluator.evaluate(run, AgentConfig(), "You verify income.") is True

    system, user = chat.goal_calls[0]
    assert "The applicant's income was verified" in system.content
    assert "assistant: I checked the payslips." in user.content
    assert "Answer only 'yes' or 'no'" in user.content


@pytest.mark.asyncio
async def test_evaluate_without_goal_skips_model(scripted_model) -> None:
    chat = scripted_model()
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(), sleep=_no_sleep)
    assert await evaluator.evaluate(_run(goal=None), AgentConfig(), "p") is False
    assert chat.goal_calls == []


@pytest.mark.asyncio
async def test_evaluate_retries_transient_errors(scripted_model) -> None:
    chat = scripted_model(goal_answers=[MalformedModelResponseError("empty"), ChatCompletion(content="yes")])
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(max_attempts=3), sleep=_no_sleep)
    assert await evaluator.evaluate(_run(), AgentConfig(), "p") is True
    assert len(chat.goal_calls) == 2


@pytest.mark.asyncio
async def test_evaluate_fails_closed_after_persistent_errors(scripted_model) -> None:
    chat = scripted_model(goal_answers=[TransientModelError("down")] * 3)
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(max_attempts=3), sleep=_no_sleep)
    run = _run()

    assert await evaluator.evaluate(run, AgentConfig(), "p") is False
    assert run.logs[-1].level == LogLevel.warning
    assert "assuming not achieved" in run.logs[-1].message


@pytest.mark.asyncio
async def test_evaluate_times_out_as_not_achieved(scripted_model) -> None:
    async def hang(messages) -> ChatCompletion:
        await asyncio.sleep(1)
        return ChatCompletion(content="yes")

    chat = scripted_model(goal_answers=[hang])
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(max_attempts=1), timeout_seconds=0.01, sleep=_no_sleep)
    assert await evaluator.evaluate(_run(), AgentConfig(), "p") is False


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [None, ChatCompletion(content=None), "yes"])
async def test_evaluate_unusable_reply_is_not_achieved(scripted_model, reply) -> None:
    async def answer(messages):
        return reply

    chat = scripted_model(goal_answers=[answer])
    evaluator = GoalEvaluator(chat, retry=RetryPolicy(max_attempts=1), sleep=_no_sleep)
    run = _run()

    assert await evaluator.evaluate(run, AgentConfig(), "p") is False
    assert run.logs[-1].level == LogLevel.warning
    assert "unusable response" in run.logs[-1].message
