from __future__ import annotations

"""Retry with exponential backoff for transient engine errors."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ...core.logging_config import get_logger
from ..errors import TransientError
from .models import RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, BaseException, float], None]


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (TransientError,),
    on_retry: Optional[RetryHook] = None,
    abort: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` until it succeeds or the attempt budget is exhausted.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt budget and backoff parameters.
        retry_on: Exception types considered transient.
        on_retry: Called with ``(attempt, error, delay)`` before each backoff.
        abort: Checked after each failure; when it returns True the error is
            re-raised without further attempts.
        sleep: Backoff sleeper, injectable for tests.

    Raises:
        The last transient error once ``policy.max_attempts`` is exhausted, or
        any non-transient error immediately.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except retry_on as e:
            if attempt >= policy.max_attempts or (abort is not None and abort()):
                raise
            delay = policy.delay(attempt)
            logger.debug("Attempt %d/%d failed (%s); retrying in %.2fs", attempt, policy.max_attempts, e, delay)
            if on_retry is not None:
                on_retry(attempt, e, delay)
            await sleep(delay)
