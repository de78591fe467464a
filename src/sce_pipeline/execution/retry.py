"""Retry with exponential backoff for asynchronous operations.

Wraps a zero-argument coroutine factory. Failures are classified with
``classify_error``: retriable errors are retried after a capped
exponential delay until ``max_attempts`` is reached; anything else is
re-raised immediately. The exception that escapes is always the original
object raised by the operation, never a wrapper.

Example usage:
    executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay_ms=1000))
    outcome = await executor.run(lambda: surface.fill_record(record, config))
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sce_pipeline.core.config import RetryPolicy
from sce_pipeline.core.errors import classify_error
from sce_pipeline.core.logging import get_logger
from sce_pipeline.utils.time import ms_to_seconds

_logger = get_logger("retry")

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]
RetryHook = Callable[[int, BaseException, int], Any]
"""Called before each backoff wait as ``hook(attempt, error, delay_ms)``."""


class RetryExecutor:
    """Runs an operation under a ``RetryPolicy``.

    Stateless between calls, so one executor may serve many records.

    Attributes:
        policy: Backoff policy applied to every ``run``.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        on_retry: RetryHook | None = None,
    ) -> T:
        """Execute ``operation`` until it succeeds or retrying stops.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                on every call.
            on_retry: Optional hook invoked before each backoff wait. May be
                sync or async.

        Returns:
            The first successful result.

        Raises:
            BaseException: The last error raised by ``operation``, unchanged.
        """
        max_attempts = self.policy.max_attempts
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                classified = classify_error(exc)
                if not classified.retriable or attempt >= max_attempts:
                    _logger.debug(
                        "retry.giving_up",
                        attempt=attempt,
                        max_attempts=max_attempts,
                        error_code=classified.code,
                        retriable=classified.retriable,
                    )
                    raise

                delay_ms = self.policy.delay_for(attempt)
                _logger.info(
                    "retry.scheduled",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay_ms=delay_ms,
                    error_code=classified.code,
                    error=classified.message,
                )
                if on_retry is not None:
                    result = on_retry(attempt, exc, delay_ms)
                    if inspect.isawaitable(result):
                        await result
                await self._sleep(ms_to_seconds(delay_ms))
                attempt += 1


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """Functional shortcut for ``RetryExecutor(policy).run(operation)``."""
    return await RetryExecutor(policy).run(operation)


__all__ = ["RetryExecutor", "RetryHook", "retry_with_backoff"]
