"""Exponential-backoff retry for async operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from grammarly_optimizer.config import RetryPolicy

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    backoff_ms: float,
    label: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `fn`, retrying up to `max_retries` extra times.

    The delay before retry `n` (0-based) is `backoff_ms * 2**n`. When every
    attempt fails the last exception is re-raised as-is.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be non-negative")
    if backoff_ms <= 0:
        raise ValueError("backoff_ms must be positive")

    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt >= max_retries:
                raise
            delay_ms = backoff_ms * 2**attempt
            logger.debug(
                "Retry attempt %d after %.0fms (label=%s): %s",
                attempt + 1,
                delay_ms,
                label,
                exc,
            )
            await sleep(delay_ms / 1000.0)

    raise AssertionError("unreachable")


async def retry_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    return await with_retry(
        fn,
        max_retries=policy.max_retries,
        backoff_ms=policy.backoff_ms,
        label=label,
        sleep=sleep,
    )
