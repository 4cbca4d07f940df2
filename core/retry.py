# core/retry.py
"""Bounded retry with linearly increasing backoff."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from config import ConfigurationError, settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _backoff_delay(
    attempt: int, base_delay: float, delay_step: float
) -> None:
    """Sleep ``base_delay + attempt * delay_step`` seconds."""
    await asyncio.sleep(base_delay + attempt * delay_step)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = settings.LLM_RETRY_ATTEMPTS,
    *,
    base_delay: float = settings.LLM_RETRY_BASE_DELAY_SECONDS,
    delay_step: float = settings.LLM_RETRY_DELAY_STEP_SECONDS,
    retry_on: Callable[[Exception], bool] | None = None,
) -> T:
    """Call ``operation`` up to ``max_attempts + 1`` times.

    Every failure is retried unless ``retry_on`` is given and returns False
    for it. When the budget runs out the last error is re-raised unchanged.
    """
    if max_attempts < 0:
        raise ConfigurationError(f"max_attempts must be >= 0, got {max_attempts}")
    if base_delay < 0 or delay_step < 0:
        raise ConfigurationError("retry delays must be >= 0")

    total = max_attempts + 1
    for attempt in range(total):
        try:
            return await operation()
        except Exception as exc:
            if retry_on is not None and not retry_on(exc):
                logger.warning(
                    "Error is not retryable. Giving up.",
                    attempt=attempt + 1,
                    error=str(exc),
                )
                raise
            if attempt + 1 >= total:
                logger.error(
                    "All retry attempts failed.", attempts=total, error=str(exc)
                )
                raise
            logger.warning(
                "Attempt failed. Retrying.",
                attempt=attempt + 1,
                max_attempts=total,
                error=str(exc),
            )
            await _backoff_delay(attempt, base_delay, delay_step)

    raise AssertionError("unreachable")  # pragma: no cover
