"""Bounded retry for optimistic storage claims.

A claim (for example a per-thread display name) is attempted, and if a
concurrent writer won the same unique slot the whole claim is re-derived
and tried again. The default schedule retries immediately; a base delay
turns on exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from campusboard.core.errors import AliasConflictError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RETRYABLE_TYPES: tuple[type[Exception], ...] = (AliasConflictError,)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    max_retries: int = 5
    base_delay: float = 0.0
    max_delay: float = 0.5
    jitter: bool = False


def is_retryable(error: Exception) -> bool:
    """True for lost claim races; everything else is a real failure."""
    return isinstance(error, _RETRYABLE_TYPES)


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt + 1``: doubled each time, capped."""
    delay = min(config.base_delay * 2**attempt, config.max_delay)
    return delay * random.uniform(0.5, 1.5) if config.jitter else delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await ``fn()`` until it succeeds or the retry budget runs out.

    ``fn`` is called up to ``max_retries + 1`` times. Non-retryable
    errors, and the last retryable one, propagate unchanged.
    ``on_retry(retry_number, delay, error)`` runs before each retry.
    """
    cfg = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= cfg.max_retries:
                raise
            delay = _compute_delay(attempt, cfg)
            attempt += 1
            logger.debug("Claim conflict (%s); retry %d of %d", e, attempt, cfg.max_retries)
            if on_retry is not None:
                on_retry(attempt, delay, e)
            if delay > 0:
                await asyncio.sleep(delay)
