"""Jittered exponential backoff for transient failures."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from nosy import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    retry_after: float = 0.0,
    *,
    base: float = settings.RETRY_BASE_DELAY,
    cap: float = settings.RETRY_MAX_DELAY,
) -> float:
    """Seconds to wait before retry number *attempt* (0-based).

    A server-provided ``Retry-After`` is honoured as a lower bound.
    """
    delay = max(retry_after, base * (2 ** attempt)) + random.uniform(0, base)
    return min(delay, max(cap, retry_after))


def call_with_retry(
    func: Callable[[], T],
    *,
    retry_on: tuple[type[Exception], ...],
    max_retries: int = settings.MAX_RETRIES,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *func*, retrying up to *max_retries* times on *retry_on* errors.

    The last error propagates once the retries are exhausted.
    """
    for attempt in range(max_retries + 1):
        try:
            return func()
        except retry_on as exc:
            if attempt >= max_retries:
                raise
            delay = backoff_delay(attempt, getattr(exc, "retry_after", 0.0) or 0.0)
            logger.warning(
                "%s failed (%s); retrying in %.1fs (attempt %d/%d)",
                label, exc, delay, attempt + 1, max_retries,
            )
            sleep(delay)
    raise AssertionError("unreachable")
