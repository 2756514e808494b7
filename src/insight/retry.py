"""
Bounded exponential-backoff retry for async calls to the Gemini API.

Only transient failures (HTTP 429 and 5xx) are retried; anything else is raised
on the first attempt. The same closure is re-invoked on every attempt, so it
must be safe to run more than once.

Example:
    store = await with_retry(lambda: client.file_search_stores.create(config=cfg))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from insight.errors import error_status, is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY_BASE = 1.0


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_DELAY_BASE,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """
    Await fn(). On a transient error wait base_delay * 2**attempt and try again,
    up to max_retries retries after the first call. The last error is re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= max_retries or not is_transient(e):
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                "Attempt %s/%s failed with status %s. Retrying in %.1fs: %s",
                attempt + 1,
                max_retries + 1,
                error_status(e),
                delay,
                e,
            )
            await sleep(delay)
            attempt += 1
