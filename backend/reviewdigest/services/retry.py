"""Retry with capped exponential backoff for async calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


def backoff_delay_ms(attempt: int, base_ms: int, cap_ms: int) -> int:
    """Delay after the ``attempt``-th failure (1-based): base * 2^attempt, capped."""
    return min(cap_ms, base_ms * (2 ** attempt))


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay_ms: int = 300,
    max_delay_ms: int = 2000,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """Await ``fn()`` up to ``attempts`` times, sleeping between failures.

    The last exception is re-raised once every attempt has failed.
    """
    last_exc: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            last_exc = exc
            if attempt >= attempts:
                break
            delay = backoff_delay_ms(attempt, base_delay_ms, max_delay_ms)
            logger.warning(
                f"{label} attempt {attempt}/{attempts} failed ({exc!r}), "
                f"retrying in {delay}ms"
            )
            await sleep(delay / 1000)

    logger.error(f"{label} failed after {attempts} attempts: {last_exc!r}")
    raise last_exc  # type: ignore[misc]
