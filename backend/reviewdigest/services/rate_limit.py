"""Minimum spacing between remote summarization requests."""

import logging
import time
from typing import Callable

import redis

from reviewdigest.config import Settings, get_settings

logger = logging.getLogger(__name__)

LAST_REQUEST_KEY = "remote_last_request_ms"


class RequestSpacer:
    """Sleeps so that remote calls are at least ``min_interval_ms`` apart.

    The last request time lives in Redis so the spacing holds across worker
    processes.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = settings or get_settings()
        if redis_client is None:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        self.redis = redis_client
        self.min_interval_ms = settings.remote_min_interval_ms
        self.clock = clock
        self.sleep = sleep

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def last_request_ms(self) -> int:
        value = self.redis.get(LAST_REQUEST_KEY)
        return int(value) if value else 0

    def remaining_ms(self) -> int:
        """How long the next request would have to wait right now."""
        elapsed = self._now_ms() - self.last_request_ms()
        return max(0, self.min_interval_ms - elapsed)

    def wait(self) -> None:
        """Block until a request may be sent, then record it."""
        wait_ms = self.remaining_ms()
        if wait_ms > 0:
            logger.info(f"Remote rate limit: sleeping {wait_ms}ms")
            self.sleep(wait_ms / 1000)
        self.redis.set(LAST_REQUEST_KEY, self._now_ms())

    def status(self) -> dict:
        return {
            "last_request_ms": self.last_request_ms(),
            "rate_limit_ms": self.min_interval_ms,
            "retry_after_ms": self.remaining_ms(),
        }
