"""Service for publishing crawl progress and results in Redis."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import redis

from reviewdigest.config import Settings, get_settings
from reviewdigest.models import FINISH_REASON_MESSAGES, FinishReason, KeyHealth, Summary

logger = logging.getLogger(__name__)

PROGRESS_KEY = "crawl_progress"
FINISHED_KEY = "crawl_finished"
KEY_HEALTH_ALERT_KEY = "key_health_alert"

Listener = Callable[[str, dict[str, Any]], None]


class ProgressService:
    """Stores the latest event per channel so a reconnecting UI can poll it.

    In-process listeners are also called synchronously with every event.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ):
        if redis_client is None:
            settings = settings or get_settings()
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        self.redis = redis_client
        self.progress_ttl = 3600  # Progress expires after 1 hour
        self.result_ttl = 7 * 24 * 3600
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _publish(self, key: str, ttl: int, event: dict[str, Any]) -> None:
        event["updated_at"] = datetime.now(timezone.utc).isoformat()
        self.redis.setex(key, ttl, json.dumps(event))
        for listener in self._listeners:
            try:
                listener(key, event)
            except Exception as e:
                logger.warning(f"Progress listener failed on {key}: {e}")

    def crawl_progress(
        self,
        session_id: str,
        pages_crawled: int,
        max_pages: int,
        review_count: int,
        status: str,
    ) -> None:
        """Publish per-page progress for the running session."""
        self._publish(
            PROGRESS_KEY,
            self.progress_ttl,
            {
                "session_id": session_id,
                "pages_crawled": pages_crawled,
                "max_pages": max_pages,
                "review_count": review_count,
                "percent": round(pages_crawled / max_pages * 100, 1) if max_pages > 0 else 0,
                "status": status,
            },
        )

    def crawl_finished(
        self,
        session_id: str,
        reason: FinishReason | str,
        summary: Summary | None,
        review_count: int,
        label: str | None = None,
    ) -> None:
        """Publish the terminal payload of a session."""
        reason_value = reason.value if isinstance(reason, FinishReason) else reason
        status = FINISH_REASON_MESSAGES.get(FinishReason(reason_value), reason_value)
        if label:
            status = f"{status} ({label})"
        self._publish(
            FINISHED_KEY,
            self.result_ttl,
            {
                "session_id": session_id,
                "reason": reason_value,
                "status": status,
                "review_count": review_count,
                "summary": summary.model_dump(mode="json") if summary else None,
            },
        )

    def key_health_alert(self, health: KeyHealth) -> None:
        self._publish(
            KEY_HEALTH_ALERT_KEY,
            self.result_ttl,
            {"health": health.model_dump(mode="json")},
        )

    def _read(self, key: str) -> dict[str, Any] | None:
        data = self.redis.get(key)
        if data:
            return json.loads(data)
        return None

    def get_progress(self) -> dict[str, Any] | None:
        return self._read(PROGRESS_KEY)

    def get_finished(self) -> dict[str, Any] | None:
        return self._read(FINISHED_KEY)

    def get_key_health_alert(self) -> dict[str, Any] | None:
        return self._read(KEY_HEALTH_ALERT_KEY)

    def clear(self) -> None:
        """Drop stale progress and results when a new session starts."""
        self.redis.delete(PROGRESS_KEY, FINISHED_KEY)

