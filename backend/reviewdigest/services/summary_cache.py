"""Content-addressed cache of computed summaries."""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

import redis

from reviewdigest.config import Settings, get_settings
from reviewdigest.models import Review, Summary

logger = logging.getLogger(__name__)

CACHE_KEY = "summary_cache"


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()


def compute_fingerprint(url: str, reviews: Iterable[Review]) -> str:
    """Stable hash of a URL and a review set.

    Per-review text hashes are sorted, so the fingerprint does not depend on
    the order reviews were extracted in.
    """
    hashes = sorted(_sha256(review.text or "") for review in reviews)
    return _sha256(url + "".join(hashes))


class SummaryCache:
    """Maps fingerprints to summaries, each entry valid for a fixed TTL.

    Stale entries are ignored on read rather than evicted.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        settings = settings or get_settings()
        if redis_client is None:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        self.redis = redis_client
        self.ttl = timedelta(days=settings.cache_ttl_days)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def get(self, key: str) -> Summary | None:
        """Look up a cached summary.

        Args:
            key: Fingerprint from ``compute_fingerprint``

        Returns:
            The cached summary, or None on a miss or an expired entry.
        """
        data = self.redis.hget(CACHE_KEY, key)
        if not data:
            return None
        entry = json.loads(data)
        stored_at = datetime.fromisoformat(entry["stored_at"])
        if self.clock() - stored_at > self.ttl:
            logger.info(f"Cache entry {key[:12]} expired")
            return None
        logger.info(f"Cache hit {key[:12]}")
        return Summary.model_validate(entry["payload"])

    def put(self, key: str, payload: Summary) -> None:
        """Store a summary under ``key``, restarting its TTL."""
        entry = {
            "stored_at": self.clock().isoformat(),
            "payload": payload.model_dump(mode="json"),
        }
        self.redis.hset(CACHE_KEY, key, json.dumps(entry))
        logger.info(f"Cache store {key[:12]}")

    def clear(self) -> None:
        self.redis.delete(CACHE_KEY)
        logger.info("Summary cache cleared")
