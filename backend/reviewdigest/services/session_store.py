"""Durable store for the single crawl session, kept in Redis."""

import logging
from datetime import datetime, timezone
from typing import Callable

import redis

from reviewdigest.config import Settings, get_settings
from reviewdigest.models import CrawlSession, SessionConsent

logger = logging.getLogger(__name__)

SESSION_KEY = "crawl_session"


class SessionStateStore:
    """CRUD over the one CrawlSession record.

    Every mutation is a read-modify-write wrapped in a WATCH/MULTI transaction,
    so a patch never overwrites fields it does not name.
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

    def init(
        self,
        start_url: str,
        max_pages: int,
        max_reviews: int,
        consent: SessionConsent,
    ) -> CrawlSession:
        """Create a fresh session, superseding any stored one.

        Args:
            start_url: First review page to visit
            max_pages: Page cap for this session
            max_reviews: Review cap for this session
            consent: How consent was given for this session

        Returns:
            The new idle session.
        """
        session = CrawlSession(
            start_url=start_url,
            current_url=start_url,
            max_pages=max_pages,
            max_reviews=max_reviews,
            consent=consent,
        )
        self.redis.set(SESSION_KEY, session.model_dump_json())
        logger.info(
            f"Initialized crawl session {session.session_id} for {start_url} "
            f"(max_pages={max_pages}, max_reviews={max_reviews})"
        )
        return session

    def get(self) -> CrawlSession | None:
        data = self.redis.get(SESSION_KEY)
        if data:
            return CrawlSession.model_validate_json(data)
        return None

    def mutate(
        self, fn: Callable[[CrawlSession], CrawlSession]
    ) -> CrawlSession | None:
        """Atomically replace the session with ``fn(session)``.

        Returns the new session, or None when no session exists. Exceptions
        raised by ``fn`` propagate and leave the record untouched.
        """
        result: dict[str, CrawlSession | None] = {"session": None}

        def apply(pipe: redis.client.Pipeline) -> None:
            data = pipe.get(SESSION_KEY)
            if not data:
                result["session"] = None
                return
            updated = fn(CrawlSession.model_validate_json(data))
            updated = updated.model_copy(update={"updated_at": datetime.now(timezone.utc)})
            pipe.multi()
            pipe.set(SESSION_KEY, updated.model_dump_json())
            result["session"] = updated

        self.redis.transaction(apply, SESSION_KEY)
        return result["session"]

    def update(self, **patch) -> CrawlSession | None:
        """Apply a field patch; a no-op returning None when no session exists."""
        return self.mutate(lambda session: session.model_copy(update=patch))

    def clear(self) -> None:
        self.redis.delete(SESSION_KEY)
