"""Turns a session's aggregated reviews into its terminal summary."""

import asyncio
import logging

from reviewdigest.exceptions import InvalidTransition
from reviewdigest.models import CrawlSession, FinishReason, Review, Summary
from reviewdigest.services import transitions
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.redaction import sanitize_reviews
from reviewdigest.services.session_store import SessionStateStore
from reviewdigest.services.summarizers import Summarizer
from reviewdigest.services.summary_cache import SummaryCache, compute_fingerprint

logger = logging.getLogger(__name__)


class Finalizer:
    """Computes (or reuses) a summary, marks the session finished, and notifies."""

    def __init__(
        self,
        store: SessionStateStore,
        cache: SummaryCache,
        summarizer: Summarizer,
        progress: ProgressService,
    ):
        self.store = store
        self.cache = cache
        self.summarizer = summarizer
        self.progress = progress

    async def summarize_reviews(
        self,
        url: str,
        reviews: list[Review],
        force_refresh: bool = False,
    ) -> Summary:
        """Sanitize, look up the cache, and summarize on a miss.

        The summarizer is synchronous and may block on the network, so it
        runs in a worker thread.
        """
        sanitized = sanitize_reviews(reviews)
        key = compute_fingerprint(url, sanitized)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        logger.info(
            f"Summarizing {len(sanitized)} reviews for {url} with {self.summarizer.name}"
        )
        summary = await asyncio.to_thread(self.summarizer.summarize, sanitized, url)
        self.cache.put(key, summary)
        return summary

    async def finalize(
        self,
        reason: FinishReason,
        force_refresh: bool = False,
    ) -> CrawlSession | None:
        """Summarize the stored session and mark it finished.

        A session that is already finished is only re-announced, unless
        ``force_refresh`` asks for a recomputed summary. When another caller
        finishes the session while this one is summarizing, the stored result
        wins and is re-announced.

        Args:
            reason: Why the crawl stopped.
            force_refresh: Bypass the cache read and replace the summary of a
                finished session.

        Returns:
            The finished session, or None when there is no session.
        """
        session = self.store.get()
        if session is None:
            logger.info("Finalize requested without a session")
            return None

        if session.finished and not force_refresh:
            self._notify(session)
            return session

        summary = await self.summarize_reviews(
            session.start_url,
            list(session.aggregated_reviews.values()),
            force_refresh=force_refresh,
        )

        try:
            session = self.store.mutate(
                lambda s: transitions.finish(s, reason, summary, force_refresh=force_refresh)
            )
        except InvalidTransition as e:
            logger.info(f"Discarding {reason.value} summary: {e}")
            session = self.store.get()
            if session is not None:
                self._notify(session)
            return session
        if session is None:
            logger.warning("Session disappeared while finalizing")
            return None

        logger.info(
            f"Session {session.session_id} finished: {session.finished_reason.value} "
            f"({session.review_count} reviews, {session.pages_crawled} pages)"
        )
        self._notify(session)
        return session

    def _notify(self, session: CrawlSession, label: str | None = None) -> None:
        self.progress.crawl_finished(
            session_id=session.session_id,
            reason=session.finished_reason or FinishReason.ERROR,
            summary=session.summary,
            review_count=session.review_count,
            label=label,
        )

    def notify_swapped(self, session: CrawlSession) -> None:
        """Re-emit after an undo, tagging the status."""
        self._notify(session, label="undo")
