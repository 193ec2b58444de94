"""The crawl loop: visit review pages in order, aggregate, and finalize."""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

from reviewdigest.config import Settings, get_settings
from reviewdigest.exceptions import ExtractionFailed, InvalidTransition, NavigationTimeout
from reviewdigest.models import CrawlSession, FinishReason, PageExtraction
from reviewdigest.services import transitions
from reviewdigest.services.finalizer import Finalizer
from reviewdigest.services.pacing import polite_delay_ms
from reviewdigest.services.page_driver import PageDriver
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.retry import retry_async
from reviewdigest.services.review_extractor import strip_fragment
from reviewdigest.services.session_store import SessionStateStore

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Runs the crawl loop for the stored session.

    The loop holds the session's ``running`` guard for its whole lifetime and
    refreshes ``heartbeat_at`` every page, so a second caller is a no-op and a
    crashed worker's guard goes stale after ``loop_lease_seconds``.
    """

    def __init__(
        self,
        store: SessionStateStore,
        driver: PageDriver,
        finalizer: Finalizer,
        progress: ProgressService,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.driver = driver
        self.finalizer = finalizer
        self.progress = progress
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self) -> CrawlSession | None:
        """Run until a terminal reason is reached. Returns the final session."""
        try:
            session = self.store.mutate(
                lambda s: transitions.acquire(s, self.clock(), self.settings.loop_lease_seconds)
            )
        except InvalidTransition as e:
            logger.info(f"Crawl loop not started: {e}")
            return self.store.get()
        if session is None:
            logger.info("Crawl loop not started: no session")
            return None

        logger.info(f"Crawl loop acquired session {session.session_id}")
        try:
            await self._loop()
        except Exception as e:
            logger.exception(f"Crawl loop failed: {e}")
            await self._finalize(FinishReason.ERROR)
        finally:
            self.store.mutate(transitions.release)
        return self.store.get()

    async def _finalize(self, reason: FinishReason) -> None:
        try:
            await self.finalizer.finalize(reason)
        except Exception as e:
            logger.exception(f"Finalize ({reason.value}) failed: {e}")

    async def _loop(self) -> None:
        while True:
            session = self.store.get()
            if session is None:
                logger.warning("Session removed while crawling")
                return
            if session.finished:
                return
            if session.cancelled:
                logger.info(f"Session {session.session_id} cancelled")
                await self._finalize(FinishReason.CANCELLED)
                return
            if session.pages_crawled >= session.max_pages:
                await self._finalize(FinishReason.LIMIT)
                return

            target = session.start_url if session.pages_crawled == 0 else session.current_url
            if not target:
                await self._finalize(FinishReason.END_OF_PAGES)
                return

            if strip_fragment(self.driver.current_url or "") != strip_fragment(target):
                await self._navigate(target)
            else:
                await self._delay(self.settings.settle_delay_ms)

            extraction = await self._extract(target)

            if extraction.captcha_detected:
                logger.warning(f"CAPTCHA detected on {target}")
                await self._finalize(FinishReason.CAPTCHA)
                return
            if extraction.blocked:
                logger.warning(f"Access blocked on {target}")
                await self._finalize(FinishReason.BLOCKED)
                return

            next_url = extraction.next_page_url
            if next_url and strip_fragment(next_url) == strip_fragment(target):
                next_url = None
            if next_url:
                next_url = strip_fragment(next_url)

            added = 0

            def merge(s: CrawlSession) -> CrawlSession:
                nonlocal added
                added = 0
                if s.finished:
                    # stopped while this page was loading
                    return s
                aggregated = dict(s.aggregated_reviews)
                for review in extraction.reviews:
                    if not review.id or review.id in aggregated:
                        continue
                    aggregated[review.id] = review
                    added += 1
                merged = s.model_copy(
                    update={
                        "aggregated_reviews": aggregated,
                        "pages_crawled": s.pages_crawled + 1,
                        "current_url": next_url,
                    }
                )
                return transitions.heartbeat(merged, self.clock())

            session = self.store.mutate(merge)
            if session is None:
                logger.warning("Session removed while crawling")
                return
            if session.finished:
                return

            logger.info(
                f"Page {session.pages_crawled}/{session.max_pages}: +{added} reviews "
                f"({session.review_count} total)"
            )
            self.progress.crawl_progress(
                session_id=session.session_id,
                pages_crawled=session.pages_crawled,
                max_pages=session.max_pages,
                review_count=session.review_count,
                status=session.status_message,
            )

            if session.review_count >= session.max_reviews:
                await self._finalize(FinishReason.REVIEW_CAP)
                return
            if added == 0 and not next_url:
                logger.info("No new reviews and no next page")
                await self._finalize(FinishReason.END_OF_PAGES)
                return
            if not next_url:
                await self._finalize(FinishReason.END_OF_PAGES)
                return

            await self._delay(self.settings.crawl_delay_ms)

    async def _navigate(self, url: str) -> None:
        try:
            await asyncio.wait_for(
                self.driver.navigate(url),
                timeout=self.settings.navigation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise NavigationTimeout(f"Navigation timeout for {url}") from e

    async def _extract(self, url: str) -> PageExtraction:
        async def attempt() -> PageExtraction:
            result = await asyncio.wait_for(
                self.driver.extract(),
                timeout=self.settings.extract_timeout_seconds,
            )
            if result is None:
                raise ExtractionFailed(f"No extraction result for {url}")
            if result.error:
                raise ExtractionFailed(f"Extraction error on {url}: {result.error}")
            return result

        return await retry_async(
            attempt,
            attempts=self.settings.extract_attempts,
            base_delay_ms=self.settings.extract_backoff_base_ms,
            max_delay_ms=self.settings.extract_backoff_cap_ms,
            sleep=self.sleep,
            label=f"extract {url}",
        )

    async def _delay(self, base_ms: int) -> None:
        delay = polite_delay_ms(
            base_ms=base_ms,
            jitter_ms=self.settings.crawl_jitter_ms,
            min_ms=self.settings.crawl_min_delay_ms,
            rng=self.rng,
        )
        await self.sleep(delay / 1000)
