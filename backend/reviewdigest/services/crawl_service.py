"""User-facing crawl operations: consent gating, start, cancel, stop, undo."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from reviewdigest.config import Settings, get_settings
from reviewdigest.exceptions import InvalidTransition
from reviewdigest.models import (
    ConsentFields,
    CrawlSession,
    FinishReason,
    PageExtraction,
    SessionConsent,
    Summary,
)
from reviewdigest.services import transitions
from reviewdigest.services.consent_store import ConsentStore, may_skip_consent
from reviewdigest.services.finalizer import Finalizer
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.review_extractor import ReviewExtractor
from reviewdigest.services.robots import RobotsPolicyEvaluator
from reviewdigest.services.session_store import SessionStateStore

logger = logging.getLogger(__name__)

Launcher = Callable[[], None]
PageFetcher = Callable[[str], Awaitable[PageExtraction]]


class TabContext(BaseModel):
    """The page the user asked to crawl from."""

    url: str
    title: str | None = None


class OperationResult(BaseModel):
    ok: bool
    error: str | None = None
    message: str | None = None
    session_id: str | None = None


class StartCrawlResult(OperationResult):
    consent_required: bool = False
    skipped_consent: bool = False
    max_pages: int | None = None
    robots: dict[str, Any] | None = None


class AnalyzeResult(OperationResult):
    review_count: int = 0
    summary: Summary | None = None


def session_view(session: CrawlSession | None) -> dict[str, Any]:
    """Public view of the session, without the raw review texts."""
    if session is None:
        return {"exists": False}
    return {
        "exists": True,
        "session_id": session.session_id,
        "status": session.status.value,
        "status_message": session.status_message,
        "start_url": session.start_url,
        "current_url": session.current_url,
        "pages_crawled": session.pages_crawled,
        "max_pages": session.max_pages,
        "max_reviews": session.max_reviews,
        "review_count": session.review_count,
        "finished_reason": session.finished_reason.value if session.finished_reason else None,
        "summary": session.summary.model_dump(mode="json") if session.summary else None,
        "can_undo": session.previous_summary is not None,
        "consent": session.consent.model_dump(mode="json"),
        "updated_at": session.updated_at.isoformat(),
    }


def _declined(error: str, result_cls: type[OperationResult] = OperationResult, **extra) -> Any:
    logger.info(f"Declined: {error}")
    return result_cls(ok=False, error=error, **extra)


class CrawlService:
    """Entry points for the popup and the HTTP API.

    Declined operations return ``ok=False`` with an error message rather than
    raising.
    """

    def __init__(
        self,
        store: SessionStateStore,
        consent_store: ConsentStore,
        robots: RobotsPolicyEvaluator,
        finalizer: Finalizer,
        progress: ProgressService,
        launcher: Launcher,
        settings: Settings | None = None,
        page_fetcher: PageFetcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.consent_store = consent_store
        self.robots = robots
        self.finalizer = finalizer
        self.progress = progress
        self.launcher = launcher
        self.settings = settings or get_settings()
        self.page_fetcher = page_fetcher or self._fetch_page
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _loop_alive(self, session: CrawlSession | None) -> bool:
        return bool(
            session
            and session.running
            and not session.lease_is_stale(self.clock(), self.settings.loop_lease_seconds)
        )

    def _begin(self, url: str, max_pages: int, consent: SessionConsent, status: str) -> CrawlSession:
        existing = self.store.get()
        if existing is not None:
            logger.warning(f"Superseding session {existing.session_id} ({existing.status.value})")
        session = self.store.init(url, max_pages, self.settings.compute_max_reviews(), consent)
        self.progress.clear()
        self.progress.crawl_progress(
            session_id=session.session_id,
            pages_crawled=0,
            max_pages=max_pages,
            review_count=0,
            status=status,
        )
        self.launcher()
        return session

    async def start_crawl(self, tab: TabContext) -> StartCrawlResult:
        """Start immediately when consent is on file, else ask for consent.

        Args:
            tab: The page the user is on, used as the session start URL

        Returns:
            A result with ``skipped_consent`` set when a session was started,
            or ``consent_required`` with the robots.txt verdict for the dialog.
            Non-http pages and a live crawl loop are declined.
        """
        if urlparse(tab.url).scheme not in ("http", "https"):
            return _declined("Only http(s) pages can be crawled", StartCrawlResult)
        if self._loop_alive(self.store.get()):
            return _declined("A crawl is already running", StartCrawlResult)

        robots = await self.robots.evaluate(tab.url)
        record = self.consent_store.get()
        max_pages = self.settings.compute_max_pages()

        if may_skip_consent(record, robots):
            consent = SessionConsent(
                source="global",
                accepted_at=record.accepted_at,
                version=record.version,
                robots_disallowed=robots.disallowed,
                robots_accepted=robots.disallowed,
            )
            session = self._begin(tab.url, max_pages, consent, "Starting… (consent remembered)")
            return StartCrawlResult(
                ok=True,
                session_id=session.session_id,
                skipped_consent=True,
                max_pages=max_pages,
                robots=asdict(robots),
            )

        return StartCrawlResult(
            ok=True,
            consent_required=True,
            max_pages=max_pages,
            robots=asdict(robots),
            message=robots.summary,
        )

    async def submit_consent(
        self,
        tab: TabContext,
        consent: ConsentFields,
        requested_max_pages: int | None = None,
    ) -> StartCrawlResult:
        """Begin a session from the consent dialog and remember the acceptance.

        Args:
            tab: The page the user is on
            consent: Acknowledgements ticked in the dialog
            requested_max_pages: Page cap picked in the dialog; it may only
                lower the configured cap and must be at least 5

        Returns:
            The started session's id, or a declined result naming the missing
            acknowledgement.
        """
        missing = consent.missing_acknowledgement()
        if missing:
            return _declined(missing, StartCrawlResult)
        if self._loop_alive(self.store.get()):
            return _declined("A crawl is already running", StartCrawlResult)

        max_pages = self.settings.compute_max_pages()
        # The dialog may only narrow the configured cap
        if requested_max_pages and 5 <= requested_max_pages <= max_pages:
            max_pages = requested_max_pages

        session_consent = SessionConsent(
            source="interactive",
            robots_disallowed=consent.robots_disallowed,
            robots_accepted=consent.robots_accepted,
        )
        self.consent_store.record_acceptance(consent.disallow_acknowledged)
        session = self._begin(tab.url, max_pages, session_consent, "Starting…")
        return StartCrawlResult(ok=True, session_id=session.session_id, max_pages=max_pages)

    async def cancel(self) -> OperationResult:
        """Cancel the crawl; a running loop stops at its next page boundary."""
        try:
            session = self.store.mutate(transitions.request_cancel)
        except InvalidTransition as e:
            return _declined(str(e))
        if session is None:
            return _declined("No active crawl")

        if self._loop_alive(session):
            return OperationResult(
                ok=True,
                session_id=session.session_id,
                message="Cancelling after the current page",
            )
        await self.finalizer.finalize(FinishReason.CANCELLED)
        return OperationResult(ok=True, session_id=session.session_id, message="Cancelled")

    async def stop_and_summarize_now(self) -> OperationResult:
        """Finish now and summarize what has been collected so far."""
        session = self.store.get()
        if session is None:
            return _declined("No active crawl")
        if session.finished:
            await self.finalizer.finalize(session.finished_reason or FinishReason.MANUAL_STOP)
            return OperationResult(ok=True, session_id=session.session_id, message="Already finished")
        await self.finalizer.finalize(FinishReason.MANUAL_STOP)
        return OperationResult(ok=True, session_id=session.session_id, message="Stopped")

    async def refresh_summary(self) -> OperationResult:
        """Recompute the summary of a finished session, bypassing the cache."""
        session = self.store.get()
        if session is None:
            return _declined("No crawl state")
        if not session.finished:
            return _declined("Crawl still in progress; stop it to summarize now")
        await self.finalizer.finalize(session.finished_reason, force_refresh=True)
        return OperationResult(ok=True, session_id=session.session_id, message="Refreshed")

    async def undo_summary(self) -> OperationResult:
        try:
            session = self.store.mutate(transitions.swap_summaries)
        except InvalidTransition as e:
            return _declined(str(e))
        if session is None:
            return _declined("No previous summary to restore")
        self.finalizer.notify_swapped(session)
        return OperationResult(ok=True, session_id=session.session_id, message="Summary restored")

    async def resume(self) -> OperationResult:
        """Relaunch the loop for an unfinished session whose loop is not alive."""
        session = self.store.get()
        if session is None:
            return _declined("No crawl to resume")
        if session.finished:
            return _declined("Crawl already finished")
        if session.cancelled:
            return _declined("Crawl was cancelled")
        if self._loop_alive(session):
            return _declined("A crawl is already running")
        self.launcher()
        return OperationResult(ok=True, session_id=session.session_id, message="Resumed")

    def status(self) -> dict[str, Any]:
        return session_view(self.store.get())

    async def analyze_single_page(self, url: str) -> AnalyzeResult:
        """Summarize the reviews on one page without starting a session.

        Args:
            url: Page to fetch and extract reviews from

        Returns:
            The summary and review count. A page that cannot be loaded or
            yields no usable reviews is declined.
        """
        try:
            extraction = await self.page_fetcher(url)
        except httpx.HTTPError as e:
            return _declined(f"Could not load page: {e}", AnalyzeResult)
        if extraction.captcha_detected:
            return _declined("CAPTCHA detected on page", AnalyzeResult)
        if extraction.blocked:
            return _declined("Access blocked by the site", AnalyzeResult)
        if not extraction.reviews:
            return _declined("No reviews found on this page", AnalyzeResult)

        summary = await self.finalizer.summarize_reviews(url, extraction.reviews)
        return AnalyzeResult(ok=True, review_count=len(extraction.reviews), summary=summary)

    def clear_cache(self) -> OperationResult:
        self.finalizer.cache.clear()
        return OperationResult(ok=True, message="Cache cleared")

    async def _fetch_page(self, url: str) -> PageExtraction:
        async with httpx.AsyncClient(
            timeout=self.settings.navigation_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": self.settings.user_agent},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        return ReviewExtractor().extract(response.text, str(response.url))
