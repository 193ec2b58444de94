"""CrawlSession model for the single active review crawl."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from reviewdigest.models.consent import SessionConsent
from reviewdigest.models.review import Review
from reviewdigest.models.summary import Summary


class FinishReason(str, Enum):
    """Why a session reached its terminal state."""

    LIMIT = "limit"
    REVIEW_CAP = "review-cap"
    END_OF_PAGES = "end-of-pages"
    CAPTCHA = "captcha"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    MANUAL_STOP = "manual-stop"
    ERROR = "error"


FINISH_REASON_MESSAGES = {
    FinishReason.LIMIT: "Stopped: page limit reached",
    FinishReason.REVIEW_CAP: "Stopped: review limit reached",
    FinishReason.END_OF_PAGES: "Completed: no more review pages",
    FinishReason.CAPTCHA: "Stopped: CAPTCHA detected",
    FinishReason.BLOCKED: "Stopped: access blocked by the site",
    FinishReason.CANCELLED: "Cancelled by user",
    FinishReason.MANUAL_STOP: "Stopped early at your request",
    FinishReason.ERROR: "Stopped: an error interrupted the crawl",
}


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrawlSession(BaseModel):
    """Persisted state of a multi-page review crawl."""

    session_id: str = Field(default_factory=lambda: str(uuid4()))
    start_url: str
    current_url: str | None = None  # next navigation target, None once exhausted
    max_pages: int
    max_reviews: int
    pages_crawled: int = 0
    aggregated_reviews: dict[str, Review] = Field(default_factory=dict)

    # Loop guard
    running: bool = False
    heartbeat_at: datetime | None = None

    # Terminal state
    finished: bool = False
    cancelled: bool = False
    finished_reason: FinishReason | None = None

    consent: SessionConsent
    summary: Summary | None = None
    previous_summary: Summary | None = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def status(self) -> SessionStatus:
        if self.finished:
            return SessionStatus.FINISHED
        if self.cancelled:
            return SessionStatus.CANCELLED
        if self.running:
            return SessionStatus.RUNNING
        return SessionStatus.IDLE

    @property
    def review_count(self) -> int:
        return len(self.aggregated_reviews)

    @property
    def status_message(self) -> str:
        if self.finished and self.finished_reason:
            return FINISH_REASON_MESSAGES[self.finished_reason]
        if self.cancelled:
            return "Cancelling…"
        if self.running:
            return f"Crawling: {self.pages_crawled}/{self.max_pages} pages"
        return "Paused: resume to continue"

    def lease_is_stale(self, now: datetime, lease_seconds: float) -> bool:
        """Whether a held running flag belongs to a loop that stopped heartbeating."""
        if not self.running:
            return False
        if self.heartbeat_at is None:
            return True
        return (now - self.heartbeat_at).total_seconds() > lease_seconds
