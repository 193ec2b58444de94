"""Pydantic models for persisted records."""

from reviewdigest.models.consent import ConsentFields, ConsentRecord, SessionConsent
from reviewdigest.models.crawl_session import (
    FINISH_REASON_MESSAGES,
    CrawlSession,
    FinishReason,
    SessionStatus,
)
from reviewdigest.models.key_health import KeyHealth, KeyHealthStatus
from reviewdigest.models.review import PageExtraction, Review
from reviewdigest.models.summary import Aspect, Summary

__all__ = [
    "Aspect",
    "ConsentFields",
    "ConsentRecord",
    "CrawlSession",
    "FINISH_REASON_MESSAGES",
    "FinishReason",
    "KeyHealth",
    "KeyHealthStatus",
    "PageExtraction",
    "Review",
    "SessionConsent",
    "SessionStatus",
    "Summary",
]
