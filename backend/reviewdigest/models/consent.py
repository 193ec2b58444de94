"""Consent records for multi-page collection."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

CONSENT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsentRecord(BaseModel):
    """One-time global consent, shared by every later session."""

    accepted: bool = True
    accepted_at: datetime = Field(default_factory=_utcnow)
    version: int = CONSENT_VERSION
    disallow_acknowledged: bool = False  # user accepted crawling a robots-disallowed path


class ConsentFields(BaseModel):
    """Checkboxes submitted from the consent dialog."""

    risk_acknowledged: bool = False
    no_redistribution: bool = False
    robots_disallowed: bool = False
    robots_accepted: bool = False

    @property
    def disallow_acknowledged(self) -> bool:
        return self.robots_disallowed and self.robots_accepted

    def missing_acknowledgement(self) -> str | None:
        """Return why the consent is incomplete, or None when it is complete."""
        if not self.risk_acknowledged:
            return "Risk acknowledgement is required"
        if not self.no_redistribution:
            return "No-redistribution acknowledgement is required"
        if self.robots_disallowed and not self.robots_accepted:
            return "robots.txt disallows this path; explicit acceptance is required"
        return None


class SessionConsent(BaseModel):
    """Snapshot of the consent that started a crawl session."""

    source: Literal["global", "interactive"]
    accepted_at: datetime = Field(default_factory=_utcnow)
    version: int = CONSENT_VERSION
    robots_disallowed: bool = False
    robots_accepted: bool = False
