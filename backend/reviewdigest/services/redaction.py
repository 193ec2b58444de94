"""PII redaction applied to review text before hashing or summarizing."""

import re

from reviewdigest.models import Review

EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"\b\+?\d[\d\s().-]{7,}\b")
# Capitalized word sequences (up to three words) are treated as personal names
NAME_PATTERN = re.compile(r"\b[A-Z][a-z]{2,}(?:\s+[A-Z][a-z]{2,}){0,2}\b")


def redact_pii(text: str | None) -> str:
    if not text:
        return text or ""
    text = EMAIL_PATTERN.sub("[REDACTED_EMAIL]", text)
    text = PHONE_PATTERN.sub("[REDACTED_PHONE]", text)
    return NAME_PATTERN.sub("[REDACTED_NAME]", text)


def sanitize_reviews(reviews: list[Review]) -> list[Review]:
    """Copy reviews with their text redacted."""
    return [review.model_copy(update={"text": redact_pii(review.text)}) for review in reviews]
