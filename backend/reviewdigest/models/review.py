"""Review records and page extraction results."""

from pydantic import BaseModel, Field


class Review(BaseModel):
    """A single user review scraped from a listing page."""

    id: str
    text: str = ""
    rating: float | None = None


class PageExtraction(BaseModel):
    """What the page extractor reports for one page."""

    reviews: list[Review] = Field(default_factory=list)
    next_page_url: str | None = None
    captcha_detected: bool = False
    blocked: bool = False
    error: str | None = None
