"""Extract reviews, the next page link, and anti-bot signals from listing HTML."""

import hashlib
import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from reviewdigest.models import PageExtraction, Review

logger = logging.getLogger(__name__)

CAPTCHA_PATTERN = re.compile(r"captcha|are you a human|select all images", re.IGNORECASE)
BLOCKED_PATTERN = re.compile(r"access denied|temporarily unavailable", re.IGNORECASE)
RATING_PATTERN = re.compile(r"([0-9]+(?:\.[0-9])?)")
REVIEW_LISTING_PATH = re.compile(r"/product-reviews/")

MAX_FALLBACK_TEXT = 2000


def strip_fragment(url: str) -> str:
    return url.split("#", 1)[0]


class ReviewExtractor:
    """Parses a rendered retail review page."""

    # Tried in order; the first selector that matches anything wins
    REVIEW_CONTAINERS = [
        "div[data-hook='review']",
        "#cm_cr-review_list .review",
        ".review",
        "[data-review-id]",
    ]
    REVIEW_TEXT = [
        "[data-hook='review-body']",
        ".review-text-content",
        "[itemprop='reviewBody']",
        ".review-text",
    ]
    RATING = [
        "[data-hook*='review-star-rating']",
        "i.a-icon-star span",
        ".a-icon-alt",
        "[itemprop='ratingValue']",
    ]
    SEE_ALL_REVIEWS = [
        "a[data-hook='see-all-reviews-link-foot']",
        "a[data-hook='see-all-reviews-link']",
    ]
    PAGINATION_NEXT = [
        ".a-pagination li.a-last:not(.a-disabled) a",
        ".a-pagination li.a-next:not(.a-disabled) a",
    ]

    def extract(self, html_content: str, page_url: str) -> PageExtraction:
        soup = BeautifulSoup(html_content, "lxml")
        captcha, blocked = self.detect_captcha_or_block(soup)
        reviews = self.extract_reviews(soup)
        next_page_url = self.find_next_page_url(soup, page_url)
        logger.info(
            f"Extracted {len(reviews)} reviews from {page_url} "
            f"(next={bool(next_page_url)}, captcha={captcha}, blocked={blocked})"
        )
        return PageExtraction(
            reviews=reviews,
            next_page_url=next_page_url,
            captcha_detected=captcha,
            blocked=blocked,
        )

    def detect_captcha_or_block(self, soup: BeautifulSoup) -> tuple[bool, bool]:
        body = soup.find("body") or soup
        text = body.get_text(" ", strip=True)
        return bool(CAPTCHA_PATTERN.search(text)), bool(BLOCKED_PATTERN.search(text))

    def _first_match(self, element: Tag, selectors: list[str]) -> Tag | None:
        for selector in selectors:
            found = element.select_one(selector)
            if found:
                return found
        return None

    def _review_elements(self, soup: BeautifulSoup) -> list[Tag]:
        for selector in self.REVIEW_CONTAINERS:
            elements = soup.select(selector)
            if elements:
                return elements
        return []

    def _review_id(self, element: Tag, text: str) -> str:
        for attr in ("id", "data-review-id"):
            value = element.get(attr)
            if value:
                return str(value)
        # Stable across re-extractions of the same page, unlike a random id
        return "r_" + hashlib.sha256(text.encode()).hexdigest()[:12]

    def _rating(self, element: Tag) -> float | None:
        rating_el = self._first_match(element, self.RATING)
        if rating_el is None:
            return None
        match = RATING_PATTERN.search(rating_el.get("content") or rating_el.get_text())
        return float(match.group(1)) if match else None

    def extract_reviews(self, soup: BeautifulSoup) -> list[Review]:
        reviews = []
        for element in self._review_elements(soup):
            body = self._first_match(element, self.REVIEW_TEXT)
            if body is not None:
                text = body.get_text(" ", strip=True)
            else:
                text = element.get_text(" ", strip=True)[:MAX_FALLBACK_TEXT]
            if not text:
                continue
            reviews.append(Review(id=self._review_id(element, text), text=text, rating=self._rating(element)))
        return reviews

    def find_next_page_url(self, soup: BeautifulSoup, page_url: str) -> str | None:
        """Find the next listing page, or the full review listing from a product page."""
        current = strip_fragment(page_url)

        def candidate(href: str | None) -> str | None:
            if not href or href.startswith(("javascript:", "mailto:", "#")):
                return None
            absolute = urljoin(page_url, href)
            return absolute if strip_fragment(absolute) != current else None

        if not REVIEW_LISTING_PATH.search(current):
            see_all = self._first_match(soup, self.SEE_ALL_REVIEWS)
            if see_all is None:
                see_all = next(
                    (a for a in soup.find_all("a", href=True) if re.search(r"see all reviews", a.get_text(), re.I)),
                    None,
                )
            if see_all is not None:
                url = candidate(see_all.get("href"))
                if url and REVIEW_LISTING_PATH.search(url):
                    return url

        rel_next = soup.select_one("link[rel='next']") or soup.select_one("a[rel='next']")
        if rel_next is not None:
            url = candidate(rel_next.get("href"))
            if url:
                return url

        pagination = self._first_match(soup, self.PAGINATION_NEXT)
        if pagination is not None:
            url = candidate(pagination.get("href"))
            if url:
                return url

        for anchor in soup.find_all("a", href=True):
            if re.search(r"next", anchor.get_text(), re.I):
                url = candidate(anchor["href"])
                if url:
                    return url
        return None
