"""Playwright-backed page driver for the crawl loop."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from reviewdigest.config import Settings
from reviewdigest.exceptions import NavigationTimeout
from reviewdigest.models import PageExtraction
from reviewdigest.services.review_extractor import ReviewExtractor

logger = logging.getLogger(__name__)


class PlaywrightPageDriver:
    """Drives one browser page, the way a user's tab would be driven."""

    def __init__(
        self,
        page: Page,
        navigation_timeout_seconds: float = 30.0,
        extractor: Optional[ReviewExtractor] = None,
    ):
        self.page = page
        self.navigation_timeout_ms = int(navigation_timeout_seconds * 1000)
        self.extractor = extractor or ReviewExtractor()

    @property
    def current_url(self) -> str | None:
        url = self.page.url
        return None if not url or url == "about:blank" else url

    async def navigate(self, url: str) -> None:
        """Navigate and wait for the DOM to be ready.

        Uses domcontentloaded instead of networkidle to avoid stalling on
        sites with trackers that keep connections open.
        """
        logger.info(f"Navigating to {url}")
        try:
            await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Navigation timeout for {url}") from e

    async def extract(self) -> PageExtraction | None:
        html_content = await self.page.content()
        if not html_content:
            return None
        return self.extractor.extract(html_content, self.page.url)

    async def close(self) -> None:
        await self.page.close()


@asynccontextmanager
async def open_page_driver(settings: Settings) -> AsyncIterator[PlaywrightPageDriver]:
    """Open a page on a remote browser (CDP) or a local headless Chromium."""
    async with async_playwright() as p:
        browser = await _connect(p, settings)
        try:
            context = await browser.new_context(user_agent=settings.user_agent)
            page = await context.new_page()
            driver = PlaywrightPageDriver(page, settings.navigation_timeout_seconds)
            try:
                yield driver
            finally:
                await context.close()
        finally:
            await browser.close()


async def _connect(p: Playwright, settings: Settings) -> Browser:
    if settings.playwright_ws_url:
        logger.info("Connecting to remote browser over CDP")
        return await p.chromium.connect_over_cdp(settings.playwright_ws_url)
    return await p.chromium.launch(headless=True)
