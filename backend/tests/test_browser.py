import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from reviewdigest.exceptions import NavigationTimeout
from reviewdigest.services.browser import PlaywrightPageDriver

HTML = '<html><body><div class="review" id="R9"><span class="review-text">Sturdy.</span></div></body></html>'


class FakePage:
    def __init__(self, html=HTML, fail_with=None):
        self.url = "about:blank"
        self.html = html
        self.fail_with = fail_with
        self.goto_calls = []
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append((url, wait_until, timeout))
        if self.fail_with:
            raise self.fail_with
        self.url = url

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


async def test_blank_page_has_no_url():
    assert PlaywrightPageDriver(FakePage()).current_url is None


async def test_navigate_waits_for_dom():
    page = FakePage()
    driver = PlaywrightPageDriver(page, navigation_timeout_seconds=30.0)

    await driver.navigate("https://shop.example/product-reviews/B01/")

    assert page.goto_calls == [("https://shop.example/product-reviews/B01/", "domcontentloaded", 30000)]
    assert driver.current_url == "https://shop.example/product-reviews/B01/"


async def test_navigation_timeout_is_translated():
    driver = PlaywrightPageDriver(FakePage(fail_with=PlaywrightTimeoutError("Timeout 30000ms exceeded")))

    with pytest.raises(NavigationTimeout):
        await driver.navigate("https://shop.example/dp/1")


async def test_extract_parses_rendered_html():
    page = FakePage()
    driver = PlaywrightPageDriver(page)
    await driver.navigate("https://shop.example/product-reviews/B01/")

    extraction = await driver.extract()

    assert [r.id for r in extraction.reviews] == ["R9"]
    await driver.close()
    assert page.closed


async def test_empty_content_is_no_result():
    assert await PlaywrightPageDriver(FakePage(html="")).extract() is None
