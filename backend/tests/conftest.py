import asyncio
from datetime import datetime, timezone

import fakeredis
import pytest

from reviewdigest.config import Settings
from reviewdigest.models import PageExtraction, Review, SessionConsent
from reviewdigest.services.consent_store import ConsentStore
from reviewdigest.services.crawl_service import CrawlService
from reviewdigest.services.finalizer import Finalizer
from reviewdigest.services.orchestrator import CrawlOrchestrator
from reviewdigest.services.progress import PROGRESS_KEY, ProgressService
from reviewdigest.services.robots import RobotsDecision
from reviewdigest.services.session_store import SessionStateStore
from reviewdigest.services.summarizers import HeuristicSummarizer
from reviewdigest.services.summary_cache import SummaryCache


class FakeDriver:
    """In-memory page driver.

    ``pages`` maps a URL to an extraction, an exception to raise, or a list of
    those consumed one per extract call (the last entry repeats).
    """

    def __init__(self, pages, current_url=None, navigate_delay=0.0):
        self.pages = pages
        self._current = current_url
        self.navigate_delay = navigate_delay
        self.navigations = []
        self.extract_calls = 0

    @property
    def current_url(self):
        return self._current

    async def navigate(self, url):
        self.navigations.append(url)
        if self.navigate_delay:
            await asyncio.sleep(self.navigate_delay)
        self._current = url

    async def extract(self):
        self.extract_calls += 1
        entry = self.pages[self._current]
        if isinstance(entry, list):
            entry = entry.pop(0) if len(entry) > 1 else entry[0]
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def close(self):
        pass


class FakeRobots:
    def __init__(self, decision):
        self.decision = decision
        self.calls = []

    async def evaluate(self, page_url):
        self.calls.append(page_url)
        return self.decision


class CountingSummarizer(HeuristicSummarizer):
    name = "counting"

    def __init__(self):
        self.calls = 0

    def summarize(self, reviews, site=""):
        self.calls += 1
        return super().summarize(reviews, site)


def make_reviews(prefix, count, rating=5.0):
    texts = [
        "The battery life is long and the build quality feels sturdy.",
        "Motor is noisy but the grinder works fast and cleaning is easy.",
        "Great value for the price, the design is compact and sturdy.",
        "Battery life is long, charging is quick and the motor is quiet.",
    ]
    return [
        Review(id=f"{prefix}{i}", text=f"{texts[i % len(texts)]} Review {prefix}{i}.", rating=rating)
        for i in range(count)
    ]


def page(reviews, next_page_url=None, **flags):
    return PageExtraction(reviews=reviews, next_page_url=next_page_url, **flags)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        fallback_mode=True,
        openai_api_key=None,
        anthropic_api_key=None,
        gemini_api_key=None,
    )


@pytest.fixture
def store(redis_client):
    return SessionStateStore(redis_client=redis_client)


@pytest.fixture
def cache(redis_client, settings):
    return SummaryCache(redis_client=redis_client, settings=settings)


@pytest.fixture
def progress(redis_client):
    return ProgressService(redis_client=redis_client)


@pytest.fixture
def progress_events(progress):
    events = []
    progress.subscribe(lambda key, event: events.append((key, dict(event))))
    return events


@pytest.fixture
def page_events(progress_events):
    return lambda: [event for key, event in progress_events if key == PROGRESS_KEY]


@pytest.fixture
def summarizer():
    return CountingSummarizer()


@pytest.fixture
def finalizer(store, cache, summarizer, progress):
    return Finalizer(store=store, cache=cache, summarizer=summarizer, progress=progress)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def sleep(seconds):
        sleeps.append(seconds)

    return sleep


@pytest.fixture
def start_session(store):
    def start(url="https://shop.example/dp/1/product-reviews/", max_pages=60, max_reviews=1200):
        return store.init(url, max_pages, max_reviews, SessionConsent(source="interactive"))

    return start


@pytest.fixture
def make_orchestrator(store, finalizer, progress, settings, fake_sleep):
    def make(driver, **overrides):
        return CrawlOrchestrator(
            store=store,
            driver=driver,
            finalizer=finalizer,
            progress=progress,
            settings=settings.model_copy(update=overrides) if overrides else settings,
            sleep=fake_sleep,
        )

    return make


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def consent_store(redis_client):
    return ConsentStore(redis_client=redis_client)


@pytest.fixture
def launches():
    return []


@pytest.fixture
def robots():
    return FakeRobots(RobotsDecision(fetched_ok=True))


@pytest.fixture
def fetched_pages():
    return {}


@pytest.fixture
def service(store, consent_store, robots, finalizer, progress, launches, settings, fetched_pages):
    async def fetch(url):
        return fetched_pages[url]

    return CrawlService(
        store=store,
        consent_store=consent_store,
        robots=robots,
        finalizer=finalizer,
        progress=progress,
        launcher=lambda: launches.append(True),
        settings=settings,
        page_fetcher=fetch,
    )
