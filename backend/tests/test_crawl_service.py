import asyncio
import time
from datetime import timedelta

import pytest
from conftest import CountingSummarizer, FakeDriver, make_reviews, page

from reviewdigest.models import ConsentFields, ConsentRecord, FinishReason, Summary
from reviewdigest.services.crawl_service import TabContext
from reviewdigest.services.robots import RobotsDecision

URL = "https://shop.example/dp/1/product-reviews/"
FULL_CONSENT = ConsentFields(risk_acknowledged=True, no_redistribution=True)


async def test_start_without_consent_asks_for_it(service, store, launches):
    result = await service.start_crawl(TabContext(url=URL))

    assert result.ok
    assert result.consent_required
    assert result.max_pages == 60
    assert result.robots["fetched_ok"] is True
    assert store.get() is None
    assert launches == []


async def test_start_with_global_consent_skips_dialog(service, store, consent_store, launches):
    consent_store.set_global(ConsentRecord())

    result = await service.start_crawl(TabContext(url=URL))

    assert result.ok and result.skipped_consent
    session = store.get()
    assert session.consent.source == "global"
    assert session.start_url == URL
    assert session.max_reviews == 1200
    assert launches == [True]


async def test_disallowed_path_needs_prior_acknowledgement(service, consent_store, robots):
    robots.decision = RobotsDecision(fetched_ok=True, disallowed=True)
    consent_store.set_global(ConsentRecord())

    result = await service.start_crawl(TabContext(url=URL))
    assert result.consent_required

    consent_store.set_global(ConsentRecord(disallow_acknowledged=True))
    result = await service.start_crawl(TabContext(url=URL))
    assert result.skipped_consent


async def test_robots_fetch_failure_still_allows_start(service, robots):
    robots.decision = RobotsDecision(fetched_ok=False, error_message="robots.txt status 500")

    result = await service.start_crawl(TabContext(url=URL))

    assert result.consent_required
    assert "status 500" in result.message


async def test_non_http_url_is_declined(service, robots):
    result = await service.start_crawl(TabContext(url="chrome://extensions"))

    assert not result.ok
    assert robots.calls == []


async def test_start_while_loop_running_is_declined(service, store, consent_store, start_session, now):
    consent_store.set_global(ConsentRecord())
    start_session(URL)
    store.update(running=True, heartbeat_at=now)

    result = await service.start_crawl(TabContext(url=URL))

    assert not result.ok
    assert "already running" in result.error


async def test_start_supersedes_idle_session(service, store, consent_store, start_session):
    consent_store.set_global(ConsentRecord())
    old = start_session(URL)

    await service.start_crawl(TabContext(url=URL))

    assert store.get().session_id != old.session_id


async def test_incomplete_consent_is_declined(service, store, consent_store):
    result = await service.submit_consent(
        TabContext(url=URL), ConsentFields(risk_acknowledged=True)
    )

    assert not result.ok
    assert store.get() is None
    assert consent_store.get() is None


async def test_disallowed_path_requires_robots_acceptance(service):
    consent = FULL_CONSENT.model_copy(update={"robots_disallowed": True})

    result = await service.submit_consent(TabContext(url=URL), consent)

    assert not result.ok
    assert "robots.txt" in result.error


async def test_consent_starts_session_and_is_remembered(service, store, consent_store, launches):
    result = await service.submit_consent(TabContext(url=URL), FULL_CONSENT)

    assert result.ok
    assert store.get().consent.source == "interactive"
    assert consent_store.get().accepted
    assert launches == [True]


@pytest.mark.parametrize("requested, expected", [(10, 10), (3, 60), (80, 60), (None, 60)])
async def test_requested_page_cap_can_only_lower(service, store, requested, expected):
    await service.submit_consent(TabContext(url=URL), FULL_CONSENT, requested_max_pages=requested)

    assert store.get().max_pages == expected


async def test_disallow_acknowledgement_upgrades_global_consent(service, consent_store):
    await service.submit_consent(TabContext(url=URL), FULL_CONSENT)
    first = consent_store.get()

    acknowledged = FULL_CONSENT.model_copy(update={"robots_disallowed": True, "robots_accepted": True})
    await service.submit_consent(TabContext(url=URL), acknowledged)

    upgraded = consent_store.get()
    assert upgraded.disallow_acknowledged
    assert upgraded.accepted_at == first.accepted_at


async def test_cancel_idle_session_finalizes_now(service, store, start_session):
    start_session(URL)

    result = await service.cancel()

    assert result.ok
    session = store.get()
    assert session.finished_reason == FinishReason.CANCELLED
    assert session.cancelled


async def test_cancel_running_session_only_flags(service, store, start_session, now):
    start_session(URL)
    store.update(running=True, heartbeat_at=now)

    result = await service.cancel()

    assert result.ok
    session = store.get()
    assert session.cancelled
    assert not session.finished


async def test_cancel_stale_running_session_finalizes(service, store, start_session, now):
    start_session(URL)
    store.update(running=True, heartbeat_at=now - timedelta(hours=1))

    await service.cancel()

    assert store.get().finished_reason == FinishReason.CANCELLED


async def test_cancel_finished_session_is_declined(service, store, start_session):
    start_session(URL)
    store.update(finished=True, finished_reason=FinishReason.LIMIT)

    result = await service.cancel()

    assert not result.ok
    assert store.get().finished_reason == FinishReason.LIMIT


async def test_cancel_without_session_is_declined(service):
    assert not (await service.cancel()).ok


async def test_stop_summarizes_partial_results(service, store, start_session):
    start_session(URL)
    store.update(aggregated_reviews={r.id: r for r in make_reviews("a", 4)}, pages_crawled=2)

    result = await service.stop_and_summarize_now()

    assert result.ok
    session = store.get()
    assert session.finished_reason == FinishReason.MANUAL_STOP
    assert session.summary is not None


class SlowOnEmptySummarizer(CountingSummarizer):
    """Blocks while summarizing an empty aggregate so a later finalize wins."""

    def summarize(self, reviews, site=""):
        if not reviews:
            time.sleep(0.3)
            self.calls += 1
            return Summary(note_pros="stale")
        return super().summarize(reviews, site)


async def test_stop_racing_loop_finalize_keeps_loop_result(
    service, store, finalizer, start_session, make_orchestrator
):
    start_session(URL)
    finalizer.summarizer = SlowOnEmptySummarizer()
    driver = FakeDriver({URL: page(make_reviews("a", 3))}, navigate_delay=0.05)

    _, stopped = await asyncio.gather(
        make_orchestrator(driver).run(),
        service.stop_and_summarize_now(),
    )

    assert stopped.ok
    session = store.get()
    assert session.finished_reason == FinishReason.END_OF_PAGES
    assert session.review_count == 3
    assert session.summary.note_pros != "stale"
    assert session.previous_summary is None
    assert finalizer.summarizer.calls == 2


async def test_stop_without_session_is_declined(service):
    assert not (await service.stop_and_summarize_now()).ok


async def test_refresh_unfinished_session_is_declined(service, start_session):
    start_session(URL)

    result = await service.refresh_summary()

    assert not result.ok


async def test_refresh_then_undo_swaps_summaries(service, store, start_session, summarizer, progress):
    start_session(URL)
    store.update(aggregated_reviews={r.id: r for r in make_reviews("a", 4)})
    await service.stop_and_summarize_now()
    original = store.get().summary

    assert (await service.refresh_summary()).ok
    assert summarizer.calls == 2
    refreshed = store.get()
    assert refreshed.finished_reason == FinishReason.MANUAL_STOP
    assert refreshed.previous_summary == original

    assert (await service.undo_summary()).ok
    undone = store.get()
    assert undone.summary == original
    assert undone.previous_summary == refreshed.summary
    assert progress.get_finished()["status"].endswith("(undo)")


async def test_undo_without_previous_summary_is_declined(service, store, start_session):
    start_session(URL)

    result = await service.undo_summary()

    assert not result.ok
    assert store.get().summary is None


async def test_resume_relaunches_idle_session(service, start_session, launches):
    start_session(URL)

    assert (await service.resume()).ok
    assert launches == [True]


async def test_resume_running_session_is_declined(service, store, start_session, launches, now):
    start_session(URL)
    store.update(running=True, heartbeat_at=now)

    assert not (await service.resume()).ok
    assert launches == []


async def test_status_view(service, start_session):
    assert service.status() == {"exists": False}
    session = start_session(URL)

    view = service.status()

    assert view["session_id"] == session.session_id
    assert view["status"] == "idle"
    assert view["can_undo"] is False
    assert "aggregated_reviews" not in view


async def test_analyze_single_page(service, fetched_pages, store):
    fetched_pages[URL] = page(make_reviews("a", 5))

    result = await service.analyze_single_page(URL)

    assert result.ok
    assert result.review_count == 5
    assert result.summary is not None
    assert store.get() is None


async def test_analyze_page_with_captcha_is_declined(service, fetched_pages):
    fetched_pages[URL] = page([], captcha_detected=True)

    result = await service.analyze_single_page(URL)

    assert not result.ok
    assert "CAPTCHA" in result.error


async def test_clear_cache(service, cache):
    cache.put("k", Summary.empty())

    assert service.clear_cache().ok
    assert cache.get("k") is None
