from datetime import timedelta

import pytest

from reviewdigest.exceptions import InvalidTransition
from reviewdigest.models import FinishReason, SessionConsent, SessionStatus, Summary
from reviewdigest.services import transitions

URL = "https://shop.example/dp/1/product-reviews/"


def test_init_and_get(store):
    session = store.init(URL, 20, 500, SessionConsent(source="global"))

    loaded = store.get()
    assert loaded.session_id == session.session_id
    assert loaded.current_url == URL
    assert loaded.status == SessionStatus.IDLE
    assert loaded.consent.source == "global"


def test_init_supersedes_existing(store, start_session):
    first = start_session()
    second = start_session()

    assert store.get().session_id == second.session_id != first.session_id


def test_update_without_session_is_noop(store):
    assert store.update(pages_crawled=3) is None
    assert store.get() is None


def test_update_keeps_unpatched_fields(store, start_session):
    start_session(max_pages=7)

    store.update(pages_crawled=2)

    session = store.get()
    assert session.pages_crawled == 2
    assert session.max_pages == 7


def test_failed_mutation_leaves_record_untouched(store, start_session):
    start_session()
    store.update(finished=True, finished_reason=FinishReason.LIMIT)

    with pytest.raises(InvalidTransition):
        store.mutate(transitions.request_cancel)

    assert not store.get().cancelled


def test_clear(store, start_session):
    start_session()
    store.clear()
    assert store.get() is None


def test_acquire_sets_guard(start_session, now):
    session = transitions.acquire(start_session(), now, 300)

    assert session.running
    assert session.heartbeat_at == now
    assert session.status == SessionStatus.RUNNING


def test_acquire_refuses_live_guard(start_session, now):
    session = transitions.acquire(start_session(), now, 300)

    with pytest.raises(InvalidTransition):
        transitions.acquire(session, now + timedelta(seconds=10), 300)


def test_acquire_takes_over_stale_guard(start_session, now):
    session = transitions.acquire(start_session(), now, 300)

    taken = transitions.acquire(session, now + timedelta(seconds=301), 300)

    assert taken.heartbeat_at == now + timedelta(seconds=301)


@pytest.mark.parametrize("patch", [{"finished": True}, {"cancelled": True}])
def test_acquire_refuses_terminal_sessions(start_session, now, patch):
    session = start_session().model_copy(update=patch)

    with pytest.raises(InvalidTransition):
        transitions.acquire(session, now, 300)


def test_release_clears_guard(start_session, now):
    session = transitions.release(transitions.acquire(start_session(), now, 300))

    assert not session.running
    assert session.heartbeat_at is None


def test_finish_keeps_previous_summary_and_first_reason(start_session):
    first = Summary.empty()
    second = Summary(note_pros="second")

    session = transitions.finish(start_session(), FinishReason.CAPTCHA, first)
    session = transitions.finish(session, FinishReason.LIMIT, second, force_refresh=True)

    assert session.finished_reason == FinishReason.CAPTCHA
    assert session.summary == second
    assert session.previous_summary == first


def test_finish_refuses_finished_session_without_refresh(start_session):
    session = transitions.finish(start_session(), FinishReason.END_OF_PAGES, Summary.empty())

    with pytest.raises(InvalidTransition):
        transitions.finish(session, FinishReason.MANUAL_STOP, Summary(note_pros="late"))


def test_heartbeat_renews_lease(start_session, now):
    session = transitions.acquire(start_session(), now, 300)

    renewed = transitions.heartbeat(session, now + timedelta(seconds=290))

    assert renewed.running
    assert not renewed.lease_is_stale(now + timedelta(seconds=400), 300)


def test_swap_summaries(start_session):
    session = start_session().model_copy(
        update={"summary": Summary(note_pros="new"), "previous_summary": Summary(note_pros="old")}
    )

    swapped = transitions.swap_summaries(session)

    assert swapped.summary.note_pros == "old"
    assert swapped.previous_summary.note_pros == "new"


def test_swap_without_previous_is_refused(start_session):
    with pytest.raises(InvalidTransition):
        transitions.swap_summaries(start_session())


def test_status_message_reflects_reason(start_session):
    session = transitions.finish(start_session(), FinishReason.REVIEW_CAP, Summary.empty())

    assert session.status == SessionStatus.FINISHED
    assert session.status_message == "Stopped: review limit reached"
