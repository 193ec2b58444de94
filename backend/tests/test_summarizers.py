import json

from reviewdigest.models import Review
from reviewdigest.services.aspect_heuristics import heuristic_aspect_summary
from reviewdigest.services.summarizers import HeuristicSummarizer, LLMSummarizer, get_summarizer

REVIEWS = [
    Review(id="r1", text="battery life is long and the motor is quiet", rating=5.0),
    Review(id="r2", text="long battery life, sturdy build quality", rating=5.0),
    Review(id="r3", text="the motor became noisy after a month, noisy motor", rating=2.0),
    Review(id="r4", text="noisy motor and cleaning is difficult", rating=1.0),
    Review(id="r5", text="sturdy build quality and long battery life", rating=4.0),
]


def _llm_settings(settings):
    return settings.model_copy(update={"fallback_mode": False, "openai_api_key": "sk-test-" + "x" * 30})


def test_heuristic_summary_constraints():
    summary = heuristic_aspect_summary(REVIEWS)
    ids = {r.id for r in REVIEWS}

    for side in (summary.pros, summary.cons):
        assert len(side) <= 8
        for aspect in side:
            assert aspect.support_count >= 0
            assert set(aspect.example_ids) <= ids
    assert any("battery" in a.label for a in summary.pros)
    assert any("noisy" in a.label for a in summary.cons)


def test_heuristic_labels_come_from_review_text():
    corpus = " ".join(r.text for r in REVIEWS)
    summary = heuristic_aspect_summary(REVIEWS)

    for aspect in summary.pros + summary.cons:
        for word in aspect.label.split():
            assert word in corpus


def test_heuristic_empty_input():
    summary = heuristic_aspect_summary([])

    assert summary.pros == [] and summary.cons == []
    assert summary.note_pros == "No pros found"


def test_get_summarizer_selection(settings):
    assert isinstance(get_summarizer(settings), HeuristicSummarizer)
    no_key = settings.model_copy(update={"fallback_mode": False})
    assert isinstance(get_summarizer(no_key), HeuristicSummarizer)


def test_llm_response_is_parsed(settings, monkeypatch):
    summarizer = LLMSummarizer(_llm_settings(settings))
    response = {
        "pros": [{"label": "battery life", "support_count": 3, "example_ids": ["r1", "r99"]}],
        "cons": [{"label": "noisy motor", "support_count": 2, "example_ids": ["r3"]}],
        "note_pros": "",
        "note_cons": "",
    }
    prompts = []

    def fake_call(prompt):
        prompts.append(prompt)
        return "Here you go:\n" + json.dumps(response)

    monkeypatch.setattr(summarizer, "_call_llm", fake_call)

    summary = summarizer.summarize(REVIEWS, site="shop.example")

    assert summary.pros[0].label == "battery life"
    assert summary.pros[0].example_ids == ["r1"]
    assert summary.cons[0].label == "noisy motor"
    assert "shop.example" in prompts[0]


def test_llm_failure_falls_back_to_heuristic(settings, monkeypatch):
    summarizer = LLMSummarizer(_llm_settings(settings))

    def boom(prompt):
        raise ConnectionError("provider down")

    monkeypatch.setattr(summarizer, "_call_llm", boom)

    assert summarizer.summarize(REVIEWS) == heuristic_aspect_summary(REVIEWS)


def test_llm_bad_json_falls_back(settings, monkeypatch):
    summarizer = LLMSummarizer(_llm_settings(settings))
    monkeypatch.setattr(summarizer, "_call_llm", lambda prompt: '{"pros": "oops"}')

    assert summarizer.summarize(REVIEWS) == heuristic_aspect_summary(REVIEWS)


def test_llm_waits_for_request_spacing(settings, monkeypatch):
    waits = []

    class Spacer:
        def wait(self):
            waits.append(True)

    summarizer = LLMSummarizer(_llm_settings(settings), spacer=Spacer())
    monkeypatch.setattr(summarizer, "_call_llm", lambda prompt: "{}")

    summarizer.summarize(REVIEWS)

    assert waits == [True]
