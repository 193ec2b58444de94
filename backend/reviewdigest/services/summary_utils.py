"""Parsing, validation and cleanup of pros/cons summaries."""

import re
from collections import defaultdict
from typing import Any

from reviewdigest.models import Aspect, Review, Summary
from reviewdigest.models.summary import MAX_ASPECTS, MAX_EXAMPLE_IDS, MAX_LABEL_LENGTH

MAX_NOTE_LENGTH = 200

PLACEHOLDER_WORDS = re.compile(r"\b(name|product|redacted|brand)\b", re.IGNORECASE)
GENERIC_SINGLE = re.compile(r"^(good|great|nice|very|really|also|have|has)$", re.IGNORECASE)
FILLER_LABEL = re.compile(
    r"^(this|that|these|those|have|also|like|good|great|nice|really|very)$", re.IGNORECASE
)

# Single-word labels that are meaningful aspects on their own
SINGLE_WORD_ASPECTS = {
    "battery", "battery life", "motor", "noise", "noise level", "design", "warranty",
    "durability", "speed", "weight", "size", "build quality", "performance", "grinder",
    "grinding", "power", "taste", "flavor", "texture", "cleaning", "ease of use",
    "value", "price",
}

SUMMARY_KEYS = ("pros", "cons", "note_pros", "note_cons")


def extract_first_json_block(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in a model response."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def sample_reviews_for_prompt(
    reviews: list[Review],
    max_chars: int = 12000,
    max_review_chars: int = 800,
) -> list[dict[str, Any]]:
    """Pick a prompt-sized sample, longest reviews first within each rating."""
    buckets: dict[str, list[Review]] = defaultdict(list)
    for review in reviews:
        key = str(review.rating) if review.rating is not None else "na"
        buckets[key].append(review)

    ordered: list[Review] = []
    for bucket in buckets.values():
        ordered.extend(sorted(bucket, key=lambda r: len(r.text or ""), reverse=True))

    sampled = []
    total = 0
    for review in ordered:
        chunk = (review.text or "")[:max_review_chars]
        if total + len(chunk) > max_chars:
            break
        sampled.append({"id": review.id, "text": chunk, "rating": review.rating})
        total += len(chunk)
    return sampled


def _valid_aspect(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    if not isinstance(item.get("label"), str) or len(item["label"]) > MAX_LABEL_LENGTH:
        return False
    count = item.get("support_count")
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        return False
    ids = item.get("example_ids")
    return isinstance(ids, list) and all(isinstance(i, str) for i in ids)


def validate_summary_payload(data: Any) -> bool:
    """Check a parsed model response against the summary schema."""
    if not isinstance(data, dict):
        return False
    if any(key not in data for key in SUMMARY_KEYS):
        return False
    for key in ("pros", "cons"):
        items = data[key]
        if not isinstance(items, list) or len(items) > MAX_ASPECTS:
            return False
        if not all(_valid_aspect(item) for item in items):
            return False
    return isinstance(data["note_pros"], str) and isinstance(data["note_cons"], str)


def _safe_items(items: Any) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    cleaned = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("label"), str):
            continue
        try:
            support = max(0, int(float(item.get("support_count") or 0)))
        except (TypeError, ValueError):
            support = 0
        ids = item.get("example_ids")
        ids = [i for i in ids if isinstance(i, str)] if isinstance(ids, list) else []
        cleaned.append({
            "label": item["label"][:MAX_LABEL_LENGTH],
            "support_count": support,
            "example_ids": ids[:MAX_EXAMPLE_IDS],
        })
        if len(cleaned) >= MAX_ASPECTS:
            break
    return cleaned


def _scrub(label: str) -> str:
    label = PLACEHOLDER_WORDS.sub("", label)
    return re.sub(r"\s{2,}", " ", label).strip()


def _is_meaningful(item: dict[str, Any]) -> bool:
    label = item["label"]
    if len(label) < 3 or label.isdigit():
        return False
    if len(label.split()) == 1:
        lower = label.lower()
        if lower not in SINGLE_WORD_ASPECTS:
            if not (item["support_count"] >= 3 and len(lower) >= 4 and not GENERIC_SINGLE.match(lower)):
                return False
    return not FILLER_LABEL.match(label)


def _consolidate(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge nested phrases ("battery" inside "battery life"), keeping the longer one."""
    kept: list[dict[str, Any]] = []
    ordered = sorted(items, key=lambda it: (-len(it["label"]), -it["support_count"]))
    for item in ordered:
        lower = item["label"].lower()
        merged = False
        for k in kept:
            kept_lower = k["label"].lower()
            if re.search(r"\b" + re.escape(lower) + r"\b", kept_lower):
                merged = True
                break
            if re.search(r"\b" + re.escape(kept_lower) + r"\b", lower) and item["support_count"] >= k["support_count"]:
                example_ids = list(k["example_ids"])
                for example_id in item["example_ids"]:
                    if len(example_ids) < MAX_EXAMPLE_IDS and example_id not in example_ids:
                        example_ids.append(example_id)
                k.update(label=item["label"], support_count=item["support_count"], example_ids=example_ids)
                merged = True
                break
        if not merged:
            kept.append(dict(item))
    return kept


def _clean_side(items: Any) -> list[Aspect]:
    scrubbed = [{**item, "label": _scrub(item["label"])} for item in _safe_items(items)]
    meaningful = [item for item in scrubbed if _is_meaningful(item)]
    return [Aspect(**item) for item in _consolidate(meaningful)[:MAX_ASPECTS]]


def coerce_and_clean(data: dict[str, Any]) -> Summary:
    """Turn a loosely-shaped payload into a valid Summary.

    Drops placeholder words and filler labels, merges nested phrases, and
    enforces the list, label and example-id limits.
    """
    pros = _clean_side(data.get("pros"))
    cons = _clean_side(data.get("cons"))
    note_pros = data.get("note_pros") if isinstance(data.get("note_pros"), str) else ""
    note_cons = data.get("note_cons") if isinstance(data.get("note_cons"), str) else ""
    return Summary(
        pros=pros,
        cons=cons,
        note_pros=note_pros[:MAX_NOTE_LENGTH] if pros else "No pros found",
        note_cons=note_cons[:MAX_NOTE_LENGTH] if cons else "No cons found",
    )
