"""Local aspect-based pros/cons extraction, used when no remote model is available.

Phrases (single aspect words, bigrams, trigrams) are collected per sentence
and scored by lexicon sentiment plus a bias from the review's star rating.
Only phrases that literally occur in the reviews are ever reported.
"""

import re
from dataclasses import dataclass, field

from reviewdigest.models import Review, Summary
from reviewdigest.services.summary_utils import coerce_and_clean

POSITIVE_WORDS = {
    "good", "great", "excellent", "amazing", "durable", "sturdy", "stable", "bright",
    "clear", "lightweight", "fast", "quiet", "smooth", "easy", "long", "compact",
    "useful", "handy", "sharp", "powerful", "reliable", "efficient", "strong",
    "comfortable",
}
NEGATIVE_WORDS = {
    "bad", "poor", "slow", "noisy", "loud", "heavy", "dull", "weak", "flimsy", "short",
    "difficult", "hard", "broken", "defective", "expensive", "costly", "confusing",
    "fragile", "rough", "low", "leaking", "leak", "scratch", "scratches", "crack",
    "cracked", "worse",
}
STOP_WORDS = {
    "the", "and", "for", "with", "this", "that", "these", "those", "have", "has", "had",
    "was", "were", "will", "would", "could", "should", "about", "after", "before",
    "into", "from", "over", "under", "very", "really", "also", "just", "still", "been",
    "are", "its", "it", "they", "them", "their", "on", "of", "or", "in", "to", "is",
    "as", "at",
}
ASPECT_WORDS = {
    "battery", "motor", "durability", "design", "noise", "warranty", "weight", "size",
    "performance", "quality", "grinder", "grinding", "power", "taste", "flavor",
    "texture", "cleaning", "ease", "value", "price", "build",
}
LINKING_WORDS = {"became", "is", "was", "were", "be", "been", "being", "very", "really", "quite", "too"}

NEGATIVE_HINT = re.compile(
    r"(noisy|short|flimsy|weak|difficult|hard|broken|defective|scratch|crack|leak|leaking|expensive)"
)
NEGATIVE_HINT_WORD = re.compile(
    r"\b(noisy|short|flimsy|weak|difficult|hard|broken|defective|scratch|crack|leak|leaking|expensive)\b"
)
POSITIVE_HINT = re.compile(
    r"(quiet|long|durable|sturdy|stable|easy|comfortable|powerful|reliable|efficient|sharp)",
    re.IGNORECASE,
)
POSITIVE_SINGLE_HINT = re.compile(
    r"(long|quiet|durable|sturdy|easy|comfortable|powerful|reliable|efficient|sharp|fast|lightweight)"
)
TRIVIAL_PHRASE = re.compile(r"^(this|that|also|have|has|good|great|nice|really|very)$", re.IGNORECASE)
SENTENCE_SPLIT = re.compile(r"[.!?]+")
TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

MAX_SENTENCES = 60
MAX_EXAMPLES = 3
MAX_CANDIDATES = 14


@dataclass
class _Phrase:
    phrase: str
    reviews: set[str] = field(default_factory=set)
    examples: list[str] = field(default_factory=list)
    pos: int = 0
    neg: int = 0

    def add_example(self, review_id: str) -> None:
        if len(self.examples) < MAX_EXAMPLES and review_id not in self.examples:
            self.examples.append(review_id)

    def as_item(self) -> dict:
        return {
            "label": self.phrase,
            "support_count": len(self.reviews),
            "example_ids": list(self.examples),
        }


def singularize(token: str) -> str:
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith("es") and len(token) > 3:
        return token[:-2]
    if token.endswith("s") and len(token) > 3:
        return token[:-1]
    return token


def _rating_bias(rating: float | None) -> float:
    if rating is None:
        return 0.0
    if rating >= 4:
        return 0.6
    if rating <= 2:
        return -0.6
    return 0.0


def _collect_phrases(reviews: list[Review]) -> dict[str, _Phrase]:
    phrases: dict[str, _Phrase] = {}

    def add(raw: str, review_id: str, orientation: str | None) -> None:
        phrase = raw.strip()
        if len(phrase) < 3 or TRIVIAL_PHRASE.match(phrase):
            return
        entry = phrases.setdefault(phrase.lower(), _Phrase(phrase=phrase))
        entry.reviews.add(review_id)
        if orientation == "pos":
            entry.pos += 1
        elif orientation == "neg":
            entry.neg += 1
        entry.add_example(review_id)

    for review in reviews:
        bias = _rating_bias(review.rating)
        sentences = SENTENCE_SPLIT.split((review.text or "").lower())[:MAX_SENTENCES]
        for sentence in sentences:
            tokens = [t for t in TOKEN_SPLIT.split(sentence) if t and len(t) < 40]
            if not tokens:
                continue
            pos_hits = sum(1 for t in tokens if t in POSITIVE_WORDS)
            neg_hits = sum(1 for t in tokens if t in NEGATIVE_WORDS)
            score = (pos_hits - neg_hits) + bias
            orientation = "pos" if score > 0.3 else "neg" if score < -0.3 else None

            for i, t1 in enumerate(tokens):
                if t1 in STOP_WORDS and t1 not in ASPECT_WORDS:
                    continue
                if t1 not in STOP_WORDS and (t1 in ASPECT_WORDS or len(t1) > 4):
                    add(singularize(t1), review.id, orientation)

                if i + 1 < len(tokens):
                    t2 = tokens[i + 1]
                    if t2 in STOP_WORDS:
                        continue
                    bigram = f"{singularize(t1)} {singularize(t2)}"
                    if not re.search(r"\b(?:the|and|for)\b", bigram):
                        add(bigram, review.id, orientation)
                    # adjective + noun, e.g. "noisy motor", "sturdy build"
                    if t1 in NEGATIVE_WORDS:
                        add(f"{t1} {t2}", review.id, "neg")
                    if t1 in POSITIVE_WORDS:
                        add(f"{t1} {t2}", review.id, "pos")

                if i + 2 < len(tokens):
                    t2, t3 = tokens[i + 1], tokens[i + 2]
                    if t2 in STOP_WORDS or t3 in STOP_WORDS:
                        continue
                    add(f"{singularize(t1)} {singularize(t2)} {singularize(t3)}", review.id, orientation)
                    if t1 in ("short", "long") and t2 == "battery" and t3 == "life":
                        add(f"{t1} battery life", review.id, "neg" if t1 == "short" else "pos")

                if t1 == "cleaning" and i + 1 < len(tokens) and tokens[i + 1] in ("difficult", "hard"):
                    add("cleaning difficult", review.id, "neg")

    return phrases


def _merge_word_orders(phrases: dict[str, _Phrase]) -> dict[str, _Phrase]:
    """Merge 2-3 word phrases that only differ by word order or linking words."""
    merged: dict[str, _Phrase] = {}
    for key, entry in phrases.items():
        tokens = [t for t in entry.phrase.lower().split() if t not in LINKING_WORDS]
        if not 1 < len(tokens) <= 3:
            merged[key] = entry
            continue
        canon_key = "|".join(sorted(tokens))
        existing = merged.get(canon_key)
        if existing is None:
            merged[canon_key] = _Phrase(
                phrase=entry.phrase,
                reviews=set(entry.reviews),
                examples=list(entry.examples),
                pos=entry.pos,
                neg=entry.neg,
            )
            continue
        existing.reviews |= entry.reviews
        existing.pos += entry.pos
        existing.neg += entry.neg
        for example in entry.examples:
            existing.add_example(example)
        existing_tokens = existing.phrase.split()
        candidate_tokens = entry.phrase.split()
        existing_links = any(t.lower() in LINKING_WORDS for t in existing_tokens)
        candidate_links = any(t.lower() in LINKING_WORDS for t in candidate_tokens)
        if len(candidate_tokens) < len(existing_tokens) or (existing_links and not candidate_links):
            existing.phrase = entry.phrase

    return {entry.phrase.lower(): entry for entry in merged.values()}


def _classify(entry: _Phrase) -> str | None:
    support = len(entry.reviews)
    if support < 2 and not (entry.neg >= 1 and NEGATIVE_HINT.search(entry.phrase)):
        return None
    net = entry.pos - entry.neg
    if net > 0:
        return "pros"
    if net < 0:
        return "cons"
    if support >= 3:
        return "pros"
    if NEGATIVE_HINT_WORD.search(entry.phrase) and entry.neg >= 1:
        return "cons"
    return None


def _sort_key(item: dict) -> tuple:
    return (-item["support_count"], item["label"])


def heuristic_aspect_summary(reviews: list[Review]) -> Summary:
    """Summarize reviews into pros and cons without any network access."""
    if not reviews:
        return Summary.empty()

    phrases = _merge_word_orders(_collect_phrases(reviews))

    pros: list[dict] = []
    cons: list[dict] = []
    for entry in phrases.values():
        bucket = _classify(entry)
        if bucket == "pros":
            pros.append(entry.as_item())
        elif bucket == "cons":
            cons.append(entry.as_item())

    # Move lexically negative labels out of pros, and positive ones out of cons
    cons_labels = {c["label"] for c in cons}
    for item in [p for p in pros if NEGATIVE_HINT.search(p["label"])]:
        if item["label"] not in cons_labels:
            pros.remove(item)
            cons.append(item)
    pros_labels = {p["label"] for p in pros}
    for item in [c for c in cons if POSITIVE_HINT.search(c["label"])]:
        if item["label"] not in pros_labels:
            cons.remove(item)
            pros.append(item)

    if not cons:
        singles = [
            entry.as_item()
            for entry in phrases.values()
            if len(entry.reviews) == 1 and entry.neg > 0 and NEGATIVE_HINT.search(entry.phrase)
        ]
        cons.extend(sorted(singles, key=_sort_key)[:5])
    if not pros:
        singles = [
            entry.as_item()
            for entry in phrases.values()
            if len(entry.reviews) == 1 and entry.pos > 0 and POSITIVE_SINGLE_HINT.search(entry.phrase)
        ]
        pros.extend(sorted(singles, key=_sort_key)[:5])

    pros.sort(key=_sort_key)
    cons.sort(key=_sort_key)
    return coerce_and_clean({
        "pros": pros[:MAX_CANDIDATES],
        "cons": cons[:MAX_CANDIDATES],
        "note_pros": "",
        "note_cons": "",
    })
