"""Summarization engines: local heuristic and remote LLM with local fallback."""

import json
import logging
from typing import Protocol

import httpx

from reviewdigest.config import Settings
from reviewdigest.exceptions import SummarizerError
from reviewdigest.models import Review, Summary
from reviewdigest.prompts import REVIEW_SUMMARY_PROMPT
from reviewdigest.services.aspect_heuristics import heuristic_aspect_summary
from reviewdigest.services.rate_limit import RequestSpacer
from reviewdigest.services.summary_utils import (
    coerce_and_clean,
    extract_first_json_block,
    sample_reviews_for_prompt,
    validate_summary_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
    "gemini": "gemini-1.5-flash",
}
GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class Summarizer(Protocol):
    """Turns a sanitized review set into a pros/cons summary."""

    name: str

    def summarize(self, reviews: list[Review], site: str = "") -> Summary:
        ...


class HeuristicSummarizer:
    """Aspect extraction with sentiment lexicons; no network access."""

    name = "heuristic"

    def summarize(self, reviews: list[Review], site: str = "") -> Summary:
        logger.info(f"Heuristic summary of {len(reviews)} reviews")
        return heuristic_aspect_summary(reviews)


class LLMSummarizer:
    """Summarizes reviews with a remote language model.

    Any failure (transport, bad JSON, schema mismatch) falls back to the local
    heuristic, so callers always get a summary.
    """

    name = "llm"

    def __init__(
        self,
        settings: Settings,
        spacer: RequestSpacer | None = None,
        fallback: Summarizer | None = None,
    ):
        self.settings = settings
        self.provider = settings.llm_provider
        self.model = settings.llm_model or DEFAULT_MODELS[self.provider]
        self.api_key = settings.llm_api_key
        self.spacer = spacer
        self.fallback = fallback or HeuristicSummarizer()
        self._openai_client = None
        self._anthropic_client = None

    def _get_openai_client(self):
        """Lazy load OpenAI client."""
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI(api_key=self.api_key)
        return self._openai_client

    def _get_anthropic_client(self):
        """Lazy load Anthropic client."""
        if self._anthropic_client is None:
            from anthropic import Anthropic
            self._anthropic_client = Anthropic(api_key=self.api_key)
        return self._anthropic_client

    def _call_openai(self, prompt: str) -> str:
        client = self._get_openai_client()
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": "You extract product aspects from user reviews and return ONLY raw JSON.",
                },
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            max_tokens=1024,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    def _call_anthropic(self, prompt: str) -> str:
        client = self._get_anthropic_client()
        response = client.messages.create(
            model=self.model,
            max_tokens=1024,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
        )
        return response.content[0].text

    def _call_gemini(self, prompt: str) -> str:
        response = httpx.post(
            GEMINI_ENDPOINT.format(model=self.model),
            params={"key": self.api_key},
            json={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"temperature": 0.2, "topK": 32, "topP": 0.9},
            },
            timeout=60.0,
        )
        if not response.is_success:
            raise SummarizerError(f"Gemini API failure {response.status_code}")
        data = response.json()
        parts = (data.get("candidates") or [{}])[0].get("content", {}).get("parts", [])
        return "\n".join(part.get("text", "") for part in parts)

    def _call_llm(self, prompt: str) -> str:
        """Call configured LLM provider."""
        logger.info(f"Calling {self.provider} {self.model}...")

        if self.provider == "openai":
            return self._call_openai(prompt)
        elif self.provider == "anthropic":
            return self._call_anthropic(prompt)
        elif self.provider == "gemini":
            return self._call_gemini(prompt)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider}")

    def _parse_response(self, response: str, reviews: list[Review]) -> Summary:
        block = extract_first_json_block(response or "")
        if not block:
            raise SummarizerError("No JSON block in model response")
        try:
            data = json.loads(block)
        except json.JSONDecodeError as e:
            raise SummarizerError(f"Invalid JSON in model response: {e}") from e
        if not validate_summary_payload(data):
            raise SummarizerError("Model response failed schema validation")

        # Drop example ids the model invented
        known_ids = {review.id for review in reviews}
        for side in ("pros", "cons"):
            for item in data[side]:
                invented = [i for i in item["example_ids"] if i not in known_ids]
                if invented:
                    logger.warning(f"Filtered hallucinated review ids: {invented}")
                    item["example_ids"] = [i for i in item["example_ids"] if i in known_ids]

        return coerce_and_clean(data)

    def summarize(self, reviews: list[Review], site: str = "") -> Summary:
        if not self.api_key:
            return self.fallback.summarize(reviews, site)
        try:
            sampled = sample_reviews_for_prompt(reviews)
            prompt = REVIEW_SUMMARY_PROMPT.format(
                site=site or "unknown",
                reviews_json=json.dumps({"site": site, "reviews": sampled}),
            )
            if self.spacer is not None:
                self.spacer.wait()
            response = self._call_llm(prompt)
            return self._parse_response(response, reviews)
        except Exception as e:
            logger.warning(f"Remote summarization failed, falling back to heuristic: {e}")
            return self.fallback.summarize(reviews, site)


def get_summarizer(settings: Settings, spacer: RequestSpacer | None = None) -> Summarizer:
    """Select the summarizer for the current configuration."""
    if settings.fallback_mode or not settings.llm_api_key:
        return HeuristicSummarizer()
    return LLMSummarizer(settings, spacer=spacer or RequestSpacer(settings=settings))
