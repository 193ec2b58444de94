"""LLM prompts for summarization."""

from reviewdigest.prompts.review_summary import REVIEW_SUMMARY_PROMPT

__all__ = [
    "REVIEW_SUMMARY_PROMPT",
]
