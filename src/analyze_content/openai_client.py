"""Summarization and sentiment collaborators backed by OpenAI chat completions.

Both calls fail soft: summarization returns a sentinel string, sentiment
returns False.
"""

from __future__ import annotations

import logging
import re

from openai import OpenAI

from analyze_content.instructions import SENTIMENT_INSTRUCTIONS, SUMMARIZE_INSTRUCTIONS

logger = logging.getLogger(__name__)

SUMMARY_NOT_AVAILABLE = "Summary not available."
SUMMARY_ERROR = "Error generating summary."

MAX_INPUT_CHARS = 50_000
LLM_TIMEOUT = 15 * 60
MAX_RETRIES = 3


def build_client(api_key: str | None, base_url: str | None = None, timeout: float = LLM_TIMEOUT) -> OpenAI | None:
    """Create an OpenAI client, or None when no API key is configured."""
    if not api_key:
        return None
    return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=MAX_RETRIES)


def truncate_input(text: str, limit: int = MAX_INPUT_CHARS) -> str:
    return text[:limit] if len(text) > limit else text


def is_sentinel_summary(summary: str | None) -> bool:
    """True for empty summaries and the not-available/error placeholders."""
    if not summary or not summary.strip():
        return True
    lowered = summary.strip().lower()
    return lowered.startswith("summary not available") or lowered == SUMMARY_ERROR.lower()


def parse_sentiment_response(text: str | None) -> bool:
    """Interpret a free-text classifier answer permissively.

    Accepts exact true/false (optionally quoted), otherwise looks for
    "positive" or "true" anywhere in the answer.
    """
    if not text:
        return False
    answer = re.sub(r"^[\s\"'`.]+|[\s\"'`.]+$", "", text).lower()
    if answer == "true":
        return True
    if answer == "false":
        return False
    return "positive" in answer or "true" in answer


class OpenAIAnalyzer:
    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.client = client or build_client(api_key, base_url)

    def _complete(self, instructions: str, text: str) -> str | None:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": instructions},
                {"role": "user", "content": truncate_input(text)},
            ],
        )
        return response.choices[0].message.content

    def summarize(self, text: str) -> str:
        if self.client is None:
            logger.warning("OPENAI_API_KEY not set, skipping summarization")
            return SUMMARY_NOT_AVAILABLE
        try:
            content = self._complete(SUMMARIZE_INSTRUCTIONS, text)
        except Exception as e:
            logger.error("Error generating summary: %s", e)
            return SUMMARY_ERROR
        return (content or "").strip() or SUMMARY_NOT_AVAILABLE

    def analyze_sentiment(self, text: str) -> bool:
        if self.client is None:
            return False
        try:
            content = self._complete(SENTIMENT_INSTRUCTIONS, text)
        except Exception as e:
            logger.error("Error analyzing sentiment: %s", e)
            return False
        return parse_sentiment_response(content)
