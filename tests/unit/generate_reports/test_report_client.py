"""Tests for generate_reports.report_client module."""

import json
import re
from unittest.mock import MagicMock

from common.models import ReportItem
from generate_reports.report_client import REPORT_TIMEOUT, OpenAIReportGenerator, format_items_for_prompt

REPORT_JSON = {
    "header": "Morning intel",
    "main_stories": [
        {
            "section_tag": "Chips",
            "headline": "Export rules tighten",
            "source_name": "Example",
            "source_url": "https://example.com/1",
            "what_happened": "New rules.",
            "why_it_matters": "Supply chains.",
            "short_term_impact": "Delays.",
            "long_term_impact": "Reshoring.",
            "sentiment": "Mixed",
            "sentiment_rationale": "Winners and losers.",
        }
    ],
    "what_else_is_going_on": [{"text": "Other news.", "source_name": "Example", "source_url": "https://example.com/2"}],
    "by_the_numbers": {"number": "25%", "commentary": "Tariff rate."},
    "sign_off": "See you tomorrow.",
}


def _items(count: int) -> list[ReportItem]:
    return [
        ReportItem(id=str(i), title=f"Story {i}", url=f"https://example.com/{i}", source_name="Example", summary="S", score=100 - i)
        for i in range(count)
    ]


def _client(content: str | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content=content))]
    return client


class TestFormatItemsForPrompt:
    def test_includes_category_and_instructions(self) -> None:
        text = format_items_for_prompt("Tech", _items(2), "Focus on robotics")
        assert 'Category: "Tech"' in text
        assert 'SPECIFIC INSTRUCTIONS FOR CATEGORY "Tech"' in text
        assert "Focus on robotics" in text

    def test_caps_items_at_twenty(self) -> None:
        text = format_items_for_prompt("Tech", _items(25))
        assert len(re.findall(r"Item \d+:", text)) == 20
        assert "SPECIFIC INSTRUCTIONS" not in text


class TestOpenAIReportGenerator:
    def test_generates_report(self) -> None:
        client = _client(json.dumps(REPORT_JSON))
        generator = OpenAIReportGenerator(api_key="key", model="report-model", client=client)

        report = generator.generate_report("Tech", _items(25), "Focus on robotics")

        assert report.header == "Morning intel"
        assert report.main_stories[0].headline == "Export rules tighten"
        assert report.by_the_numbers.number == "25%"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "report-model"
        assert kwargs["timeout"] == REPORT_TIMEOUT
        assert kwargs["response_format"] == {"type": "json_object"}
        assert len(re.findall(r"Item \d+:", kwargs["messages"][1]["content"])) == 20

    def test_missing_api_key_returns_none(self) -> None:
        assert OpenAIReportGenerator(api_key=None).generate_report("Tech", _items(2)) is None

    def test_api_error_returns_none(self) -> None:
        generator = OpenAIReportGenerator(api_key="key", client=_client(error=RuntimeError("timeout")))
        assert generator.generate_report("Tech", _items(2)) is None

    def test_invalid_json_returns_none(self) -> None:
        generator = OpenAIReportGenerator(api_key="key", client=_client("not json"))
        assert generator.generate_report("Tech", _items(2)) is None
