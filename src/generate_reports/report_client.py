"""Category report collaborator backed by OpenAI chat completions."""

from __future__ import annotations

import json
import logging

from openai import OpenAI

from analyze_content.openai_client import build_client
from common.models import Report, ReportItem
from generate_reports.instructions import GENERATE_REPORT_INSTRUCTIONS

logger = logging.getLogger(__name__)

REPORT_TIMEOUT = 5 * 60
MAX_REPORT_ITEMS = 20


def format_items_for_prompt(
    category: str, items: list[ReportItem], custom_instructions: str | None = None
) -> str:
    """Format the category, its instructions and the items into the user message."""
    lines = [f'Category: "{category}"', ""]
    if custom_instructions:
        lines.append(f'SPECIFIC INSTRUCTIONS FOR CATEGORY "{category}":')
        lines.append(custom_instructions.strip())
        lines.append("")

    for i, item in enumerate(items[:MAX_REPORT_ITEMS], 1):
        lines.append(f"Item {i}:")
        lines.append(f"  Title: {item.title}")
        lines.append(f"  Source: {item.source_name}")
        lines.append(f"  URL: {item.url}")
        if item.published_at:
            lines.append(f"  Published: {item.published_at.isoformat()}")
        if item.summary:
            lines.append(f"  Summary: {item.summary}")
        if item.score is not None:
            lines.append(f"  Score: {item.score:.1f}")
        lines.append("")
    return "\n".join(lines)


class OpenAIReportGenerator:
    """Returns None instead of raising when no key is set or generation fails."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.client = client or build_client(api_key, base_url, timeout=REPORT_TIMEOUT)

    def generate_report(
        self, category: str, items: list[ReportItem], custom_instructions: str | None = None
    ) -> Report | None:
        if self.client is None:
            logger.warning("OPENAI_API_KEY not set, skipping report for %s", category)
            return None
        if not items:
            return None

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": GENERATE_REPORT_INSTRUCTIONS},
                    {"role": "user", "content": format_items_for_prompt(category, items, custom_instructions)},
                ],
                response_format={"type": "json_object"},
                timeout=REPORT_TIMEOUT,
            )
            report = Report.from_dict(json.loads(response.choices[0].message.content or "{}"))
        except Exception as e:
            logger.error("Error generating report for %s: %s", category, e)
            return None

        if not report.header and not report.main_stories:
            logger.warning("Empty report returned for %s", category)
            return None
        return report
