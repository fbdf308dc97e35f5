"""Step 6: write the account's digest for the static front end."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from common.datetime import now_ms
from common.models import AIProcessedItem
from common.serialization import to_jsonable
from pipeline_store.caches import AIProcessedContentCache, ReportsCache
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

DIGEST_FILE = "digest.json"


class Renderer(Protocol):
    def render(self, digest: dict[str, Any], output_dir: Path) -> Path: ...


class JsonDigestRenderer:
    def render(self, digest: dict[str, Any], output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / DIGEST_FILE
        with open(path, "w", encoding="utf-8") as f:
            json.dump(digest, f, ensure_ascii=False, indent=2)
        return path


def sort_newest_first(items: list[AIProcessedItem]) -> list[AIProcessedItem]:
    """Newest first, undated items last."""
    dated = sorted((i for i in items if i.published_at is not None), key=lambda i: i.published_at, reverse=True)
    return dated + [i for i in items if i.published_at is None]


def build_report_usage(reports: ReportsCache) -> dict[str, list[str]]:
    usage: dict[str, list[str]] = {}
    for report in reports.reports:
        for item_id in report.used_item_ids:
            categories = usage.setdefault(item_id, [])
            if report.category not in categories:
                categories.append(report.category)
    return usage


def build_digest(
    account_id: str,
    ai_cache: AIProcessedContentCache,
    reports: ReportsCache,
    pipeline_run_id: str | None = None,
) -> dict[str, Any]:
    feed_ids = list(dict.fromkeys(item.source_id for item in ai_cache.items))

    feeds = []
    for feed_id in feed_ids:
        metadata = ai_cache.feed_metadata.get(feed_id)
        feeds.append({
            "id": feed_id,
            "name": (metadata and (metadata.title or metadata.name)) or f"Feed {feed_id}",
            "categories": list(metadata.categories) if metadata else [],
            "site_url": (metadata and metadata.site_url) or "",
            "icon_url": metadata.icon_url if metadata else None,
        })

    items_by_feed = {
        str(feed_id): sort_newest_first([item for item in ai_cache.items if item.source_id == feed_id])
        for feed_id in feed_ids
    }

    categories = sorted(
        {report.category for report in reports.reports}
        | {category for feed in feeds for category in feed["categories"]}
    )

    return to_jsonable({
        "account_id": account_id,
        "pipeline_run_id": pipeline_run_id,
        "generated_at": now_ms(),
        "content_updated_at": ai_cache.last_updated,
        "categories": categories,
        "feeds": feeds,
        "items_by_feed": items_by_feed,
        "reports": reports.reports,
        "report_usage": build_report_usage(reports),
    })


def render_site(ctx: RunContext, renderer: Renderer | None = None) -> Path | None:
    ai_cache = ctx.store.load_ai_processed_content_cache()
    if ai_cache.last_updated == 0:
        logger.error("No AI processed content cache found, run the analyze step first")
        return None
    reports = ctx.store.load_reports_cache()
    if reports.last_updated == 0:
        logger.error("No reports cache found, run the reports step first")
        return None

    digest = build_digest(ctx.account_id, ai_cache, reports, ctx.store.get_pipeline_run_id())
    path = (renderer or JsonDigestRenderer()).render(digest, ctx.settings.output_dir / ctx.account_id)
    logger.info("Wrote digest with %d items and %d reports to %s", len(ai_cache.items), len(reports.reports), path)
    return path
