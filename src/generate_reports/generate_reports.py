"""Step 5: one newsletter-style report per category."""

from __future__ import annotations

import logging

from common.datetime import now_ms
from common.models import AIProcessedItem, CategoryReport, FeedMetadata, RankedItem, ReportItem, ScoringAuditRecord
from pipeline_store.caches import ReportsCache
from run_pipeline.run_context import RunContext
from score_items.scoring import cache_scoring_result, score_items_for_instructions, select_top_ranked_items

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW_MS = 60 * 60 * 1000


def group_items_by_category(
    items: list[AIProcessedItem], feed_metadata: dict[int, FeedMetadata]
) -> dict[str, list[AIProcessedItem]]:
    grouped: dict[str, list[AIProcessedItem]] = {}
    for item in items:
        metadata = feed_metadata.get(item.source_id)
        if metadata is None:
            continue
        for category in metadata.categories:
            grouped.setdefault(category, []).append(item)
    return grouped


def is_fresh(report: CategoryReport | None, now: int) -> bool:
    return report is not None and now - report.generated_at < FRESHNESS_WINDOW_MS


def to_report_item(item: RankedItem, feed_metadata: dict[int, FeedMetadata]) -> ReportItem:
    metadata = feed_metadata.get(item.source_id)
    return ReportItem(
        id=item.id,
        title=item.title,
        url=item.link,
        source_name=metadata.name if metadata and metadata.name else "Unknown Source",
        published_at=item.published_at,
        summary=item.summary if item.has_summary else None,
        score=item.ranking_score,
    )


def generate_category_report(
    ctx: RunContext,
    category: str,
    items: list[AIProcessedItem],
    feed_metadata: dict[int, FeedMetadata],
    instructions: str | None,
) -> CategoryReport | None:
    """Score, audit and select the category's items, then ask for a report."""
    topic = instructions or category
    scored = score_items_for_instructions(items, topic, now=ctx.started_at)
    selected = select_top_ranked_items(scored, ctx.settings.top_k_per_source)[: ctx.settings.report_max_items]

    cache_scoring_result(
        ctx.store,
        ScoringAuditRecord(
            label=category,
            custom_instructions=topic,
            scored_items=scored,
            selected_items=selected,
            top_k_per_source=ctx.settings.top_k_per_source,
            scored_at=now_ms(),
        ),
    )

    report = ctx.collaborators.generate_report(
        category, [to_report_item(item, feed_metadata) for item in selected], instructions
    )
    if report is None:
        return None
    return CategoryReport(
        category=category,
        report=report,
        generated_at=now_ms(),
        used_item_ids=[item.id for item in selected],
    )


def generate_reports(ctx: RunContext) -> ReportsCache | None:
    """Generate or reuse a report for every category of the AI-processed items.

    A report younger than one hour is reused as is. When generation yields
    nothing the previous report for the category, if any, is kept.
    """
    ai_cache = ctx.store.load_ai_processed_content_cache()
    if ai_cache.last_updated == 0:
        logger.error("No AI processed content cache found, run the analyze step first")
        return None

    existing = ctx.store.load_reports_cache()
    prompts = ctx.sources.get_category_prompts(ctx.account_id)
    grouped = group_items_by_category(ai_cache.items, ai_cache.feed_metadata)
    categories = sorted(grouped)
    logger.info("Found %d categories: %s", len(categories), ", ".join(categories))

    reports: list[CategoryReport] = []
    for category in categories:
        previous = existing.get(category)
        if is_fresh(previous, now_ms()):
            logger.info("Reusing report for %s generated at %d", category, previous.generated_at)
            reports.append(previous)
            continue

        items = grouped[category]
        logger.info("Generating report for %s with %d items", category, len(items))
        report = generate_category_report(
            ctx, category, items, ai_cache.feed_metadata, prompts.get(category.lower())
        )
        if report is not None:
            reports.append(report)
        elif previous is not None:
            logger.warning("Report generation failed for %s, keeping previous report", category)
            reports.append(previous)
        else:
            logger.warning("Report generation failed for %s", category)

    cache = ReportsCache(reports=reports, last_updated=now_ms())
    ctx.store.save_reports_cache(cache)
    logger.info("Saved %d reports", len(reports))
    return cache
