"""Step 4: summarize and classify sentiment for items eligible for AI."""

from __future__ import annotations

import logging

from analyze_content.openai_client import is_sentinel_summary
from common.datetime import now_ms
from common.models import AIProcessedItem, ProcessedItem, Sentiment, promote
from pipeline_store.caches import AIProcessedContentCache
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

MIN_CONTENT_FOR_ANALYSIS = 200
MIN_TITLE_FOR_ANALYSIS = 20


def should_analyze(item: ProcessedItem) -> bool:
    return len(item.content or "") > MIN_CONTENT_FOR_ANALYSIS or len(item.title or "") > MIN_TITLE_FOR_ANALYSIS


def analyze_item(ctx: RunContext, item: ProcessedItem) -> AIProcessedItem:
    if item.should_skip_ai or not should_analyze(item):
        return promote(item, AIProcessedItem, summary=None, has_summary=False, sentiment=Sentiment.MIXED)

    summary = ctx.collaborators.summarize(item.content or item.title)
    has_summary = not is_sentinel_summary(summary)
    is_positive = ctx.collaborators.analyze_sentiment(summary if has_summary else (item.content or item.title))
    return promote(
        item,
        AIProcessedItem,
        summary=summary if has_summary else None,
        has_summary=has_summary,
        sentiment=Sentiment.POSITIVE if is_positive else Sentiment.NEGATIVE,
    )


def analyze_content(ctx: RunContext) -> AIProcessedContentCache | None:
    processed = ctx.store.load_processed_content_cache()
    if processed.last_updated == 0:
        logger.error("No processed content cache found, run the classify step first")
        return None

    items = []
    for item in processed.items:
        try:
            items.append(analyze_item(ctx, item))
        except Exception as e:
            logger.warning("Analysis failed for %s: %s", item.link, e)
            items.append(promote(item, AIProcessedItem, sentiment=Sentiment.MIXED))

    cache = AIProcessedContentCache(items=items, feed_metadata=processed.feed_metadata, last_updated=now_ms())
    ctx.store.save_ai_processed_content_cache(cache)
    logger.info("Analyzed %d items, %d with summaries", len(items), sum(1 for i in items if i.has_summary))
    return cache
