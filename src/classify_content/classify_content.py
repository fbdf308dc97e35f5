"""Step 3: resolve each item's media type and whether AI analysis applies."""

from __future__ import annotations

import logging

from common.datetime import now_ms
from common.models import ExtractedItem, ProcessedItem, promote
from extract_content.media_classifier import determine_media_type
from pipeline_store.caches import ProcessedContentCache
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)


def classify_item(item: ExtractedItem) -> ProcessedItem:
    """Items already labeled by extraction (including `error`) skip AI."""
    if item.media_type:
        return promote(
            item,
            ProcessedItem,
            media_type=item.media_type,
            media_url=item.media_url or item.link,
            should_skip_ai=True,
        )

    media_type = determine_media_type(item.link, item.content)
    return promote(
        item,
        ProcessedItem,
        media_type=media_type,
        media_url=item.link,
        should_skip_ai=media_type not in ("text", "short-text", "unknown"),
    )


def classify_content(ctx: RunContext) -> ProcessedContentCache | None:
    extracted = ctx.store.load_extracted_content_cache()
    if extracted.last_updated == 0:
        logger.error("No extracted content cache found, run the extract step first")
        return None

    items = [classify_item(item) for item in extracted.items]
    cache = ProcessedContentCache(items=items, feed_metadata=extracted.feed_metadata, last_updated=now_ms())
    ctx.store.save_processed_content_cache(cache)
    skipped = sum(1 for item in items if item.should_skip_ai)
    logger.info("Classified %d items, %d will skip AI", len(items), skipped)
    return cache
