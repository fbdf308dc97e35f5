"""Step 2: fetch page text for every raw item."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

from common.datetime import now_ms
from common.hashing import generate_item_id
from common.models import ExtractedItem, RawItem
from extract_content.models import Extracted, ExtractionResult, Failed, Skipped
from pipeline_store.caches import ExtractedContentCache
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

# First outbound (non-reddit) href in a reddit post body, plain or entity-escaped quotes.
_REDDIT_OUTBOUND_LINK = re.compile(
    r"href=(?:\"|&quot;)(?!https?://(?:www\.|old\.)?reddit\.com)(https?://[^\"&]+)(?:\"|&quot;)"
)


def resolve_item_url(item: RawItem) -> str:
    """Reddit posts point at the linked article when their body has one."""
    host = (urlparse(item.link).hostname or "").lower()
    if (host == "reddit.com" or host.endswith(".reddit.com")) and item.raw_content:
        match = _REDDIT_OUTBOUND_LINK.search(item.raw_content)
        if match:
            return match.group(1)
    return item.link


def _extract_with_cache(ctx: RunContext, url: str) -> ExtractionResult:
    cached = ctx.item_cache.get(url)
    if cached is not None:
        logger.debug("Item cache hit for %s", url)
        return cached
    result = ctx.collaborators.extract(url)
    if not isinstance(result, Failed):
        ctx.item_cache.put(url, result)
    return result


def extract_item(ctx: RunContext, feed_id: int, item: RawItem) -> ExtractedItem:
    url = resolve_item_url(item)
    try:
        result = _extract_with_cache(ctx, url)
    except Exception as e:
        logger.warning("Extraction raised for %s: %s", url, e)
        result = Failed(kind="error", message=str(e))

    extracted = ExtractedItem(
        id=generate_item_id(feed_id, item.link),
        source_id=feed_id,
        title=item.title,
        link=item.link,
        published_at=item.published_at or ctx.started_at,
        comments_url=item.comments_url,
    )
    if isinstance(result, Extracted):
        extracted.content = result.content
    elif isinstance(result, Skipped):
        extracted.media_type = result.media_type or "unknown"
        extracted.media_url = result.media_url or url
        logger.info("Skipped %s: %s (%s)", url, result.skip_reason, extracted.media_type)
    else:
        extracted.media_type = "error"
        extracted.media_url = url
    return extracted


def extract_content(ctx: RunContext) -> ExtractedContentCache | None:
    """Extract every item of the raw feed cache, preserving feed order.

    With EXTRACT_MAX_WORKERS > 1 items are fetched by a bounded thread pool;
    each item's failure stays isolated to that item.
    """
    raw = ctx.store.load_raw_feed_cache()
    if raw.last_updated == 0:
        logger.error("No raw feed cache found, run the fetch step first")
        return None

    work = [(feed_id, item) for feed_id, items in raw.items.items() for item in items]
    logger.info("Extracting content for %d items", len(work))

    workers = max(1, ctx.settings.extract_max_workers)
    if workers == 1:
        items = [extract_item(ctx, feed_id, item) for feed_id, item in work]
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            items = list(executor.map(lambda pair: extract_item(ctx, *pair), work))

    cache = ExtractedContentCache(items=items, feed_metadata=raw.feed_metadata, last_updated=now_ms())
    ctx.store.save_extracted_content_cache(cache)
    extracted = sum(1 for item in items if item.content)
    logger.info("Extracted %d of %d items", extracted, len(items))
    return cache
