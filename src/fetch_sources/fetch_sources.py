"""Step 1: fetch every configured source into the raw feed cache."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from urllib.parse import quote_plus

from common.datetime import now_ms
from common.models import FeedMetadata, RawItem, SourceConfig, SourceType
from pipeline_store.caches import RawFeedCache
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(hours=24)


def filter_recent_items(items: list[RawItem], now: datetime, limit: int) -> list[RawItem]:
    """Keep the last 24h (undated items too), newest first, undated last, capped."""
    cutoff = now - LOOKBACK
    recent = [item for item in items if item.published_at is None or item.published_at >= cutoff]
    dated = sorted((i for i in recent if i.published_at is not None), key=lambda i: i.published_at, reverse=True)
    undated = [i for i in recent if i.published_at is None]
    return (dated + undated)[:limit]


def _fetch_rss(ctx: RunContext, source: SourceConfig) -> tuple[list[RawItem], FeedMetadata]:
    result = ctx.collaborators.feed_parser.parse_with_metadata(source.url, source.name)
    metadata = result.metadata
    metadata.name = source.name
    return result.items, metadata


def _fetch_search(ctx: RunContext, source: SourceConfig) -> tuple[list[RawItem], FeedMetadata]:
    results = ctx.collaborators.search(source.query, num=source.num, date_restrict=source.date_restrict)
    metadata = FeedMetadata(
        name=source.name,
        title=source.name,
        description=f"Google Search results for: {source.query}",
        site_url=f"https://www.google.com/search?q={quote_plus(source.query)}",
        language=source.language or "en",
        last_build_date=ctx.started_at.isoformat(),
    )
    return [result.to_raw_item() for result in results], metadata


def fetch_sources(ctx: RunContext) -> RawFeedCache | None:
    """Fetch all active sources for the account and save the raw feed cache.

    Feed ids are assigned sequentially per run, starting at 1. A source that
    fails contributes an empty item list. Links already seen earlier in the
    run are dropped.

    Returns:
        The saved cache, or None when the account has no sources.
    """
    sources = ctx.sources.get_sources(ctx.account_id)
    if not sources:
        logger.warning("No sources configured for account %s", ctx.account_id)
        return None

    cache = RawFeedCache()
    seen_links: set[str] = set()
    limit = ctx.settings.max_items_per_feed

    for feed_id, source in enumerate(sources, start=1):
        logger.info("Fetching source %s (%s)", source.name, source.type.value)
        try:
            if source.type is SourceType.SEARCH:
                items, metadata = _fetch_search(ctx, source)
            else:
                items, metadata = _fetch_rss(ctx, source)
        except Exception as e:
            logger.error("Failed to fetch source %s: %s", source.name, e)
            items, metadata = [], FeedMetadata(name=source.name)

        metadata.source_config_id = source.id
        metadata.categories = list(source.categories)
        cache.feed_metadata[feed_id] = metadata

        kept = []
        for item in filter_recent_items(items, ctx.started_at, limit):
            if item.link in seen_links:
                continue
            seen_links.add(item.link)
            kept.append(item)
        cache.items[feed_id] = kept
        logger.info("Source %s: %d fetched, %d kept", source.name, len(items), len(kept))

    cache.last_updated = now_ms()
    ctx.store.save_raw_feed_cache(cache)
    logger.info("Fetched %d sources", len(sources))
    return cache
