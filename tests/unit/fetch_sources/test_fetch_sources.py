"""Tests for fetch_sources.fetch_sources module."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from common.config import Settings
from common.models import RawItem, SourceConfig, SourceType
from fetch_sources.feed_parser import FeedParseResult
from fetch_sources.fetch_sources import fetch_sources, filter_recent_items
from fetch_sources.google_search import SearchItem
from pipeline_store.file_store import FilePipelineStore
from run_pipeline.run_context import Collaborators, RunContext

NOW = datetime(2025, 4, 17, 12, 0, tzinfo=timezone.utc)


def _item(link: str, hours_ago: float | None) -> RawItem:
    published = NOW - timedelta(hours=hours_ago) if hours_ago is not None else None
    return RawItem(title=link, link=link, published_at=published)


def _context(tmp_path, sources, feed_parser=None, search=None) -> RunContext:
    provider = Mock()
    provider.get_sources.return_value = sources
    collaborators = Collaborators(
        feed_parser=feed_parser or Mock(),
        search=search or Mock(return_value=[]),
        extract=Mock(),
        summarize=Mock(),
        analyze_sentiment=Mock(),
        generate_report=Mock(),
    )
    return RunContext(
        account_id="default",
        store=FilePipelineStore(cache_dir=tmp_path),
        settings=Settings(cache_dir=tmp_path, max_items_per_feed=2),
        sources=provider,
        collaborators=collaborators,
        started_at=NOW,
    )


class TestFilterRecentItems:
    def test_drops_old_and_sorts_newest_first(self) -> None:
        items = [_item("a", 5), _item("b", 30), _item("c", 1), _item("d", None)]
        result = filter_recent_items(items, NOW, limit=10)
        assert [i.link for i in result] == ["c", "a", "d"]

    def test_limit(self) -> None:
        items = [_item("a", 1), _item("b", 2), _item("c", 3)]
        assert len(filter_recent_items(items, NOW, limit=2)) == 2


class TestFetchSources:
    def test_no_sources_writes_nothing(self, tmp_path) -> None:
        ctx = _context(tmp_path, [])
        assert fetch_sources(ctx) is None
        assert ctx.store.load_raw_feed_cache().last_updated == 0

    def test_fetches_rss_and_search_sources(self, tmp_path) -> None:
        sources = [
            SourceConfig(id="rss", type=SourceType.RSS, name="Feed", url="https://a.com/rss", categories=["Tech"]),
            SourceConfig(id="q", type=SourceType.SEARCH, name="Search", query="chips", categories=["Tech"]),
        ]
        feed_parser = Mock()
        feed_parser.parse_with_metadata.return_value = FeedParseResult(
            items=[_item("https://a.com/1", 1), _item("https://a.com/2", 2), _item("https://a.com/3", 3)]
        )
        search = Mock(
            return_value=[
                SearchItem(title="dup", link="https://a.com/1", published_at=NOW),
                SearchItem(title="new", link="https://b.com/1", published_at=NOW),
            ]
        )
        ctx = _context(tmp_path, sources, feed_parser=feed_parser, search=search)

        cache = fetch_sources(ctx)

        assert [i.link for i in cache.items[1]] == ["https://a.com/1", "https://a.com/2"]
        assert [i.link for i in cache.items[2]] == ["https://b.com/1"]
        assert cache.feed_metadata[1].name == "Feed"
        assert cache.feed_metadata[2].categories == ["Tech"]
        assert cache.feed_metadata[2].source_config_id == "q"
        search.assert_called_once_with("chips", num=10, date_restrict="d1")

        reloaded = ctx.store.load_raw_feed_cache()
        assert reloaded.last_updated == cache.last_updated
        assert reloaded.items[1][0].published_at == NOW - timedelta(hours=1)

    def test_failing_source_contributes_no_items(self, tmp_path) -> None:
        sources = [SourceConfig(id="rss", type=SourceType.RSS, name="Broken", url="https://a.com/rss")]
        feed_parser = Mock()
        feed_parser.parse_with_metadata.side_effect = RuntimeError("boom")
        ctx = _context(tmp_path, sources, feed_parser=feed_parser)

        cache = fetch_sources(ctx)

        assert cache.items == {1: []}
        assert cache.feed_metadata[1].name == "Broken"
