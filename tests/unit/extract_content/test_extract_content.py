"""Tests for extract_content.extract_content module."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from common.config import Settings
from common.hashing import generate_item_id
from common.models import RawItem
from extract_content.extract_content import extract_content, resolve_item_url
from extract_content.item_cache import ItemCache
from extract_content.models import Extracted, Failed, Skipped
from pipeline_store.caches import RawFeedCache
from pipeline_store.file_store import FilePipelineStore
from run_pipeline.run_context import Collaborators, RunContext

NOW = datetime(2025, 4, 17, 12, 0, tzinfo=timezone.utc)


def _context(tmp_path, extract, workers: int = 1) -> RunContext:
    collaborators = Collaborators(
        feed_parser=Mock(),
        search=Mock(),
        extract=extract,
        summarize=Mock(),
        analyze_sentiment=Mock(),
        generate_report=Mock(),
    )
    return RunContext(
        account_id="default",
        store=FilePipelineStore(cache_dir=tmp_path),
        settings=Settings(cache_dir=tmp_path, extract_max_workers=workers),
        sources=Mock(),
        collaborators=collaborators,
        started_at=NOW,
    )


def _results(url: str):
    if url.endswith("/text"):
        return Extracted(content="Readable article text")
    if url.endswith("/video"):
        return Skipped(skip_reason="video embed", media_type="video", media_url="https://youtube.com/embed/x")
    return Failed(kind="transport", message="timed out")


class TestResolveItemUrl:
    def test_reddit_outbound_link(self) -> None:
        item = RawItem(
            title="t",
            link="https://www.reddit.com/r/news/comments/1",
            raw_content='<a href="https://news.example.com/story">[link]</a> '
            '<a href="https://www.reddit.com/r/news/comments/1">[comments]</a>',
        )
        assert resolve_item_url(item) == "https://news.example.com/story"

    def test_reddit_escaped_quotes(self) -> None:
        item = RawItem(
            title="t",
            link="https://reddit.com/r/x/1",
            raw_content="&lt;a href=&quot;https://a.example.com/b&quot;&gt;",
        )
        assert resolve_item_url(item) == "https://a.example.com/b"

    def test_other_links_unchanged(self) -> None:
        item = RawItem(title="t", link="https://example.com/a", raw_content='<a href="https://b.com">')
        assert resolve_item_url(item) == "https://example.com/a"


class TestExtractContent:
    def test_missing_upstream_writes_nothing(self, tmp_path) -> None:
        ctx = _context(tmp_path, Mock())
        assert extract_content(ctx) is None
        assert not (tmp_path / "default" / "step2-extracted-content.json").exists()

    def test_maps_results_to_items(self, tmp_path) -> None:
        ctx = _context(tmp_path, Mock(side_effect=_results))
        ctx.store.save_raw_feed_cache(
            RawFeedCache(
                items={
                    1: [
                        RawItem(title="A", link="https://a.com/text", published_at=NOW - timedelta(hours=1)),
                        RawItem(title="B", link="https://a.com/video"),
                    ],
                    2: [RawItem(title="C", link="https://c.com/broken", raw_content="<p>x</p>")],
                },
                last_updated=1,
            )
        )

        cache = extract_content(ctx)

        text, video, broken = cache.items
        assert text.id == generate_item_id(1, "https://a.com/text")
        assert text.content == "Readable article text"
        assert text.media_type is None
        assert video.media_type == "video"
        assert video.media_url == "https://youtube.com/embed/x"
        assert video.published_at == NOW
        assert broken.source_id == 2
        assert broken.media_type == "error"
        assert broken.media_url == "https://c.com/broken"
        assert broken.raw_content is None

        reloaded = ctx.store.load_extracted_content_cache()
        assert [i.id for i in reloaded.items] == [i.id for i in cache.items]

    def test_thread_pool_preserves_order(self, tmp_path) -> None:
        ctx = _context(tmp_path, Mock(side_effect=_results), workers=4)
        links = [f"https://a.com/{i}/text" for i in range(8)]
        ctx.store.save_raw_feed_cache(
            RawFeedCache(items={1: [RawItem(title=link, link=link) for link in links]}, last_updated=1)
        )

        cache = extract_content(ctx)

        assert [i.link for i in cache.items] == links

    def test_failed_results_are_not_cached(self, tmp_path) -> None:
        extract = Mock(side_effect=_results)
        ctx = _context(tmp_path, extract)
        ctx.store.save_raw_feed_cache(
            RawFeedCache(
                items={
                    1: [RawItem(title="A", link="https://a.com/text"), RawItem(title="X", link="https://x.com/broken")],
                    2: [RawItem(title="A", link="https://a.com/text"), RawItem(title="X", link="https://x.com/broken")],
                },
                last_updated=1,
            )
        )

        extract_content(ctx)

        called = [call.args[0] for call in extract.call_args_list]
        assert called.count("https://a.com/text") == 1
        assert called.count("https://x.com/broken") == 2


class TestItemCache:
    def test_expired_entries_are_dropped(self) -> None:
        cache = ItemCache(ttl=timedelta(hours=1))
        cache.put("https://a.com", Extracted(content="x"), now=NOW)
        assert cache.get("https://a.com", now=NOW + timedelta(minutes=30)) is not None
        assert cache.get("https://a.com", now=NOW + timedelta(hours=2)) is None
        assert len(cache) == 0
