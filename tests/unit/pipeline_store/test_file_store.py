"""Tests for pipeline_store.file_store module."""

from datetime import datetime, timezone

import pytest

from common.config import Settings
from common.models import FeedMetadata, RawItem, RunStatus
from pipeline_store.caches import RawFeedCache
from pipeline_store.factory import build_pipeline_store
from pipeline_store.file_store import RAW_FEED_CACHE_FILE, FilePipelineStore


class TestFilePipelineStore:
    def test_missing_document_is_empty_default(self, tmp_path) -> None:
        store = FilePipelineStore(cache_dir=tmp_path)
        cache = store.load_ai_processed_content_cache()
        assert cache.items == []
        assert cache.last_updated == 0

    @pytest.mark.parametrize("document", ["{not json", "null", "[]", '"text"'])
    def test_corrupt_document_is_empty_default(self, tmp_path, document) -> None:
        path = tmp_path / "default" / RAW_FEED_CACHE_FILE
        path.parent.mkdir()
        path.write_text(document)
        cache = FilePipelineStore(cache_dir=tmp_path).load_raw_feed_cache()
        assert cache.items == {}
        assert cache.last_updated == 0

    def test_accounts_do_not_share_documents(self, tmp_path) -> None:
        settings = Settings(cache_dir=tmp_path)
        alice = build_pipeline_store(settings, "alice", backend="file")
        alice.save_raw_feed_cache(
            RawFeedCache(items={1: [RawItem(title="A", link="https://alice/1")]}, last_updated=5)
        )

        bob = build_pipeline_store(settings, "bob", backend="file")

        assert bob.load_raw_feed_cache().items == {}
        assert bob.load_raw_feed_cache().last_updated == 0
        assert [i.link for i in alice.load_raw_feed_cache().items[1]] == ["https://alice/1"]
        assert (tmp_path / "alice" / RAW_FEED_CACHE_FILE).exists()

    def test_scoring_history_defaults_to_account_directory(self, tmp_path) -> None:
        store = FilePipelineStore(cache_dir=tmp_path, account_id="acme")
        assert store.scoring_cache_path == tmp_path / "acme" / "scoring-history.json"

    def test_round_trips_dates_to_the_millisecond(self, tmp_path) -> None:
        published = datetime(2025, 4, 17, 10, 15, 4, 123000, tzinfo=timezone.utc)
        store = FilePipelineStore(cache_dir=tmp_path)
        store.save_raw_feed_cache(
            RawFeedCache(
                items={3: [RawItem(title="A", link="https://a.com/1", published_at=published), RawItem(title="B", link="https://a.com/2")]},
                feed_metadata={3: FeedMetadata(name="Feed", categories=["Tech"])},
                last_updated=1_700_000_000_000,
            )
        )

        cache = store.load_raw_feed_cache()

        assert isinstance(cache.items[3][0].published_at, datetime)
        assert cache.items[3][0].published_at == published
        assert cache.items[3][1].published_at is None
        assert cache.feed_metadata[3].categories == ["Tech"]
        assert cache.last_updated == 1_700_000_000_000

    def test_scoring_cache_path_override(self, tmp_path) -> None:
        path = tmp_path / "audits" / "history.json"
        store = FilePipelineStore(cache_dir=tmp_path / "cache", scoring_cache_path=path)
        cache = store.load_scoring_audit_cache()
        cache.last_updated = 5
        store.save_scoring_audit_cache(cache)
        assert path.exists()

    def test_lifecycle_is_a_no_op(self, tmp_path) -> None:
        store = FilePipelineStore(cache_dir=tmp_path)
        with store:
            store.mark_step_completed(1)
        store.finalize_run(RunStatus.SUCCEEDED)
        assert store.get_pipeline_run_id() is None
