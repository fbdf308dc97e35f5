"""Pipeline store backed by JSON documents on local disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from pipeline_store.base import PipelineStore
from pipeline_store.caches import (
    AIProcessedContentCache,
    ExtractedContentCache,
    ProcessedContentCache,
    RawFeedCache,
    ReportsCache,
    ScoringAuditCache,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RAW_FEED_CACHE_FILE = "step1-raw-feeds.json"
EXTRACTED_CONTENT_CACHE_FILE = "step2-extracted-content.json"
PROCESSED_CONTENT_CACHE_FILE = "step3-processed-content.json"
AI_PROCESSED_CONTENT_CACHE_FILE = "step4-ai-processed-content.json"
REPORTS_CACHE_FILE = "step5-reports.json"
SCORING_CACHE_FILE = "scoring-history.json"


class FilePipelineStore(PipelineStore):
    """Single implicit run; every stage cache is one JSON document under
    `cache_dir/<account_id>/`.

    Missing, unreadable or non-object documents load as empty caches with
    `last_updated == 0`.
    """

    def __init__(
        self,
        cache_dir: Path | str = ".cache",
        scoring_cache_path: Path | str | None = None,
        account_id: str = "default",
    ):
        self.cache_dir = Path(cache_dir)
        self.account_id = account_id
        self.account_dir = self.cache_dir / account_id
        self.scoring_cache_path = (
            Path(scoring_cache_path) if scoring_cache_path else self.account_dir / SCORING_CACHE_FILE
        )

    def load_raw_feed_cache(self) -> RawFeedCache:
        return self._read(self.account_dir / RAW_FEED_CACHE_FILE, RawFeedCache.from_document, RawFeedCache)

    def save_raw_feed_cache(self, cache: RawFeedCache) -> None:
        self._write(self.account_dir / RAW_FEED_CACHE_FILE, cache.to_document())

    def load_extracted_content_cache(self) -> ExtractedContentCache:
        return self._read(
            self.account_dir / EXTRACTED_CONTENT_CACHE_FILE,
            ExtractedContentCache.from_document,
            ExtractedContentCache,
        )

    def save_extracted_content_cache(self, cache: ExtractedContentCache) -> None:
        self._write(self.account_dir / EXTRACTED_CONTENT_CACHE_FILE, cache.to_document())

    def load_processed_content_cache(self) -> ProcessedContentCache:
        return self._read(
            self.account_dir / PROCESSED_CONTENT_CACHE_FILE,
            ProcessedContentCache.from_document,
            ProcessedContentCache,
        )

    def save_processed_content_cache(self, cache: ProcessedContentCache) -> None:
        self._write(self.account_dir / PROCESSED_CONTENT_CACHE_FILE, cache.to_document())

    def load_ai_processed_content_cache(self) -> AIProcessedContentCache:
        return self._read(
            self.account_dir / AI_PROCESSED_CONTENT_CACHE_FILE,
            AIProcessedContentCache.from_document,
            AIProcessedContentCache,
        )

    def save_ai_processed_content_cache(self, cache: AIProcessedContentCache) -> None:
        self._write(self.account_dir / AI_PROCESSED_CONTENT_CACHE_FILE, cache.to_document())

    def load_reports_cache(self) -> ReportsCache:
        return self._read(self.account_dir / REPORTS_CACHE_FILE, ReportsCache.from_document, ReportsCache)

    def save_reports_cache(self, cache: ReportsCache) -> None:
        self._write(self.account_dir / REPORTS_CACHE_FILE, cache.to_document())

    def load_scoring_audit_cache(self) -> ScoringAuditCache:
        return self._read(self.scoring_cache_path, ScoringAuditCache.from_document, ScoringAuditCache)

    def save_scoring_audit_cache(self, cache: ScoringAuditCache) -> None:
        self._write(self.scoring_cache_path, cache.to_document())

    def _read(self, path: Path, parse: Callable[[dict[str, Any]], T], default: Callable[[], T]) -> T:
        if not path.exists():
            return default()
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                logger.error("Cache document %s is not an object, using empty cache", path)
                return default()
            return parse(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to read %s, using empty cache: %s", path, e)
            return default()

    def _write(self, path: Path, document: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            tmp_path.replace(path)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            return
        logger.info("Saved %s", path)
