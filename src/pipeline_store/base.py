"""Step-addressable persistence boundary used by every pipeline stage."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from common.models import RunStatus
from pipeline_store.caches import (
    AIProcessedContentCache,
    ExtractedContentCache,
    ProcessedContentCache,
    RawFeedCache,
    ReportsCache,
    ScoringAuditCache,
)

logger = logging.getLogger(__name__)

STEP_FETCH = 1
STEP_EXTRACT = 2
STEP_CLASSIFY = 3
STEP_ANALYZE = 4
STEP_REPORTS = 5
STEP_RENDER = 6


class PipelineStore(ABC):
    """One load/save pair per stage plus run lifecycle operations.

    Stores are context managers: leaving the block finalizes the run as
    failed when an exception escaped and as succeeded otherwise.
    """

    account_id: str

    @abstractmethod
    def load_raw_feed_cache(self) -> RawFeedCache: ...

    @abstractmethod
    def save_raw_feed_cache(self, cache: RawFeedCache) -> None: ...

    @abstractmethod
    def load_extracted_content_cache(self) -> ExtractedContentCache: ...

    @abstractmethod
    def save_extracted_content_cache(self, cache: ExtractedContentCache) -> None: ...

    @abstractmethod
    def load_processed_content_cache(self) -> ProcessedContentCache: ...

    @abstractmethod
    def save_processed_content_cache(self, cache: ProcessedContentCache) -> None: ...

    @abstractmethod
    def load_ai_processed_content_cache(self) -> AIProcessedContentCache: ...

    @abstractmethod
    def save_ai_processed_content_cache(self, cache: AIProcessedContentCache) -> None: ...

    @abstractmethod
    def load_reports_cache(self) -> ReportsCache: ...

    @abstractmethod
    def save_reports_cache(self, cache: ReportsCache) -> None: ...

    @abstractmethod
    def load_scoring_audit_cache(self) -> ScoringAuditCache: ...

    @abstractmethod
    def save_scoring_audit_cache(self, cache: ScoringAuditCache) -> None: ...

    def mark_step_completed(self, step: int) -> None:
        """Record that `step` finished. No-op for single-run backends."""

    def finalize_run(self, status: RunStatus | str) -> None:
        """Move the run to a terminal state and release resources."""

    def get_pipeline_run_id(self) -> str | None:
        return None

    def __enter__(self) -> PipelineStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        status = RunStatus.FAILED if exc_type is not None else RunStatus.SUCCEEDED
        self.finalize_run(status)
