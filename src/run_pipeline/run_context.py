"""Per-run state threaded explicitly through every stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol

from common.config import Settings
from common.datetime import utc_now
from common.models import Report, ReportItem
from extract_content.item_cache import ItemCache
from extract_content.models import ExtractionResult
from fetch_sources.feed_parser import FeedParseResult
from fetch_sources.google_search import SearchItem
from fetch_sources.sources import SourceConfigProvider
from pipeline_store.base import PipelineStore


class FeedParserLike(Protocol):
    def parse_with_metadata(self, url: str, display_name: str) -> FeedParseResult: ...


class SearchFn(Protocol):
    def __call__(self, query: str, num: int = 10, date_restrict: str = "d1") -> list[SearchItem]: ...


class GenerateReportFn(Protocol):
    def __call__(
        self, category: str, items: list[ReportItem], custom_instructions: str | None = None
    ) -> Report | None: ...


@dataclass
class Collaborators:
    """External services the stages call; each one fails soft."""
    feed_parser: FeedParserLike
    search: SearchFn
    extract: Callable[[str], ExtractionResult]
    summarize: Callable[[str], str]
    analyze_sentiment: Callable[[str], bool]
    generate_report: GenerateReportFn


@dataclass
class RunContext:
    account_id: str
    store: PipelineStore
    settings: Settings
    sources: SourceConfigProvider
    collaborators: Collaborators
    item_cache: ItemCache = field(default_factory=ItemCache)
    started_at: datetime = field(default_factory=utc_now)
