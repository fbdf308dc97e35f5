"""Data models shared across pipeline stages.

Item types form a chain, each stage adding the fields it owns:
RawItem -> ExtractedItem -> ProcessedItem -> AIProcessedItem -> RankedItem.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from common.datetime import parse_optional_datetime
from common.exceptions import ConfigError

ItemT = TypeVar("ItemT", bound="RawItem")


class SourceType(str, Enum):
    RSS = "rss"
    SEARCH = "search"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    MIXED = "Mixed"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SourceConfig:
    """A configured origin of items: an RSS feed URL or a search query."""
    id: str
    type: SourceType
    name: str
    url: str | None = None
    query: str | None = None
    categories: list[str] = field(default_factory=list)
    language: str | None = None
    is_active: bool = True
    num: int = 10
    date_restrict: str = "d1"

    def __post_init__(self) -> None:
        self.type = SourceType(self.type)
        if self.type is SourceType.RSS and not self.url:
            raise ConfigError(f"RSS source {self.name!r} has no url")
        if self.type is SourceType.SEARCH and not self.query:
            raise ConfigError(f"Search source {self.name!r} has no query")
        if self.type is SourceType.RSS:
            self.query = None
        else:
            self.url = None
        self.num = max(1, min(10, int(self.num)))


@dataclass
class FeedMetadata:
    """Per-source metadata captured during the fetch stage."""
    name: str = ""
    title: str | None = None
    description: str | None = None
    site_url: str | None = None
    icon_url: str | None = None
    language: str | None = None
    last_build_date: str | None = None
    source_config_id: str | None = None
    categories: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedMetadata:
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in names}
        values["categories"] = list(values.get("categories") or [])
        return cls(**values)


@dataclass(kw_only=True)
class RawItem:
    """Normalized item produced by the feed parser or search adapter."""
    title: str
    link: str
    published_at: datetime | None = None
    raw_content: str | None = None
    comments_url: str | None = None

    @classmethod
    def from_dict(cls: type[ItemT], data: dict[str, Any]) -> ItemT:
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in names}
        values["published_at"] = parse_optional_datetime(values.get("published_at"))
        if values.get("sentiment") is not None:
            values["sentiment"] = Sentiment(values["sentiment"])
        return cls(**values)


@dataclass(kw_only=True)
class ExtractedItem(RawItem):
    """Item with page text (empty when the page is not textual)."""
    id: str
    source_id: int
    content: str = ""
    media_type: str | None = None
    media_url: str | None = None


@dataclass(kw_only=True)
class ProcessedItem(ExtractedItem):
    """Item with a resolved media type and the skip-AI decision."""
    media_type: str
    media_url: str
    should_skip_ai: bool = False


@dataclass(kw_only=True)
class AIProcessedItem(ProcessedItem):
    summary: str | None = None
    has_summary: bool = False
    sentiment: Sentiment | None = None

    @property
    def is_positive(self) -> bool:
        return self.sentiment is Sentiment.POSITIVE


@dataclass(kw_only=True)
class RankedItem(AIProcessedItem):
    ranking_score: float
    recency_score: float
    relevance_score: float


def promote(item: RawItem, cls: type[ItemT], **changes: Any) -> ItemT:
    """Build a later-stage item from an earlier one plus the new fields."""
    values = {f.name: getattr(item, f.name) for f in fields(item)}
    values.update(changes)
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in values.items() if k in names})


@dataclass
class ReportItem:
    """One selected item as handed to the report collaborator."""
    id: str
    title: str
    url: str
    source_name: str
    published_at: datetime | None = None
    summary: str | None = None
    score: float | None = None


@dataclass
class MainStory:
    section_tag: str = ""
    headline: str = ""
    source_name: str = ""
    source_url: str = ""
    what_happened: str = ""
    why_it_matters: str = ""
    short_term_impact: str = ""
    long_term_impact: str = ""
    sentiment: str = ""
    sentiment_rationale: str = ""


@dataclass
class BriefItem:
    text: str = ""
    source_name: str = ""
    source_url: str = ""


@dataclass
class ByTheNumbers:
    number: str = ""
    commentary: str = ""


@dataclass
class Report:
    """Structured digest returned by the report collaborator."""
    header: str
    main_stories: list[MainStory] = field(default_factory=list)
    what_else_is_going_on: list[BriefItem] = field(default_factory=list)
    by_the_numbers: ByTheNumbers | None = None
    sign_off: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Report:
        by_the_numbers = data.get("by_the_numbers")
        return cls(
            header=str(data.get("header") or ""),
            main_stories=[_build(MainStory, s) for s in data.get("main_stories") or []],
            what_else_is_going_on=[_build(BriefItem, s) for s in data.get("what_else_is_going_on") or []],
            by_the_numbers=_build(ByTheNumbers, by_the_numbers) if by_the_numbers else None,
            sign_off=str(data.get("sign_off") or ""),
        )


def _build(cls, data: dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: str(v) for k, v in data.items() if k in names and v is not None})


@dataclass
class CategoryReport:
    category: str
    report: Report
    generated_at: int
    used_item_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CategoryReport:
        return cls(
            category=data["category"],
            report=Report.from_dict(data["report"]),
            generated_at=int(data["generated_at"]),
            used_item_ids=list(data.get("used_item_ids") or []),
        )


@dataclass
class ScoringAuditRecord:
    """Immutable snapshot of one scoring pass."""
    label: str
    custom_instructions: str
    scored_items: list[RankedItem]
    selected_items: list[RankedItem]
    top_k_per_source: int
    scored_at: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScoringAuditRecord:
        return cls(
            label=data["label"],
            custom_instructions=data.get("custom_instructions") or "",
            scored_items=[RankedItem.from_dict(i) for i in data.get("scored_items") or []],
            selected_items=[RankedItem.from_dict(i) for i in data.get("selected_items") or []],
            top_k_per_source=int(data.get("top_k_per_source") or 0),
            scored_at=int(data["scored_at"]),
        )
