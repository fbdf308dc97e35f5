"""Checkpoint documents exchanged between pipeline stages.

Every document carries `last_updated` (epoch milliseconds). A value of 0
means the stage has never written its output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from common.models import (
    AIProcessedItem,
    CategoryReport,
    ExtractedItem,
    FeedMetadata,
    ProcessedItem,
    RawItem,
    ScoringAuditRecord,
)
from common.serialization import to_jsonable


def _metadata_from_document(data: dict[str, Any] | None) -> dict[int, FeedMetadata]:
    return {int(feed_id): FeedMetadata.from_dict(meta) for feed_id, meta in (data or {}).items()}


@dataclass
class RawFeedCache:
    items: dict[int, list[RawItem]] = field(default_factory=dict)
    feed_metadata: dict[int, FeedMetadata] = field(default_factory=dict)
    last_updated: int = 0

    def to_document(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> RawFeedCache:
        return cls(
            items={
                int(feed_id): [RawItem.from_dict(i) for i in items]
                for feed_id, items in (data.get("items") or {}).items()
            },
            feed_metadata=_metadata_from_document(data.get("feed_metadata")),
            last_updated=int(data.get("last_updated") or 0),
        )


@dataclass
class _StageItemCache:
    item_type: ClassVar[type[RawItem]]

    items: list = field(default_factory=list)
    feed_metadata: dict[int, FeedMetadata] = field(default_factory=dict)
    last_updated: int = 0

    def to_document(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        return cls(
            items=[cls.item_type.from_dict(i) for i in data.get("items") or []],
            feed_metadata=_metadata_from_document(data.get("feed_metadata")),
            last_updated=int(data.get("last_updated") or 0),
        )


@dataclass
class ExtractedContentCache(_StageItemCache):
    item_type: ClassVar[type[RawItem]] = ExtractedItem
    items: list[ExtractedItem] = field(default_factory=list)


@dataclass
class ProcessedContentCache(_StageItemCache):
    item_type: ClassVar[type[RawItem]] = ProcessedItem
    items: list[ProcessedItem] = field(default_factory=list)


@dataclass
class AIProcessedContentCache(_StageItemCache):
    item_type: ClassVar[type[RawItem]] = AIProcessedItem
    items: list[AIProcessedItem] = field(default_factory=list)


@dataclass
class ReportsCache:
    reports: list[CategoryReport] = field(default_factory=list)
    last_updated: int = 0

    def to_document(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> ReportsCache:
        return cls(
            reports=[CategoryReport.from_dict(r) for r in data.get("reports") or []],
            last_updated=int(data.get("last_updated") or 0),
        )

    def get(self, category: str) -> CategoryReport | None:
        for report in self.reports:
            if report.category == category:
                return report
        return None


@dataclass
class ScoringAuditCache:
    records: list[ScoringAuditRecord] = field(default_factory=list)
    last_updated: int = 0

    def to_document(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> ScoringAuditCache:
        return cls(
            records=[ScoringAuditRecord.from_dict(r) for r in data.get("records") or []],
            last_updated=int(data.get("last_updated") or 0),
        )
