"""Pipeline store backed by the relational database, with run lineage.

Every stage's rows are scoped by (account_id, pipeline_run_id). Loads
without an explicit run fall back to the account's most recently started
run. The run row is created lazily on the first write.
"""

from __future__ import annotations

import functools
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import Engine, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.datetime import to_epoch_ms, utc_now
from common.exceptions import PersistenceError, PipelineRunClosedError
from common.models import (
    AIProcessedItem,
    CategoryReport,
    ExtractedItem,
    FeedMetadata,
    ProcessedItem,
    RawItem,
    RunStatus,
    ScoringAuditRecord,
    Sentiment,
)
from common.hashing import generate_item_id
from common.serialization import to_jsonable
from pipeline_store.base import STEP_ANALYZE, STEP_CLASSIFY, STEP_EXTRACT, STEP_FETCH, PipelineStore
from pipeline_store.caches import (
    AIProcessedContentCache,
    ExtractedContentCache,
    ProcessedContentCache,
    RawFeedCache,
    ReportsCache,
    ScoringAuditCache,
)
from rds_postgres.connection import get_engine, get_session
from rds_postgres.models import (
    Account,
    AIAnalysisRow,
    DigestRow,
    ExtractedContentRow,
    FeedItemRow,
    PipelineRunRow,
    ProcessedContentRow,
    RunFeedRow,
    ScoringAuditRow,
)

logger = logging.getLogger(__name__)

MAX_SCORING_RECORDS = 200

_TERMINAL_STATUSES = {RunStatus.SUCCEEDED.value, RunStatus.FAILED.value}


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _persistence_errors(method):
    """Wrap SQLAlchemy failures in PersistenceError so they end the run."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{method.__name__} failed: {e}") from e

    return wrapper


class DbPipelineStore(PipelineStore):
    def __init__(
        self,
        account_id: str,
        engine: Engine | None = None,
        database_url: str | None = None,
        pipeline_run_id: str | None = None,
    ):
        self.account_id = account_id
        self._owns_engine = engine is None
        self.engine = engine or get_engine(database_url)
        self._pipeline_run_id = pipeline_run_id
        self._run_ensured = False
        self._finalized = False

    # Run lifecycle

    def get_pipeline_run_id(self) -> str | None:
        return self._pipeline_run_id

    @_persistence_errors
    def mark_step_completed(self, step: int) -> None:
        with get_session(self.engine) as session:
            run = self._ensure_pipeline_run(session)
            if run.step_completed is None or step > run.step_completed:
                run.step_completed = step
        logger.info("Run %s completed step %d", self._pipeline_run_id, step)

    @_persistence_errors
    def finalize_run(self, status: RunStatus | str) -> None:
        status = RunStatus(status)
        if self._finalized:
            logger.warning("Run %s already finalized, ignoring %s", self._pipeline_run_id, status.value)
            return
        self._finalized = True
        try:
            if not self._run_ensured:
                logger.info("No pipeline run was started, nothing to finalize")
                return
            with get_session(self.engine) as session:
                run = session.get(PipelineRunRow, self._pipeline_run_id)
                if run is not None and run.status not in _TERMINAL_STATUSES:
                    run.status = status.value
                    run.completed_at = utc_now()
            logger.info("Run %s finalized as %s", self._pipeline_run_id, status.value)
        finally:
            if self._owns_engine:
                self.engine.dispose()

    def _ensure_pipeline_run(self, session: Session) -> PipelineRunRow:
        if self._finalized:
            raise PipelineRunClosedError(f"Run {self._pipeline_run_id} is already finalized")

        if session.get(Account, self.account_id) is None:
            session.add(Account(id=self.account_id, name=self.account_id))
            session.flush()

        if self._pipeline_run_id is not None:
            run = session.get(PipelineRunRow, self._pipeline_run_id)
            if run is not None:
                if run.status in _TERMINAL_STATUSES:
                    raise PipelineRunClosedError(
                        f"Run {self._pipeline_run_id} is {run.status}, no further writes accepted"
                    )
                self._run_ensured = True
                return run

        run = PipelineRunRow(
            id=self._pipeline_run_id or str(uuid.uuid4()),
            account_id=self.account_id,
            started_at=utc_now(),
            status=RunStatus.RUNNING.value,
        )
        session.add(run)
        session.flush()
        self._pipeline_run_id = run.id
        self._run_ensured = True
        logger.info("Started pipeline run %s for account %s", run.id, self.account_id)
        return run

    def _read_run_id(self, session: Session) -> str | None:
        if self._pipeline_run_id is not None:
            return self._pipeline_run_id
        return session.scalars(
            select(PipelineRunRow.id)
            .where(PipelineRunRow.account_id == self.account_id)
            .order_by(PipelineRunRow.started_at.desc())
            .limit(1)
        ).first()

    def _mark_stage_saved(self, run: PipelineRunRow, step: int) -> None:
        run.saved_steps = sorted(set(run.saved_steps or []) | {step})

    def _stage_saved(self, session: Session, run_id: str, step: int) -> bool:
        run = session.get(PipelineRunRow, run_id)
        return run is not None and step in (run.saved_steps or [])

    def _run_started_ms(self, session: Session, run_id: str) -> int:
        run = session.get(PipelineRunRow, run_id)
        return to_epoch_ms(_aware(run.started_at)) if run is not None else 0

    def _feed_item_ids(self, session: Session, urls: Iterable[str]) -> dict[str, int]:
        """Map each URL to the account's most recent feed item row."""
        urls = list(set(urls))
        if not urls:
            return {}
        rows = session.execute(
            select(FeedItemRow.url, FeedItemRow.id)
            .where(FeedItemRow.account_id == self.account_id, FeedItemRow.url.in_(urls))
            .order_by(FeedItemRow.id)
        ).all()
        return {url: row_id for url, row_id in rows}

    # Step 1

    @_persistence_errors
    def load_raw_feed_cache(self) -> RawFeedCache:
        with get_session(self.engine) as session:
            run_id = self._read_run_id(session)
            if run_id is None:
                return RawFeedCache()

            feeds = session.scalars(select(RunFeedRow).where(RunFeedRow.pipeline_run_id == run_id)).all()
            rows = session.scalars(
                select(FeedItemRow)
                .where(FeedItemRow.pipeline_run_id == run_id)
                .order_by(FeedItemRow.feed_id, FeedItemRow.position)
            ).all()
            if not feeds and not rows and not self._stage_saved(session, run_id, STEP_FETCH):
                return RawFeedCache()

            cache = RawFeedCache(
                feed_metadata={f.feed_id: FeedMetadata.from_dict(f.feed_metadata) for f in feeds},
                last_updated=self._run_started_ms(session, run_id),
            )
            for feed in feeds:
                cache.items.setdefault(feed.feed_id, [])
            for row in rows:
                cache.items.setdefault(row.feed_id, []).append(
                    RawItem(
                        title=row.title,
                        link=row.url,
                        published_at=_aware(row.published_at),
                        raw_content=row.raw_content,
                        comments_url=row.comments_url,
                    )
                )
            return cache

    @_persistence_errors
    def save_raw_feed_cache(self, cache: RawFeedCache) -> None:
        with get_session(self.engine) as session:
            run = self._ensure_pipeline_run(session)
            run_id = run.id
            self._mark_stage_saved(run, STEP_FETCH)

            old_ids = select(FeedItemRow.id).where(FeedItemRow.pipeline_run_id == run_id)
            for table in (ExtractedContentRow, ProcessedContentRow, AIAnalysisRow):
                session.execute(
                    update(table)
                    .where(table.feed_item_id.in_(old_ids))
                    .values(feed_item_id=None)
                    .execution_options(synchronize_session=False)
                )
            session.execute(delete(FeedItemRow).where(FeedItemRow.pipeline_run_id == run_id))
            session.execute(delete(RunFeedRow).where(RunFeedRow.pipeline_run_id == run_id))

            for feed_id, metadata in cache.feed_metadata.items():
                session.add(
                    RunFeedRow(
                        account_id=self.account_id,
                        pipeline_run_id=run_id,
                        feed_id=feed_id,
                        source_config_id=metadata.source_config_id,
                        feed_metadata=to_jsonable(metadata),
                    )
                )
            for feed_id, items in cache.items.items():
                for position, item in enumerate(items):
                    session.add(
                        FeedItemRow(
                            account_id=self.account_id,
                            pipeline_run_id=run_id,
                            feed_id=feed_id,
                            position=position,
                            external_id=generate_item_id(feed_id, item.link),
                            title=item.title,
                            url=item.link,
                            published_at=item.published_at,
                            raw_content=item.raw_content,
                            comments_url=item.comments_url,
                        )
                    )
        logger.info("Saved %d feeds to run %s", len(cache.items), run_id)

    # Steps 2-4

    def _load_metadata(self, session: Session, run_id: str) -> dict[int, FeedMetadata]:
        feeds = session.scalars(select(RunFeedRow).where(RunFeedRow.pipeline_run_id == run_id)).all()
        if not feeds:
            # Stage re-run in a new run: fall back to the latest fetched feeds.
            latest_run = session.scalars(
                select(RunFeedRow.pipeline_run_id)
                .join(PipelineRunRow, PipelineRunRow.id == RunFeedRow.pipeline_run_id)
                .where(RunFeedRow.account_id == self.account_id)
                .order_by(PipelineRunRow.started_at.desc())
                .limit(1)
            ).first()
            if latest_run is None:
                return {}
            feeds = session.scalars(select(RunFeedRow).where(RunFeedRow.pipeline_run_id == latest_run)).all()
        return {f.feed_id: FeedMetadata.from_dict(f.feed_metadata) for f in feeds}

    def _load_stage_rows(self, session: Session, table, step: int) -> tuple[str | None, list[Any]]:
        """Rows of the read run, or (None, []) when the stage was never saved there."""
        run_id = self._read_run_id(session)
        if run_id is None:
            return None, []
        rows = session.scalars(
            select(table).where(table.pipeline_run_id == run_id).order_by(table.position)
        ).all()
        if not rows and not self._stage_saved(session, run_id, step):
            return None, []
        return run_id, list(rows)

    def _replace_stage_rows(self, session: Session, table, run_id: str, rows: list[Any]) -> None:
        session.execute(delete(table).where(table.pipeline_run_id == run_id))
        session.add_all(rows)

    @_persistence_errors
    def load_extracted_content_cache(self) -> ExtractedContentCache:
        with get_session(self.engine) as session:
            run_id, rows = self._load_stage_rows(session, ExtractedContentRow, STEP_EXTRACT)
            if run_id is None:
                return ExtractedContentCache()
            return ExtractedContentCache(
                items=[
                    ExtractedItem(
                        id=row.item_id,
                        source_id=row.feed_id,
                        title=row.title,
                        link=row.url,
                        published_at=_aware(row.published_at),
                        comments_url=row.comments_url,
                        content=row.content or "",
                        media_type=row.media_type,
                        media_url=row.media_url,
                    )
                    for row in rows
                ],
                feed_metadata=self._load_metadata(session, run_id),
                last_updated=self._run_started_ms(session, run_id),
            )

    @_persistence_errors
    def save_extracted_content_cache(self, cache: ExtractedContentCache) -> None:
        with get_session(self.engine) as session:
            run = self._ensure_pipeline_run(session)
            run_id = run.id
            self._mark_stage_saved(run, STEP_EXTRACT)
            links = self._feed_item_ids(session, (item.link for item in cache.items))
            rows = [
                ExtractedContentRow(
                    account_id=self.account_id,
                    pipeline_run_id=run_id,
                    feed_item_id=links.get(item.link),
                    position=position,
                    item_id=item.id,
                    feed_id=item.source_id,
                    title=item.title,
                    url=item.link,
                    published_at=item.published_at,
                    comments_url=item.comments_url,
                    content=item.content,
                    media_type=item.media_type,
                    media_url=item.media_url,
                )
                for position, item in enumerate(cache.items)
            ]
            self._replace_stage_rows(session, ExtractedContentRow, run_id, rows)
        logger.info("Saved %d extracted items to run %s", len(cache.items), run_id)

    @_persistence_errors
    def load_processed_content_cache(self) -> ProcessedContentCache:
        with get_session(self.engine) as session:
            run_id, rows = self._load_stage_rows(session, ProcessedContentRow, STEP_CLASSIFY)
            if run_id is None:
                return ProcessedContentCache()
            return ProcessedContentCache(
                items=[
                    ProcessedItem(
                        id=row.item_id,
                        source_id=row.feed_id,
                        title=row.title,
                        link=row.url,
                        published_at=_aware(row.published_at),
                        comments_url=row.comments_url,
                        content=row.content or "",
                        media_type=row.media_type,
                        media_url=row.media_url,
                        should_skip_ai=row.should_skip_ai,
                    )
                    for row in rows
                ],
                feed_metadata=self._load_metadata(session, run_id),
                last_updated=self._run_started_ms(session, run_id),
            )

    @_persistence_errors
    def save_processed_content_cache(self, cache: ProcessedContentCache) -> None:
        with get_session(self.engine) as session:
            run = self._ensure_pipeline_run(session)
            run_id = run.id
            self._mark_stage_saved(run, STEP_CLASSIFY)
            links = self._feed_item_ids(session, (item.link for item in cache.items))
            rows = [
                ProcessedContentRow(
                    account_id=self.account_id,
                    pipeline_run_id=run_id,
                    feed_item_id=links.get(item.link),
                    position=position,
                    item_id=item.id,
                    feed_id=item.source_id,
                    title=item.title,
                    url=item.link,
                    normalized_url=item.link.strip().rstrip("/").lower(),
                    published_at=item.published_at,
                    comments_url=item.comments_url,
                    content=item.content,
                    media_type=item.media_type,
                    media_url=item.media_url,
                    should_skip_ai=item.should_skip_ai,
                )
                for position, item in enumerate(cache.items)
            ]
            self._replace_stage_rows(session, ProcessedContentRow, run_id, rows)
        logger.info("Saved %d processed items to run %s", len(cache.items), run_id)

    @_persistence_errors
    def load_ai_processed_content_cache(self) -> AIProcessedContentCache:
        with get_session(self.engine) as session:
            run_id, rows = self._load_stage_rows(session, AIAnalysisRow, STEP_ANALYZE)
            if run_id is None:
                return AIProcessedContentCache()
            return AIProcessedContentCache(
                items=[
                    AIProcessedItem(
                        id=row.item_id,
                        source_id=row.feed_id,
                        title=row.title,
                        link=row.url,
                        published_at=_aware(row.published_at),
                        comments_url=row.comments_url,
                        content=row.content or "",
                        media_type=row.media_type,
                        media_url=row.media_url,
                        should_skip_ai=row.should_skip_ai,
                        summary=row.summary,
                        has_summary=row.has_summary,
                        sentiment=Sentiment(row.sentiment) if row.sentiment else None,
                    )
                    for row in rows
                ],
                feed_metadata=self._load_metadata(session, run_id),
                last_updated=self._run_started_ms(session, run_id),
            )

    @_persistence_errors
    def save_ai_processed_content_cache(self, cache: AIProcessedContentCache) -> None:
        with get_session(self.engine) as session:
            run = self._ensure_pipeline_run(session)
            run_id = run.id
            self._mark_stage_saved(run, STEP_ANALYZE)
            links = self._feed_item_ids(session, (item.link for item in cache.items))
            rows = [
                AIAnalysisRow(
                    account_id=self.account_id,
                    pipeline_run_id=run_id,
                    feed_item_id=links.get(item.link),
                    position=position,
                    item_id=item.id,
                    feed_id=item.source_id,
                    title=item.title,
                    url=item.link,
                    published_at=item.published_at,
                    comments_url=item.comments_url,
                    content=item.content,
                    media_type=item.media_type,
                    media_url=item.media_url,
                    should_skip_ai=item.should_skip_ai,
                    summary=item.summary,
                    has_summary=item.has_summary,
                    sentiment=item.sentiment.value if item.sentiment else None,
                )
                for position, item in enumerate(cache.items)
            ]
            self._replace_stage_rows(session, AIAnalysisRow, run_id, rows)
        logger.info("Saved %d analyzed items to run %s", len(cache.items), run_id)

    # Step 5

    @_persistence_errors
    def load_reports_cache(self) -> ReportsCache:
        """Latest report per category across the account's runs."""
        with get_session(self.engine) as session:
            rows = session.scalars(
                select(DigestRow)
                .where(DigestRow.account_id == self.account_id)
                .order_by(DigestRow.generated_at.desc(), DigestRow.id.desc())
            ).all()
            latest: dict[str, CategoryReport] = {}
            for row in rows:
                if row.category not in latest:
                    latest[row.category] = CategoryReport.from_dict(row.payload)
            if not latest:
                return ReportsCache()
            reports = sorted(latest.values(), key=lambda r: r.category)
            return ReportsCache(reports=reports, last_updated=max(r.generated_at for r in reports))

    @_persistence_errors
    def save_reports_cache(self, cache: ReportsCache) -> None:
        with get_session(self.engine) as session:
            run_id = self._ensure_pipeline_run(session).id
            rows = [
                DigestRow(
                    account_id=self.account_id,
                    pipeline_run_id=run_id,
                    category=report.category,
                    generated_at=report.generated_at,
                    payload=to_jsonable(report),
                )
                for report in cache.reports
            ]
            session.execute(delete(DigestRow).where(DigestRow.pipeline_run_id == run_id))
            session.add_all(rows)
        logger.info("Saved %d reports to run %s", len(cache.reports), run_id)

    @_persistence_errors
    def load_scoring_audit_cache(self) -> ScoringAuditCache:
        with get_session(self.engine) as session:
            rows = session.scalars(
                select(ScoringAuditRow)
                .where(ScoringAuditRow.account_id == self.account_id)
                .order_by(ScoringAuditRow.scored_at.desc(), ScoringAuditRow.id.desc())
                .limit(MAX_SCORING_RECORDS)
            ).all()
            if not rows:
                return ScoringAuditCache()
            records = [
                ScoringAuditRecord.from_dict(
                    {
                        **row.payload,
                        "label": row.label,
                        "scored_at": row.scored_at,
                        "top_k_per_source": row.top_k_per_source,
                        "custom_instructions": row.custom_instructions,
                    }
                )
                for row in rows
            ]
            return ScoringAuditCache(records=records, last_updated=records[0].scored_at)

    @_persistence_errors
    def save_scoring_audit_cache(self, cache: ScoringAuditCache) -> None:
        """Append records not yet stored; existing audits are never rewritten."""
        with get_session(self.engine) as session:
            run_id = self._ensure_pipeline_run(session).id
            existing = {
                (label, scored_at)
                for label, scored_at in session.execute(
                    select(ScoringAuditRow.label, ScoringAuditRow.scored_at).where(
                        ScoringAuditRow.account_id == self.account_id
                    )
                )
            }
            added = 0
            for record in cache.records:
                if (record.label, record.scored_at) in existing:
                    continue
                session.add(
                    ScoringAuditRow(
                        account_id=self.account_id,
                        pipeline_run_id=run_id,
                        label=record.label,
                        scored_at=record.scored_at,
                        top_k_per_source=record.top_k_per_source,
                        custom_instructions=record.custom_instructions,
                        payload={
                            "scored_items": to_jsonable(record.scored_items),
                            "selected_items": to_jsonable(record.selected_items),
                        },
                    )
                )
                existing.add((record.label, record.scored_at))
                added += 1
        logger.info("Saved %d new scoring audits to run %s", added, run_id)
