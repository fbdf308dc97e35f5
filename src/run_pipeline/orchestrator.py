"""Wire collaborators and drive the pipeline stages in order."""

from __future__ import annotations

import logging
from typing import Callable

from analyze_content.analyze_content import analyze_content
from analyze_content.openai_client import OpenAIAnalyzer
from classify_content.classify_content import classify_content
from common.config import Settings
from extract_content.content_extractor import ContentExtractor
from extract_content.extract_content import extract_content
from fetch_sources.feed_parser import FeedParser
from fetch_sources.fetch_sources import fetch_sources
from fetch_sources.google_search import GoogleSearchAdapter
from fetch_sources.sources import DbSourceConfigProvider, SourceConfigProvider, YamlSourceConfigProvider
from generate_reports.generate_reports import generate_reports
from generate_reports.report_client import OpenAIReportGenerator
from pipeline_store.base import (
    STEP_ANALYZE,
    STEP_CLASSIFY,
    STEP_EXTRACT,
    STEP_FETCH,
    STEP_RENDER,
    STEP_REPORTS,
)
from render_site.render_site import render_site
from run_pipeline.run_context import Collaborators, RunContext

logger = logging.getLogger(__name__)

STAGES: dict[int, tuple[str, Callable[[RunContext], object]]] = {
    STEP_FETCH: ("fetch sources", fetch_sources),
    STEP_EXTRACT: ("extract content", extract_content),
    STEP_CLASSIFY: ("classify content", classify_content),
    STEP_ANALYZE: ("analyze content", analyze_content),
    STEP_REPORTS: ("generate reports", generate_reports),
    STEP_RENDER: ("render site", render_site),
}


def build_collaborators(settings: Settings) -> Collaborators:
    analyzer = OpenAIAnalyzer(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
    )
    reporter = OpenAIReportGenerator(
        api_key=settings.openai_api_key,
        model=settings.report_model,
        base_url=settings.openai_base_url,
    )
    search = GoogleSearchAdapter(api_key=settings.google_search_api_key, cx=settings.google_search_cx)
    return Collaborators(
        feed_parser=FeedParser(),
        search=search.search,
        extract=ContentExtractor().extract,
        summarize=analyzer.summarize,
        analyze_sentiment=analyzer.analyze_sentiment,
        generate_report=reporter.generate_report,
    )


def build_source_provider(settings: Settings, backend: str | None = None) -> SourceConfigProvider:
    """Sources come from the database with the db store, from YAML otherwise."""
    if (backend or settings.pipeline_store) == "db":
        from rds_postgres.connection import get_engine

        return DbSourceConfigProvider(get_engine(settings.database_url))
    return YamlSourceConfigProvider(settings.sources_config_path)


def run_steps(ctx: RunContext, steps: list[int]) -> None:
    """Run the given steps in pipeline order.

    A stage that returns None wrote nothing, so its step is not marked
    completed. Exceptions propagate to the caller.
    """
    for step in sorted(set(steps)):
        name, stage = STAGES[step]
        logger.info("Step %d: %s", step, name)
        result = stage(ctx)
        if result is None:
            logger.warning("Step %d (%s) produced no output", step, name)
            continue
        ctx.store.mark_step_completed(step)
