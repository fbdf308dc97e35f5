"""CLI for running the digest pipeline."""

from __future__ import annotations

import argparse
import logging
import sys

from common.cli_helpers import setup_logging
from common.config import STORE_BACKENDS, get_settings
from pipeline_store.base import STEP_ANALYZE, STEP_CLASSIFY, STEP_EXTRACT, STEP_FETCH, STEP_RENDER, STEP_REPORTS
from pipeline_store.factory import build_pipeline_store
from run_pipeline.orchestrator import build_collaborators, build_source_provider, run_steps
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

UPDATE_FEEDS_STEPS = [STEP_FETCH, STEP_EXTRACT, STEP_CLASSIFY, STEP_ANALYZE, STEP_REPORTS]
ALL_STEPS = UPDATE_FEEDS_STEPS + [STEP_RENDER]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="run-pipeline", description="Build the news digest for an account.")
    for step, help_text in (
        (STEP_FETCH, "Fetch RSS feeds and search sources"),
        (STEP_EXTRACT, "Extract page content"),
        (STEP_CLASSIFY, "Classify media types"),
        (STEP_ANALYZE, "Summarize and analyze sentiment"),
        (STEP_REPORTS, "Generate category reports"),
        (STEP_RENDER, "Render the digest"),
    ):
        parser.add_argument(f"--step{step}", action="store_true", help=help_text)
    parser.add_argument("--all", action="store_true", help="Run every step")
    parser.add_argument("--update-feeds", action="store_true", help="Run steps 1-5")
    parser.add_argument("--generate-static", action="store_true", help="Run step 6")
    parser.add_argument("--store", choices=STORE_BACKENDS, default=None, help="Pipeline store backend")
    parser.add_argument("--account-id", default=None, help="Account to run for")
    parser.add_argument("--run-id", default=None, help="Existing pipeline run to write into (db store)")
    parser.add_argument(
        "--init-db", action="store_true", help="Create missing database tables before running"
    )
    parser.add_argument(
        "--sync-sources", action="store_true", help="Copy YAML sources and prompts into the database"
    )
    return parser


def selected_steps(args: argparse.Namespace) -> list[int]:
    if args.all:
        return list(ALL_STEPS)
    steps = [step for step in ALL_STEPS if getattr(args, f"step{step}")]
    if args.update_feeds:
        steps.extend(UPDATE_FEEDS_STEPS)
    if args.generate_static:
        steps.append(STEP_RENDER)
    return sorted(set(steps))


def _sync_sources(settings, account_id: str) -> None:
    from fetch_sources.sources import YamlSourceConfigProvider, sync_sources_to_db
    from rds_postgres.connection import get_engine

    provider = YamlSourceConfigProvider(settings.sources_config_path)
    sync_sources_to_db(
        account_id,
        provider.get_sources(account_id),
        provider.get_category_prompts(account_id),
        engine=get_engine(settings.database_url),
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()

    steps = selected_steps(args)
    if not steps and not (args.init_db or args.sync_sources):
        parser.print_usage()
        return 0

    try:
        settings = get_settings()
        account_id = args.account_id or settings.default_account_id

        if args.init_db:
            from rds_postgres.connection import get_engine, init_schema

            init_schema(get_engine(settings.database_url))
            logger.info("Database schema ready")
        if args.sync_sources:
            _sync_sources(settings, account_id)
        if not steps:
            return 0

        store = build_pipeline_store(settings, account_id, backend=args.store, pipeline_run_id=args.run_id)
        with store:
            ctx = RunContext(
                account_id=account_id,
                store=store,
                settings=settings,
                sources=build_source_provider(settings, args.store),
                collaborators=build_collaborators(settings),
            )
            logger.info("Running steps %s for account %s", steps, account_id)
            run_steps(ctx, steps)
    except Exception:
        logger.exception("Pipeline failed")
        return 1

    logger.info("Pipeline finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
