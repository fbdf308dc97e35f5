"""Select the pipeline store backend once, at process start."""

from __future__ import annotations

import logging

from common.config import Settings
from common.exceptions import ConfigError
from pipeline_store.base import PipelineStore

logger = logging.getLogger(__name__)


def build_pipeline_store(
    settings: Settings,
    account_id: str,
    backend: str | None = None,
    pipeline_run_id: str | None = None,
) -> PipelineStore:
    """Build the store named by `backend` (defaults to PIPELINE_STORE)."""
    backend = (backend or settings.pipeline_store).lower()

    if backend == "file":
        from pipeline_store.file_store import FilePipelineStore

        logger.info("Using file pipeline store in %s", settings.cache_dir / account_id)
        return FilePipelineStore(
            cache_dir=settings.cache_dir,
            scoring_cache_path=settings.scoring_cache_path,
            account_id=account_id,
        )

    if backend == "db":
        from pipeline_store.db_store import DbPipelineStore

        logger.info("Using database pipeline store for account %s", account_id)
        return DbPipelineStore(
            account_id=account_id,
            database_url=settings.database_url,
            pipeline_run_id=pipeline_run_id,
        )

    raise ConfigError(f"Unknown pipeline store backend: {backend!r}")
