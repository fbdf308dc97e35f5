"""Source configuration providers.

The fetch and report stages never look sources up themselves; they are
handed a SourceConfigProvider when the run context is built.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Protocol

from sqlalchemy import Engine, select

from common.config import load_yaml
from common.exceptions import ConfigError
from common.models import SourceConfig, SourceType
from rds_postgres.connection import get_session
from rds_postgres.models import Account, CategoryPromptRow, SourceConfigRow

logger = logging.getLogger(__name__)

_TYPE_ALIASES = {
    "rss": SourceType.RSS,
    "search": SourceType.SEARCH,
    "google": SourceType.SEARCH,
    "google-search": SourceType.SEARCH,
}


class SourceConfigProvider(Protocol):
    def get_sources(self, account_id: str) -> list[SourceConfig]: ...

    def get_category_prompts(self, account_id: str) -> dict[str, str]: ...


def source_from_dict(data: dict, default_id: str) -> SourceConfig:
    type_name = str(data.get("type", "rss")).lower()
    if type_name not in _TYPE_ALIASES:
        raise ConfigError(f"Unknown source type {type_name!r} for {data.get('name')!r}")
    return SourceConfig(
        id=str(data.get("id", default_id)),
        type=_TYPE_ALIASES[type_name],
        name=data.get("name") or data.get("url") or data.get("query") or default_id,
        url=data.get("url"),
        query=data.get("query"),
        categories=list(data.get("categories") or []),
        language=data.get("language"),
        is_active=data.get("is_active", True),
        num=data.get("num", 10),
        date_restrict=data.get("date_restrict", "d1"),
    )


class YamlSourceConfigProvider:
    """Sources and category prompts from a YAML file.

    The file holds a `sources:` list and a `category_prompts:` mapping;
    either may be nested under an `accounts: {<account_id>: ...}` block.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._data: dict | None = None

    def _section(self, account_id: str) -> dict:
        if self._data is None:
            if not self.path.exists():
                raise ConfigError(f"Sources config not found: {self.path}")
            self._data = load_yaml(self.path)
        accounts = self._data.get("accounts") or {}
        return accounts.get(account_id) or self._data

    def get_sources(self, account_id: str) -> list[SourceConfig]:
        entries = self._section(account_id).get("sources") or []
        sources = [source_from_dict(entry, default_id=str(i)) for i, entry in enumerate(entries)]
        return [source for source in sources if source.is_active]

    def get_category_prompts(self, account_id: str) -> dict[str, str]:
        prompts = self._section(account_id).get("category_prompts") or {}
        return {str(k).lower(): str(v) for k, v in prompts.items()}


class DbSourceConfigProvider:
    """Sources and category prompts from the `source_configs` table."""

    def __init__(self, engine: Engine | None = None):
        self.engine = engine

    def get_sources(self, account_id: str) -> list[SourceConfig]:
        with get_session(self.engine) as session:
            rows = session.scalars(
                select(SourceConfigRow)
                .where(SourceConfigRow.account_id == account_id, SourceConfigRow.is_active.is_(True))
                .order_by(SourceConfigRow.created_at, SourceConfigRow.id)
            ).all()
            return [
                SourceConfig(
                    id=row.id,
                    type=row.type,
                    name=row.name,
                    url=row.url,
                    query=row.query,
                    categories=list(row.categories or []),
                    language=row.language,
                    is_active=row.is_active,
                    num=row.num,
                    date_restrict=row.date_restrict,
                )
                for row in rows
            ]

    def get_category_prompts(self, account_id: str) -> dict[str, str]:
        with get_session(self.engine) as session:
            rows = session.scalars(select(CategoryPromptRow).where(CategoryPromptRow.account_id == account_id)).all()
            return {row.category.lower(): row.instructions for row in rows}


def sync_sources_to_db(
    account_id: str,
    sources: list[SourceConfig],
    category_prompts: dict[str, str] | None = None,
    engine: Engine | None = None,
) -> int:
    """Upsert configured sources for an account, matched on (type, url, query)."""
    with get_session(engine) as session:
        if session.get(Account, account_id) is None:
            session.add(Account(id=account_id, name=account_id))
            session.flush()

        existing = {
            (row.type, row.url, row.query): row
            for row in session.scalars(select(SourceConfigRow).where(SourceConfigRow.account_id == account_id))
        }
        for source in sources:
            key = (source.type.value, source.url, source.query)
            row = existing.get(key)
            if row is None:
                row = SourceConfigRow(id=str(uuid.uuid4()), account_id=account_id, type=source.type.value)
                session.add(row)
            row.url = source.url
            row.query = source.query
            row.name = source.name
            row.categories = list(source.categories)
            row.language = source.language
            row.is_active = source.is_active
            row.num = source.num
            row.date_restrict = source.date_restrict

        for category, instructions in (category_prompts or {}).items():
            prompt = session.scalars(
                select(CategoryPromptRow).where(
                    CategoryPromptRow.account_id == account_id,
                    CategoryPromptRow.category == category,
                )
            ).first()
            if prompt is None:
                session.add(CategoryPromptRow(account_id=account_id, category=category, instructions=instructions))
            else:
                prompt.instructions = instructions

    logger.info("Synced %d sources for account %s", len(sources), account_id)
    return len(sources)
