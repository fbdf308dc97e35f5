"""Search adapter over the Google Custom Search JSON API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from dateutil import parser as date_parser

from common.datetime import TZINFOS, utc_now
from common.exceptions import TransportError
from common.http import get_json
from common.models import RawItem

logger = logging.getLogger(__name__)

GOOGLE_ENDPOINT = "https://www.googleapis.com/customsearch/v1"


@dataclass
class SearchItem:
    title: str
    link: str
    display_link: str = ""
    snippet: str | None = None
    published_at: datetime | None = None

    def to_raw_item(self) -> RawItem:
        return RawItem(
            title=self.title,
            link=self.link,
            published_at=self.published_at or utc_now(),
            raw_content=self.snippet,
        )


def extract_published_at(item: dict) -> datetime | None:
    """Read the first publication timestamp found in a result's page metadata."""
    pagemap = item.get("pagemap") or {}
    meta = (pagemap.get("metatags") or [{}])[0]
    news = (pagemap.get("newsarticle") or [{}])[0]
    candidates = [
        meta.get("article:published_time"),
        meta.get("og:updated_time"),
        news.get("datepublished"),
        news.get("datemodified"),
    ]
    candidates = [c for c in candidates if c]
    if not candidates:
        return None
    try:
        return date_parser.parse(candidates[0], tzinfos=TZINFOS)
    except (ValueError, OverflowError):
        return None


class GoogleSearchAdapter:
    def __init__(self, api_key: str | None, cx: str | None, endpoint: str = GOOGLE_ENDPOINT):
        self.api_key = api_key
        self.cx = cx
        self.endpoint = endpoint

    def search(self, query: str, num: int = 10, date_restrict: str = "d1") -> list[SearchItem]:
        """Run a query; any failure, including missing credentials, yields []."""
        if not self.api_key or not self.cx:
            logger.warning("Google search credentials missing, skipping query %r", query)
            return []

        params = {
            "key": self.api_key,
            "cx": self.cx,
            "q": query,
            "num": min(max(int(num), 1), 10),
            "safe": "off",
            "dateRestrict": date_restrict or "d1",
        }
        logger.info("Searching Google for %r", query)
        try:
            data = get_json(self.endpoint, params=params)
        except TransportError as e:
            logger.warning("Google search failed for %r: %s", query, e)
            return []

        results = []
        for item in data.get("items") or []:
            link = item.get("link")
            if not link:
                continue
            published_at = extract_published_at(item)
            if published_at is not None and published_at.tzinfo is None:
                published_at = published_at.replace(tzinfo=timezone.utc)
            results.append(
                SearchItem(
                    title=item.get("title") or "",
                    link=link,
                    display_link=item.get("displayLink") or "",
                    snippet=item.get("snippet"),
                    published_at=published_at,
                )
            )
        logger.info("Google search returned %d items", len(results))
        return results
