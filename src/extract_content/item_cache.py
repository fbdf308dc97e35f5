"""In-process URL -> extraction result cache for a single run.

Best effort only; the pipeline store remains the source of truth.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from common.datetime import utc_now
from extract_content.models import ExtractionResult

DEFAULT_TTL = timedelta(hours=24)


class ItemCache:
    def __init__(self, ttl: timedelta = DEFAULT_TTL):
        self.ttl = ttl
        self._entries: dict[str, tuple[datetime, ExtractionResult]] = {}
        self._lock = threading.Lock()

    def get(self, url: str, now: datetime | None = None) -> ExtractionResult | None:
        now = now or utc_now()
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None
            stored_at, result = entry
            if now - stored_at > self.ttl:
                del self._entries[url]
                return None
            return result

    def put(self, url: str, result: ExtractionResult, now: datetime | None = None) -> None:
        with self._lock:
            self._entries[url] = (now or utc_now(), result)

    def __len__(self) -> int:
        return len(self._entries)
