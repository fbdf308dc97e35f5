"""Extraction result variants.

Every variant exposes `content`, `skip_reason`, `media_type` and
`media_url` so callers can treat them uniformly, while `isinstance`
checks stay exhaustive.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Extracted:
    """Page produced enough readable text."""
    content: str
    skip_reason: None = None
    media_type: None = None
    media_url: None = None


@dataclass(frozen=True)
class Skipped:
    """Page is not textual (media, gallery, binary) or had too little text."""
    skip_reason: str
    media_type: str
    media_url: str
    content: str = ""


@dataclass(frozen=True)
class Failed:
    """Fetching or parsing the page raised."""
    kind: str
    message: str
    content: str = ""
    skip_reason: str = "error"
    media_type: str = "error"
    media_url: None = None


ExtractionResult = Extracted | Skipped | Failed
