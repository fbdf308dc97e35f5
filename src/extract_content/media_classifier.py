"""URL-driven media type heuristics.

Used ahead of extraction as a fast path and again by the classify stage
for items that extraction did not already label.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

SHORT_TEXT_THRESHOLD = 200

NON_TEXT_EXTENSIONS = {
    "image": (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg", ".ico"),
    "document": (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx"),
    "audio": (".mp3", ".wav", ".ogg"),
    "video": (".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm"),
    "archive": (".zip", ".rar", ".tar", ".gz", ".7z"),
    "binary": (".exe", ".dmg", ".iso", ".apk", ".ipa"),
}

NON_TEXT_DOMAINS = {
    "youtube.com": "video",
    "youtu.be": "video",
    "vimeo.com": "video",
    "dailymotion.com": "video",
    "twitch.tv": "video",
    "tiktok.com": "video",
    "v.redd.it": "video",
    "spotify.com": "audio",
    "soundcloud.com": "audio",
    "flickr.com": "image",
    "imgur.com": "image",
    "instagram.com": "image",
    "pinterest.com": "image",
    "drive.google.com": "document",
    "docs.google.com": "document",
    "slides.google.com": "document",
    "sheets.google.com": "document",
    "dropbox.com": "document",
}

VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com")


@dataclass(frozen=True)
class MediaCheck:
    skip: bool
    media_type: str | None = None


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def media_type_for_domain(host: str) -> str | None:
    host = host.lower()
    for domain, media_type in NON_TEXT_DOMAINS.items():
        if _host_matches(host, domain):
            return media_type
    return None


def media_type_for_extension(path: str) -> str | None:
    path = path.lower()
    for media_type, extensions in NON_TEXT_EXTENSIONS.items():
        if path.endswith(extensions):
            return media_type
    return None


def is_non_text_content(url: str) -> MediaCheck:
    """Classify a URL without touching the network.

    Precedence: media-hosting domain, then file extension, then a `v=`
    parameter on a video host.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return MediaCheck(skip=False)

    host = (parsed.hostname or "").lower()
    media_type = media_type_for_domain(host)
    if media_type:
        return MediaCheck(skip=True, media_type=media_type)

    media_type = media_type_for_extension(parsed.path)
    if media_type:
        return MediaCheck(skip=True, media_type=media_type)

    if any(_host_matches(host, h) for h in VIDEO_HOSTS) and "v" in parse_qs(parsed.query):
        return MediaCheck(skip=True, media_type="video")

    return MediaCheck(skip=False)


def determine_media_type(url: str, content: str | None) -> str:
    """Resolve the media type of an item extraction left unlabeled.

    Returns a non-text family, `short-text` for thin pages, `text`
    otherwise, or `unknown` when the URL cannot be parsed.
    """
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError as e:
        logger.warning("Cannot parse URL %s: %s", url, e)
        return "unknown"

    check = is_non_text_content(url)
    if check.skip and check.media_type:
        return check.media_type
    if not host:
        return "unknown"
    if len(content or "") < SHORT_TEXT_THRESHOLD:
        return "short-text"
    return "text"
