"""Fetch a page and decide whether it holds readable article text."""

from __future__ import annotations

import logging
import re
from typing import Callable
from urllib.parse import urljoin, urlparse, urlunparse

from lxml import html as lxml_html

from common.encoding import decode_body
from common.exceptions import TransportError
from common.http import PAGE_TIMEOUT, FetchedResponse, fetch_bytes
from extract_content.media_classifier import is_non_text_content
from extract_content.models import Extracted, ExtractionResult, Failed, Skipped

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 50

VIDEO_EMBED_TEXT_LIMIT = 1000
EMBED_BASE_TEXT_LIMIT = 500
EMBED_TEXT_PER_ELEMENT = 200
GALLERY_IMAGE_COUNT = 5
GALLERY_TEXT_LIMIT = 1000
AUDIO_TEXT_LIMIT = 800

INVISIBLE_TAGS = ("script", "style", "noscript")
NON_CONTENT_TAGS = ("iframe", "header", "footer", "nav", "aside")


def _class_selector(name: str) -> str:
    return f"//*[contains(concat(' ', normalize-space(@class), ' '), ' {name} ')]"


CONTENT_SELECTORS = (
    "//article",
    "//*[@role='main']",
    _class_selector("post-content"),
    _class_selector("article-content"),
    _class_selector("entry-content"),
    _class_selector("content"),
    "//main",
)

_VIDEO_EMBED = re.compile(r"(youtube\.com|youtube-nocookie\.com|youtu\.be|vimeo\.com)", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[\W_]+", re.UNICODE)

_BINARY_MIME_PREFIXES = {
    "image/": "image",
    "video/": "video",
    "audio/": "audio",
}
_BINARY_MIME_MARKERS = {
    "pdf": "document",
    "zip": "archive",
    "rar": "archive",
}


def rewrite_url(url: str) -> str:
    """Point reddit links at the server-rendered old.reddit.com mirror."""
    parsed = urlparse(url)
    if parsed.hostname in ("reddit.com", "www.reddit.com"):
        return urlunparse(parsed._replace(netloc="old.reddit.com"))
    return url


def media_type_for_mime(content_type: str) -> str | None:
    mime = content_type.split(";")[0].strip().lower()
    for prefix, media_type in _BINARY_MIME_PREFIXES.items():
        if mime.startswith(prefix):
            return media_type
    for marker, media_type in _BINARY_MIME_MARKERS.items():
        if marker in mime:
            return media_type
    return None


def _normalize_text(text: str) -> str:
    lines = [" ".join(line.split()) for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _first_src(elements, base_url: str) -> str | None:
    for el in elements:
        src = el.get("src") or el.get("data-src")
        if src:
            return urljoin(base_url, src.strip())
    return None


class ContentExtractor:
    """Turns a URL into page text or a non-text classification.

    `extract` never raises: fetch and parse errors come back as `Failed`.
    """

    def __init__(self, fetch: Callable[..., FetchedResponse] | None = None, timeout: float = PAGE_TIMEOUT):
        self._fetch = fetch or fetch_bytes
        self.timeout = timeout

    def extract(self, url: str) -> ExtractionResult:
        check = is_non_text_content(url)
        if check.skip:
            return Skipped(skip_reason="non-text url", media_type=check.media_type, media_url=url)

        fetch_url = rewrite_url(url)
        try:
            response = self._fetch(fetch_url, timeout=self.timeout)
        except TransportError as e:
            logger.warning("Failed to fetch %s: %s", fetch_url, e)
            return Failed(kind="transport", message=str(e))

        try:
            return self._extract_from_response(url, response)
        except Exception as e:
            logger.warning("Failed to extract content from %s: %s", url, e)
            return Failed(kind="parse", message=str(e))

    def _extract_from_response(self, url: str, response: FetchedResponse) -> ExtractionResult:
        media_type = media_type_for_mime(response.content_type)
        if media_type:
            return Skipped(skip_reason=f"binary content type {response.content_type}", media_type=media_type, media_url=url)

        text = decode_body(response.content, response.content_type)
        if not text.strip():
            return Skipped(skip_reason="empty response", media_type="unknown", media_url=url)
        document = lxml_html.document_fromstring(text.encode("utf-8"), parser=lxml_html.HTMLParser(encoding="utf-8"))

        for el in document.xpath("|".join(f"//{tag}" for tag in INVISIBLE_TAGS)):
            el.drop_tree()

        body = document.body if document.find("body") is not None else document
        visible_length = len(_normalize_text(body.text_content()))

        skipped = self._check_media_density(document, url, visible_length)
        if skipped is not None:
            return skipped

        for el in document.xpath("|".join(f"//{tag}" for tag in NON_CONTENT_TAGS)):
            el.drop_tree()

        content = ""
        for selector in CONTENT_SELECTORS:
            for container in document.xpath(selector):
                content = _normalize_text(container.text_content())
                if content:
                    break
            if content:
                break
        if not content:
            content = _normalize_text(body.text_content())

        if len(content) < MIN_CONTENT_LENGTH or len(_NON_ALNUM.sub("", content)) < MIN_CONTENT_LENGTH:
            return Skipped(skip_reason="insufficient content", media_type="unknown", media_url=url)
        return Extracted(content=content)

    def _check_media_density(self, document, url: str, text_length: int) -> Skipped | None:
        """Skip pages dominated by embeds, galleries or audio players.

        Structural signals only count when the page has little text.
        """
        iframes = document.xpath("//iframe")
        videos = document.xpath("//video")

        video_embeds = [el for el in iframes if _VIDEO_EMBED.search(el.get("src") or "")]
        if video_embeds and text_length < VIDEO_EMBED_TEXT_LIMIT:
            return Skipped(
                skip_reason="video embed",
                media_type="video",
                media_url=_first_src(video_embeds, url) or url,
            )

        if iframes or videos:
            threshold = max(EMBED_BASE_TEXT_LIMIT, (len(iframes) + len(videos)) * EMBED_TEXT_PER_ELEMENT)
            if text_length < threshold:
                sources = videos + document.xpath("//video/source") + iframes
                return Skipped(
                    skip_reason="embedded media",
                    media_type="video",
                    media_url=_first_src(sources, url) or url,
                )

        images = document.xpath("//img")
        if len(images) > GALLERY_IMAGE_COUNT and text_length < GALLERY_TEXT_LIMIT:
            return Skipped(
                skip_reason="image gallery",
                media_type="image",
                media_url=_first_src(images, url) or url,
            )

        audios = document.xpath("//audio")
        if audios and text_length < AUDIO_TEXT_LIMIT:
            sources = audios + document.xpath("//audio/source")
            return Skipped(
                skip_reason="audio embed",
                media_type="audio",
                media_url=_first_src(sources, url) or url,
            )

        return None
