"""Multi-strategy RSS/Atom feed parser.

Strategies run in order, each only when the previous produced no usable
items:

1. Decode the body with the detected charset and hand it to feedparser.
2. Parse the body as tag soup with lxml and read <item>/<entry> elements.
3. Treat the body as an HTML page, follow its RSS <link> once.

Parsing never raises; total failure yields an empty result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urljoin

import feedparser
from lxml import etree
from lxml import html as lxml_html

from common.datetime import parse_date, utc_now
from common.encoding import decode_body
from common.exceptions import FeedParseError, TransportError
from common.http import FEED_TIMEOUT, FetchedResponse, fetch_bytes
from common.models import FeedMetadata, RawItem

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8"


@dataclass
class FeedParseResult:
    items: list[RawItem] = field(default_factory=list)
    metadata: FeedMetadata = field(default_factory=FeedMetadata)


def _local_name(element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def _children(element, name: str) -> list:
    return [child for child in element if _local_name(child) == name]


def _child_text(element, *names: str) -> str:
    for name in names:
        for child in _children(element, name):
            text = "".join(child.itertext()).strip()
            if text:
                return text
    return ""


def _atom_link(entry) -> str:
    links = _children(entry, "link")
    for link in links:
        if link.get("href") and link.get("rel", "alternate") == "alternate":
            return link.get("href").strip()
    for link in links:
        if link.get("href"):
            return link.get("href").strip()
    for link in links:
        text = "".join(link.itertext()).strip()
        if text:
            return text
    return ""


class FeedParser:
    """Turns a source URL into normalized items plus feed metadata."""

    def __init__(self, fetch: Callable[..., FetchedResponse] | None = None, timeout: float = FEED_TIMEOUT):
        self._fetch = fetch or fetch_bytes
        self.timeout = timeout

    def parse(self, url: str, display_name: str) -> list[RawItem]:
        return self.parse_with_metadata(url, display_name).items

    def parse_with_metadata(self, url: str, display_name: str) -> FeedParseResult:
        try:
            result = self._parse_chain(url, display_name, allow_discovery=True)
        except Exception as e:
            logger.error("Failed to parse feed %s (%s): %s", display_name, url, e)
            result = FeedParseResult()
        result.metadata.name = result.metadata.name or display_name
        return result

    def _parse_chain(self, url: str, display_name: str, allow_discovery: bool) -> FeedParseResult:
        """Structured parse, then tag-soup parse, then one discovery hop.

        A discovered feed URL goes through both parsers again, but is never
        used for a further discovery.
        """
        for strategy in (self._parse_structured, self._parse_tag_soup):
            try:
                result = strategy(url)
            except (TransportError, FeedParseError, etree.LxmlError, ValueError) as e:
                logger.warning("%s failed for %s: %s", strategy.__name__.lstrip("_"), display_name, e)
                continue
            if result.items:
                logger.info("Parsed %d items from %s", len(result.items), display_name)
                return result

        if allow_discovery:
            try:
                feed_url = self._discover_feed_url(url)
            except (TransportError, etree.LxmlError, ValueError) as e:
                logger.warning("Feed discovery failed for %s: %s", display_name, e)
                return FeedParseResult()
            if feed_url and feed_url != url:
                logger.info("Found feed link for %s: %s", display_name, feed_url)
                return self._parse_chain(feed_url, display_name, allow_discovery=False)

        logger.warning("No items found for %s (%s)", display_name, url)
        return FeedParseResult()

    def _get(self, url: str) -> FetchedResponse:
        return self._fetch(url, timeout=self.timeout, accept=FEED_ACCEPT)

    def _parse_structured(self, url: str) -> FeedParseResult:
        response = self._get(url)
        text = decode_body(response.content, response.content_type)
        if not text.lstrip("\ufeff \t\r\n").startswith("<"):
            raise FeedParseError("response body is not markup")
        parsed = feedparser.parse(text)
        if not parsed.entries:
            raise FeedParseError(f"feedparser found no entries ({parsed.get('bozo_exception', 'empty feed')})")

        items = []
        for entry in parsed.entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue
            published = entry.get("published") or entry.get("updated")
            content = ""
            if entry.get("content"):
                content = entry.content[0].get("value", "")
            content = content or entry.get("summary") or entry.get("description") or ""
            items.append(
                RawItem(
                    title=(entry.get("title") or "").strip(),
                    link=link,
                    published_at=parse_date(published) if published else None,
                    raw_content=content or None,
                    comments_url=entry.get("comments") or None,
                )
            )

        feed = parsed.feed
        image = feed.get("image") or {}
        metadata = FeedMetadata(
            title=feed.get("title") or None,
            description=feed.get("subtitle") or feed.get("description") or None,
            site_url=feed.get("link") or None,
            icon_url=image.get("href") or image.get("url") or feed.get("icon") or None,
            language=feed.get("language") or None,
            last_build_date=feed.get("updated") or None,
        )
        return FeedParseResult(items=items, metadata=metadata)

    def _parse_tag_soup(self, url: str) -> FeedParseResult:
        response = self._get(url)
        parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
        root = etree.fromstring(response.content, parser)
        if root is None:
            raise FeedParseError("document has no root element")

        items = []
        now = utc_now()
        elements = [el for el in root.iter() if _local_name(el) == "item"]
        for el in elements:
            date_text = _child_text(el, "pubDate", "published", "updated")
            items.append(
                RawItem(
                    title=_child_text(el, "title"),
                    link=_child_text(el, "link"),
                    published_at=parse_date(date_text) if date_text else now,
                    raw_content=_child_text(el, "description", "encoded") or None,
                    comments_url=_child_text(el, "comments") or None,
                )
            )

        if not items:
            for el in (el for el in root.iter() if _local_name(el) == "entry"):
                date_text = _child_text(el, "published", "updated")
                items.append(
                    RawItem(
                        title=_child_text(el, "title"),
                        link=_atom_link(el),
                        published_at=parse_date(date_text) if date_text else now,
                        raw_content=_child_text(el, "content", "summary") or None,
                    )
                )

        items = [item for item in items if item.link]
        return FeedParseResult(items=items, metadata=self._tag_soup_metadata(root))

    def _tag_soup_metadata(self, root) -> FeedMetadata:
        channel = root
        if _local_name(root) == "rss":
            channel = next(iter(_children(root, "channel")), root)
        elif _local_name(root) == "RDF":
            channel = next(iter(_children(root, "channel")), root)

        site_url = ""
        for link in _children(channel, "link"):
            if link.get("rel", "alternate") == "alternate" and link.get("href"):
                site_url = link.get("href")
                break
            text = "".join(link.itertext()).strip()
            if text:
                site_url = text
                break

        icon_url = _child_text(channel, "icon", "logo")
        if not icon_url:
            for image in _children(channel, "image"):
                icon_url = _child_text(image, "url")
                if icon_url:
                    break

        return FeedMetadata(
            title=_child_text(channel, "title") or None,
            description=_child_text(channel, "description", "subtitle") or None,
            site_url=site_url or None,
            icon_url=icon_url or None,
            language=_child_text(channel, "language") or None,
            last_build_date=_child_text(channel, "lastBuildDate", "updated") or None,
        )

    def _discover_feed_url(self, url: str) -> str | None:
        response = self._fetch(url, timeout=self.timeout)
        text = decode_body(response.content, response.content_type)
        if not text.strip():
            return None
        document = lxml_html.fromstring(text.encode("utf-8"), parser=lxml_html.HTMLParser(encoding="utf-8"))
        hrefs = document.xpath('//link[@type="application/rss+xml"]/@href')
        if not hrefs:
            return None
        return urljoin(url, hrefs[0].strip())

