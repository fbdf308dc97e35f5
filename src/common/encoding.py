"""Character encoding detection for fetched feed and page bodies."""

from __future__ import annotations

import codecs
import logging
import re

logger = logging.getLogger(__name__)

ENCODING_MAP = {
    "utf-8": "utf-8",
    "utf8": "utf-8",
    "latin1": "latin-1",
    "iso-8859-1": "latin-1",
    "iso8859-1": "latin-1",
    "iso_8859-1": "latin-1",
    "windows-1252": "latin-1",
    "windows1252": "latin-1",
    "cp1252": "latin-1",
    "ascii": "ascii",
    "us-ascii": "ascii",
    "ucs2": "utf-16-le",
    "ucs-2": "utf-16-le",
    "utf16le": "utf-16-le",
    "utf-16le": "utf-16-le",
}

_XML_DECLARATION_ENCODING = re.compile(rb"<\?xml[^>]*encoding=[\"']([^\"']+)[\"'][^>]*\?>", re.IGNORECASE)
_CHARSET = re.compile(r"charset=([^;]+)", re.IGNORECASE)


def detect_encoding(content: bytes, content_type: str) -> str:
    """Pick a codec: XML declaration, then Content-Type charset, then UTF-8."""
    match = _XML_DECLARATION_ENCODING.search(content[:200])
    if match:
        declared = match.group(1).decode("ascii", errors="ignore").strip().lower()
        if declared in ENCODING_MAP:
            return ENCODING_MAP[declared]
        try:
            return codecs.lookup(declared).name
        except LookupError:
            logger.info("Unknown XML encoding %s, falling back to UTF-8", declared)
            return "utf-8"

    match = _CHARSET.search(content_type or "")
    if match:
        charset = match.group(1).strip().strip("\"'").lower()
        if charset in ENCODING_MAP:
            return ENCODING_MAP[charset]
        logger.info("Unsupported charset %s, falling back to UTF-8", charset)
    return "utf-8"


def decode_body(content: bytes, content_type: str) -> str:
    """Decode with the detected codec, falling back to lenient UTF-8."""
    encoding = detect_encoding(content, content_type)
    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        logger.warning("Decoding as %s failed (%s), falling back to UTF-8", encoding, e)
        return content.decode("utf-8", errors="replace")
