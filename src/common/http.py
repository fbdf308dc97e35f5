"""HTTP fetch helpers shared by feed parsing, extraction and search."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from common.exceptions import TransportError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

FEED_TIMEOUT = 30
PAGE_TIMEOUT = 10


@dataclass
class FetchedResponse:
    """Raw bytes of a response plus the headers needed to decode it."""
    url: str
    content: bytes
    content_type: str


def fetch_bytes(url: str, timeout: float = FEED_TIMEOUT, accept: str | None = None) -> FetchedResponse:
    """Fetch a URL and return its undecoded body.

    Raises:
        TransportError: On connection errors, timeouts or non-2xx responses.
    """
    headers = {"User-Agent": BROWSER_USER_AGENT}
    if accept:
        headers["Accept"] = accept
    try:
        response = requests.get(url, timeout=timeout, headers=headers)
        response.raise_for_status()
    except requests.RequestException as e:
        raise TransportError(url, str(e)) from e

    return FetchedResponse(
        url=url,
        content=response.content,
        content_type=response.headers.get("Content-Type", ""),
    )


def get_json(url: str, params: dict, timeout: float = FEED_TIMEOUT) -> dict:
    """GET a JSON API endpoint.

    Raises:
        TransportError: On request failure or an undecodable body.
    """
    try:
        response = requests.get(
            url,
            params=params,
            timeout=timeout,
            headers={"User-Agent": BROWSER_USER_AGENT},
        )
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as e:
        raise TransportError(url, str(e)) from e
