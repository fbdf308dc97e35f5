"""Hashing utilities."""

import hashlib


def generate_item_id(source_id: int | str, url: str) -> str:
    """Generate a stable item ID from the feed it came from and its URL."""
    return hashlib.sha256(f"{source_id}:{url}".encode()).hexdigest()[:16]
