"""Content hashing utilities for deduplication and cache keys."""

import hashlib


def sha256(text: str) -> str:
    """
    Generate SHA-256 hash of text content.

    Args:
        text: Text to hash

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    if not isinstance(text, str):
        raise TypeError("Input must be a string")

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def fingerprint(*parts: object, sep: str = "|") -> str:
    """
    Hash an ordered tuple of values into a single hex digest.

    Each part is rendered with ``str``; booleans are rendered lower-case.
    """
    rendered = [str(p).lower() if isinstance(p, bool) else str(p) for p in parts]
    return sha256(sep.join(rendered))
