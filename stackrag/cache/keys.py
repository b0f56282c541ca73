"""
Deterministic cache key derivation.

Keys are ``"{kind}:{sha256}"`` where the digest covers every semantically
relevant request parameter, so any change to one of them yields a new key.
"""

from ..core.hashing import fingerprint
from ..core.text import normalize

EMBEDDING_NAMESPACE = "emb"
RESPONSE_NAMESPACE = "resp"


def derive_key(kind: str, *params: object) -> str:
    """
    Build a cache key for the given namespace and parameter tuple.

    Args:
        kind: Key namespace, e.g. "emb" or "resp"
        *params: Ordered parameters that identify the cached value

    Returns:
        Key string of the form "{kind}:{hex digest}"
    """
    if not kind or ":" in kind:
        raise ValueError("Cache key kind must be a non-empty string without ':'")

    return f"{kind}:{fingerprint(kind, *params)}"


def embedding_key(query: str) -> str:
    """Key for a query embedding, keyed solely by the normalized query text."""
    return derive_key(EMBEDDING_NAMESPACE, normalize(query))


def response_key(query: str, top_k: int, use_hybrid: bool) -> str:
    """Key for a complete answer to ``query`` under the given retrieval settings."""
    return derive_key(RESPONSE_NAMESPACE, normalize(query), int(top_k), bool(use_hybrid))
