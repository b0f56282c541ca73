"""Text processing utilities: normalization, sentence splitting and token estimates."""

import math
import re
import unicodedata

# ~4 characters per token for English text with OpenAI tokenizers
CHARS_PER_TOKEN = 4

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def normalize(text: str) -> str:
    """
    Normalize text by collapsing whitespace and normalizing unicode quotes.

    Args:
        text: Raw text to normalize

    Returns:
        Normalized text string
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFKC", text)

    quote_map = {
        "\u2018": "'",  # Left single quotation mark
        "\u2019": "'",  # Right single quotation mark
        "\u201c": '"',  # Left double quotation mark
        "\u201d": '"',  # Right double quotation mark
        "\u2013": "-",  # En dash
        "\u2014": "-",  # Em dash
    }

    for unicode_char, ascii_char in quote_map.items():
        text = text.replace(unicode_char, ascii_char)

    # Collapse runs of whitespace into single spaces
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def split_sentences(text: str) -> list[str]:
    """
    Split text on sentence-ending punctuation followed by whitespace.

    The punctuation stays with its sentence; only the separating whitespace
    is dropped. Blank fragments are filtered out.
    """
    if not text or not text.strip():
        return []

    return [s for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def estimate_tokens(text: str) -> int:
    """Estimated token count of ``text``, rounded up (0 for blank text)."""
    if not text or not text.strip():
        return 0

    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate(text: str, limit: int = 100) -> str:
    """Trim text for log lines."""
    if text is None:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."
