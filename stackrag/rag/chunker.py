"""
Chunking functionality for the RAG pipeline.

Documents are split into sentence-aligned passages of a bounded estimated
token size. Each new passage starts with a short overlap seed copied from the
tail of the previous one so that context is not lost at chunk borders.
"""

import logging

from ..core.errors import InvalidArgumentError
from ..core.text import CHARS_PER_TOKEN, estimate_tokens, split_sentences
from ..schemas.ingest import SourceDocument
from ..schemas.passage import Passage, make_passage_id

logger = logging.getLogger(__name__)


def validate_bounds(max_tokens: int, overlap_tokens: int) -> None:
    """Raise InvalidArgumentError unless 0 <= overlap_tokens < max_tokens."""
    if max_tokens <= 0:
        raise InvalidArgumentError("Chunk size must be greater than 0.")
    if overlap_tokens < 0 or overlap_tokens >= max_tokens:
        raise InvalidArgumentError("Chunk overlap must be >= 0 and less than the chunk size.")


def overlap_seed(text: str, overlap_tokens: int) -> str:
    """
    Return the trailing ``overlap_tokens`` worth of characters of ``text``.

    The seed is trimmed forward to the next word boundary when that boundary
    lies in the first half of the seed, so it does not start mid-word.

    Args:
        text: The text of the chunk that was just emitted
        overlap_tokens: Overlap budget in estimated tokens

    Returns:
        The seed text, or an empty string when no overlap is configured
    """
    if overlap_tokens <= 0 or not text:
        return ""

    estimated_chars = overlap_tokens * CHARS_PER_TOKEN
    if len(text) <= estimated_chars:
        return text

    seed = text[-estimated_chars:]

    first_space = seed.find(" ")
    if 0 < first_space < len(seed) // 2:
        seed = seed[first_space + 1 :]

    return seed.strip()


def chunk(document: SourceDocument, max_tokens: int = 500, overlap_tokens: int = 50) -> list[Passage]:
    """
    Split a source document into ordered, overlapping passages.

    Sentences are accumulated greedily until adding the next one would exceed
    ``max_tokens``; a single sentence longer than the budget is kept whole.

    Args:
        document: The source document to chunk
        max_tokens: Maximum estimated tokens per passage
        overlap_tokens: Estimated tokens copied from the previous passage

    Returns:
        Passages with contiguous ordinal indexes starting at 0

    Raises:
        InvalidArgumentError: If the size bounds are invalid
    """
    validate_bounds(max_tokens, overlap_tokens)

    if not document.is_chunkable():
        logger.warning(f"Document {document.id} is not chunkable (missing title, body or tags), skipping")
        return []

    sentences = split_sentences(document.full_text())
    if not sentences:
        logger.warning(f"No sentences found in document {document.id}")
        return []

    passages: list[Passage] = []
    current: list[str] = []
    current_tokens = 0

    def emit(parts: list[str]) -> str:
        text = " ".join(parts).strip()
        ordinal = len(passages)
        passages.append(
            Passage(
                passage_id=make_passage_id(document.id, ordinal),
                source_id=document.id,
                title=document.title,
                text=text,
                ordinal_index=ordinal,
            )
        )
        return text

    for sentence in sentences:
        sentence_tokens = estimate_tokens(sentence)

        if current and current_tokens + sentence_tokens > max_tokens:
            emitted = emit(current)

            seed = overlap_seed(emitted, overlap_tokens)
            if seed:
                current = [seed]
                current_tokens = estimate_tokens(seed)
            else:
                current = []
                current_tokens = 0

        current.append(sentence)
        current_tokens += sentence_tokens

    if current:
        emit(current)

    avg_tokens = sum(estimate_tokens(p.text) for p in passages) / len(passages)
    logger.debug(f"Chunked document {document.id} into {len(passages)} passages (avg {avg_tokens:.0f} tokens)")

    return passages


def chunk_many(documents: list[SourceDocument], max_tokens: int = 500, overlap_tokens: int = 50) -> list[Passage]:
    """Chunk a batch of documents, preserving document order."""
    validate_bounds(max_tokens, overlap_tokens)

    if not documents:
        logger.warning("No documents provided for chunking")
        return []

    passages: list[Passage] = []
    for document in documents:
        passages.extend(chunk(document, max_tokens, overlap_tokens))

    logger.info(
        f"Chunking completed: {len(documents)} documents -> {len(passages)} passages "
        f"(avg {len(passages) / len(documents):.1f} per document)"
    )
    return passages
