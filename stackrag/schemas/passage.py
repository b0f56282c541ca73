"""Data schemas for the retrieval pipeline."""

from typing import NamedTuple


def make_passage_id(source_id: int, ordinal_index: int) -> str:
    """Passage ids are derived from the owning source and the chunk position."""
    return f"{source_id}_{ordinal_index}"


class Passage(NamedTuple):
    """One overlap-aware chunk of a source document, the unit of retrieval."""

    passage_id: str
    source_id: int
    title: str
    text: str
    ordinal_index: int
    embedding: tuple[float, ...] | None = None
    score: float = 0.0  # Only meaningful on copies returned from search

    @property
    def text_preview(self) -> str:
        return self.text[:157] + "..." if len(self.text) > 160 else self.text

    def with_score(self, score: float) -> "Passage":
        return self._replace(score=float(score))


class RankedResult(NamedTuple):
    """A passage scored by a single search modality, before fusion."""

    passage: Passage
    score: float

    @property
    def passage_id(self) -> str:
        return self.passage.passage_id
