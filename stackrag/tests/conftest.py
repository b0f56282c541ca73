from datetime import timedelta

import pytest

from stackrag.cache.service import CacheService, InMemoryBackend
from stackrag.schemas.ingest import SourceDocument
from stackrag.schemas.passage import Passage, make_passage_id


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedGenerator:
    """
    Text generator that yields a fixed list of increments.

    ``fail_after`` raises after that many increments; ``prompts`` records
    every prompt received.
    """

    def __init__(self, pieces: list[str], fail_after: int | None = None):
        self.pieces = pieces
        self.fail_after = fail_after
        self.prompts: list[str] = []
        self.yielded = 0
        self.closed = False

    async def stream_complete(self, prompt: str):
        self.prompts.append(prompt)
        try:
            for i, piece in enumerate(self.pieces):
                if self.fail_after is not None and i == self.fail_after:
                    raise ConnectionError("upstream model connection reset")
                self.yielded += 1
                yield piece
        finally:
            self.closed = True


@pytest.fixture
def make_passage():
    def _make(source_id: int = 1, ordinal: int = 0, text: str | None = None, title: str | None = None, score=0.0):
        return Passage(
            passage_id=make_passage_id(source_id, ordinal),
            source_id=source_id,
            title=title or f"Question {source_id}",
            text=text or f"Passage {ordinal} of source {source_id}.",
            ordinal_index=ordinal,
            score=score,
        )

    return _make


@pytest.fixture
def make_document():
    def _make(doc_id: int = 1, title: str = "How do I parse JSON in Python?", body: str = "", answer=None, tags=None):
        return SourceDocument(
            id=doc_id,
            title=title,
            body=body or "I have a JSON string. How do I turn it into a dict?",
            answer=answer,
            tags=["python"] if tags is None else tags,
        )

    return _make


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def memory_cache(fake_clock):
    return CacheService(InMemoryBackend(clock=fake_clock), enabled=True, default_ttl=timedelta(hours=24))


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator
