"""
Tests for the chunker module.
"""

import pytest

from stackrag.core.errors import InvalidArgumentError
from stackrag.core.text import split_sentences
from stackrag.rag.chunker import chunk, chunk_many, overlap_seed, validate_bounds


def _long_body(n: int) -> str:
    return " ".join(f"Sentence number {i} talks about topic {i}." for i in range(n))


class TestValidateBounds:
    """Test cases for chunk size validation."""

    def test_valid_bounds(self):
        validate_bounds(500, 50)
        validate_bounds(10, 0)

    @pytest.mark.parametrize("max_tokens,overlap", [(0, 0), (-5, 0), (10, 10), (10, 20), (10, -1)])
    def test_invalid_bounds_raise(self, max_tokens, overlap):
        with pytest.raises(InvalidArgumentError):
            validate_bounds(max_tokens, overlap)

    def test_chunk_rejects_invalid_bounds(self, make_document):
        with pytest.raises(InvalidArgumentError):
            chunk(make_document(), max_tokens=50, overlap_tokens=50)


class TestOverlapSeed:
    """Test cases for the overlap_seed function."""

    def test_no_overlap_configured(self):
        assert overlap_seed("some emitted text", 0) == ""

    def test_text_shorter_than_overlap_is_kept_whole(self):
        assert overlap_seed("short text", 5) == "short text"

    def test_leading_space_is_trimmed(self):
        # Last 8 characters are " epsilon"
        assert overlap_seed("alpha beta gamma delta epsilon", 2) == "epsilon"

    def test_seed_skips_partial_leading_word(self):
        # Last 12 characters are "elta epsilon"; the space sits in the first half
        assert overlap_seed("alpha beta gamma delta epsilon", 3) == "epsilon"

    def test_space_in_second_half_keeps_partial_word(self):
        # Last 12 characters are "cdefghij klm"; the space sits past the first half
        assert overlap_seed("abcdefghij klm", 3) == "cdefghij klm"


class TestChunk:
    """Test cases for the chunk function."""

    def test_short_document_yields_single_passage(self, make_document):
        """A document that fits the budget becomes exactly one passage."""
        document = make_document(doc_id=42)

        passages = chunk(document, max_tokens=500, overlap_tokens=50)

        assert len(passages) == 1
        passage = passages[0]
        assert passage.passage_id == "42_0"
        assert passage.source_id == 42
        assert passage.ordinal_index == 0
        assert passage.title == "How do I parse JSON in Python?"
        assert passage.text == (
            "Title: How do I parse JSON in Python? Question: I have a JSON string. How do I turn it into a dict?"
        )
        assert passage.embedding is None

    def test_answer_is_included_when_present(self, make_document):
        document = make_document(answer="Use json.loads on the string.")

        passages = chunk(document)

        assert passages[0].text.endswith("Answer: Use json.loads on the string.")

    def test_non_chunkable_documents_yield_nothing(self, make_document):
        assert chunk(make_document(tags=[])) == []
        assert chunk(make_document(title="   ")) == []

    def test_long_single_sentence_is_never_split(self, make_document):
        body = "Question body " + "a" * 1000
        document = make_document(title="Long?", body=body)

        passages = chunk(document, max_tokens=10, overlap_tokens=0)

        assert len(passages) == 2
        assert passages[0].text == "Title: Long?"
        assert passages[1].text == f"Question: {body}"

    def test_ordinals_and_ids_are_contiguous(self, make_document):
        document = make_document(doc_id=9, body=_long_body(40))

        passages = chunk(document, max_tokens=40, overlap_tokens=5)

        assert len(passages) > 3
        for i, passage in enumerate(passages):
            assert passage.ordinal_index == i
            assert passage.passage_id == f"9_{i}"
            assert passage.text.strip() == passage.text
            assert passage.text

    def test_each_passage_starts_with_seed_of_previous(self, make_document):
        """Overlap invariant: consecutive passages share the seed text."""
        document = make_document(body=_long_body(40))

        passages = chunk(document, max_tokens=40, overlap_tokens=5)

        for prev, curr in zip(passages, passages[1:]):
            seed = overlap_seed(prev.text, 5)
            assert seed
            assert prev.text.endswith(seed)
            assert curr.text.startswith(seed)

    def test_sentences_appear_in_order(self, make_document):
        """Ordering invariant: sentence order is preserved across passages."""
        document = make_document(body=_long_body(40))
        sentences = split_sentences(document.full_text())

        passages = chunk(document, max_tokens=40, overlap_tokens=5)

        first_seen = []
        for sentence in sentences:
            hits = [i for i, p in enumerate(passages) if sentence in p.text]
            assert hits, f"sentence lost: {sentence}"
            first_seen.append(hits[0])
        assert first_seen == sorted(first_seen)

    def test_zero_overlap_has_no_shared_text(self, make_document):
        document = make_document(body=_long_body(20))

        passages = chunk(document, max_tokens=30, overlap_tokens=0)

        joined = " ".join(p.text for p in passages)
        assert joined == " ".join(split_sentences(document.full_text()))


class TestChunkMany:
    """Test cases for batch chunking."""

    def test_empty_batch(self):
        assert chunk_many([]) == []

    def test_preserves_document_order(self, make_document):
        documents = [make_document(doc_id=3), make_document(doc_id=1, tags=[]), make_document(doc_id=2)]

        passages = chunk_many(documents)

        assert [p.source_id for p in passages] == [3, 2]
