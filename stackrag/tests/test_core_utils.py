"""
Tests for core utility functions (config, hashing, text, costs, errors).
"""

import pytest
from pydantic import ValidationError

from stackrag.core.config import Settings
from stackrag.core.costs import estimate_llm_cost
from stackrag.core.errors import (
    CapabilityUnavailableError,
    CollaboratorError,
    EmbeddingError,
    GenerationError,
    InvalidArgumentError,
    RetrievalError,
)
from stackrag.core.hashing import fingerprint, sha256
from stackrag.core.text import estimate_tokens, normalize, split_sentences, truncate


class TestHashing:
    """Test cases for hashing utilities."""

    def test_sha256_basic(self):
        """Test basic SHA256 hashing."""
        result = sha256("hello world")
        assert len(result) == 64
        assert result == "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"

    def test_sha256_unicode(self):
        assert len(sha256("café 🚀")) == 64

    def test_sha256_rejects_non_string(self):
        with pytest.raises(TypeError, match="Input must be a string"):
            sha256(b"bytes")

    def test_fingerprint_renders_booleans_lower_case(self):
        assert fingerprint("q", 5, True) == sha256("q|5|true")
        assert fingerprint("q", 5, False) == sha256("q|5|false")

    def test_fingerprint_is_order_sensitive(self):
        assert fingerprint("a", "b") != fingerprint("b", "a")


class TestText:
    """Test cases for text helpers."""

    def test_normalize_collapses_whitespace(self):
        assert normalize("  What is\n\nmachine\tlearning?  ") == "What is machine learning?"

    def test_normalize_quotes(self):
        assert normalize("“quoted” ‘text’") == "\"quoted\" 'text'"

    def test_normalize_empty(self):
        assert normalize("") == ""
        assert normalize(None) == ""

    def test_split_sentences_keeps_punctuation(self):
        assert split_sentences("First one. Second one! Third one? Tail") == [
            "First one.",
            "Second one!",
            "Third one?",
            "Tail",
        ]

    def test_split_sentences_needs_whitespace(self):
        assert split_sentences("Use json.loads here.") == ["Use json.loads here."]

    def test_split_sentences_blank(self):
        assert split_sentences("   ") == []

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("") == 0
        assert estimate_tokens("   ") == 0

    def test_truncate(self):
        assert truncate("short") == "short"
        assert truncate("x" * 120) == "x" * 100 + "..."


class TestCosts:
    def test_estimate_llm_cost(self):
        assert estimate_llm_cost(1_000_000, 0) == pytest.approx(0.15)
        assert estimate_llm_cost(0, 1_000_000) == pytest.approx(0.60)
        assert estimate_llm_cost(1000, 500) == pytest.approx(0.00045)


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_invalid_argument_is_value_error(self):
        assert issubclass(InvalidArgumentError, ValueError)

    @pytest.mark.parametrize(
        "error_cls,stage",
        [(EmbeddingError, "embedding"), (RetrievalError, "retrieval"), (GenerationError, "generation")],
    )
    def test_collaborator_errors_name_their_stage(self, error_cls, stage):
        error = error_cls()
        assert isinstance(error, CollaboratorError)
        assert error.stage == stage
        assert str(error) == f"The {stage} stage failed."

    def test_capability_unavailable(self):
        error = CapabilityUnavailableError("generation")
        assert error.capability == "generation"
        assert "generation" in str(error)


class TestSettings:
    """Test cases for configuration validation."""

    def test_defaults(self):
        settings = Settings(OPENAI_API_KEY=None)
        assert settings.RETRIEVAL_K == 5
        assert settings.MAX_RETRIEVAL_K == 20
        assert settings.VECTOR_WEIGHT == 0.5
        assert settings.KEYWORD_WEIGHT == 0.5
        assert settings.CHUNK_MAX_TOKENS == 500
        assert settings.CHUNK_OVERLAP_TOKENS == 50
        assert settings.LLM_MODEL == "gpt-4o-mini"

    def test_cache_ttl_seconds(self):
        assert Settings(CACHE_TTL_HOURS=2).cache_ttl_seconds == 7200

    def test_overlap_must_be_smaller_than_chunk(self):
        with pytest.raises(ValidationError):
            Settings(CHUNK_MAX_TOKENS=100, CHUNK_OVERLAP_TOKENS=100)

    def test_ttl_range(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_TTL_HOURS=0)
        with pytest.raises(ValidationError):
            Settings(CACHE_TTL_HOURS=169)

    def test_unknown_cache_backend(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_BACKEND="memcached")
