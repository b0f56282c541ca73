"""
Embedder functionality for the RAG pipeline.

This module provides text embedding capabilities using sentence-transformers
with support for batching and model loading.
"""

import logging

import anyio
import numpy as np
from sentence_transformers import SentenceTransformer

from ..core.config import Settings

logger = logging.getLogger(__name__)

# Process-wide model reference, loaded on first use
_model: SentenceTransformer | None = None
_settings: Settings | None = None


def load_model() -> SentenceTransformer:
    """
    Load the embedding model based on environment configuration.

    This function uses a global cache to store the model. For production use,
    it's recommended to call this function once at application startup
    to pre-load the model and avoid a delay on the first request.

    Returns:
        SentenceTransformer model instance
    """
    global _model, _settings

    if _model is None:
        if _settings is None:
            _settings = Settings()
        logger.info(f"Loading embedding model: {_settings.EMBEDDING_MODEL}")
        _model = SentenceTransformer(_settings.EMBEDDING_MODEL)

    return _model


def get_embedding_dimension() -> int:
    """Get the embedding dimension of the loaded model."""
    model = load_model()
    return model.get_sentence_embedding_dimension()


def embed_texts(texts: list[str], batch_size: int | None = None) -> np.ndarray:
    """
    Embed a list of texts with optional batching.

    Args:
        texts: List of text strings to embed
        batch_size: Optional batch size for processing

    Returns:
        NumPy array of embeddings with shape (len(texts), embedding_dim)
    """
    if not texts:
        return np.array([])

    model = load_model()

    if batch_size and len(texts) > batch_size:
        embeddings = []
        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            embeddings.append(model.encode(batch, convert_to_numpy=True))
            logger.debug(f"Embedded batch {i // batch_size + 1} ({len(batch)} texts)")
        result = np.vstack(embeddings)
    else:
        result = model.encode(texts, convert_to_numpy=True)

    if len(result.shape) == 1:
        result = result.reshape(1, -1)

    if np.isnan(result).any():
        raise ValueError("Embeddings contain NaN values")

    return result


class SentenceTransformerEmbedder:
    """Query embedding capability backed by the shared sentence-transformers model."""

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single query text.

        The model call is CPU bound, so it runs in a worker thread to keep the
        event loop free for other requests.

        Raises:
            ValueError: If the text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be null or empty")

        vectors = await anyio.to_thread.run_sync(embed_texts, [text])
        return vectors[0].tolist()
