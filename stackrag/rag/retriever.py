"""Hybrid retrieval combining vector search and keyword search."""

import json
import logging
import time
from datetime import timedelta
from typing import Protocol

from ..cache.keys import embedding_key
from ..cache.service import CacheService
from ..core.errors import EmbeddingError, InvalidArgumentError, RetrievalError
from ..core.text import normalize, truncate
from ..schemas.passage import Passage, RankedResult
from .index import PassageIndex

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def fuse(
    vector_results: list[RankedResult],
    keyword_results: list[RankedResult],
    vector_weight: float = 0.5,
    keyword_weight: float = 0.5,
    k: int = 10,
) -> list[Passage]:
    """
    Fuse vector and keyword results using a weighted sum of modality scores.

    A passage missing from one modality contributes 0 for that modality.
    Scores are not rescaled across modalities.

    Args:
        vector_results: Results from vector search, best first
        keyword_results: Results from keyword search
        vector_weight: Weight for vector scores
        keyword_weight: Weight for keyword scores
        k: Maximum number of results to return

    Returns:
        Scored passage copies sorted by combined score (highest first); ties
        keep vector rank order, keyword-only passages follow in match order
    """
    vector_map = {r.passage_id: (rank, r) for rank, r in enumerate(vector_results)}
    keyword_map = {r.passage_id: (rank, r) for rank, r in enumerate(keyword_results)}

    # Walk vector results first so passage order is deterministic
    ordered_ids = list(vector_map)
    ordered_ids += [pid for pid in keyword_map if pid not in vector_map]

    candidates = []
    for passage_id in ordered_ids:
        vector_entry = vector_map.get(passage_id)
        keyword_entry = keyword_map.get(passage_id)

        vector_score = vector_entry[1].score if vector_entry else 0.0
        keyword_score = keyword_entry[1].score if keyword_entry else 0.0
        combined_score = vector_weight * vector_score + keyword_weight * keyword_score

        passage = (vector_entry or keyword_entry)[1].passage
        vector_rank = vector_entry[0] if vector_entry else len(vector_results)
        keyword_rank = keyword_entry[0] if keyword_entry else len(keyword_results)

        candidates.append((combined_score, vector_rank, keyword_rank, passage))

    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    return [passage.with_score(score) for score, _, _, passage in candidates[:k]]


class HybridRetriever:
    """
    Query-to-passages search over the passage index.

    The query embedding is cache-checked; searches are never retried here.
    Retry policy, if any, belongs to the embedding model and the index.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: PassageIndex,
        cache: CacheService,
        vector_weight: float = 0.5,
        keyword_weight: float = 0.5,
        embedding_ttl: timedelta = timedelta(hours=24),
    ):
        self.embedder = embedder
        self.index = index
        self.cache = cache
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.embedding_ttl = embedding_ttl

    async def get_query_embedding(self, query: str) -> list[float]:
        """
        Return the embedding for ``query``, computing and caching it on a miss.

        Raises:
            EmbeddingError: If the embedding model fails
        """
        key = embedding_key(query)

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                vector = json.loads(cached)
                if isinstance(vector, list) and vector:
                    return [float(v) for v in vector]
            except (ValueError, TypeError):
                pass
            logger.warning(f"Ignoring malformed cached embedding under {key}")

        try:
            vector = await self.embedder.embed(normalize(query))
        except Exception as e:
            logger.error(f"Embedding failed for query '{truncate(query)}': {e}", exc_info=True)
            raise EmbeddingError() from e

        await self.cache.set(key, json.dumps(vector), self.embedding_ttl)
        return vector

    async def search(self, query: str, top_k: int, use_hybrid: bool = True) -> list[Passage]:
        """
        Search for the passages most relevant to ``query``.

        Args:
            query: The search query string
            top_k: Maximum number of passages to return
            use_hybrid: Fuse keyword matches into the vector ranking

        Returns:
            At most ``top_k`` scored passages, highest score first

        Raises:
            InvalidArgumentError: If the query is blank or top_k is not positive
            EmbeddingError: If the query cannot be embedded
            RetrievalError: If the index cannot be queried
        """
        if not query or not query.strip():
            raise InvalidArgumentError("Query cannot be null or empty.")
        if top_k <= 0:
            raise InvalidArgumentError("top_k must be greater than 0.")

        search_type = "hybrid" if use_hybrid else "vector"
        started = time.perf_counter()

        logger.info(f"Starting {search_type} search: query length={len(query)}, top_k={top_k}")

        query_vector = await self.get_query_embedding(query)

        try:
            if use_hybrid:
                # Over-fetch so fusion can promote passages ranked just below the cut
                candidate_k = top_k * 2
                vector_results = await self.index.vector_search(query_vector, candidate_k)
                # Vector candidates that also match must keep their keyword score
                keyword_results = await self.index.keyword_search(
                    normalize(query), candidate_k, include_ids=[r.passage_id for r in vector_results]
                )
                results = fuse(vector_results, keyword_results, self.vector_weight, self.keyword_weight, top_k)
            else:
                vector_results = await self.index.vector_search(query_vector, top_k)
                results = [r.passage.with_score(r.score) for r in vector_results[:top_k]]
        except Exception as e:
            logger.error(f"Error during {search_type} search for query '{truncate(query)}': {e}", exc_info=True)
            raise RetrievalError() from e

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{search_type.capitalize()} search completed: query='{truncate(query)}', "
            f"results={len(results)}, top_k={top_k}, duration={duration_ms:.0f}ms"
        )

        if not results:
            logger.warning(f"No results found for query: '{truncate(query)}'")
        else:
            logger.debug(f"Top result score: {results[0].score:.4f}, bottom result score: {results[-1].score:.4f}")

        return results
