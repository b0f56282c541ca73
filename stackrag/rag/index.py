"""Passage index backed by PostgreSQL: pgvector similarity and full-text matching."""

import logging
from collections.abc import Sequence

from tortoise.connection import connections
from tortoise.transactions import in_transaction

from ..models import Embedding, PassageRecord
from ..schemas.passage import Passage, RankedResult

logger = logging.getLogger(__name__)

# Keyword matches carry no graded relevance, every match weighs the same
KEYWORD_MATCH_SCORE = 1.0


def _row_to_passage(row) -> Passage:
    return Passage(
        passage_id=str(row["passage_id"]),
        source_id=int(row["source_id"]),
        title=row["title"],
        text=row["text"],
        ordinal_index=int(row["ordinal_index"]),
    )


class PassageIndex:
    """
    Read/search access to indexed passages.

    Search methods never mutate stored passages; scores live on the returned
    RankedResult pairs only.
    """

    def __init__(self, connection_name: str = "default"):
        self.connection_name = connection_name

    def _conn(self):
        return connections.get(self.connection_name)

    async def vector_search(self, query_vector: Sequence[float], k: int) -> list[RankedResult]:
        """
        Perform vector similarity search using pgvector.

        Args:
            query_vector: The query embedding
            k: Number of results to return

        Returns:
            Results sorted by cosine similarity (highest first)
        """
        if query_vector is None or len(query_vector) == 0:
            raise ValueError("Query embedding cannot be null or empty")

        # Cosine similarity is 1 - cosine distance; <=> computes the distance
        query = """
            SELECT
                p.id AS passage_id,
                p.source_id AS source_id,
                p.title AS title,
                p.text AS text,
                p.ordinal_index AS ordinal_index,
                1 - (e.vector <=> $1) AS vscore
            FROM embeddings e
            JOIN passages p ON p.id = e.passage_id
            ORDER BY e.vector <=> $1
            LIMIT $2
        """

        _, rows = await self._conn().execute_query(query, [str(list(query_vector)), k])

        results = [
            RankedResult(_row_to_passage(row), float(row["vscore"]) if row["vscore"] is not None else 0.0)
            for row in rows
        ]

        logger.debug(f"Vector search returned {len(results)} results")
        return results

    async def keyword_search(
        self, text: str, limit: int, include_ids: Sequence[str] = ()
    ) -> list[RankedResult]:
        """
        Find passages whose text matches the query using PostgreSQL's FTS.

        Every match is scored ``KEYWORD_MATCH_SCORE``. Matches among
        ``include_ids`` are always returned; up to ``limit`` further matches
        follow, best ``ts_rank_cd`` first, ties broken by passage id.
        """
        if not text or not text.strip():
            return []

        include_ids = list(dict.fromkeys(include_ids))

        # Matches among include_ids sort first and never count against the limit
        query_sql = """
            WITH q AS (SELECT plainto_tsquery('english', $1) AS query)
            SELECT
                p.id AS passage_id,
                p.source_id AS source_id,
                p.title AS title,
                p.text AS text,
                p.ordinal_index AS ordinal_index
            FROM passages p, q
            WHERE p.fts @@ q.query
            ORDER BY (p.id = ANY($3::text[])) DESC, ts_rank_cd(p.fts, q.query) DESC, p.id
            LIMIT $2 + cardinality($3::text[])
        """

        _, rows = await self._conn().execute_query(query_sql, [text, limit, include_ids])

        results = [RankedResult(_row_to_passage(row), KEYWORD_MATCH_SCORE) for row in rows]

        logger.debug(f"Keyword search returned {len(results)} results")
        return results

    async def count(self) -> int:
        """Number of indexed passages."""
        return await PassageRecord.all().count()

    async def upsert_passages(self, passages: list[Passage]) -> int:
        """
        Replace the stored passages of every source present in ``passages``.

        Passages without an embedding are stored for keyword search but get no
        embedding row, so they never appear in vector search.

        Returns:
            Number of embeddings written
        """
        if not passages:
            logger.warning("No passages provided for upsert")
            return 0

        source_ids = sorted({p.source_id for p in passages})
        embedded = 0

        async with in_transaction(self.connection_name) as connection:
            # Deleting passages cascades to their embeddings
            await PassageRecord.filter(source_id__in=source_ids).using_db(connection).delete()

            records = [
                PassageRecord(
                    id=p.passage_id,
                    source_id=p.source_id,
                    title=p.title,
                    text=p.text,
                    ordinal_index=p.ordinal_index,
                )
                for p in passages
            ]
            await PassageRecord.bulk_create(records, using_db=connection)

            for passage in passages:
                if not passage.embedding:
                    continue
                await Embedding.create(
                    passage_id=passage.passage_id,
                    vector=list(passage.embedding),
                    dim=len(passage.embedding),
                    using_db=connection,
                )
                embedded += 1

        logger.info(f"Upserted {len(passages)} passages ({embedded} with embeddings) for {len(source_ids)} sources")
        return embedded
