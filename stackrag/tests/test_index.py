"""
Tests for the PostgreSQL passage index, with the database connection mocked.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stackrag.rag.index import KEYWORD_MATCH_SCORE, PassageIndex


def _row(passage_id="7_0", source_id=7, title="Parse JSON", text="Use json.loads.", ordinal_index=0, **extra):
    return {
        "passage_id": passage_id,
        "source_id": source_id,
        "title": title,
        "text": text,
        "ordinal_index": ordinal_index,
        **extra,
    }


@pytest.fixture
def connection():
    conn = MagicMock()
    conn.execute_query = AsyncMock(return_value=(0, []))
    with patch("stackrag.rag.index.connections") as mock_connections:
        mock_connections.get.return_value = conn
        yield conn


class TestVectorSearch:
    async def test_maps_rows_to_ranked_results(self, connection):
        connection.execute_query.return_value = (
            2,
            [_row(vscore=0.92), _row(passage_id="7_1", ordinal_index=1, vscore=None)],
        )

        results = await PassageIndex().vector_search([0.1, 0.2], k=2)

        assert [r.passage_id for r in results] == ["7_0", "7_1"]
        assert [r.score for r in results] == [0.92, 0.0]
        assert results[0].passage.title == "Parse JSON"
        assert results[0].passage.score == 0.0

    async def test_query_parameters(self, connection):
        await PassageIndex().vector_search((0.5, 0.25), k=3)

        sql, params = connection.execute_query.await_args.args
        assert "<=>" in sql
        assert params == ["[0.5, 0.25]", 3]

    async def test_empty_vector_rejected(self, connection):
        with pytest.raises(ValueError):
            await PassageIndex().vector_search([], k=3)


class TestKeywordSearch:
    async def test_matches_get_binary_score(self, connection):
        connection.execute_query.return_value = (1, [_row()])

        results = await PassageIndex().keyword_search("parse json", limit=4)

        assert len(results) == 1
        assert results[0].score == KEYWORD_MATCH_SCORE == 1.0
        sql, params = connection.execute_query.await_args.args
        assert "plainto_tsquery" in sql
        assert params == ["parse json", 4, []]

    async def test_vector_candidates_are_kept_outside_the_limit(self, connection):
        await PassageIndex().keyword_search("parse json", limit=2, include_ids=["3_0", "4_0", "3_0"])

        sql, params = connection.execute_query.await_args.args
        assert "ANY($3::text[])" in sql
        assert "LIMIT $2 + cardinality($3::text[])" in sql
        assert params == ["parse json", 2, ["3_0", "4_0"]]

    async def test_blank_text_skips_query(self, connection):
        assert await PassageIndex().keyword_search("  ", limit=4) == []
        connection.execute_query.assert_not_called()
