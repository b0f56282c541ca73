"""
Tests for the LangGraph orchestration module.
"""

from unittest.mock import AsyncMock

from stackrag.cache.keys import response_key
from stackrag.rag.graph import build_graph, cache_check_node, cite_node, parse_node, retrieve_node, route_after_cache
from stackrag.schemas.answer import CachedAnswer, Citation


def _config(retriever=None, cache=None, **options):
    return {"configurable": {"retriever": retriever, "cache": cache, **options}}


class TestParseNode:
    """Test cases for the parse_node function."""

    def test_parse_node_normalizes_question(self):
        state = {"question": "  What is\n\na decorator?  ", "top_k": 5, "use_hybrid": True}
        result = parse_node(state)

        assert result["q_norm"] == "What is a decorator?"
        assert result["question"] == "  What is\n\na decorator?  "  # Original preserved

    def test_parse_node_derives_response_key(self):
        result = parse_node({"question": "What is a decorator?", "top_k": 3, "use_hybrid": False})

        assert result["cache_key"] == response_key("What is a decorator?", 3, False)


class TestCacheCheckNode:
    """Test cases for the cache_check_node function."""

    async def test_hit(self, memory_cache):
        cached = CachedAnswer(answer="Cached.", citations=[], retrieved_passages=2)
        await memory_cache.set("resp:abc", cached.model_dump_json())

        result = await cache_check_node({"cache_key": "resp:abc"}, _config(cache=memory_cache))

        assert result["cached"] == cached
        assert route_after_cache(result) == "hit"

    async def test_miss(self, memory_cache):
        result = await cache_check_node({"cache_key": "resp:abc"}, _config(cache=memory_cache))

        assert result["cached"] is None
        assert route_after_cache(result) == "miss"

    async def test_malformed_entry_is_a_miss(self, memory_cache):
        await memory_cache.set("resp:abc", '{"answer": 3')

        result = await cache_check_node({"cache_key": "resp:abc"}, _config(cache=memory_cache))

        assert result["cached"] is None


class TestRetrieveAndCiteNodes:
    async def test_retrieve_node_passes_settings(self, make_passage):
        retriever = AsyncMock()
        retriever.search.return_value = [make_passage(score=0.7)]
        state = {"q_norm": "what is a decorator?", "top_k": 4, "use_hybrid": False}

        result = await retrieve_node(state, _config(retriever=retriever))

        retriever.search.assert_awaited_once_with("what is a decorator?", top_k=4, use_hybrid=False)
        assert len(result["passages"]) == 1

    def test_cite_node(self, make_passage):
        passages = [make_passage(source_id=i, score=i / 10) for i in range(1, 5)]

        result = cite_node({"passages": passages}, _config(max_citations=2, url_template="https://x.test/{source_id}"))

        assert [c.source_id for c in result["citations"]] == [4, 3]
        assert result["citations"][0].url == "https://x.test/4"


class TestBuildGraph:
    """Test cases for the compiled graph."""

    async def test_cache_miss_runs_retrieval(self, memory_cache, make_passage):
        retriever = AsyncMock()
        retriever.search.return_value = [make_passage(source_id=2, score=0.6)]
        graph = build_graph()

        state = await graph.ainvoke(
            {"question": "what is a decorator?", "top_k": 5, "use_hybrid": True},
            config=_config(retriever=retriever, cache=memory_cache, max_citations=5),
        )

        assert state["cached"] is None
        assert [p.source_id for p in state["passages"]] == [2]
        assert [c.source_id for c in state["citations"]] == [2]

    async def test_cache_hit_skips_retrieval(self, memory_cache):
        retriever = AsyncMock()
        key = response_key("what is a decorator?", 5, True)
        cached = CachedAnswer(
            answer="A callable wrapper.",
            citations=[Citation(source_id=1, title="t", url="u", relevance_score=0.9)],
        )
        await memory_cache.set(key, cached.model_dump_json())
        graph = build_graph()

        state = await graph.ainvoke(
            {"question": "what is a decorator?", "top_k": 5, "use_hybrid": True},
            config=_config(retriever=retriever, cache=memory_cache),
        )

        assert state["cached"] == cached
        assert "passages" not in state
        retriever.search.assert_not_called()
