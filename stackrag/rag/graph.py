"""LangGraph orchestration for the pre-generation part of the Q&A pipeline.

This module implements the stateful graph that runs before any answer text is
produced: parse -> cache_check -> (hit: end | miss: retrieve -> cite).
Generation itself streams outside the graph so increments reach the caller as
they are produced.

Collaborators are passed per run through ``config["configurable"]``:
``retriever`` (HybridRetriever), ``cache`` (CacheService) and
``max_citations`` / ``url_template`` for citation building.
"""

import logging
from typing import Any, TypedDict

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from pydantic import ValidationError

from ..cache.keys import response_key
from ..core.text import normalize
from ..schemas.answer import CachedAnswer, Citation
from ..schemas.passage import Passage
from .citations import STACKOVERFLOW_URL_TEMPLATE, extract_citations

logger = logging.getLogger(__name__)


class GraphState(TypedDict, total=False):
    """State dictionary that flows through the LangGraph nodes."""

    # Input
    question: str
    top_k: int
    use_hybrid: bool

    # Intermediate state
    q_norm: str
    cache_key: str
    cached: CachedAnswer | None

    # Output
    passages: list[Passage]
    citations: list[Citation]


def _configurable(config: RunnableConfig | None) -> dict[str, Any]:
    return (config or {}).get("configurable", {})


def parse_node(state: GraphState) -> GraphState:
    """
    Normalize the question and derive its response cache key.

    Args:
        state: Current graph state containing the question

    Returns:
        Updated state with normalized question and cache key
    """
    question = state["question"]
    q_norm = normalize(question) or question.strip()

    key = response_key(q_norm, state.get("top_k", 5), state.get("use_hybrid", True))

    logger.debug(f"Parsed question: '{question}' -> '{q_norm}'")

    return {**state, "q_norm": q_norm, "cache_key": key}


async def cache_check_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """Look the response up in the cache; malformed entries count as a miss."""
    cache = _configurable(config)["cache"]

    raw = await cache.get(state["cache_key"])
    cached = None
    if raw is not None:
        try:
            cached = CachedAnswer.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Ignoring malformed cached response under {state['cache_key']}")

    return {**state, "cached": cached}


def route_after_cache(state: GraphState) -> str:
    return "hit" if state.get("cached") is not None else "miss"


async def retrieve_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Retrieve relevant passages using hybrid (or vector-only) search.

    Args:
        state: Current graph state with normalized question and top_k

    Returns:
        Updated state with ranked passages
    """
    retriever = _configurable(config)["retriever"]

    passages = await retriever.search(
        state["q_norm"],
        top_k=state.get("top_k", 5),
        use_hybrid=state.get("use_hybrid", True),
    )

    logger.debug(f"Retrieved {len(passages)} passages for question: '{state['q_norm']}'")

    return {**state, "passages": passages}


def cite_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """Build deduplicated per-source citations from the retrieved passages."""
    options = _configurable(config)
    passages = state.get("passages", [])

    citations = extract_citations(
        passages,
        max_citations=options.get("max_citations", 5),
        url_template=options.get("url_template", STACKOVERFLOW_URL_TEMPLATE),
    )

    logger.debug(f"Extracted {len(citations)} citations from {len(passages)} passages")

    return {**state, "citations": citations}


def build_graph():
    """
    Build and compile the LangGraph for the pre-generation stages.

    Returns:
        Compiled LangGraph instance ready for execution
    """
    graph = StateGraph(GraphState)

    graph.add_node("parse", parse_node)
    graph.add_node("cache_check", cache_check_node)
    graph.add_node("retrieve", retrieve_node)
    graph.add_node("cite", cite_node)

    graph.set_entry_point("parse")

    graph.add_edge("parse", "cache_check")
    graph.add_conditional_edges("cache_check", route_after_cache, {"hit": END, "miss": "retrieve"})
    graph.add_edge("retrieve", "cite")
    graph.add_edge("cite", END)

    compiled_graph = graph.compile()

    logger.info("LangGraph compiled successfully")

    return compiled_graph
