import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import timedelta

from ..cache.service import CacheService, build_cache
from ..core.config import Settings
from ..core.costs import estimate_llm_cost
from ..core.errors import CapabilityUnavailableError, InvalidArgumentError
from ..core.text import truncate
from ..rag.embedder import SentenceTransformerEmbedder
from ..rag.generator import TextGenerator, build_generator
from ..rag.graph import build_graph
from ..rag.index import PassageIndex
from ..rag.retriever import HybridRetriever
from ..rag.synthesis import Synthesizer
from ..schemas.answer import AnswerResponse, CachedAnswer, Citation, QueryMetadata, StreamEvent
from ..schemas.passage import Passage

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class QAService:
    """
    Service for orchestrating the question-answering process.

    The pre-generation stages (cache check, retrieval, citations) run as a
    LangGraph graph; generation streams afterwards so increments reach the
    caller as they are produced. The response cache is written only after a
    stream completes normally.
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        cache: CacheService,
        generator: TextGenerator | None,
        settings: Settings | None = None,
    ):
        self.settings = settings or Settings()
        self.retriever = retriever
        self.cache = cache
        # None means the generation capability is not configured
        self.synthesizer = Synthesizer(generator) if generator is not None else None
        self.compiled_graph = build_graph()

    def _effective_k(self, top_k: int | None) -> int:
        k = top_k if top_k is not None else self.settings.RETRIEVAL_K
        if k <= 0:
            raise InvalidArgumentError("top_k must be greater than 0.")
        return min(k, self.settings.MAX_RETRIEVAL_K)

    def _graph_config(self) -> dict:
        return {
            "configurable": {
                "retriever": self.retriever,
                "cache": self.cache,
                "max_citations": self.settings.MAX_CITATIONS,
                "url_template": self.settings.CITATION_URL_TEMPLATE,
            }
        }

    def _log_telemetry(self, question: str, metadata: QueryMetadata) -> None:
        logger.info(
            f"Query telemetry: query='{truncate(question)}', latency={metadata.latency_ms}ms, "
            f"first_token={metadata.first_token_ms}ms, tokens_in={metadata.tokens_input}, "
            f"tokens_out={metadata.tokens_output}, cost=${metadata.estimated_cost:.6f}, "
            f"cache_hit={metadata.cache_hit}, passages={metadata.retrieved_passages}, "
            f"search_type={metadata.search_type}"
        )

    async def search(self, query: str, top_k: int | None = None, use_hybrid: bool = True) -> list[Passage]:
        """Retrieve ranked passages without generating an answer."""
        return await self.retriever.search(query, top_k=self._effective_k(top_k), use_hybrid=use_hybrid)

    def stream(self, question: str, top_k: int | None = None, use_hybrid: bool = True) -> AsyncIterator[StreamEvent]:
        """
        Answer ``question`` as a stream of events.

        Events arrive in order: one ``citations`` event, zero or more
        ``token`` events, then one ``done`` event carrying the metadata.
        Preconditions are checked here, before any work starts.

        Raises:
            CapabilityUnavailableError: If no generator is configured
            InvalidArgumentError: If the question is blank or top_k is invalid
        """
        if self.synthesizer is None:
            raise CapabilityUnavailableError("generation")
        if not question or not question.strip():
            raise InvalidArgumentError("Question cannot be empty.")

        return self._stream(question, self._effective_k(top_k), use_hybrid)

    async def _stream(self, question: str, top_k: int, use_hybrid: bool) -> AsyncIterator[StreamEvent]:
        started = time.perf_counter()
        search_type = "hybrid" if use_hybrid else "vector"

        logger.info(f"Answering question: '{truncate(question)}' with top_k={top_k}, search_type={search_type}")

        state = await self.compiled_graph.ainvoke(
            {"question": question, "top_k": top_k, "use_hybrid": use_hybrid},
            config=self._graph_config(),
        )

        cached: CachedAnswer | None = state.get("cached")
        if cached is not None:
            logger.info(f"Serving cached answer for question: '{truncate(question)}'")
            yield StreamEvent(type="citations", citations=cached.citations)
            if cached.answer:
                yield StreamEvent(type="token", text=cached.answer)

            metadata = QueryMetadata(
                latency_ms=_elapsed_ms(started),
                cache_hit=True,
                retrieved_passages=cached.retrieved_passages,
                search_type=search_type,
            )
            self._log_telemetry(question, metadata)
            yield StreamEvent(type="done", metadata=metadata)
            return

        passages: list[Passage] = state.get("passages", [])
        citations: list[Citation] = state.get("citations", [])

        yield StreamEvent(type="citations", citations=citations)

        if not passages:
            # Nothing to ground an answer on; no generation and nothing cached
            logger.warning(f"No passages retrieved for question: '{truncate(question)}'")
            metadata = QueryMetadata(latency_ms=_elapsed_ms(started), search_type=search_type)
            self._log_telemetry(question, metadata)
            yield StreamEvent(type="done", metadata=metadata)
            return

        answer_stream = self.synthesizer.stream_answer(question, passages)
        async with aclosing(aiter(answer_stream)) as pieces:
            async for piece in pieces:
                yield StreamEvent(type="token", text=piece)

        if answer_stream.completed:
            cached = CachedAnswer(answer=answer_stream.text, citations=citations, retrieved_passages=len(passages))
            await self.cache.set(
                state["cache_key"],
                cached.model_dump_json(),
                timedelta(seconds=self.settings.cache_ttl_seconds),
            )

        tokens_input = answer_stream.prompt_tokens
        tokens_output = answer_stream.completion_tokens
        metadata = QueryMetadata(
            latency_ms=_elapsed_ms(started),
            first_token_ms=answer_stream.first_token_ms,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            estimated_cost=estimate_llm_cost(tokens_input, tokens_output),
            cache_hit=False,
            retrieved_passages=len(passages),
            search_type=search_type,
        )
        self._log_telemetry(question, metadata)
        yield StreamEvent(type="done", metadata=metadata)

    async def answer(self, question: str, top_k: int | None = None, use_hybrid: bool = True) -> AnswerResponse:
        """
        Generate a complete answer by draining the event stream.

        Args:
            question: The user's question
            top_k: Number of passages to retrieve. Defaults to settings.RETRIEVAL_K
            use_hybrid: Fuse keyword matches into the vector ranking

        Returns:
            An AnswerResponse with the answer text, citations and metadata
        """
        parts: list[str] = []
        citations: list[Citation] = []
        metadata = QueryMetadata()

        async for event in self.stream(question, top_k=top_k, use_hybrid=use_hybrid):
            if event.type == "citations":
                citations = event.citations or []
            elif event.type == "token":
                parts.append(event.text or "")
            elif event.type == "done":
                metadata = event.metadata or metadata

        return AnswerResponse(
            answer="".join(parts),
            citations=citations,
            metadata=metadata,
            debug={"top_k": self._effective_k(top_k)} if self.settings.APP_ENV == "dev" else None,
        )


def build_qa_service(settings: Settings | None = None) -> QAService:
    """Wire the QA service from configuration. No connection is opened here."""
    settings = settings or Settings()
    cache = build_cache(settings)
    retriever = HybridRetriever(
        SentenceTransformerEmbedder(),
        PassageIndex(),
        cache,
        vector_weight=settings.VECTOR_WEIGHT,
        keyword_weight=settings.KEYWORD_WEIGHT,
        embedding_ttl=timedelta(hours=settings.CACHE_TTL_HOURS),
    )
    return QAService(retriever, cache, build_generator(settings), settings=settings)
