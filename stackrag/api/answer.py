import logging
from contextlib import aclosing

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from ..core.config import Settings
from ..core.errors import CapabilityUnavailableError, CollaboratorError
from ..schemas.answer import AnswerResponse, AskRequest, PassageHit, SearchRequest, SearchResponse, StreamEvent
from ..services.qa_service import build_qa_service

logger = logging.getLogger(__name__)

router = APIRouter()
settings = Settings()
qa_service = build_qa_service(settings)


def to_http_exception(e: Exception) -> HTTPException:
    """Map pipeline errors onto HTTP status codes."""
    if isinstance(e, CapabilityUnavailableError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, CollaboratorError):
        return HTTPException(status_code=502, detail={"stage": e.stage, "message": e.detail})
    if isinstance(e, ValueError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=500, detail="An unexpected error occurred.")


@router.post("/search", response_model=SearchResponse)
async def search(payload: SearchRequest) -> SearchResponse:
    """Returns the ranked passages for a query without generating an answer."""
    try:
        passages = await qa_service.search(payload.query, top_k=payload.top_k, use_hybrid=payload.use_hybrid)
    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        raise to_http_exception(e) from e

    return SearchResponse(
        query=payload.query,
        search_type="hybrid" if payload.use_hybrid else "vector",
        hits=[
            PassageHit(
                passage_id=p.passage_id,
                source_id=p.source_id,
                title=p.title,
                preview=p.text_preview,
                ordinal_index=p.ordinal_index,
                score=p.score,
            )
            for p in passages
        ],
    )


@router.post("/ask", response_model=AnswerResponse)
async def ask(payload: AskRequest) -> AnswerResponse:
    """
    Answers a question using the RAG pipeline.

    The process involves checking the response cache, retrieving relevant
    passages, generating a grounded answer and collecting citations.
    """
    try:
        return await qa_service.answer(payload.question, top_k=payload.top_k, use_hybrid=payload.use_hybrid)
    except Exception as e:
        logger.error(f"Answering failed: {e}", exc_info=True)
        raise to_http_exception(e) from e


@router.post("/ask/stream")
async def ask_stream(payload: AskRequest) -> StreamingResponse:
    """
    Answers a question as server-sent events.

    Failures before the first event map to an HTTP status; a generation
    failure mid-stream ends the stream with an ``error`` event.
    """
    try:
        events = qa_service.stream(payload.question, top_k=payload.top_k, use_hybrid=payload.use_hybrid)
        first = await anext(events)
    except Exception as e:
        logger.error(f"Answer stream failed to start: {e}", exc_info=True)
        raise to_http_exception(e) from e

    async def event_source():
        async with aclosing(events):
            yield first.to_sse()
            try:
                async for event in events:
                    yield event.to_sse()
            except CollaboratorError as e:
                logger.error(f"Answer stream failed in the {e.stage} stage: {e}")
                yield StreamEvent(type="error", text=e.detail, stage=e.stage).to_sse()

    return StreamingResponse(event_source(), media_type="text/event-stream")
