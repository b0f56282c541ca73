from fastapi import APIRouter, HTTPException

from ..rag.index import PassageIndex
from ..schemas.ingest import CountResponse, IngestRequest, IngestResponse
from ..services.ingestion_service import IngestionService

router = APIRouter()
ingestion_service = IngestionService()
passage_index = PassageIndex()


@router.post("/ingest", status_code=202, response_model=IngestResponse)
async def ingest(payload: IngestRequest) -> IngestResponse:
    """
    Ingests source posts into the passage index asynchronously.

    Each source is validated and stored; sources whose content changed are
    enqueued for chunking and embedding in the background. Returns the
    accepted and unchanged source IDs immediately.
    """
    try:
        result = await ingestion_service.ingest_async(payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        # For unexpected errors, return a generic 500 response
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {e}") from e

    return IngestResponse(
        accepted=result.accepted,
        unchanged=result.unchanged,
        message=f"{len(result.accepted)} sources accepted for processing, {len(result.unchanged)} unchanged",
    )


@router.get("/index/count", response_model=CountResponse)
async def index_count() -> CountResponse:
    """Returns the number of indexed passages."""
    try:
        return CountResponse(passages=await passage_index.count())
    except Exception as e:
        raise HTTPException(status_code=502, detail={"stage": "retrieval", "message": "Could not query the index."}) from e
