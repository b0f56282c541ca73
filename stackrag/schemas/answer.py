from typing import Any, Literal

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    question: str = Field(..., min_length=3, description="The question to answer.")
    top_k: int | None = Field(None, ge=1, description="The number of passages to retrieve.")
    use_hybrid: bool = Field(True, description="Fuse keyword matches into the vector ranking.")


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="The search query.")
    top_k: int | None = Field(None, ge=1, description="The number of passages to return.")
    use_hybrid: bool = Field(True, description="Fuse keyword matches into the vector ranking.")


class Citation(BaseModel):
    source_id: int = Field(..., description="The ID of the cited source post.")
    title: str = Field(..., description="The title of the cited source.")
    url: str = Field(..., description="A link to the cited source.")
    relevance_score: float = Field(..., description="The best relevance score among the source's passages.")


class PassageHit(BaseModel):
    passage_id: str
    source_id: int
    title: str
    preview: str
    ordinal_index: int
    score: float


class SearchResponse(BaseModel):
    query: str
    search_type: Literal["hybrid", "vector"]
    hits: list[PassageHit]


class QueryMetadata(BaseModel):
    latency_ms: int = Field(0, description="Total request latency in milliseconds.")
    first_token_ms: int | None = Field(None, description="Latency until the first answer increment.")
    tokens_input: int = Field(0, description="Estimated prompt tokens.")
    tokens_output: int = Field(0, description="Estimated completion tokens.")
    estimated_cost: float = Field(0.0, description="Estimated LLM cost in USD.")
    cache_hit: bool = Field(False, description="Whether the response was served from cache.")
    retrieved_passages: int = Field(0, description="Number of passages used as context.")
    search_type: Literal["hybrid", "vector"] = "hybrid"


class AnswerResponse(BaseModel):
    answer: str = Field(..., description="The generated answer to the question.")
    citations: list[Citation] = Field(..., description="Deduplicated sources supporting the answer.")
    metadata: QueryMetadata = Field(default_factory=QueryMetadata)
    debug: Any | None = Field(None, description="Optional debug information, present if APP_ENV=dev.")


class CachedAnswer(BaseModel):
    """What the response cache stores for a completed answer."""

    answer: str
    citations: list[Citation]
    retrieved_passages: int = 0


class StreamEvent(BaseModel):
    """One server-sent event of a streamed answer."""

    type: Literal["citations", "token", "done", "error"]
    text: str | None = None
    citations: list[Citation] | None = None
    metadata: QueryMetadata | None = None
    stage: str | None = None

    def to_sse(self) -> str:
        return f"event: {self.type}\ndata: {self.model_dump_json(exclude_none=True)}\n\n"
