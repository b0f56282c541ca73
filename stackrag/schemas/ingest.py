from pydantic import BaseModel, Field


class SourceDocument(BaseModel):
    """A cleaned Q&A post handed over by the acquisition step."""

    id: int = Field(..., gt=0, description="The source post ID.")
    title: str = Field(..., max_length=500, description="The question title.")
    body: str = Field(..., description="The question body (HTML already cleaned).")
    answer: str | None = Field(None, description="The accepted answer body, if any.")
    tags: list[str] = Field(default_factory=list, description="Category labels of the post.")

    def full_text(self) -> str:
        text = f"Title: {self.title}\n\nQuestion: {self.body}"
        if self.answer:
            text += f"\n\nAnswer: {self.answer}"
        return text

    def is_chunkable(self) -> bool:
        return bool(self.title.strip()) and bool(self.body.strip()) and len(self.tags) > 0


class IngestRequest(BaseModel):
    documents: list[SourceDocument] = Field(..., min_length=1, description="The documents to ingest.")


class IngestResponse(BaseModel):
    accepted: list[int] = Field(..., description="IDs of sources enqueued for processing.")
    unchanged: list[int] = Field(..., description="IDs of sources whose content was already ingested.")
    message: str = Field(..., description="A human-readable status message.")


class CountResponse(BaseModel):
    passages: int = Field(..., description="The number of indexed passages.")
