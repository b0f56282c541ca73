import logging
from dataclasses import dataclass, field

from ..core import hashing
from ..core.config import Settings
from ..core.errors import InvalidArgumentError
from ..models import Source, SourceStatus
from ..rag import chunker, embedder
from ..rag.index import PassageIndex
from ..schemas.ingest import IngestRequest, SourceDocument
from ..schemas.passage import Passage

logger = logging.getLogger(__name__)
settings = Settings()


@dataclass
class SourceCreationResult:
    """Result of creating or updating a source."""

    source_id: int
    changed: bool  # False when the stored content was already identical


@dataclass
class IngestResult:
    """Result of an async ingestion request."""

    accepted: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)


class IngestionService:
    """
    Service for orchestrating the ingestion of source posts into the passage index.
    Handles validation, hashing, chunking, embedding, and persistence.
    """

    def __init__(self, index: PassageIndex | None = None):
        self.index = index or PassageIndex()

    async def create_source(self, document: SourceDocument) -> SourceCreationResult:
        """
        Validate and store a source document, skipping unchanged content.

        A source whose stored content hash matches is left alone unless its
        last processing attempt failed, in which case it is queued again.

        Args:
            document: The cleaned source document

        Returns:
            SourceCreationResult with the source ID and whether it changed

        Raises:
            InvalidArgumentError: If the document cannot be chunked
        """
        if not document.is_chunkable():
            raise InvalidArgumentError(f"Source {document.id} needs a non-blank title, a body and at least one tag.")

        content_sha256 = hashing.sha256(document.full_text())

        existing = await Source.get_or_none(id=document.id)
        if existing and existing.content_sha256 == content_sha256 and existing.status != SourceStatus.FAILED:
            logger.info(f"Source {document.id} with SHA256 {content_sha256} is unchanged. Skipping.")
            return SourceCreationResult(source_id=document.id, changed=False)

        await Source.update_or_create(
            id=document.id,
            defaults={
                "title": document.title,
                "body": document.body,
                "answer": document.answer,
                "tags": document.tags,
                "content_sha256": content_sha256,
                "status": SourceStatus.PENDING,
                "processing_errors": None,
            },
        )
        logger.info(f"Stored source {document.id} for processing")

        return SourceCreationResult(source_id=document.id, changed=True)

    async def ingest_async(self, payload: IngestRequest) -> IngestResult:
        """
        Store every document of the request and enqueue the changed ones.

        Args:
            payload: The IngestRequest containing the source documents

        Returns:
            IngestResult listing accepted and unchanged source IDs
        """
        # Import here to avoid circular dependency
        from ..jobs.ingestion_job import process_ingestion

        result = IngestResult()
        for document in payload.documents:
            created = await self.create_source(document)
            if created.changed:
                process_ingestion.send(created.source_id)
                logger.info(f"Enqueued processing job for source {created.source_id}")
                result.accepted.append(created.source_id)
            else:
                result.unchanged.append(created.source_id)

        return result

    async def process_source(self, source: Source) -> list[Passage]:
        """
        Chunk, embed and index an existing source.

        Re-processing a source replaces its passages, so retries are safe.

        Args:
            source: The Source instance to process

        Returns:
            The indexed passages

        Raises:
            ValueError: If no passages are generated
            RuntimeError: If the embeddings do not match the passages in count or dimension
        """
        document = SourceDocument(
            id=source.id,
            title=source.title,
            body=source.body,
            answer=source.answer,
            tags=list(source.tags or []),
        )

        # 1. Chunk the source text
        passages = chunker.chunk(
            document,
            max_tokens=settings.CHUNK_MAX_TOKENS,
            overlap_tokens=settings.CHUNK_OVERLAP_TOKENS,
        )
        if not passages:
            raise ValueError("No passages were generated from the source text.")

        # 2. Generate embeddings
        embeddings_np = embedder.embed_texts([p.text for p in passages], batch_size=settings.EMBEDDING_BATCH_SIZE)
        if embeddings_np.shape[0] != len(passages):
            raise RuntimeError("Mismatch between number of passages and generated embeddings.")
        if embeddings_np.shape[1] != settings.EMBEDDING_DIM:
            raise RuntimeError(
                f"Embedding dimension {embeddings_np.shape[1]} does not match EMBEDDING_DIM={settings.EMBEDDING_DIM}."
            )

        embedded = [
            passage._replace(embedding=tuple(float(v) for v in vector))
            for passage, vector in zip(passages, embeddings_np)
        ]

        # 3. Persist passages and embeddings
        await self.index.upsert_passages(embedded)
        logger.info(f"Indexed {len(embedded)} passages for source {source.id}")

        return embedded
