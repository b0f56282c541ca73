import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from tortoise import Tortoise

from .api import answer, ingest
from .core.config import TORTOISE_ORM

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info("Starting up the application...")

    await Tortoise.init(config=TORTOISE_ORM)
    logger.info("Database initialized successfully")

    yield

    logger.info("Shutting down the application...")
    await Tortoise.close_connections()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="StackRAG",
        description="Retrieval-augmented answers over Stack Overflow posts.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(ingest.router, prefix="/api/v1", tags=["Ingestion"])
    app.include_router(answer.router, prefix="/api/v1", tags=["QA"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Perform a health check."""
        return {"status": "ok", "generation": answer.qa_service.synthesizer is not None}

    return app


app = create_app()
