"""
Dramatiq actor for async source ingestion.

This module defines the background job that chunks, embeds and indexes a
stored source, with status tracking and automatic retries.
"""

import logging

import dramatiq
from dramatiq.middleware import CurrentMessage
from tortoise import Tortoise

from ..core import queue  # noqa: F401 - Initialize Dramatiq broker for worker
from ..core.config import TORTOISE_ORM
from ..models import Source, SourceStatus
from ..services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)

MAX_RETRIES = 5


async def _process_source_job(source_id: int) -> None:
    """
    Core logic for processing one source.

    Separated from the actor so it can be tested without a broker.

    Args:
        source_id: The ID of the source to process

    Raises:
        Exception: Re-raises exceptions to trigger the retry mechanism
    """
    await Tortoise.init(config=TORTOISE_ORM)

    try:
        # PROCESSING is picked up again on retry after a failed attempt
        source = await Source.get_or_none(id=source_id, status__in=[SourceStatus.PENDING, SourceStatus.PROCESSING])
        if not source:
            logger.info(f"Source {source_id} not found or already processed. Skipping processing.")
            return

        source.status = SourceStatus.PROCESSING
        await source.save(update_fields=["status"])
        logger.info(f"Processing source {source_id}")

        passages = await IngestionService().process_source(source)

        source.status = SourceStatus.COMPLETED
        source.processing_errors = None
        await source.save(update_fields=["status", "processing_errors"])
        logger.info(f"Successfully completed processing source {source_id} with {len(passages)} passages")

    except Exception as e:
        logger.error(f"Error processing source {source_id}: {e}", exc_info=True)

        message = CurrentMessage.get_current_message()
        current_retry = message.options.get("retries", 0) if message else 0

        if current_retry >= MAX_RETRIES:
            # Retries exhausted; mark FAILED only if still PROCESSING
            try:
                source = await Source.get_or_none(id=source_id, status=SourceStatus.PROCESSING)
                if source:
                    source.status = SourceStatus.FAILED
                    source.processing_errors = f"{type(e).__name__}: {str(e)}"
                    await source.save(update_fields=["status", "processing_errors"])
                    logger.error(f"Source {source_id} marked as FAILED after {MAX_RETRIES} retries")
                else:
                    logger.info(f"Source {source_id} not in PROCESSING status, skipping FAILED status update")
            except Exception as save_error:
                logger.error(f"Failed to update source status: {save_error}")

        raise

    finally:
        await Tortoise.close_connections()


@dramatiq.actor(max_retries=MAX_RETRIES)
async def process_ingestion(source_id: int) -> None:
    """
    Dramatiq actor for processing source ingestion asynchronously.

    Args:
        source_id: The ID of the source to process
    """
    await _process_source_job(source_id)
