"""
Queue infrastructure module.

Configures the Dramatiq broker used for background ingestion jobs.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AsyncIO

from .config import Settings

settings = Settings()

# Used for async job processing with automatic retries and failure handling
dramatiq_broker = RedisBroker(url=settings.REDIS_URL)

# Add AsyncIO middleware to support async actors
dramatiq_broker.add_middleware(AsyncIO())

dramatiq.set_broker(dramatiq_broker)
