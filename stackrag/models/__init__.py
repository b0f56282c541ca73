from .base import TimestampedModel
from .embeddings import Embedding
from .passages import PassageRecord
from .sources import Source, SourceStatus

__all__ = ["TimestampedModel", "Source", "SourceStatus", "PassageRecord", "Embedding"]
