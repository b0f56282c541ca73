"""StackRAG: hybrid retrieval and streaming answer synthesis over Q&A posts."""

__version__ = "0.1.0"
