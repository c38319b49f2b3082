"""Vector search integration module."""

from .vectorizer import ChromaVectorSearch, VectorSearchService

__all__ = ["VectorSearchService", "ChromaVectorSearch"]
