"""Vector search over namespaced course content using ChromaDB."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import chromadb
from chromadb.config import Settings as ChromaSettings

from courseqa.config import get_settings
from courseqa.models import MatchMetadata, SearchMatch

logger = logging.getLogger(__name__)


class VectorSearchService(ABC):
    """Abstract base class for per-namespace similarity search."""

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        namespace: str,
        top_k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchMatch]:
        """Return the nearest matches for an embedding within one namespace."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the search backend is healthy."""
        pass


class ChromaVectorSearch(VectorSearchService):
    """ChromaDB implementation storing each namespace as its own collection."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        collection_prefix: str = "",
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host (optional, uses config if not provided)
            port: ChromaDB port (optional, uses config if not provided)
            collection_prefix: Prefix prepended to namespace names to form collection names
        """
        if host is None or port is None:
            settings = get_settings()
            host = host or settings.chroma_host
            port = port or settings.chroma_port

        self.host = host
        self.port = port
        self.collection_prefix = collection_prefix
        self.chroma_url = f"http://{host}:{port}"

        try:
            self.client = chromadb.HttpClient(
                host=host,
                port=port,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
            logger.info(f"Connected to ChromaDB at {self.chroma_url}")
        except Exception as e:
            logger.error(f"Failed to connect to ChromaDB at {self.chroma_url}: {e}")
            raise

    def collection_name(self, namespace: str) -> str:
        return f"{self.collection_prefix}{namespace}"

    async def search(
        self,
        query_embedding: list[float],
        namespace: str,
        top_k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchMatch]:
        """Search one namespace collection for similar passages."""
        name = self.collection_name(namespace)
        try:
            results = await asyncio.to_thread(
                self._query, name, query_embedding, top_k, metadata_filter
            )
        except Exception as e:
            logger.error(f"Failed to search collection {name}: {e}")
            raise

        matches = []
        if results["ids"] and len(results["ids"]) > 0:
            documents = results["documents"][0] if results["documents"] else []
            metadatas = results["metadatas"][0] if results["metadatas"] else []
            distances = results["distances"][0] if results["distances"] else []

            for i, chunk_id in enumerate(results["ids"][0]):
                raw = dict(metadatas[i] or {}) if i < len(metadatas) else {}
                # Fall back to the stored document body when metadata has no text
                if "text" not in raw and i < len(documents) and documents[i]:
                    raw["text"] = documents[i]
                distance = distances[i] if i < len(distances) else 0.0
                matches.append(
                    SearchMatch(
                        id=chunk_id,
                        score=1.0 - distance,
                        metadata=MatchMetadata.from_mapping(raw),
                    )
                )

        logger.debug(f"Found {len(matches)} results in {name}")
        return matches

    def _query(
        self,
        collection_name: str,
        query_embedding: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None,
    ) -> Any:
        collection = self.client.get_collection(name=collection_name)
        return collection.query(
            query_embeddings=[query_embedding],
            n_results=top_k,
            where=metadata_filter or None,
            include=["documents", "metadatas", "distances"],
        )

    async def health_check(self) -> bool:
        """Check if ChromaDB is healthy and accessible."""
        try:
            await asyncio.to_thread(self.client.heartbeat)
            return True
        except Exception as e:
            logger.warning(f"ChromaDB health check failed: {e}")
            return False
