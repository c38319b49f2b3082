"""Ollama LLM provider implementation."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class OllamaConfig(BaseModel):
    """Configuration for Ollama provider."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    embedding_model: str = "nomic-embed-text"
    timeout: int = 30
    completion_timeout: float = 180.0


class OllamaProvider(LLMProvider):
    """Ollama LLM provider implementation."""

    def __init__(self, config: OllamaConfig | None = None, **kwargs: Any) -> None:
        """Initialize Ollama provider.

        Args:
            config: Ollama configuration
            **kwargs: Additional configuration options
        """
        self.config = config or OllamaConfig(**kwargs)
        self.client = httpx.AsyncClient(
            base_url=self.config.host,
            timeout=self.config.timeout,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using Ollama's embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector
        """
        try:
            response = await self.client.post(
                "/api/embed",
                json={
                    "model": self.config.embedding_model,
                    "input": text,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.RequestError as e:
            logger.error(f"Ollama embedding request failed: {e}")
            raise RuntimeError(f"Failed to generate embedding: {e}")
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama embedding HTTP error: {e}")
            raise RuntimeError(f"Ollama API error: {e}")

        if not data.get("embeddings"):
            raise RuntimeError("No embedding data returned from Ollama")

        return EmbeddingResult(
            embedding=data["embeddings"][0],
            model=self.config.embedding_model,
            token_count=data.get("prompt_eval_count"),
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        """Generate a chat completion using Ollama's chat endpoint.

        Args:
            messages: Conversation to complete
            temperature: Sampling temperature
            max_tokens: Completion token budget

        Returns:
            CompletionResult with generated text and usage
        """
        logger.debug(f"Sending chat request to Ollama with model: {self.config.model}")

        try:
            response = await self.client.post(
                "/api/chat",
                json={
                    "model": self.config.model,
                    "messages": [message.model_dump() for message in messages],
                    "stream": False,
                    "options": {
                        "temperature": temperature,
                        "num_predict": max_tokens,
                    },
                },
                timeout=self.config.completion_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Ollama request timed out after {self.config.completion_timeout}s: {e}")
            raise RuntimeError(f"Ollama request timed out: {e}")
        except httpx.RequestError as e:
            logger.error(f"Ollama completion request failed: {e}")
            logger.error(f"Model: {self.config.model}, Host: {self.config.host}")
            raise RuntimeError(f"Failed to generate completion: {e}")
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama completion HTTP error: {e}")
            logger.error(f"Status: {e.response.status_code}")
            raise RuntimeError(f"Ollama API error: {e}")

        content = (data.get("message") or {}).get("content", "")
        if not content:
            raise RuntimeError("No content returned from Ollama")

        return CompletionResult(
            content=content,
            model=self.config.model,
            usage=CompletionUsage(
                prompt_tokens=data.get("prompt_eval_count") or 0,
                completion_tokens=data.get("eval_count") or 0,
            ),
            finish_reason=data.get("done_reason"),
        )

    async def health_check(self) -> bool:
        """Check if Ollama service is healthy.

        Returns:
            True if healthy, False otherwise
        """
        try:
            response = await self.client.get("/api/tags")
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.client.aclose()
