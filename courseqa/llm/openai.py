"""OpenAI LLM provider implementation."""

import logging
from typing import Any

import openai
from pydantic import BaseModel

from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class OpenAIConfig(BaseModel):
    """Configuration for OpenAI provider."""

    api_key: str
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    timeout: int = 30
    max_retries: int = 3


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider implementation."""

    def __init__(self, config: OpenAIConfig | None = None, **kwargs: Any) -> None:
        """Initialize OpenAI provider.

        Args:
            config: OpenAI configuration
            **kwargs: Additional configuration options
        """
        self.config = config or OpenAIConfig(**kwargs)
        self.client = openai.AsyncOpenAI(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using OpenAI's embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector
        """
        try:
            response = await self.client.embeddings.create(
                model=self.config.embedding_model,
                input=text,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise RuntimeError(f"Failed to generate embedding: {e}")

        if not response.data:
            raise RuntimeError("No embedding data returned from OpenAI")

        return EmbeddingResult(
            embedding=response.data[0].embedding,
            model=self.config.embedding_model,
            token_count=response.usage.total_tokens,
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        """Generate a chat completion using OpenAI's chat model.

        Args:
            messages: Conversation to complete
            temperature: Sampling temperature
            max_tokens: Completion token budget

        Returns:
            CompletionResult with generated text and usage
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=[message.model_dump() for message in messages],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI completion request failed: {e}")
            raise RuntimeError(f"Failed to generate completion: {e}")

        choice = response.choices[0] if response.choices else None
        if choice is None or not choice.message.content:
            raise RuntimeError("No content returned from OpenAI")

        usage = CompletionUsage()
        if response.usage:
            usage = CompletionUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )

        return CompletionResult(
            content=choice.message.content,
            model=self.config.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def health_check(self) -> bool:
        """Check if OpenAI service is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            # Try a simple embedding request to test connectivity
            await self.client.embeddings.create(
                model=self.config.embedding_model,
                input="health check",
            )
            return True
        except Exception as e:
            logger.warning(f"OpenAI health check failed: {e}")
            return False
