"""Google Gemini LLM provider implementation."""

import asyncio
import logging
from typing import Any

import google.generativeai as genai
from pydantic import BaseModel

from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class GeminiConfig(BaseModel):
    """Configuration for Gemini provider."""

    api_key: str
    model: str = "gemini-1.5-flash"
    embedding_model: str = "models/text-embedding-004"
    timeout: int = 30


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation.

    The google-generativeai SDK is synchronous, so calls run in a worker thread.
    """

    def __init__(self, config: GeminiConfig | None = None, **kwargs: Any) -> None:
        """Initialize Gemini provider.

        Args:
            config: Gemini configuration
            **kwargs: Additional configuration options
        """
        self.config = config or GeminiConfig(**kwargs)
        genai.configure(api_key=self.config.api_key)

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using Gemini's embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector
        """
        try:
            result = await asyncio.to_thread(
                genai.embed_content,
                model=self.config.embedding_model,
                content=text,
                task_type="retrieval_query",
            )
        except Exception as e:
            logger.error(f"Gemini embedding request failed: {e}")
            raise RuntimeError(f"Failed to generate embedding: {e}")

        return EmbeddingResult(
            embedding=result["embedding"],
            model=self.config.embedding_model,
            token_count=None,  # Gemini doesn't return token count for embeddings
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        """Generate a chat completion using Gemini.

        System messages become the model's system instruction; assistant turns
        are sent with Gemini's ``model`` role.
        """
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages
            if m.role != "system"
        ]
        model = genai.GenerativeModel(self.config.model, system_instruction=system or None)

        try:
            response = await asyncio.to_thread(
                model.generate_content,
                contents,
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=max_tokens,
                    temperature=temperature,
                ),
            )
            content = response.text
        except Exception as e:
            logger.error(f"Gemini completion request failed: {e}")
            raise RuntimeError(f"Failed to generate completion: {e}")

        if not content:
            raise RuntimeError("No content returned from Gemini")

        usage = CompletionUsage()
        if response.usage_metadata:
            usage = CompletionUsage(
                prompt_tokens=response.usage_metadata.prompt_token_count,
                completion_tokens=response.usage_metadata.candidates_token_count,
            )

        return CompletionResult(
            content=content,
            model=self.config.model,
            usage=usage,
            finish_reason=response.candidates[0].finish_reason.name if response.candidates else None,
        )

    async def health_check(self) -> bool:
        """Check if Gemini service is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            await asyncio.to_thread(
                genai.embed_content,
                model=self.config.embedding_model,
                content="health check",
            )
            return True
        except Exception as e:
            logger.warning(f"Gemini health check failed: {e}")
            return False
