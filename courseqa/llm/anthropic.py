"""Anthropic Claude LLM provider implementation."""

import logging
from typing import Any

import anthropic
from pydantic import BaseModel

from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class AnthropicConfig(BaseModel):
    """Configuration for Anthropic provider."""

    api_key: str
    model: str = "claude-3-5-haiku-20241022"
    timeout: int = 30


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation.

    Anthropic has no embedding endpoint, so this provider is only used for
    completions; see ``create_embedding_provider`` for the fallback.
    """

    def __init__(self, config: AnthropicConfig | None = None, **kwargs: Any) -> None:
        """Initialize Anthropic provider.

        Args:
            config: Anthropic configuration
            **kwargs: Additional configuration options
        """
        self.config = config or AnthropicConfig(**kwargs)
        self.client = anthropic.AsyncAnthropic(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding - Anthropic doesn't provide embeddings.

        Raises:
            NotImplementedError: Anthropic doesn't provide embeddings
        """
        raise NotImplementedError(
            "Anthropic doesn't provide embeddings. Use a different provider for embeddings "
            "(e.g., OpenAI or Ollama)."
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        """Generate a chat completion using Anthropic's Claude model.

        System messages are joined into the top-level ``system`` parameter;
        the remaining turns are sent as the message list.
        """
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        turns = [m.model_dump() for m in messages if m.role != "system"]

        request: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": turns,
        }
        if system:
            request["system"] = system

        try:
            response = await self.client.messages.create(**request)
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic completion request failed: {e}")
            raise RuntimeError(f"Failed to generate completion: {e}")

        # Anthropic returns content as a list of blocks
        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        if not content:
            raise RuntimeError("No content returned from Anthropic")

        return CompletionResult(
            content=content,
            model=self.config.model,
            usage=CompletionUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
            ),
            finish_reason=response.stop_reason,
        )

    async def health_check(self) -> bool:
        """Check if Anthropic service is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            await self.client.messages.create(
                model=self.config.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
            return True
        except Exception as e:
            logger.warning(f"Anthropic health check failed: {e}")
            return False
