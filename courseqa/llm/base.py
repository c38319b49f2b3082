"""Base LLM provider interface and factory pattern."""

import math
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel


class ChatMessage(BaseModel):
    """A single role-tagged chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class CompletionUsage(BaseModel):
    """Token counters reported by the provider for one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class EmbeddingResult(BaseModel):
    """Result from embedding generation."""

    embedding: list[float]
    model: str
    token_count: int | None = None


class CompletionResult(BaseModel):
    """Result from chat completion."""

    content: str
    model: str
    usage: CompletionUsage = CompletionUsage()
    finish_reason: str | None = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for the given text.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector and metadata
        """
        pass

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        """Generate a chat completion for a role-tagged message list.

        Args:
            messages: Conversation to complete, system messages first
            temperature: Sampling temperature
            max_tokens: Completion token budget

        Returns:
            CompletionResult with generated text and token usage

        Raises:
            RuntimeError: If the provider call fails or returns no content
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is healthy and accessible.

        Returns:
            True if healthy, False otherwise
        """
        pass


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    _providers: dict[str, type[LLMProvider]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type[LLMProvider]) -> None:
        """Register a provider class.

        Args:
            name: Provider name (e.g., "ollama", "openai")
            provider_class: Provider class to register
        """
        cls._providers[name] = provider_class

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> LLMProvider:
        """Create a provider instance.

        Args:
            name: Provider name
            **kwargs: Provider-specific configuration

        Returns:
            LLMProvider instance

        Raises:
            ValueError: If provider name is not registered
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown provider '{name}'. Available: {available}")

        return cls._providers[name](**kwargs)

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider names.

        Returns:
            List of provider names
        """
        return list(cls._providers.keys())


def estimate_token_count(text: str) -> int:
    """Roughly estimate tokens for text, about one token per four characters."""
    return math.ceil(len(text) / 4)
