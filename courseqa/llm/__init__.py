"""LLM providers module."""

from courseqa.llm.anthropic import AnthropicConfig, AnthropicProvider
from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
    LLMProviderFactory,
    estimate_token_count,
)
from courseqa.llm.factory import create_embedding_provider, create_llm_provider
from courseqa.llm.gemini import GeminiConfig, GeminiProvider
from courseqa.llm.ollama import OllamaConfig, OllamaProvider
from courseqa.llm.openai import OpenAIConfig, OpenAIProvider

# Register all providers
LLMProviderFactory.register("ollama", OllamaProvider)
LLMProviderFactory.register("openai", OpenAIProvider)
LLMProviderFactory.register("gemini", GeminiProvider)
LLMProviderFactory.register("anthropic", AnthropicProvider)

__all__ = [
    "AnthropicConfig",
    "AnthropicProvider",
    "ChatMessage",
    "CompletionResult",
    "CompletionUsage",
    "EmbeddingResult",
    "GeminiConfig",
    "GeminiProvider",
    "LLMProvider",
    "LLMProviderFactory",
    "OllamaConfig",
    "OllamaProvider",
    "OpenAIConfig",
    "OpenAIProvider",
    "create_embedding_provider",
    "create_llm_provider",
    "estimate_token_count",
]
