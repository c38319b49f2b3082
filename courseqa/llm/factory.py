"""Construction of generation and embedding providers from settings."""

import logging
from collections.abc import Callable

from pydantic import BaseModel

from courseqa.config import LLMProvider as ProviderName
from courseqa.config import Settings, get_settings
from courseqa.llm.anthropic import AnthropicConfig
from courseqa.llm.base import LLMProvider, LLMProviderFactory
from courseqa.llm.gemini import GeminiConfig
from courseqa.llm.ollama import OllamaConfig
from courseqa.llm.openai import OpenAIConfig

logger = logging.getLogger(__name__)

# Providers whose API can embed questions
EMBEDDING_CAPABLE = frozenset({ProviderName.OLLAMA, ProviderName.OPENAI, ProviderName.GEMINI})


def _require_key(api_key: str | None, label: str) -> str:
    if not api_key:
        raise ValueError(f"{label} API key is required")
    return api_key


def _ollama_config(settings: Settings) -> OllamaConfig:
    return OllamaConfig(
        host=settings.ollama_host,
        model=settings.ollama_model,
        embedding_model=settings.ollama_embedding_model,
    )


def _openai_config(settings: Settings) -> OpenAIConfig:
    return OpenAIConfig(
        api_key=_require_key(settings.openai_api_key, "OpenAI"),
        model=settings.openai_model,
        embedding_model=settings.openai_embedding_model,
    )


def _gemini_config(settings: Settings) -> GeminiConfig:
    return GeminiConfig(
        api_key=_require_key(settings.gemini_api_key, "Gemini"),
        model=settings.gemini_model,
        embedding_model=settings.gemini_embedding_model,
    )


def _anthropic_config(settings: Settings) -> AnthropicConfig:
    return AnthropicConfig(
        api_key=_require_key(settings.anthropic_api_key, "Anthropic"),
        model=settings.anthropic_model,
    )


_CONFIG_BUILDERS: dict[ProviderName, Callable[[Settings], BaseModel]] = {
    ProviderName.OLLAMA: _ollama_config,
    ProviderName.OPENAI: _openai_config,
    ProviderName.GEMINI: _gemini_config,
    ProviderName.ANTHROPIC: _anthropic_config,
}


def _resolve(provider_name: str | None, default: ProviderName) -> ProviderName:
    try:
        return ProviderName(provider_name or default)
    except ValueError:
        raise ValueError(f"Unknown LLM provider: {provider_name}") from None


def create_llm_provider(
    provider_name: str | None = None,
    settings: Settings | None = None,
) -> LLMProvider:
    """Create the provider that rewrites, routes, answers and validates questions.

    Args:
        provider_name: Override provider name, defaults to settings.llm_provider
        settings: Settings to build from, defaults to the global settings

    Returns:
        Configured LLM provider instance

    Raises:
        ValueError: If the provider is unknown or its API key is missing
    """
    settings = settings or get_settings()
    name = _resolve(provider_name, settings.llm_provider)
    config = _CONFIG_BUILDERS[name](settings)
    return LLMProviderFactory.create(name.value, config=config)


def create_embedding_provider(
    provider_name: str | None = None,
    settings: Settings | None = None,
) -> LLMProvider:
    """Create the provider that embeds questions for vector search.

    Question embeddings must come from the model the course corpus was
    indexed with, so ``settings.embedding_provider`` can pin it independently
    of the generation provider. Without a pin, a provider that cannot embed
    (Anthropic) falls back to OpenAI when a key is configured, else Ollama.

    Args:
        provider_name: Override provider name
        settings: Settings to build from, defaults to the global settings

    Returns:
        Configured LLM provider instance suitable for embeddings

    Raises:
        ValueError: If the resolved provider cannot be configured
    """
    settings = settings or get_settings()
    name = _resolve(provider_name, settings.embedding_provider or settings.llm_provider)

    if name not in EMBEDDING_CAPABLE:
        fallback = ProviderName.OPENAI if settings.openai_api_key else ProviderName.OLLAMA
        logger.info(f"{name.value} does not provide embeddings, using {fallback.value} instead")
        name = fallback

    return create_llm_provider(name, settings)
