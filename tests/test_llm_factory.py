"""Tests for LLM factory functions."""

from unittest.mock import patch

import pytest

from courseqa.config import LLMProvider as LLMProviderEnum
from courseqa.config import Settings
from courseqa.llm.anthropic import AnthropicProvider
from courseqa.llm.factory import create_embedding_provider, create_llm_provider
from courseqa.llm.gemini import GeminiProvider
from courseqa.llm.ollama import OllamaProvider
from courseqa.llm.openai import OpenAIProvider


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestLLMFactory:
    """Test LLM factory functions."""

    def test_create_ollama_provider(self):
        """Test creating Ollama provider."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.OLLAMA,
            ollama_host="http://test:11434",
            ollama_model="llama3.2",
        )

        provider = create_llm_provider(settings=settings)
        assert isinstance(provider, OllamaProvider)
        assert provider.config.host == "http://test:11434"
        assert provider.config.model == "llama3.2"

    def test_create_openai_provider(self):
        """Test creating OpenAI provider."""
        settings = make_settings(llm_provider=LLMProviderEnum.OPENAI, openai_api_key="test-key")

        provider = create_llm_provider(settings=settings)
        assert isinstance(provider, OpenAIProvider)
        assert provider.config.api_key == "test-key"
        assert provider.config.embedding_model == "text-embedding-3-small"

    def test_create_openai_provider_missing_key(self):
        """Test creating OpenAI provider without API key."""
        settings = make_settings(llm_provider=LLMProviderEnum.OPENAI, openai_api_key=None)

        with pytest.raises(ValueError, match="OpenAI API key is required"):
            create_llm_provider(settings=settings)

    def test_create_anthropic_provider(self):
        """Test creating Anthropic provider for completions."""
        settings = make_settings(llm_provider=LLMProviderEnum.ANTHROPIC, anthropic_api_key="test-key")

        provider = create_llm_provider(settings=settings)
        assert isinstance(provider, AnthropicProvider)

    def test_create_embedding_provider_anthropic_fallback(self):
        """Test embedding provider fallback for Anthropic."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.ANTHROPIC,
            anthropic_api_key="test-key",
            openai_api_key="test-key",
        )

        provider = create_embedding_provider(settings=settings)
        assert isinstance(provider, OpenAIProvider)

    def test_create_embedding_provider_anthropic_fallback_ollama(self):
        """Test embedding provider fallback to Ollama for Anthropic."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.ANTHROPIC,
            anthropic_api_key="test-key",
            openai_api_key=None,
            ollama_host="http://test:11434",
        )

        provider = create_embedding_provider(settings=settings)
        assert isinstance(provider, OllamaProvider)
        assert provider.config.host == "http://test:11434"

    def test_create_anthropic_provider_model(self):
        """Test that the configured Anthropic model is used."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.ANTHROPIC,
            anthropic_api_key="test-key",
            anthropic_model="claude-3-5-sonnet-20241022",
        )

        provider = create_llm_provider(settings=settings)
        assert provider.config.model == "claude-3-5-sonnet-20241022"

    def test_unknown_provider(self):
        """Test that an unknown provider name is rejected."""
        with pytest.raises(ValueError, match="Unknown LLM provider: mistral"):
            create_llm_provider("mistral", settings=make_settings())

    def test_pinned_embedding_provider(self):
        """Test that the embedding provider can differ from the generation provider."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.OLLAMA,
            embedding_provider=LLMProviderEnum.OPENAI,
            openai_api_key="test-key",
            openai_embedding_model="text-embedding-3-large",
        )

        assert isinstance(create_llm_provider(settings=settings), OllamaProvider)
        provider = create_embedding_provider(settings=settings)
        assert isinstance(provider, OpenAIProvider)
        assert provider.config.embedding_model == "text-embedding-3-large"

    @patch("courseqa.llm.gemini.genai")
    def test_gemini_embedding_model(self, mock_genai):
        """Test that Gemini embeds with its configured embedding model."""
        settings = make_settings(
            llm_provider=LLMProviderEnum.GEMINI,
            gemini_api_key="test-key",
            gemini_embedding_model="models/embedding-001",
        )

        provider = create_embedding_provider(settings=settings)
        assert isinstance(provider, GeminiProvider)
        assert provider.config.embedding_model == "models/embedding-001"
        mock_genai.configure.assert_called_once_with(api_key="test-key")

    @patch("courseqa.llm.factory.get_settings")
    def test_defaults_to_global_settings(self, mock_get_settings):
        """Test that the global settings are used when none are passed."""
        mock_get_settings.return_value = make_settings(
            llm_provider=LLMProviderEnum.OLLAMA,
            ollama_host="http://global:11434",
        )

        provider = create_llm_provider()
        assert isinstance(provider, OllamaProvider)
        assert provider.config.host == "http://global:11434"
