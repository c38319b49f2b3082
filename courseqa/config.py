"""Configuration management using pydantic-settings."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


class Environment(str, Enum):
    """Application environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # LLM Provider Configuration
    llm_provider: LLMProvider = Field(
        default=LLMProvider.OPENAI,
        description="LLM provider to use for embeddings and responses",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_model: str = Field(
        default="llama3.2",
        description="Ollama model to use",
    )
    ollama_embedding_model: str = Field(
        default="nomic-embed-text",
        description="Ollama embedding model to use",
    )

    # OpenAI Configuration
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model to use",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model; must match the model the corpus was indexed with",
    )

    # Google Gemini Configuration
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Gemini API key",
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Google Gemini model to use",
    )
    gemini_embedding_model: str = Field(
        default="models/text-embedding-004",
        description="Google Gemini embedding model to use",
    )

    # Anthropic Configuration
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key",
    )
    anthropic_model: str = Field(
        default="claude-3-5-haiku-20241022",
        description="Anthropic model to use",
    )

    # Embedding Configuration
    embedding_provider: LLMProvider | None = Field(
        default=None,
        description="Provider used to embed questions; defaults to the LLM provider when it supports embeddings",
    )

    # ChromaDB Configuration
    chroma_host: str = Field(
        default="localhost",
        description="ChromaDB host",
    )
    chroma_port: int = Field(
        default=8000,
        description="ChromaDB port",
    )

    # Retrieval Configuration
    search_top_k: int = Field(default=5, ge=1, description="Maximum sources returned per answer")
    search_min_score: float = Field(
        default=0.02,
        ge=0.0,
        le=1.0,
        description="Matches scoring below this similarity are dropped",
    )
    default_namespace: str = Field(
        default="unit-3",
        description="Namespace used when routing cannot classify a question",
    )
    memory_message_limit: int = Field(
        default=10,
        ge=1,
        description="Number of past messages included as conversation context",
    )

    # Retry Configuration
    max_attempts: int = Field(default=3, ge=1, description="Whole-pipeline attempts per question")
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="First backoff delay in seconds")
    retry_max_delay: float = Field(default=5.0, ge=0.0, description="Backoff ceiling in seconds")
    improve_max_attempts: int = Field(default=2, ge=1, description="Question rewrite attempts")
    improve_retry_delay: float = Field(default=0.5, ge=0.0, description="Delay between rewrite attempts")

    # Queue Configuration
    rate_limit_max_requests: int = Field(
        default=3,
        ge=1,
        description="Questions a user may submit per window and scope",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Length of the rate limit window in seconds",
    )
    rate_limit_exempt_users: str = Field(
        default="",
        description="Comma-separated user IDs that bypass rate limiting",
    )
    job_timeout: float = Field(default=120.0, gt=0.0, description="Total time budget per job in seconds")
    queue_concurrency: int = Field(default=1, ge=1, description="Number of queue workers")
    queue_poll_interval: float = Field(default=1.0, gt=0.0, description="Worker poll interval in seconds")

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )

    @property
    def chroma_url(self) -> str:
        """Get the full ChromaDB URL."""
        return f"http://{self.chroma_host}:{self.chroma_port}"

    @property
    def exempt_user_ids(self) -> frozenset[str]:
        """Get the parsed rate limit allow-list."""
        return frozenset(
            user_id.strip() for user_id in self.rate_limit_exempt_users.split(",") if user_id.strip()
        )

    def validate_provider_config(self) -> None:
        """Validate that required API keys are set for the selected provider."""
        if self.llm_provider == LLMProvider.OPENAI and not self.openai_api_key:
            raise ValueError("OpenAI API key is required when using OpenAI provider")
        elif self.llm_provider == LLMProvider.GEMINI and not self.gemini_api_key:
            raise ValueError("Gemini API key is required when using Gemini provider")
        elif self.llm_provider == LLMProvider.ANTHROPIC and not self.anthropic_api_key:
            raise ValueError("Anthropic API key is required when using Anthropic provider")

        if self.embedding_provider == LLMProvider.ANTHROPIC:
            raise ValueError("Anthropic does not provide embeddings; choose another embedding provider")
        elif self.embedding_provider == LLMProvider.OPENAI and not self.openai_api_key:
            raise ValueError("OpenAI API key is required when embedding with OpenAI")
        elif self.embedding_provider == LLMProvider.GEMINI and not self.gemini_api_key:
            raise ValueError("Gemini API key is required when embedding with Gemini")


# Global settings instance - lazy loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
