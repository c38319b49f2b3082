"""Question answering models and data structures."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

MAX_QUESTION_LENGTH = 500

MetadataValue = Union[str, int, float, bool, list[str]]

_KNOWN_METADATA_KEYS = ("title", "description", "text", "namespace")


class QuestionRequest(BaseModel):
    """One user's question submission."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    question: str = Field(..., min_length=1, max_length=MAX_QUESTION_LENGTH)
    user_id: str = Field(..., min_length=1)
    guild_id: str | None = None
    channel_id: str | None = None
    thread_id: str | None = None
    context_memory: bool = False
    language: str = "en"
    custom_system_prompt: str | None = None

    @property
    def scope(self) -> str:
        """Rate limiting scope: the guild, or ``dm`` for direct messages."""
        return self.guild_id or "dm"


def _coerce_metadata_value(value: Any) -> MetadataValue:
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return str(value)


@dataclass(frozen=True)
class MatchMetadata:
    """Metadata attached to a retrieved passage.

    The well-known fields have named accessors; everything else is kept in
    ``extra`` with values narrowed to strings, numbers, booleans or string
    lists.
    """

    title: str | None = None
    description: str | None = None
    text: str | None = None
    namespace: str | None = None
    extra: dict[str, MetadataValue] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "MatchMetadata":
        raw = dict(raw or {})
        known = {key: raw.pop(key) for key in _KNOWN_METADATA_KEYS if key in raw}
        return cls(
            title=_optional_str(known.get("title")),
            description=_optional_str(known.get("description")),
            text=_optional_str(known.get("text")),
            namespace=_optional_str(known.get("namespace")),
            extra={key: _coerce_metadata_value(value) for key, value in raw.items() if value is not None},
        )

    def get(self, key: str, default: MetadataValue | None = None) -> MetadataValue | None:
        if key in _KNOWN_METADATA_KEYS:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def with_namespace(self, namespace: str) -> "MatchMetadata":
        return replace(self, namespace=namespace)

    def to_dict(self) -> dict[str, MetadataValue]:
        data: dict[str, MetadataValue] = dict(self.extra)
        for key in _KNOWN_METADATA_KEYS:
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class SearchMatch:
    """Individual match returned by the vector search service."""

    id: str
    score: float
    metadata: MatchMetadata = field(default_factory=MatchMetadata)


@dataclass(frozen=True)
class RoutingDecision:
    """Namespaces selected for a question by the router."""

    namespaces: list[str]
    reasoning: str
    confidence: float


@dataclass(frozen=True)
class ConversationContext:
    """Rendered conversation history plus the conversation it came from."""

    text: str = ""
    conversation_id: str | None = None


@dataclass(frozen=True)
class Validation:
    """Advisory quality assessment of a generated answer."""

    is_valid: bool
    confidence: float
    feedback: str


@dataclass(frozen=True)
class SourceReference:
    """A ranked source cited in a result."""

    title: str
    content: str
    score: float
    metadata: MatchMetadata

    @classmethod
    def from_match(cls, match: SearchMatch) -> "SourceReference":
        return cls(
            title=match.metadata.title or "Untitled",
            content=match.metadata.description or match.metadata.text or "",
            score=match.score,
            metadata=match.metadata,
        )


@dataclass
class TokenUsage:
    """Token counters for one processed question."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    embedding_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class QAResult:
    """Complete result of processing one question."""

    answer: str
    confidence: float
    sources: list[SourceReference]
    usage: TokenUsage
    processing_time: float
    conversation_id: str | None = None
    namespaces: list[str] = field(default_factory=list)
    attempts: int = 1


class PipelineStage(str, Enum):
    """Stages a question passes through in the orchestrator."""

    IMPROVING = "improving"
    ROUTING = "routing"
    EMBEDDING = "embedding"
    SEARCHING = "searching"
    CONTEXT_BUILDING = "context_building"
    GENERATING = "generating"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    DONE = "done"
    RETRYING = "retrying"
    FAILED = "failed"
