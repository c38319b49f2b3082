"""Shared fakes and fixtures for the test suite."""

import json
from typing import Any

import pytest

from courseqa.conversation import MemoryConversationStore, MemoryUsageSink
from courseqa.llm.base import (
    ChatMessage,
    CompletionResult,
    CompletionUsage,
    EmbeddingResult,
    LLMProvider,
)
from courseqa.models import MatchMetadata, QuestionRequest, SearchMatch
from courseqa.query import (
    AnswerGenerator,
    ContextAssembler,
    NamespaceRouter,
    QAOrchestrator,
    RetryPolicy,
)
from courseqa.query.answer import IMPROVE_PROMPT, VALIDATION_PROMPT
from courseqa.vectorstore import VectorSearchService

ROUTER_PROMPT_PREFIX = "You are an expert course content router"


def routing_json(namespaces: list[str], confidence: float = 0.9, reasoning: str = "test") -> str:
    return json.dumps({"namespaces": namespaces, "reasoning": reasoning, "confidence": confidence})


def validation_json(confidence: float = 0.8, is_valid: bool = True) -> str:
    return json.dumps({"isValid": is_valid, "confidence": confidence, "feedback": "looks good"})


class Script(tuple):
    """Replies handed out one call at a time."""


def script(*replies: Any) -> Script:
    return Script(replies)


def make_match(match_id: str, score: float, title: str | None = None, text: str = "content") -> SearchMatch:
    return SearchMatch(
        id=match_id,
        score=score,
        metadata=MatchMetadata(title=title or match_id, text=text),
    )


class FakeLLMProvider(LLMProvider):
    """Scripted provider that answers by the kind of prompt it receives.

    Each reply slot holds either a single reply used for every call or a
    ``script(...)`` consumed one call at a time (the last entry repeats). A
    reply that is an exception instance is raised instead of returned.
    """

    def __init__(
        self,
        improve: Any = "improved question",
        route: Any = None,
        answer: Any = "Here is the answer.",
        validate: Any = None,
        embedding: Any = None,
        healthy: bool = True,
    ):
        self.replies = {
            "improve": improve,
            "route": route if route is not None else routing_json(["unit-3"]),
            "answer": answer,
            "validate": validate if validate is not None else validation_json(),
            "embedding": embedding if embedding is not None else [0.1, 0.2, 0.3],
        }
        self.calls: dict[str, list[Any]] = {kind: [] for kind in self.replies}
        self.healthy = healthy

    def _next(self, kind: str) -> Any:
        reply = self.replies[kind]
        if isinstance(reply, Script):
            reply = reply[min(len(self.calls[kind]), len(reply)) - 1]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @staticmethod
    def _kind(messages: list[ChatMessage]) -> str:
        system = next((m.content for m in messages if m.role == "system"), "")
        if system == IMPROVE_PROMPT:
            return "improve"
        if system == VALIDATION_PROMPT:
            return "validate"
        if system.startswith(ROUTER_PROMPT_PREFIX):
            return "route"
        return "answer"

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        self.calls["embedding"].append(text)
        return EmbeddingResult(embedding=self._next("embedding"), model="fake-embed")

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> CompletionResult:
        kind = self._kind(messages)
        self.calls[kind].append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        content = self._next(kind)
        return CompletionResult(
            content=content,
            model="fake-chat",
            usage=CompletionUsage(prompt_tokens=10, completion_tokens=5),
            finish_reason="stop",
        )

    async def health_check(self) -> bool:
        return self.healthy


class FakeVectorSearch(VectorSearchService):
    """In-memory search returning canned matches per namespace."""

    def __init__(
        self,
        results: dict[str, list[SearchMatch]] | None = None,
        failing: set[str] | None = None,
    ):
        self.results = results or {}
        self.failing = failing or set()
        self.calls: list[dict[str, Any]] = []

    async def search(
        self,
        query_embedding: list[float],
        namespace: str,
        top_k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchMatch]:
        self.calls.append(
            {"namespace": namespace, "top_k": top_k, "metadata_filter": metadata_filter}
        )
        if namespace in self.failing:
            raise RuntimeError(f"namespace {namespace} unavailable")
        return list(self.results.get(namespace, []))[:top_k]

    async def health_check(self) -> bool:
        return True


NO_WAIT_IMPROVE = RetryPolicy.fixed(max_attempts=2, delay=0.0)


def build_orchestrator(llm, vector_search=None, store=None, usage_sink=None, max_attempts=3):
    """Wire an orchestrator around fakes with retries that never sleep."""
    store = store or MemoryConversationStore()
    router = NamespaceRouter(llm)
    return QAOrchestrator(
        embedding_provider=llm,
        router=router,
        assembler=ContextAssembler(
            vector_search or FakeVectorSearch({"unit-3": [make_match("doc-1", 0.81)]}),
            store,
            all_namespaces=list(router.namespace_descriptions()),
        ),
        generator=AnswerGenerator(llm),
        conversation_store=store,
        usage_sink=usage_sink or MemoryUsageSink(),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0.0, max_delay=0.0),
        improve_policy=NO_WAIT_IMPROVE,
    )


@pytest.fixture
def llm():
    return FakeLLMProvider()


@pytest.fixture
def vector_search():
    return FakeVectorSearch(
        {"unit-3": [make_match("doc-1", 0.81, title="Product research"), make_match("doc-2", 0.45)]}
    )


@pytest.fixture
def conversation_store():
    return MemoryConversationStore()


@pytest.fixture
def usage_sink():
    return MemoryUsageSink()


@pytest.fixture
def orchestrator(llm, vector_search, conversation_store, usage_sink):
    return build_orchestrator(llm, vector_search, conversation_store, usage_sink)


@pytest.fixture
def make_request():
    def factory(question: str = "How do I find profitable products?", **kwargs: Any) -> QuestionRequest:
        kwargs.setdefault("user_id", "user-1")
        return QuestionRequest(question=question, **kwargs)

    return factory
