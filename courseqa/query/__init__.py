"""Query processing and RAG pipeline module."""

from .answer import AnswerGenerator
from .context import NO_RELEVANT_CONTENT, ContextAssembler
from .processor import QAOrchestrator, best_effort
from .retry import RetryPolicy
from .router import DEFAULT_NAMESPACES, NamespaceRouter

__all__ = [
    "AnswerGenerator",
    "ContextAssembler",
    "DEFAULT_NAMESPACES",
    "NO_RELEVANT_CONTENT",
    "NamespaceRouter",
    "QAOrchestrator",
    "RetryPolicy",
    "best_effort",
]
