"""Conversation history and usage telemetry module."""

from .store import ConversationStore, MemoryConversationStore, StoredMessage
from .usage import LoggingUsageSink, MemoryUsageSink, UsageRecord, UsageSink

__all__ = [
    "ConversationStore",
    "MemoryConversationStore",
    "StoredMessage",
    "UsageRecord",
    "UsageSink",
    "LoggingUsageSink",
    "MemoryUsageSink",
]
