"""Conversation history storage."""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

MessageRole = Literal["user", "assistant"]


@dataclass(frozen=True)
class StoredMessage:
    """A persisted conversation message."""

    role: MessageRole
    content: str
    created_at: datetime


@dataclass
class Conversation:
    """A conversation between one user and the assistant within a scope."""

    id: str
    user_id: str
    title: str
    guild_id: str | None
    channel_id: str | None
    thread_id: str | None
    created_at: datetime
    messages: list[StoredMessage] = field(default_factory=list)


class ConversationStore(ABC):
    """Abstract base class for conversation persistence."""

    @abstractmethod
    async def find_recent_conversation(
        self,
        user_id: str,
        guild_id: str,
        thread_id: str | None = None,
    ) -> str | None:
        """Find the user's most recent conversation in a scope.

        When ``thread_id`` is given only conversations started in that thread
        are considered; otherwise any conversation in the guild qualifies.
        """
        pass

    @abstractmethod
    async def load_recent_messages(self, conversation_id: str, limit: int) -> list[StoredMessage]:
        """Load up to ``limit`` messages, newest first."""
        pass

    @abstractmethod
    async def append_message(self, conversation_id: str, role: MessageRole, content: str) -> None:
        """Append a message to a conversation."""
        pass

    @abstractmethod
    async def create_conversation(
        self,
        user_id: str,
        title: str,
        guild_id: str | None = None,
        channel_id: str | None = None,
        thread_id: str | None = None,
    ) -> str:
        """Create a conversation and return its identifier."""
        pass

    async def health_check(self) -> bool:
        return True


class MemoryConversationStore(ConversationStore):
    """In-process conversation store.

    History is lost on restart; swap in a database-backed store for anything
    that needs to outlive the process.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    async def find_recent_conversation(
        self,
        user_id: str,
        guild_id: str,
        thread_id: str | None = None,
    ) -> str | None:
        candidates = [
            c
            for c in self._conversations.values()
            if c.user_id == user_id
            and c.guild_id == guild_id
            and (thread_id is None or c.thread_id == thread_id)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: c.created_at).id

    async def load_recent_messages(self, conversation_id: str, limit: int) -> list[StoredMessage]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return []
        newest_first = sorted(conversation.messages, key=lambda m: m.created_at, reverse=True)
        return newest_first[:limit]

    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        created_at: datetime | None = None,
    ) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        conversation.messages.append(
            StoredMessage(role=role, content=content, created_at=created_at or _now())
        )

    async def create_conversation(
        self,
        user_id: str,
        title: str,
        guild_id: str | None = None,
        channel_id: str | None = None,
        thread_id: str | None = None,
    ) -> str:
        conversation_id = str(uuid.uuid4())
        self._conversations[conversation_id] = Conversation(
            id=conversation_id,
            user_id=user_id,
            title=title,
            guild_id=guild_id,
            channel_id=channel_id,
            thread_id=thread_id,
            created_at=_now(),
        )
        logger.debug(f"Created conversation {conversation_id} for user {user_id}")
        return conversation_id

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)
