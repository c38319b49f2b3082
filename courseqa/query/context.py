"""Retrieval fan-out and prompt context assembly."""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from courseqa.conversation.store import ConversationStore
from courseqa.models import ConversationContext, QuestionRequest, SearchMatch
from courseqa.vectorstore.vectorizer import VectorSearchService

logger = logging.getLogger(__name__)

NO_RELEVANT_CONTENT = "No relevant course content found."


class ContextAssembler:
    """Builds the retrieved and conversational context for a question."""

    def __init__(
        self,
        vector_search: VectorSearchService,
        conversation_store: ConversationStore,
        all_namespaces: Sequence[str] = (),
        memory_message_limit: int = 10,
    ):
        """Initialize the context assembler.

        Args:
            vector_search: Per-namespace similarity search
            conversation_store: Source of conversation history
            all_namespaces: Namespaces searched when none are requested
            memory_message_limit: Maximum messages rendered as conversation context
        """
        self.vector_search = vector_search
        self.conversation_store = conversation_store
        self.all_namespaces = list(all_namespaces)
        self.memory_message_limit = memory_message_limit

    async def search(
        self,
        embedding: list[float],
        namespaces: Sequence[str],
        top_k: int = 5,
        min_score: float = 0.02,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[SearchMatch]:
        """Search every namespace concurrently and merge by score.

        A namespace whose query fails contributes no matches. The merged list
        is cut to ``top_k`` before matches under ``min_score`` are dropped.
        Only when every namespace fails is the search itself an error.

        Args:
            embedding: Query embedding
            namespaces: Namespaces to search; empty means the whole catalog
            top_k: Maximum matches returned
            min_score: Minimum similarity kept
            metadata_filter: Optional filter passed to each namespace query

        Returns:
            Matches sorted by descending score, each tagged with its namespace

        Raises:
            RuntimeError: If every namespace query failed
        """
        targets = list(namespaces) or self.all_namespaces

        async def query(namespace: str) -> list[SearchMatch] | None:
            try:
                matches = await self.vector_search.search(
                    embedding, namespace, top_k=top_k, metadata_filter=metadata_filter
                )
            except Exception as e:
                logger.warning(f"Error querying namespace {namespace}: {e}")
                return None
            return [
                SearchMatch(id=m.id, score=m.score, metadata=m.metadata.with_namespace(namespace))
                for m in matches
            ]

        per_namespace = await asyncio.gather(*(query(ns) for ns in targets))

        succeeded = [matches for matches in per_namespace if matches is not None]
        if targets and not succeeded:
            raise RuntimeError(f"Search failed in every namespace: {', '.join(targets)}")

        merged = [match for matches in succeeded for match in matches]
        merged.sort(key=lambda m: m.score, reverse=True)
        return [m for m in merged[:top_k] if m.score >= min_score]

    def build_document_context(self, matches: Sequence[SearchMatch]) -> str:
        if not matches:
            return NO_RELEVANT_CONTENT

        blocks = []
        for index, match in enumerate(matches, 1):
            title = match.metadata.title or f"Source {index}"
            content = match.metadata.text or match.metadata.description or ""
            blocks.append(f"[{title}] (Relevance: {match.score * 100:.1f}%)\n{content}")
        return "\n\n".join(blocks)

    async def build_conversation_context(
        self,
        request: QuestionRequest,
        now: datetime | None = None,
    ) -> ConversationContext:
        """Render the user's recent conversation in this scope.

        Returns an empty context when memory is off, there is no guild scope,
        no history exists, or the store fails.
        """
        if not request.context_memory or not request.guild_id:
            return ConversationContext()

        try:
            conversation_id = await self.conversation_store.find_recent_conversation(
                request.user_id, request.guild_id, thread_id=request.thread_id
            )
            if conversation_id is None:
                return ConversationContext()

            messages = await self.conversation_store.load_recent_messages(
                conversation_id, self.memory_message_limit
            )
        except Exception as e:
            logger.error(f"Error getting conversation context: {e}")
            return ConversationContext()

        if not messages:
            return ConversationContext(conversation_id=conversation_id)

        now = now or datetime.now(timezone.utc)
        text = "\n\n".join(
            f"{message.role} ({time_ago(message.created_at, now)}): {message.content}"
            for message in reversed(messages)
        )
        logger.debug(
            f"Retrieved {len(messages)} messages for conversation context "
            f"(limit: {self.memory_message_limit})"
        )
        return ConversationContext(text=text, conversation_id=conversation_id)


def time_ago(then: datetime, now: datetime) -> str:
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
