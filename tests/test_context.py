"""Tests for retrieval fan-out and context assembly."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeVectorSearch, make_match
from courseqa.conversation import MemoryConversationStore
from courseqa.models import MatchMetadata, QuestionRequest, SearchMatch
from courseqa.query.context import NO_RELEVANT_CONTENT, ContextAssembler, time_ago

NAMESPACES = ["unit-1", "unit-2", "unit-3"]


def make_assembler(vector_search, store=None, **kwargs) -> ContextAssembler:
    return ContextAssembler(
        vector_search,
        store or MemoryConversationStore(),
        all_namespaces=NAMESPACES,
        **kwargs,
    )


class TestSearch:
    """Test the per-namespace search fan-out."""

    @pytest.mark.asyncio
    async def test_merged_and_sorted(self):
        """Test that matches from several namespaces merge by descending score."""
        search = FakeVectorSearch(
            {
                "unit-1": [make_match("a", 0.30), make_match("b", 0.90)],
                "unit-2": [make_match("c", 0.60)],
            }
        )
        assembler = make_assembler(search)

        matches = await assembler.search([0.1], ["unit-1", "unit-2"])

        assert [m.id for m in matches] == ["b", "c", "a"]
        assert matches[0].metadata.namespace == "unit-1"
        assert matches[1].metadata.namespace == "unit-2"

    @pytest.mark.asyncio
    async def test_cut_to_top_k_then_filtered(self):
        """Test that the list is sliced to top_k before the score filter."""
        search = FakeVectorSearch(
            {"unit-1": [make_match(f"m{i}", score) for i, score in enumerate([0.9, 0.8, 0.01, 0.005])]}
        )
        assembler = make_assembler(search)

        matches = await assembler.search([0.1], ["unit-1"], top_k=3, min_score=0.02)

        assert [m.id for m in matches] == ["m0", "m1"]

    @pytest.mark.asyncio
    async def test_partial_failure_returns_survivors(self):
        """Test that one failing namespace yields the union of the others."""
        search = FakeVectorSearch(
            {"unit-1": [make_match("a", 0.5)], "unit-3": [make_match("c", 0.7)]},
            failing={"unit-2"},
        )
        assembler = make_assembler(search)

        matches = await assembler.search([0.1], NAMESPACES)

        assert {m.id for m in matches} == {"a", "c"}

    @pytest.mark.asyncio
    async def test_total_failure_raises(self):
        """Test that a search failing everywhere is an error."""
        search = FakeVectorSearch(failing={"unit-1", "unit-2"})
        assembler = make_assembler(search)

        with pytest.raises(RuntimeError, match="every namespace"):
            await assembler.search([0.1], ["unit-1", "unit-2"])

    @pytest.mark.asyncio
    async def test_empty_namespaces_searches_catalog(self):
        """Test that no requested namespaces means every catalog namespace."""
        search = FakeVectorSearch()
        assembler = make_assembler(search)

        matches = await assembler.search([0.1], [])

        assert matches == []
        assert sorted(call["namespace"] for call in search.calls) == NAMESPACES

    @pytest.mark.asyncio
    async def test_metadata_filter_forwarded(self):
        """Test that the metadata filter reaches each namespace query."""
        search = FakeVectorSearch()
        assembler = make_assembler(search)

        await assembler.search([0.1], ["unit-1"], top_k=4, metadata_filter={"section": "intro"})

        assert search.calls == [{"namespace": "unit-1", "top_k": 4, "metadata_filter": {"section": "intro"}}]


class TestDocumentContext:
    """Test rendering of retrieved passages."""

    def test_empty_matches_sentinel(self):
        """Test the sentinel for no matches."""
        assembler = make_assembler(FakeVectorSearch())

        assert assembler.build_document_context([]) == NO_RELEVANT_CONTENT

    def test_rendering(self):
        """Test title, relevance percentage and separators."""
        assembler = make_assembler(FakeVectorSearch())
        matches = [
            make_match("a", 0.8123, title="Finding products", text="Look at demand."),
            SearchMatch(id="b", score=0.45, metadata=MatchMetadata(description="Only a description")),
        ]

        context = assembler.build_document_context(matches)

        assert context == (
            "[Finding products] (Relevance: 81.2%)\nLook at demand."
            "\n\n"
            "[Source 2] (Relevance: 45.0%)\nOnly a description"
        )


class TestConversationContext:
    """Test rendering of conversation history."""

    @pytest.mark.asyncio
    async def test_disabled_without_memory(self):
        """Test that no history is loaded when memory is off."""
        store = MemoryConversationStore()
        await store.create_conversation("user-1", "title", guild_id="g1")
        assembler = make_assembler(FakeVectorSearch(), store)

        context = await assembler.build_conversation_context(
            QuestionRequest(question="q", user_id="user-1", guild_id="g1")
        )

        assert context.text == ""
        assert context.conversation_id is None

    @pytest.mark.asyncio
    async def test_disabled_without_guild(self):
        """Test that direct messages get no history."""
        assembler = make_assembler(FakeVectorSearch())

        context = await assembler.build_conversation_context(
            QuestionRequest(question="q", user_id="user-1", context_memory=True)
        )

        assert context.text == ""

    @pytest.mark.asyncio
    async def test_chronological_rendering(self):
        """Test that recent messages are rendered oldest first with their age."""
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        store = MemoryConversationStore()
        conversation_id = await store.create_conversation("user-1", "title", guild_id="g1")
        await store.append_message(conversation_id, "user", "What is FBA?", created_at=now - timedelta(hours=2))
        await store.append_message(
            conversation_id, "assistant", "Fulfillment by Amazon.", created_at=now - timedelta(minutes=5)
        )
        assembler = make_assembler(FakeVectorSearch(), store)

        context = await assembler.build_conversation_context(
            QuestionRequest(question="q", user_id="user-1", guild_id="g1", context_memory=True),
            now=now,
        )

        assert context.conversation_id == conversation_id
        assert context.text == "user (2h ago): What is FBA?\n\nassistant (5m ago): Fulfillment by Amazon."

    @pytest.mark.asyncio
    async def test_message_limit(self):
        """Test that only the newest messages within the limit are used."""
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        store = MemoryConversationStore()
        conversation_id = await store.create_conversation("user-1", "title", guild_id="g1")
        for minutes in (30, 20, 10):
            await store.append_message(
                conversation_id, "user", f"{minutes} minutes", created_at=now - timedelta(minutes=minutes)
            )
        assembler = make_assembler(FakeVectorSearch(), store, memory_message_limit=2)

        context = await assembler.build_conversation_context(
            QuestionRequest(question="q", user_id="user-1", guild_id="g1", context_memory=True),
            now=now,
        )

        assert "30 minutes" not in context.text
        assert context.text.index("20 minutes") < context.text.index("10 minutes")

    @pytest.mark.asyncio
    async def test_store_failure_degrades(self):
        """Test that a failing store yields empty context instead of raising."""

        class BrokenStore(MemoryConversationStore):
            async def find_recent_conversation(self, user_id, guild_id, thread_id=None):
                raise ConnectionError("database down")

        assembler = make_assembler(FakeVectorSearch(), BrokenStore())

        context = await assembler.build_conversation_context(
            QuestionRequest(question="q", user_id="user-1", guild_id="g1", context_memory=True)
        )

        assert context.text == ""
        assert context.conversation_id is None


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(seconds=30), "just now"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=3, minutes=59), "3h ago"),
        (timedelta(days=2, hours=1), "2d ago"),
    ],
)
def test_time_ago(elapsed, expected):
    """Test relative age formatting."""
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert time_ago(now - elapsed, now) == expected
