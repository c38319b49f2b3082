"""End-to-end tests for the question service."""

import time

import pytest

from conftest import FakeLLMProvider, FakeVectorSearch, build_orchestrator, make_match, routing_json
from courseqa.errors import PipelineExhaustedError
from courseqa.jobs import JobQueue, JobResult, RateLimiter, RateLimitStatus
from courseqa.service import QuestionService


@pytest.fixture
def service(orchestrator):
    limiter = RateLimiter(max_requests=3, window_seconds=60.0, exempt_users={"admin"})
    return QuestionService(JobQueue(orchestrator, limiter, job_timeout=5.0))


class TestQuestionService:
    """Test admission, queueing and answering together."""

    @pytest.mark.asyncio
    async def test_profitable_products_scenario(self, make_request):
        """Test a product research question end to end."""
        llm = FakeLLMProvider(route=routing_json(["unit-3"], confidence=0.9))
        search = FakeVectorSearch(
            {"unit-3": [make_match("doc-2", 0.45, title="Sourcing"), make_match("doc-1", 0.81, title="Research")]}
        )
        service = QuestionService(
            JobQueue(build_orchestrator(llm, search), RateLimiter(), job_timeout=5.0)
        )

        outcome = await service.ask(make_request("How do I find profitable products?"))

        assert isinstance(outcome, JobResult)
        result = outcome.result
        assert result.namespaces == ["unit-3"]
        assert [(s.title, s.score) for s in result.sources] == [("Research", 0.81), ("Sourcing", 0.45)]
        assert 0.0 <= result.confidence <= 1.0
        assert outcome.job_id.startswith("job_")

    @pytest.mark.asyncio
    async def test_fourth_question_rejected(self, service, make_request):
        """Test that a fourth question within the window is rejected."""
        for i in range(3):
            outcome = await service.ask(make_request(f"question {i}", guild_id="g1"))
            assert isinstance(outcome, JobResult)

        rejected = await service.ask(make_request("question 4", guild_id="g1"))

        assert isinstance(rejected, RateLimitStatus)
        assert rejected.allowed is False
        assert rejected.remaining_requests == 0
        assert rejected.reset_time > time.time()

    @pytest.mark.asyncio
    async def test_rejection_is_per_scope(self, service, make_request):
        """Test that a limit in one guild does not affect direct messages."""
        for i in range(3):
            await service.ask(make_request(f"question {i}", guild_id="g1"))

        outcome = await service.ask(make_request("in a DM"))

        assert isinstance(outcome, JobResult)

    @pytest.mark.asyncio
    async def test_exempt_user_never_rejected(self, service, make_request):
        """Test that exempt users bypass the limit."""
        for i in range(5):
            outcome = await service.ask(make_request(f"question {i}", user_id="admin", guild_id="g1"))
            assert isinstance(outcome, JobResult)

    @pytest.mark.asyncio
    async def test_high_priority_submission(self, service, make_request):
        """Test that a high-priority question is answered normally."""
        outcome = await service.ask(make_request(), high_priority=True)

        assert isinstance(outcome, JobResult)
        assert outcome.result.answer == "Here is the answer."

    @pytest.mark.asyncio
    async def test_terminal_failure_propagates(self, make_request):
        """Test that pipeline exhaustion reaches the caller."""
        llm = FakeLLMProvider(answer=RuntimeError("generation down"))
        service = QuestionService(
            JobQueue(build_orchestrator(llm), RateLimiter(), job_timeout=5.0)
        )

        with pytest.raises(PipelineExhaustedError):
            await service.ask(make_request())

        stats = await service.queue.stats()
        assert (stats.waiting, stats.active) == (0, 0)
