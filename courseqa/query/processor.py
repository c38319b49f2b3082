"""Question answering pipeline with RAG and whole-pipeline retries."""

import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import RetryCallState, RetryError

from courseqa.conversation.store import ConversationStore
from courseqa.conversation.usage import UsageRecord, UsageSink
from courseqa.errors import PipelineExhaustedError
from courseqa.llm.base import LLMProvider, estimate_token_count
from courseqa.models import (
    PipelineStage,
    QAResult,
    QuestionRequest,
    SourceReference,
    TokenUsage,
)
from .answer import AnswerGenerator
from .context import ContextAssembler
from .retry import RetryPolicy
from .router import NamespaceRouter

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONVERSATION_TITLE_LENGTH = 100


async def best_effort(description: str, operation: Awaitable[T]) -> T | None:
    """Await a side effect whose failure must not affect the caller.

    Failures are logged and ``None`` is returned in place of the result.
    """
    try:
        return await operation
    except Exception as e:
        logger.error(f"Error {description}: {e}")
        return None


@dataclass
class _PipelineRun:
    """Mutable bookkeeping for one logical question across attempts."""

    started: float
    usage: TokenUsage
    stage: PipelineStage = PipelineStage.IMPROVING
    failed_stage: PipelineStage | None = None
    attempt: int = 0


class QAOrchestrator:
    """Runs the full question answering pipeline for one question at a time.

    Stages run strictly in order: improve, route, embed, search, build
    context, generate, validate, persist. Any failure restarts the whole
    sequence under ``retry_policy``; the question rewrite has its own, cheaper
    policy and falls back to the original question.
    """

    def __init__(
        self,
        embedding_provider: LLMProvider,
        router: NamespaceRouter,
        assembler: ContextAssembler,
        generator: AnswerGenerator,
        conversation_store: ConversationStore,
        usage_sink: UsageSink,
        retry_policy: RetryPolicy | None = None,
        improve_policy: RetryPolicy | None = None,
        top_k: int = 5,
        min_score: float = 0.02,
    ):
        self.embedding_provider = embedding_provider
        self.router = router
        self.assembler = assembler
        self.generator = generator
        self.conversation_store = conversation_store
        self.usage_sink = usage_sink
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=5.0)
        self.improve_policy = improve_policy or RetryPolicy.fixed(max_attempts=2, delay=0.5)
        self.top_k = top_k
        self.min_score = min_score

    async def process(self, request: QuestionRequest) -> QAResult:
        """Answer one question.

        Args:
            request: The validated question submission

        Returns:
            QAResult for the attempt that succeeded

        Raises:
            PipelineExhaustedError: If every attempt failed
        """
        run = _PipelineRun(started=time.monotonic(), usage=TokenUsage())
        max_attempts = self.retry_policy.max_attempts

        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.error(
                f"Error processing question (attempt {state.attempt_number}/{max_attempts}) "
                f"during {run.failed_stage.value if run.failed_stage else 'unknown'}: {error}"
            )
            self._enter(run, PipelineStage.RETRYING)
            logger.info(f"Retrying in {self.retry_policy.delay_for(state.attempt_number):g}s...")

        try:
            return await self.retry_policy.call(self._attempt, request, run, before_sleep=before_sleep)
        except RetryError as e:
            error = e.last_attempt.exception()
            logger.error(
                f"Error processing question (attempt {e.last_attempt.attempt_number}/{max_attempts}) "
                f"during {run.failed_stage.value if run.failed_stage else 'unknown'}: {error}"
            )
            self._enter(run, PipelineStage.FAILED)
            raise PipelineExhaustedError(
                attempts=e.last_attempt.attempt_number,
                last_error=error,
                stage=run.failed_stage,
            ) from error

    async def _attempt(self, request: QuestionRequest, run: _PipelineRun) -> QAResult:
        run.attempt += 1
        logger.info(
            f"Processing question from user {request.user_id} "
            f"(attempt {run.attempt}/{self.retry_policy.max_attempts}): {request.question}"
        )
        try:
            return await self._run_stages(request, run)
        except Exception:
            run.failed_stage = run.stage
            raise

    async def _run_stages(self, request: QuestionRequest, run: _PipelineRun) -> QAResult:
        self._enter(run, PipelineStage.IMPROVING)
        improved_question = await self.improve_question(request.question)
        logger.debug(f"Improved question: {improved_question}")

        self._enter(run, PipelineStage.ROUTING)
        routing = await self.router.route(improved_question)

        self._enter(run, PipelineStage.EMBEDDING)
        embedding = await self.embedding_provider.generate_embedding(improved_question)
        run.usage.embedding_tokens += estimate_token_count(improved_question)

        self._enter(run, PipelineStage.SEARCHING)
        matches = await self.assembler.search(
            embedding.embedding,
            routing.namespaces,
            top_k=self.top_k,
            min_score=self.min_score,
        )
        logger.debug(f"Found {len(matches)} relevant documents")

        self._enter(run, PipelineStage.CONTEXT_BUILDING)
        conversation = await self.assembler.build_conversation_context(request)
        document_context = self.assembler.build_document_context(matches)

        self._enter(run, PipelineStage.GENERATING)
        answer = await self.generator.generate(
            request.question,
            document_context,
            conversation.text,
            language=request.language,
            custom_system_prompt=request.custom_system_prompt,
        )
        run.usage.prompt_tokens += answer.usage.prompt_tokens
        run.usage.completion_tokens += answer.usage.completion_tokens

        self._enter(run, PipelineStage.VALIDATING)
        validation = await self.generator.validate(request.question, answer.content, document_context)

        self._enter(run, PipelineStage.PERSISTING)
        conversation_id = conversation.conversation_id
        if request.context_memory and request.guild_id and request.channel_id:
            stored_id = await best_effort(
                "storing conversation",
                self._store_conversation(request, answer.content, conversation_id),
            )
            conversation_id = stored_id or conversation_id

        processing_time = time.monotonic() - run.started
        await best_effort(
            "logging usage",
            self.usage_sink.record(
                UsageRecord(
                    user_id=request.user_id,
                    question=request.question,
                    prompt_tokens=run.usage.prompt_tokens,
                    completion_tokens=run.usage.completion_tokens,
                    embedding_tokens=run.usage.embedding_tokens,
                    response_time_ms=int(processing_time * 1000),
                    results_count=len(matches),
                    confidence=validation.confidence,
                    namespaces=list(routing.namespaces),
                )
            ),
        )

        self._enter(run, PipelineStage.DONE)
        logger.info(
            f"Question processed in {processing_time:.2f}s with "
            f"{validation.confidence:.0%} confidence ({len(matches)} sources)"
        )
        return QAResult(
            answer=answer.content,
            confidence=validation.confidence,
            sources=[SourceReference.from_match(match) for match in matches],
            usage=TokenUsage(
                prompt_tokens=run.usage.prompt_tokens,
                completion_tokens=run.usage.completion_tokens,
                embedding_tokens=run.usage.embedding_tokens,
            ),
            processing_time=processing_time,
            conversation_id=conversation_id,
            namespaces=list(routing.namespaces),
            attempts=run.attempt,
        )

    async def improve_question(self, question: str) -> str:
        """Rewrite the question, falling back to it verbatim when rewriting keeps failing."""

        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                f"Failed to improve question "
                f"(attempt {state.attempt_number}/{self.improve_policy.max_attempts}): {error}"
            )

        try:
            return await self.improve_policy.call(
                self.generator.improve_question, question, before_sleep=before_sleep
            )
        except RetryError as e:
            logger.warning(
                f"All attempts to improve question failed, using original: "
                f"{e.last_attempt.exception()}"
            )
            return question

    async def _store_conversation(
        self,
        request: QuestionRequest,
        answer: str,
        conversation_id: str | None,
    ) -> str:
        if conversation_id is None:
            conversation_id = await self.conversation_store.create_conversation(
                request.user_id,
                request.question[:CONVERSATION_TITLE_LENGTH],
                guild_id=request.guild_id,
                channel_id=request.channel_id,
                thread_id=request.thread_id,
            )

        await self.conversation_store.append_message(conversation_id, "user", request.question)
        await self.conversation_store.append_message(conversation_id, "assistant", answer)
        return conversation_id

    def _enter(self, run: _PipelineRun, stage: PipelineStage) -> None:
        logger.debug(f"Pipeline stage {run.stage.value} -> {stage.value} (attempt {run.attempt})")
        run.stage = stage

    async def health_check(self) -> dict[str, bool]:
        """Check health of the pipeline's collaborators.

        Returns:
            Health status dictionary
        """
        health = {
            "generation": await self.generator.llm_provider.health_check(),
            "embedding": await self.embedding_provider.health_check(),
            "vector_search": await self.assembler.vector_search.health_check(),
            "conversation_store": await self.conversation_store.health_check(),
        }
        health["overall"] = all(health.values())
        return health
