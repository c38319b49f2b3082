"""Main entry point for the Course Q&A service."""

import asyncio
import logging
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

from courseqa.config import Settings, get_settings
from courseqa.conversation import LoggingUsageSink, MemoryConversationStore
from courseqa.jobs import JobQueue, RateLimiter
from courseqa.llm import create_embedding_provider, create_llm_provider
from courseqa.query import (
    AnswerGenerator,
    ContextAssembler,
    NamespaceRouter,
    QAOrchestrator,
    RetryPolicy,
)
from courseqa.service import QuestionService
from courseqa.vectorstore import ChromaVectorSearch

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The wired service graph."""

    orchestrator: QAOrchestrator
    queue: JobQueue
    question_service: QuestionService


def build_services(settings: Settings) -> Services:
    """Construct every component from settings.

    Args:
        settings: Application settings

    Returns:
        Services ready to start
    """
    llm_provider = create_llm_provider(settings=settings)
    embedding_provider = create_embedding_provider(settings=settings)
    vector_search = ChromaVectorSearch(host=settings.chroma_host, port=settings.chroma_port)
    conversation_store = MemoryConversationStore()

    router = NamespaceRouter(llm_provider, default_namespace=settings.default_namespace)
    assembler = ContextAssembler(
        vector_search,
        conversation_store,
        all_namespaces=list(router.namespace_descriptions()),
        memory_message_limit=settings.memory_message_limit,
    )
    orchestrator = QAOrchestrator(
        embedding_provider=embedding_provider,
        router=router,
        assembler=assembler,
        generator=AnswerGenerator(llm_provider),
        conversation_store=conversation_store,
        usage_sink=LoggingUsageSink(),
        retry_policy=RetryPolicy(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        ),
        improve_policy=RetryPolicy.fixed(
            max_attempts=settings.improve_max_attempts,
            delay=settings.improve_retry_delay,
        ),
        top_k=settings.search_top_k,
        min_score=settings.search_min_score,
    )
    rate_limiter = RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        exempt_users=settings.exempt_user_ids,
    )
    queue = JobQueue(orchestrator, rate_limiter, job_timeout=settings.job_timeout)
    return Services(
        orchestrator=orchestrator,
        queue=queue,
        question_service=QuestionService(queue),
    )


async def main() -> None:
    """Main application entry point."""
    load_dotenv()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting Course Q&A service in {settings.environment.value} mode")
    logger.info(f"Using LLM provider: {settings.llm_provider.value}")

    # Validate configuration
    try:
        settings.validate_provider_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    services = build_services(settings)

    health = await services.orchestrator.health_check()
    for component, healthy in health.items():
        if component != "overall":
            logger.info(f"Health check {component}: {'ok' if healthy else 'FAILED'}")
    if not health["overall"]:
        logger.warning("Some components are unhealthy; questions may fail until they recover")

    services.queue.start(
        concurrency=settings.queue_concurrency,
        poll_interval=settings.queue_poll_interval,
    )

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down...")
        await services.queue.stop()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
