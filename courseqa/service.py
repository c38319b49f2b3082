"""Entry point for callers submitting questions."""

import logging

from courseqa.jobs import JobQueue, JobResult, RateLimitStatus
from courseqa.models import QuestionRequest

logger = logging.getLogger(__name__)


class QuestionService:
    """Admits, queues and answers questions on behalf of chat front-ends."""

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def ask(
        self,
        request: QuestionRequest,
        high_priority: bool = False,
    ) -> JobResult | RateLimitStatus:
        """Answer a question if the user is within their rate limit.

        Args:
            request: The user's question
            high_priority: Put the question at the head of the queue

        Returns:
            JobResult when answered, or the rejecting RateLimitStatus

        Raises:
            PipelineExhaustedError: If every pipeline attempt failed
            JobTimeoutError: If answering exceeded the job time budget
        """
        status = self.queue.check_rate_limit(request.user_id, request.scope)
        if not status.allowed:
            logger.info(f"Rejected question from user {request.user_id}: rate limited")
            return status

        job_id = await self.queue.enqueue(request, high_priority=high_priority)
        result = await self.queue.run(job_id)
        if result is None:
            # Only happens if the job was cancelled between enqueue and run
            raise LookupError(f"Job {job_id} is no longer queued")
        return result
