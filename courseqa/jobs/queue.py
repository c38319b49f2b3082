"""Priority job queue with per-job at-most-once execution."""

import asyncio
import logging
from datetime import datetime, timezone

from courseqa.errors import JobTimeoutError
from courseqa.models import QuestionRequest
from courseqa.query.processor import QAOrchestrator
from .models import HIGH_PRIORITY, Job, JobResult, JobStatus, QueueStats, RateLimitStatus
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class JobQueue:
    """Orders submitted questions by priority and runs each one exactly once.

    A job stays in the pending list until its execution finishes. Callers that
    ask for a job that is already executing join that execution and receive
    the same result or error. The queue itself never retries; retries belong
    to the orchestrator.
    """

    def __init__(
        self,
        orchestrator: QAOrchestrator,
        rate_limiter: RateLimiter,
        job_timeout: float = 120.0,
    ):
        """Initialize the job queue.

        Args:
            orchestrator: Pipeline that answers each job's question
            rate_limiter: Limiter that admissions are recorded in
            job_timeout: Total time budget per job execution in seconds
        """
        self.orchestrator = orchestrator
        self.rate_limiter = rate_limiter
        self.job_timeout = job_timeout

        self._pending: list[Job] = []
        self._in_flight: dict[str, asyncio.Task[JobResult]] = {}
        self._lock = asyncio.Lock()
        self._workers: list[asyncio.Task[None]] = []

    def check_rate_limit(self, user_id: str, scope: str) -> RateLimitStatus:
        return self.rate_limiter.check(user_id, scope)

    async def enqueue(
        self,
        request: QuestionRequest,
        priority: int | None = None,
        high_priority: bool = False,
    ) -> str:
        """Add a question to the queue.

        The admission is recorded in the rate limiter before anything else so
        that no other submission can slip in between a check and the record.

        Args:
            request: Question to answer
            priority: Explicit priority, higher runs sooner
            high_priority: Insert at the head of the line with at least priority 1

        Returns:
            The new job's ID
        """
        self.rate_limiter.record(request.user_id, request.scope)

        if priority is None:
            priority = 0
        if high_priority:
            priority = max(priority, HIGH_PRIORITY)
        job = Job(request=request, priority=priority)

        async with self._lock:
            if high_priority:
                self._pending.insert(0, job)
            else:
                self._pending.append(job)
            self._pending.sort(key=lambda j: j.priority, reverse=True)
            waiting = len(self._pending) - len(self._in_flight)

        logger.info(
            f"Queued job {job.job_id} for user {request.user_id} "
            f"(priority {priority}, {waiting} waiting)"
        )
        return job.job_id

    async def run(self, job_id: str) -> JobResult | None:
        """Execute a job, or join its execution if one is already running.

        Returns:
            JobResult, or None if no such job is pending

        Raises:
            PipelineExhaustedError: If the orchestrator gave up on the question
            JobTimeoutError: If the execution exceeded ``job_timeout``
        """
        async with self._lock:
            task = self._in_flight.get(job_id)
            if task is None:
                job = self._find_pending(job_id)
                if job is None:
                    logger.debug(f"Job {job_id} not found")
                    return None
                task = self._start(job)
            else:
                logger.debug(f"Joining in-flight job {job_id}")

        # A cancelled caller must not cancel the execution other callers share
        return await asyncio.shield(task)

    async def stats(self) -> QueueStats:
        async with self._lock:
            active = len(self._in_flight)
            return QueueStats(waiting=len(self._pending) - active, active=active)

    async def job_status(self, job_id: str) -> JobStatus:
        async with self._lock:
            if job_id in self._in_flight:
                return JobStatus.PROCESSING
            if self._find_pending(job_id) is not None:
                return JobStatus.QUEUED
            return JobStatus.NOT_FOUND

    async def cancel(self, job_id: str) -> bool:
        """Remove a job that has not started executing.

        Returns:
            True if the job was removed
        """
        async with self._lock:
            if job_id in self._in_flight:
                return False
            job = self._find_pending(job_id)
            if job is None:
                return False
            self._pending.remove(job)

        logger.info(f"Cancelled job {job_id}")
        return True

    def start(self, concurrency: int = 1, poll_interval: float = 1.0) -> None:
        """Launch background workers that drain the queue by priority."""
        if self._workers:
            logger.warning("Queue workers already running")
            return

        self._workers = [
            asyncio.create_task(self._worker(index, poll_interval), name=f"job-worker-{index}")
            for index in range(concurrency)
        ]
        logger.info(f"Started {concurrency} queue worker(s)")

    async def stop(self) -> None:
        """Cancel the background workers; executions already running continue."""
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if workers:
            logger.info("Queue workers stopped")

    async def _worker(self, index: int, poll_interval: float) -> None:
        while True:
            async with self._lock:
                job = next((j for j in self._pending if j.job_id not in self._in_flight), None)
                task = self._start(job) if job is not None else None

            if task is None:
                await asyncio.sleep(poll_interval)
                continue

            try:
                await asyncio.shield(task)
            except Exception as e:
                logger.error(f"Worker {index} failed job {job.job_id}: {e}")

    def _find_pending(self, job_id: str) -> Job | None:
        return next((job for job in self._pending if job.job_id == job_id), None)

    def _start(self, job: Job) -> asyncio.Task[JobResult]:
        """Start executing a job. Must be called with the lock held."""
        task = asyncio.create_task(self._execute(job), name=job.job_id)
        task.add_done_callback(self._log_outcome)
        self._in_flight[job.job_id] = task
        return task

    async def _execute(self, job: Job) -> JobResult:
        logger.info(f"Processing job {job.job_id}")
        try:
            try:
                result = await asyncio.wait_for(
                    self.orchestrator.process(job.request), timeout=self.job_timeout
                )
            except asyncio.TimeoutError:
                raise JobTimeoutError(job.job_id, self.job_timeout) from None
            return JobResult(
                job_id=job.job_id,
                result=result,
                processed_at=datetime.now(timezone.utc),
            )
        finally:
            async with self._lock:
                self._in_flight.pop(job.job_id, None)
                if job in self._pending:
                    self._pending.remove(job)

    @staticmethod
    def _log_outcome(task: asyncio.Task[JobResult]) -> None:
        if task.cancelled():
            logger.warning(f"Job {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Job {task.get_name()} failed: {error}")
        else:
            logger.info(f"Job {task.get_name()} completed")
