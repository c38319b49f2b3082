"""Exceptions raised to callers of the question pipeline and job queue."""

from courseqa.models import PipelineStage


class QAError(Exception):
    """Base class for terminal question answering failures."""


class PipelineExhaustedError(QAError):
    """All pipeline attempts failed for a question."""

    def __init__(
        self,
        attempts: int,
        last_error: BaseException | None,
        stage: PipelineStage | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.stage = stage
        reason = str(last_error) if last_error is not None else "Unknown error"
        super().__init__(f"Failed to process question after {attempts} attempts: {reason}")


class JobTimeoutError(QAError):
    """A job exceeded its total time budget."""

    def __init__(self, job_id: str, timeout: float) -> None:
        self.job_id = job_id
        self.timeout = timeout
        super().__init__(f"Job {job_id} exceeded its {timeout:g}s time budget")
