"""Job queue models and data structures."""

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from courseqa.models import QAResult, QuestionRequest

DEFAULT_PRIORITY = 0
HIGH_PRIORITY = 1


def new_job_id() -> str:
    """Generate a job id of the form ``job_<epoch-ms>_<random>``."""
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class JobStatus(str, Enum):
    """Lifecycle state of a job as seen by the queue."""

    QUEUED = "queued"
    PROCESSING = "processing"
    NOT_FOUND = "not_found"


@dataclass(eq=False)
class Job:
    """A queued question awaiting execution."""

    request: QuestionRequest
    job_id: str = field(default_factory=new_job_id)
    priority: int = DEFAULT_PRIORITY
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class JobResult:
    """Outcome of a completed job."""

    job_id: str
    result: QAResult
    processed_at: datetime


@dataclass(frozen=True)
class RateLimitStatus:
    """Admission decision for a user within a scope."""

    allowed: bool
    remaining_requests: int
    reset_time: float
    exempt: bool = False


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of queue occupancy."""

    waiting: int
    active: int
