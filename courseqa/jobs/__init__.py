"""Job queue and rate limiting module."""

from .models import Job, JobResult, JobStatus, QueueStats, RateLimitStatus
from .queue import JobQueue
from .rate_limit import RateLimiter

__all__ = [
    "Job",
    "JobQueue",
    "JobResult",
    "JobStatus",
    "QueueStats",
    "RateLimitStatus",
    "RateLimiter",
]
