"""Usage telemetry records and sinks."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageRecord:
    """One processed question's cost and quality figures."""

    user_id: str
    question: str
    prompt_tokens: int
    completion_tokens: int
    embedding_tokens: int
    response_time_ms: int
    results_count: int
    confidence: float
    namespaces: list[str] = field(default_factory=list)

    @property
    def tokens_used(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class UsageSink(ABC):
    """Destination for usage telemetry."""

    @abstractmethod
    async def record(self, usage: UsageRecord) -> None:
        pass


class LoggingUsageSink(UsageSink):
    """Writes usage records to the application log."""

    async def record(self, usage: UsageRecord) -> None:
        logger.info(
            f"Usage for user {usage.user_id}: {usage.tokens_used} tokens "
            f"(+{usage.embedding_tokens} embedding), {usage.results_count} results, "
            f"{usage.confidence:.0%} confidence, {usage.response_time_ms}ms, "
            f"namespaces={','.join(usage.namespaces)}"
        )


class MemoryUsageSink(UsageSink):
    """Keeps usage records in memory."""

    def __init__(self) -> None:
        self.records: list[UsageRecord] = []

    async def record(self, usage: UsageRecord) -> None:
        self.records.append(usage)
