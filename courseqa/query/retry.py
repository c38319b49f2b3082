"""Retry policies for the question pipeline."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt an operation and how long to wait in between.

    Exponential policies wait ``min(base_delay * 2 ** (attempt - 1), max_delay)``
    after failed attempt ``attempt``; fixed policies always wait ``base_delay``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    exponential: bool = True

    @classmethod
    def fixed(cls, max_attempts: int, delay: float) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, base_delay=delay, max_delay=delay, exponential=False)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if not self.exponential:
            return self.base_delay
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def retrying(
        self,
        before_sleep: Callable[[RetryCallState], Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AsyncRetrying:
        """Build a tenacity controller for this policy.

        Exhaustion raises ``tenacity.RetryError`` carrying the last attempt.
        """
        if self.exponential:
            wait = wait_exponential(multiplier=self.base_delay, max=self.max_delay)
        else:
            wait = wait_fixed(self.base_delay)
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait,
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep,
            sleep=sleep,
        )

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        before_sleep: Callable[[RetryCallState], Any] | None = None,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` under this policy."""
        return await self.retrying(before_sleep=before_sleep)(fn, *args, **kwargs)
