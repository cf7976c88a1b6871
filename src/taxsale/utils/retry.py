"""
Retry Policy

Bounded retries with linearly increasing backoff for flaky outbound calls.
"""
import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from src.taxsale.collectors.errors import CollectionCancelledError
from src.taxsale.utils.cancellation import CancellationToken, interruptible_sleep
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class RetryPolicy:
    """
    Retry an async operation up to max_attempts times.

    The wait before attempt n+1 is n * delay_seconds (2s, 4s, ... by default).
    Cancellation is never retried; every other exception is.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay_seconds: float = 2.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return attempt * self.delay_seconds

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> T:
        """
        Await operation(*args, **kwargs), retrying on failure.

        Raises:
            The last exception raised by operation once attempts are exhausted
        """
        last_exception: Optional[BaseException] = None
        name = getattr(operation, "__name__", repr(operation))

        for attempt in range(1, self.max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return await operation(*args, **kwargs)
            except (CollectionCancelledError, asyncio.CancelledError):
                raise
            except Exception as e:
                last_exception = e
                if attempt < self.max_attempts:
                    delay = self.delay_for(attempt)
                    logger.warning(
                        "operation_retry",
                        operation=name,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    await self._wait(delay, cancel_token)
                else:
                    logger.error(
                        "operation_failed_after_retries",
                        operation=name,
                        max_attempts=self.max_attempts,
                        error=str(e),
                    )

        raise last_exception

    async def _wait(self, seconds: float, cancel_token: Optional[CancellationToken]) -> None:
        if self._sleep is None:
            await interruptible_sleep(seconds, cancel_token)
            return
        await self._sleep(seconds)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()


def with_retry(max_attempts: int = 3, delay_seconds: float = 2.0):
    """
    Decorator form of RetryPolicy for async functions.

    Usage:
        @with_retry(max_attempts=3)
        async def fetch_assessment(account):
            ...
    """
    policy = RetryPolicy(max_attempts=max_attempts, delay_seconds=delay_seconds)

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await policy.run(func, *args, **kwargs)

        wrapper.retry_policy = policy
        return wrapper
    return decorator
