"""
Request Rate Limiter

Throttles outbound requests against a single host to a fixed number per
time window with an even minimum spacing between requests.
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional

from src.taxsale.utils.cancellation import CancellationToken
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Window-based limiter shared by every request a collector issues.

    acquire() never rejects: it returns once the caller may send the next
    request. Acquisitions against one limiter are serialized, so waiting
    callers are released one at a time in arrival order.

    Attributes:
        window_ms: Length of the counting window in milliseconds
        max_requests_per_window: Requests allowed per window
        min_spacing: Minimum seconds between two acquisitions
    """

    def __init__(
        self,
        window_ms: int = 60000,
        max_requests_per_window: int = 20,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        name: str = "default",
    ):
        """
        Initialize limiter.

        Args:
            window_ms: Window length in milliseconds
            max_requests_per_window: Maximum acquisitions per window
            clock: Monotonic clock returning seconds (injectable for tests)
            sleep: Async sleep function (injectable for tests)
            name: Label used in log entries
        """
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if max_requests_per_window <= 0:
            raise ValueError("max_requests_per_window must be positive")

        self.window_ms = window_ms
        self.max_requests_per_window = max_requests_per_window
        self.min_spacing = (window_ms / 1000.0) / max_requests_per_window
        self.name = name

        self._clock = clock or time.monotonic
        self._sleep = sleep
        self._lock = asyncio.Lock()

        self.window_start = self._clock()
        self.requests_in_window = 0
        self.last_request_at = float("-inf")

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000.0

    async def acquire(self, cancel_token: Optional[CancellationToken] = None) -> None:
        """
        Wait until the next request may be issued, then record it.

        Raises:
            CollectionCancelledError: If cancel_token is cancelled while waiting
        """
        async with self._lock:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            now = self._clock()
            if now - self.window_start > self.window_seconds:
                self._reset_window(now)

            if self.requests_in_window >= self.max_requests_per_window:
                wait = self.window_start + self.window_seconds - now
                logger.info(
                    "rate_limit_window_full",
                    limiter=self.name,
                    wait_seconds=round(max(wait, 0.0), 3),
                    requests_in_window=self.requests_in_window,
                )
                await self._wait(wait, cancel_token)
                now = self._clock()
                self._reset_window(now)

            elapsed = now - self.last_request_at
            if elapsed < self.min_spacing:
                await self._wait(self.min_spacing - elapsed, cancel_token)
                now = self._clock()

            self.requests_in_window += 1
            self.last_request_at = now
            logger.debug(
                "rate_limit_acquired",
                limiter=self.name,
                requests_in_window=self.requests_in_window,
            )

    def _reset_window(self, now: float) -> None:
        self.window_start = now
        self.requests_in_window = 0

    async def _wait(self, seconds: float, cancel_token: Optional[CancellationToken]) -> None:
        if seconds <= 0:
            return
        if self._sleep is None:
            if cancel_token is not None:
                await cancel_token.sleep(seconds)
            else:
                await asyncio.sleep(seconds)
            return
        await self._sleep(seconds)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
