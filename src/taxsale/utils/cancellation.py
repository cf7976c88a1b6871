"""
Cooperative Cancellation

A token threaded through collections so long waits (rate limiting, retry
backoff) stop at the next suspension point once cancelled.
"""
import asyncio
from typing import Optional

from src.taxsale.collectors.errors import CollectionCancelledError
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """
    Cancellation signal shared by a manager call and everything it awaits.

    Usage:
        token = CancellationToken()
        task = asyncio.create_task(manager.run_collection("x", cancel_token=token))
        token.cancel("shutdown")
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "collection cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.info("collection_cancel_requested", reason=reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CollectionCancelledError(self.reason or "collection cancelled")

    async def sleep(self, seconds: float) -> None:
        """
        Sleep for up to `seconds`, raising CollectionCancelledError if the
        token is cancelled before or during the wait.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


async def interruptible_sleep(seconds: float, cancel_token: Optional[CancellationToken] = None) -> None:
    """Sleep, honouring cancel_token when one is supplied."""
    if cancel_token is None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        return
    await cancel_token.sleep(seconds)
