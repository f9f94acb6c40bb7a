"""
Cooperative cancellation signal threaded through provider calls and storage I/O.
"""

import asyncio
from typing import Optional

from .exceptions import TranslationCancelledError


class CancellationToken:
    """A one-shot cancellation flag that can also be awaited."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Cancellation requested") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise TranslationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise TranslationCancelledError(self.reason or "Translation cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for `delay` seconds, waking up early and raising on cancellation."""
        if delay <= 0:
            self.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


def raise_if_cancelled(token: Optional[CancellationToken]) -> None:
    """Check an optional token."""
    if token is not None:
        token.raise_if_cancelled()
