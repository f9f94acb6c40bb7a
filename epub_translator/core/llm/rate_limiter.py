"""
Minimum spacing between request starts for one backend.
"""

import asyncio
import time
from typing import Optional

from ..cancellation import CancellationToken


class RateLimiter:
    """Spaces request starts at least `min_interval` seconds apart.

    Callers reserve the next free start slot under a lock and then sleep
    outside it, so concurrent callers queue up in reservation order without
    holding the lock while they wait.
    """

    def __init__(self, min_interval: float = 0.0):
        if min_interval < 0:
            raise ValueError(f"min_interval cannot be negative, got {min_interval}")
        self.min_interval = min_interval
        self._lock = asyncio.Lock()
        self._next_slot = 0.0

    async def acquire(self, cancel_token: Optional[CancellationToken] = None) -> float:
        """Wait for this caller's slot. Returns the seconds waited."""
        if self.min_interval <= 0:
            return 0.0

        async with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
            wait = slot - now

        if wait > 0:
            if cancel_token is not None:
                await cancel_token.sleep(wait)
            else:
                await asyncio.sleep(wait)
        return wait
