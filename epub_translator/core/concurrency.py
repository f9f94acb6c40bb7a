"""
Tiered concurrency limits.

Batches are classified by the word count of their longest paragraph; each
tier has its own worker capacity and a delay a worker observes before giving
its slot back. Capacity is handed out strictly first-come-first-served.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from ..config import CONCURRENCY_TIERS
from .chunking import ParagraphBatch


@dataclass(frozen=True)
class ConcurrencyTier:
    """One row of the tier table."""
    name: str
    max_words: Optional[int]  # None means unbounded
    workers: int
    release_delay: float  # Seconds

    def accepts(self, word_count: int) -> bool:
        return self.max_words is None or word_count <= self.max_words


def build_tiers(table: Iterable[Tuple[str, Optional[int], int, float]] = CONCURRENCY_TIERS) -> List[ConcurrencyTier]:
    """Tier objects ordered by ascending threshold, unbounded last."""
    tiers = [ConcurrencyTier(*row) for row in table]
    tiers.sort(key=lambda tier: (tier.max_words is None, tier.max_words or 0))
    if not tiers:
        raise ValueError("At least one concurrency tier is required")
    return tiers


def classify_words(word_count: int, tiers: Sequence[ConcurrencyTier]) -> ConcurrencyTier:
    """First tier whose threshold admits `word_count`; the last tier otherwise."""
    for tier in tiers:
        if tier.accepts(word_count):
            return tier
    return tiers[-1]


def classify_batch(batch: ParagraphBatch, tiers: Sequence[ConcurrencyTier]) -> ConcurrencyTier:
    return classify_words(batch.max_word_count, tiers)


class FairCapacityLimiter:
    """Counting limiter that serves waiters in arrival order.

    A released permit is handed directly to the oldest waiter, so a newcomer
    can never overtake a task that is already queued.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._available = capacity
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def available(self) -> int:
        return self._available

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Permit was handed over just before cancellation
                self.release()
            else:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._available >= self.capacity:
            raise RuntimeError("FairCapacityLimiter released more times than acquired")
        self._available += 1

    @asynccontextmanager
    async def hold(self, release_delay: float = 0.0):
        """Hold a permit for the body, then wait `release_delay` seconds before releasing it."""
        await self.acquire()
        try:
            yield
            if release_delay > 0:
                await asyncio.sleep(release_delay)
        finally:
            self.release()
