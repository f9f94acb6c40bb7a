"""Tests for request-start spacing."""

import asyncio
import time

import pytest

from epub_translator.core.cancellation import CancellationToken
from epub_translator.core.exceptions import TranslationCancelledError
from epub_translator.core.llm import RateLimiter


class TestRateLimiter:

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            RateLimiter(-1)

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self):
        limiter = RateLimiter(0)
        waits = [await limiter.acquire() for _ in range(5)]
        assert waits == [0.0] * 5

    @pytest.mark.asyncio
    async def test_concurrent_callers_are_spaced(self):
        limiter = RateLimiter(0.05)
        starts = []

        async def call():
            await limiter.acquire()
            starts.append(time.monotonic())

        await asyncio.gather(*(call() for _ in range(4)))

        starts.sort()
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= 0.04 for gap in gaps)

    @pytest.mark.asyncio
    async def test_wait_is_cancellable(self):
        limiter = RateLimiter(5.0)
        token = CancellationToken()
        await limiter.acquire(token)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel("stop")

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(TranslationCancelledError):
            await limiter.acquire(token)
        await canceller
