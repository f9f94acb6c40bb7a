"""Unit tests for RetryManager."""

import time

import pytest

from epub_translator.core.cancellation import CancellationToken
from epub_translator.core.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    RetryExhaustedError,
    TranslationCancelledError,
)
from epub_translator.core.retry_manager import RetryConfig, RetryManager, RetryStrategy


class Flaky:
    """Async callable failing with `errors` in turn, then returning 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def manager(quiet_logger, **config):
    config.setdefault("initial_delay", 0.0)
    return RetryManager(RetryConfig(**config), logger=quiet_logger)


class TestCalculateDelay:

    def test_strategies(self, quiet_logger):
        retry = RetryManager(logger=quiet_logger)
        fixed = RetryConfig(initial_delay=2.0, strategy=RetryStrategy.FIXED)
        linear = RetryConfig(initial_delay=1.0, strategy=RetryStrategy.LINEAR)
        exponential = RetryConfig(initial_delay=1.0, backoff_factor=2.0, max_delay=5.0)

        assert [retry.calculate_delay(a, fixed) for a in (1, 2, 3)] == [2.0, 2.0, 2.0]
        assert [retry.calculate_delay(a, linear) for a in (1, 2, 3)] == [1.0, 2.0, 3.0]
        assert [retry.calculate_delay(a, exponential) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]
        assert retry.calculate_delay(3, RetryConfig(strategy=RetryStrategy.IMMEDIATE)) == 0.0

    def test_jitter_only_adds(self, quiet_logger):
        retry = RetryManager(logger=quiet_logger)
        config = RetryConfig(initial_delay=1.0, jitter=0.5, strategy=RetryStrategy.FIXED)
        for _ in range(20):
            assert 1.0 <= retry.calculate_delay(1, config) <= 1.5


class TestExecuteWithRetry:

    @pytest.mark.asyncio
    async def test_first_try(self, quiet_logger):
        func = Flaky()
        retries = []
        result = await manager(quiet_logger).execute_with_retry(
            func, on_retry=lambda error, attempt: retries.append(attempt))
        assert result == "ok"
        assert func.calls == 1
        assert retries == []

    @pytest.mark.asyncio
    async def test_recovers_after_recoverable_error(self, quiet_logger):
        error = LLMConnectionError("reset")
        func = Flaky(error)
        retries = []

        result = await manager(quiet_logger).execute_with_retry(
            func, "arg", operation_id="op", on_retry=lambda e, attempt: retries.append((e, attempt)))

        assert result == "ok"
        assert func.calls == 2
        assert retries == [(error, 2)]

    @pytest.mark.asyncio
    async def test_non_recoverable_raised_immediately(self, quiet_logger):
        func = Flaky(LLMAuthenticationError("bad key"))
        with pytest.raises(LLMAuthenticationError):
            await manager(quiet_logger, max_attempts=5).execute_with_retry(func)
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_exhausted(self, quiet_logger):
        errors = [LLMConnectionError(f"fail {i}") for i in range(3)]
        func = Flaky(*errors)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await manager(quiet_logger, max_attempts=3).execute_with_retry(func)

        assert func.calls == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.original_error is errors[-1]

    @pytest.mark.asyncio
    async def test_unexpected_errors_retried(self, quiet_logger):
        func = Flaky(ValueError("bad"), OSError("disk"), RuntimeError("connection reset by peer"))
        assert await manager(quiet_logger, max_attempts=4).execute_with_retry(func) == "ok"
        assert func.calls == 4

    @pytest.mark.asyncio
    async def test_unexpected_error_exhausts_attempts(self, quiet_logger):
        errors = [RuntimeError("boom"), RuntimeError("boom again")]
        with pytest.raises(RetryExhaustedError) as exc_info:
            await manager(quiet_logger, max_attempts=2).execute_with_retry(Flaky(*errors))
        assert exc_info.value.original_error is errors[-1]

    @pytest.mark.asyncio
    async def test_cancellation_error_not_retried(self, quiet_logger):
        func = Flaky(TranslationCancelledError())
        with pytest.raises(TranslationCancelledError):
            await manager(quiet_logger, max_attempts=5).execute_with_retry(func)
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_delay_first_attempt(self, quiet_logger):
        """Every attempt of a retry pass is preceded by a wait and an on_retry call."""
        func = Flaky(LLMConnectionError("a"), LLMConnectionError("b"))
        retries = []

        with pytest.raises(RetryExhaustedError):
            await manager(quiet_logger, max_attempts=2, strategy=RetryStrategy.FIXED,
                          delay_first_attempt=True).execute_with_retry(
                func, on_retry=lambda e, attempt: retries.append(attempt))

        assert retries == [1, 2]
        assert func.calls == 2

    @pytest.mark.asyncio
    async def test_strategy_none_does_not_retry(self, quiet_logger):
        func = Flaky(LLMConnectionError("a"))
        with pytest.raises(RetryExhaustedError):
            await manager(quiet_logger, strategy=RetryStrategy.NONE).execute_with_retry(func)
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_retry_after_honoured(self, quiet_logger):
        func = Flaky(LLMRateLimitError("slow down", retry_after=0.05))
        start = time.monotonic()

        await manager(quiet_logger, strategy=RetryStrategy.IMMEDIATE).execute_with_retry(func)

        assert time.monotonic() - start >= 0.04

    @pytest.mark.asyncio
    async def test_custom_config_per_error_type(self, quiet_logger):
        retry = RetryManager(
            default_config=RetryConfig(max_attempts=2, initial_delay=0.0),
            custom_configs={LLMRateLimitError: RetryConfig(max_attempts=4, strategy=RetryStrategy.IMMEDIATE)},
            logger=quiet_logger,
        )
        func = Flaky(*[LLMRateLimitError("limited") for _ in range(10)])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry.execute_with_retry(func)

        assert exc_info.value.attempts == 4

    @pytest.mark.asyncio
    async def test_cancellation_stops_retries(self, quiet_logger):
        token = CancellationToken()
        token.cancel("stop")
        func = Flaky(LLMConnectionError("a"))

        with pytest.raises(TranslationCancelledError):
            await manager(quiet_logger, initial_delay=5.0).execute_with_retry(func, cancel_token=token)
        assert func.calls == 0
