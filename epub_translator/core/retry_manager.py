"""
Retry manager with configurable backoff strategies.

Used by the orchestrator's retry pass: every failed unit is re-attempted a
bounded number of times, waiting before each attempt. Waits are cancellable
through a CancellationToken.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type

from ..utils.unified_logger import LogType, UnifiedLogger, get_logger
from .cancellation import CancellationToken, raise_if_cancelled
from .exceptions import RetryExhaustedError, TranslationCancelledError, TranslationError


class RetryStrategy(Enum):
    """Delay strategies between attempts."""
    FIXED = "fixed"  # Same delay before every attempt
    LINEAR = "linear"  # Delay grows linearly with the attempt number
    EXPONENTIAL = "exponential"  # Standard exponential backoff
    IMMEDIATE = "immediate"  # No delay, retry immediately
    NONE = "none"  # Don't retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts
        initial_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to delays (0.0-1.0)
        strategy: Retry strategy to use
        delay_first_attempt: Also wait before the first attempt
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter: float = 0.0
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    delay_first_attempt: bool = False


class RetryManager:
    """Runs an async operation until it succeeds or its attempts run out."""

    def __init__(
        self,
        default_config: Optional[RetryConfig] = None,
        custom_configs: Optional[Dict[Type[Exception], RetryConfig]] = None,
        logger: Optional[UnifiedLogger] = None
    ):
        """
        Args:
            default_config: Default retry configuration
            custom_configs: Custom configs for specific error types
            logger: Logger for retry messages
        """
        self.default_config = default_config or RetryConfig()
        self.custom_configs = dict(custom_configs or {})
        self.logger = logger or get_logger()

    def _get_config(self, error: Exception) -> RetryConfig:
        """Get retry configuration for an error type."""
        if type(error) in self.custom_configs:
            return self.custom_configs[type(error)]
        for exc_type, config in self.custom_configs.items():
            if isinstance(error, exc_type):
                return config
        return self.default_config

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Delay before `attempt` (1-based) for the given configuration."""
        if config.strategy in (RetryStrategy.IMMEDIATE, RetryStrategy.NONE):
            return 0.0

        if config.strategy == RetryStrategy.FIXED:
            delay = config.initial_delay
        elif config.strategy == RetryStrategy.LINEAR:
            delay = config.initial_delay * attempt
        else:  # EXPONENTIAL
            delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))

        delay = min(delay, config.max_delay)

        if config.jitter > 0:
            delay += delay * config.jitter * random.random()

        return delay

    async def _wait(self, delay: float, cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None:
            await cancel_token.sleep(delay)
        elif delay > 0:
            await asyncio.sleep(delay)

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        operation_id: Optional[str] = None,
        on_retry: Optional[Callable[[Optional[Exception], int], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs
    ) -> Any:
        """Execute a function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            operation_id: Identifier used in log messages
            on_retry: Called before each delayed attempt with (last error, attempt number)
            cancel_token: Checked before every attempt and during every wait
            **kwargs: Keyword arguments for func

        Returns:
            Result of func

        Raises:
            RetryExhaustedError: If all attempts failed
            TranslationCancelledError: If the token is cancelled
            TranslationError: If an error is not recoverable
        """
        last_error: Optional[Exception] = None
        config = self.default_config
        attempt = 0
        op_id = operation_id or f"op_{id(func)}"

        while True:
            attempt += 1

            if attempt > 1 or config.delay_first_attempt:
                delay = self.calculate_delay(attempt, config)
                retry_after = getattr(last_error, 'retry_after', None)
                if retry_after:
                    delay = max(delay, min(retry_after, config.max_delay))
                if on_retry:
                    on_retry(last_error, attempt)
                await self._wait(delay, cancel_token)

            raise_if_cancelled(cancel_token)

            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    self.logger.debug(f"Operation {op_id} succeeded after {attempt} attempts", LogType.RETRY)
                return result

            except TranslationCancelledError:
                raise
            except TranslationError as error:
                if not error.recoverable:
                    raise
                last_error = error
            except Exception as error:
                # Unexpected failures from the operation are retried like transient ones
                last_error = error

            config = self._get_config(last_error)
            if config.strategy == RetryStrategy.NONE or attempt >= config.max_attempts:
                self.logger.debug(f"Retry exhausted for {op_id} after {attempt} attempts: {last_error}",
                                  LogType.RETRY)
                raise RetryExhaustedError(
                    f"Maximum retry attempts ({config.max_attempts}) exceeded",
                    original_error=last_error,
                    attempts=attempt
                )

            self.logger.debug(
                f"Attempt {attempt}/{config.max_attempts} failed for {op_id}: "
                f"{type(last_error).__name__}: {last_error}",
                LogType.RETRY
            )
