"""
Exception hierarchy for the translation core.

Oracle (LLM provider) errors, retry exhaustion, cancellation, translation
memory and configuration errors all derive from TranslationError so callers
can tell recoverable failures from fatal ones.
"""

from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


# ============================================================================
# LLM-related errors
# ============================================================================

class LLMError(TranslationError):
    """Base exception for LLM provider errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when connection to LLM provider fails."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=True)


class LLMTimeoutError(LLMConnectionError):
    """Raised when the provider does not answer within the request timeout."""
    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if retry_after is not None:
            ctx['retry_after'] = retry_after
        super().__init__(message, ctx, recoverable=True)
        self.retry_after = retry_after


class LLMAuthenticationError(LLMError):
    """Raised when authentication fails (missing/invalid API key).

    This is NOT recoverable without user intervention.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class LLMResponseError(LLMError):
    """Raised when the response is empty, unparseable, or carries an error object."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=True)


class ContextOverflowError(LLMError):
    """Raised when input exceeds model's context window."""

    def __init__(
        self,
        message: str,
        token_count: Optional[int] = None,
        max_tokens: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if token_count is not None:
            ctx['token_count'] = token_count
        if max_tokens is not None:
            ctx['max_tokens'] = max_tokens
        super().__init__(message, ctx, recoverable=True)


# ============================================================================
# Run control
# ============================================================================

class RetryExhaustedError(TranslationError):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        original_error: The last error seen before giving up
        attempts: Number of attempts made
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
            ctx['original_error_type'] = type(original_error).__name__
        if attempts is not None:
            ctx['attempts'] = attempts
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error
        self.attempts = attempts


class TranslationCancelledError(TranslationError):
    """Raised when a cancellation request stops the run."""

    def __init__(self, message: str = "Translation cancelled", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class TranslationMemoryError(TranslationError):
    """Raised when the translation memory store cannot be read or written."""
    pass


class ConfigurationError(TranslationError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)
