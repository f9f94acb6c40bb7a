"""
Base types for translation providers.

The orchestrator only depends on the TranslationProvider protocol; concrete
backends (OpenAI, Azure OpenAI, test doubles) satisfy it structurally.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Protocol, runtime_checkable

from ..cancellation import CancellationToken
from ..models import TranslationOptions, TranslationResult


@dataclass
class LLMResponse:
    """Response from LLM with token usage information"""
    content: str
    prompt_tokens: int = 0  # Number of tokens in the prompt
    completion_tokens: int = 0  # Number of tokens in the response
    model: str = ""  # Model name reported by the API


@runtime_checkable
class TranslationProvider(Protocol):
    """Interface the translation core consumes.

    translate() must not raise for ordinary oracle failures; it returns a
    TranslationResult with success=False and the error message instead.
    Cancellation is the only exception expected to propagate.
    """

    @property
    def name(self) -> str:
        ...

    @property
    def default_options(self) -> TranslationOptions:
        ...

    async def translate(self, text: str, source_language: str, target_language: str,
                        options: Optional[TranslationOptions] = None,
                        cancel_token: Optional[CancellationToken] = None) -> TranslationResult:
        ...

    def estimate_token_count(self, text: str) -> int:
        ...

    def validate_configuration(self) -> bool:
        ...

    async def close(self) -> None:
        ...


def get_language_confidence_scores(text: str) -> Dict[str, float]:
    """Language detection is not performed; always an empty mapping."""
    return {}
