"""
Translation oracle layer.

Providers implement the TranslationProvider protocol consumed by the
orchestrator; create_translation_provider() picks one by name.
"""

from .base import LLMResponse, TranslationProvider, get_language_confidence_scores
from .chat_completion import ChatCompletionClient
from .factory import create_provider_from_settings, create_translation_provider
from .providers import AzureOpenAIProvider, OpenAIProvider
from .rate_limiter import RateLimiter
from .request_helper import SYSTEM_PROMPT, TranslationRequestHelper, build_translation_prompt

__all__ = [
    'AzureOpenAIProvider',
    'ChatCompletionClient',
    'LLMResponse',
    'OpenAIProvider',
    'RateLimiter',
    'SYSTEM_PROMPT',
    'TranslationProvider',
    'TranslationRequestHelper',
    'build_translation_prompt',
    'create_provider_from_settings',
    'create_translation_provider',
    'get_language_confidence_scores',
]
