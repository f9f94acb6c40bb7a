"""
OpenAI provider.

Calls the OpenAI chat-completions API (or any endpoint compatible with it)
using Bearer authentication.
"""

from typing import Dict, Optional

import httpx

from ....config import OPENAI_API_ENDPOINT, OPENAI_MODEL, REQUEST_TIMEOUT
from ....utils.unified_logger import UnifiedLogger, get_logger
from ...cancellation import CancellationToken
from ...chunking import estimate_tokens
from ...models import TranslationOptions, TranslationResult
from ..base import LLMResponse, get_language_confidence_scores
from ..chat_completion import ChatCompletionClient
from ..request_helper import TranslationRequestHelper


class OpenAIProvider:
    """OpenAI chat-completions provider"""

    def __init__(self, api_key: str, model: str = OPENAI_MODEL,
                 api_endpoint: Optional[str] = None,
                 timeout: int = REQUEST_TIMEOUT,
                 default_options: Optional[TranslationOptions] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 logger: Optional[UnifiedLogger] = None,
                 client: Optional[ChatCompletionClient] = None,
                 helper: Optional[TranslationRequestHelper] = None):
        """
        Args:
            api_key: OpenAI API key
            model: Model name
            api_endpoint: Chat-completions URL (defaults to OPENAI_API_ENDPOINT)
            timeout: Request timeout in seconds
            default_options: Options used when translate() is called without any
            transport: Optional httpx transport, used to stub the API in tests
            logger: Logger for request and token-usage output
            client: HTTP client to use instead of building one
            helper: Request helper to use instead of building one
        """
        self.api_key = api_key
        self.model = model
        self.api_endpoint = api_endpoint or OPENAI_API_ENDPOINT
        self.logger = logger or get_logger()
        self._default_options = default_options or TranslationOptions()
        self.client = client or ChatCompletionClient(
            self.name, self.api_endpoint, self._headers(), model,
            timeout=timeout, transport=transport, logger=self.logger,
        )
        self.helper = helper or TranslationRequestHelper(self.name, model, self.logger)

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_options(self) -> TranslationOptions:
        return self._default_options

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def send(self, system_prompt: str, user_prompt: str,
                   options: TranslationOptions) -> LLMResponse:
        return await self.client.send(system_prompt, user_prompt, options)

    async def translate(self, text: str, source_language: str, target_language: str,
                        options: Optional[TranslationOptions] = None,
                        cancel_token: Optional[CancellationToken] = None) -> TranslationResult:
        return await self.helper.translate(self.client.send, text, source_language, target_language,
                                           options or self.default_options, cancel_token)

    def estimate_token_count(self, text: str) -> int:
        return estimate_tokens(text)

    def get_language_confidence_scores(self, text: str) -> Dict[str, float]:
        return get_language_confidence_scores(text)

    def validate_configuration(self) -> bool:
        return bool(self.api_key and self.model and self.api_endpoint)

    async def close(self) -> None:
        await self.client.close()
