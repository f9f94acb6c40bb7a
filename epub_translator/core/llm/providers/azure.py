"""
Azure OpenAI provider.

Requests go to the deployment URL with an explicit api-version and are
authenticated with the `api-key` header.
"""

from typing import Dict, Optional

import httpx

from ....config import AZURE_OPENAI_API_VERSION, REQUEST_TIMEOUT
from ....utils.unified_logger import UnifiedLogger, get_logger
from ...cancellation import CancellationToken
from ...chunking import estimate_tokens
from ...models import TranslationOptions, TranslationResult
from ..base import LLMResponse, get_language_confidence_scores
from ..chat_completion import ChatCompletionClient
from ..request_helper import TranslationRequestHelper


class AzureOpenAIProvider:
    """Azure OpenAI chat-completions provider"""

    def __init__(self, api_key: str, endpoint: str, deployment: str,
                 api_version: str = AZURE_OPENAI_API_VERSION,
                 timeout: int = REQUEST_TIMEOUT,
                 default_options: Optional[TranslationOptions] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 logger: Optional[UnifiedLogger] = None,
                 client: Optional[ChatCompletionClient] = None,
                 helper: Optional[TranslationRequestHelper] = None):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.deployment = deployment
        self.api_version = api_version
        self.logger = logger or get_logger()
        self._default_options = default_options or TranslationOptions()
        # The deployment in the URL selects the model
        self.client = client or ChatCompletionClient(
            self.name, self.deployment_url, self._headers(), deployment,
            timeout=timeout, include_model=False, transport=transport, logger=self.logger,
        )
        self.helper = helper or TranslationRequestHelper(self.name, deployment, self.logger)

    @property
    def name(self) -> str:
        return "azure"

    @property
    def default_options(self) -> TranslationOptions:
        return self._default_options

    @property
    def deployment_url(self) -> str:
        return (f"{self.endpoint}/openai/deployments/{self.deployment}"
                f"/chat/completions?api-version={self.api_version}")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": self.api_key,
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
        return bool(self.api_key and self.endpoint and self.deployment and self.api_version)

    async def close(self) -> None:
        await self.client.close()
