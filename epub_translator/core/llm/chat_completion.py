"""
Chat-completions HTTP client shared by the OpenAI and Azure OpenAI providers.

Providers hand it the endpoint and authentication headers; request
construction, response parsing and error mapping live here.
"""

import json
import time
from typing import Any, Dict, Optional

import httpx

from ...config import REQUEST_TIMEOUT
from ...utils.unified_logger import LogType, UnifiedLogger, get_logger
from ..exceptions import (
    ContextOverflowError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
)
from ..models import TranslationOptions
from .base import LLMResponse
from .token_counter import count_tokens

CONTEXT_OVERFLOW_KEYWORDS = ["context_length", "maximum context", "token limit",
                             "too many tokens", "reduce the length"]


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ChatCompletionClient:
    """HTTP client for one chat-completions endpoint"""

    def __init__(self, name: str, endpoint: str, headers: Dict[str, str], model: str,
                 timeout: int = REQUEST_TIMEOUT, include_model: bool = True,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 logger: Optional[UnifiedLogger] = None):
        """
        Args:
            name: Provider name used in messages and logs
            endpoint: Full URL of the chat-completions endpoint
            headers: Authentication and content headers sent with every request
            model: Model (or deployment) name
            timeout: Request timeout in seconds
            include_model: Whether the payload names the model
            transport: Optional httpx transport, used to stub the API in tests
            logger: Logger for request and token-usage output
        """
        self.name = name
        self.endpoint = endpoint
        self.headers = headers
        self.model = model
        self.timeout = timeout
        self.include_model = include_model
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logger or get_logger()

    def _payload(self, system_prompt: str, user_prompt: str, options: TranslationOptions) -> Dict[str, Any]:
        payload = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": options.temperature,
            "top_p": options.top_p,
            "stream": False,
        }
        if self.include_model:
            payload["model"] = self.model
        return payload

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, system_prompt: str, user_prompt: str,
                   options: TranslationOptions) -> LLMResponse:
        """
        Perform one chat-completions request.

        Raises:
            LLMTimeoutError, LLMConnectionError: Transport failures
            LLMAuthenticationError: 401/403 responses
            LLMRateLimitError: 429 responses
            ContextOverflowError: The prompt does not fit the model's context
            LLMResponseError: Other HTTP errors, unparseable bodies and
                error objects embedded in a 200 response
        """
        client = await self._get_client()
        start = time.perf_counter()
        try:
            response = await client.post(
                self.endpoint,
                json=self._payload(system_prompt, user_prompt, options),
                headers=self.headers,
            )
            response.raise_for_status()
            response_json = response.json()
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"{self.name} request timed out after {self.timeout}s",
                                  {'model': self.model}) from e
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e.response) from e
        except httpx.RequestError as e:
            raise LLMConnectionError(f"Could not reach {self.name}: {e}", {'model': self.model}) from e
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"{self.name} returned invalid JSON: {e}", {'model': self.model}) from e

        llm_response = self._parse_response(response_json, system_prompt, user_prompt)

        self.logger.debug(f"{self.name} response received", LogType.LLM_RESPONSE, {
            'execution_time': time.perf_counter() - start,
            'response': llm_response.content,
        })
        self.logger.debug("Token usage", LogType.TOKEN_USAGE, {
            'prompt_tokens': llm_response.prompt_tokens,
            'completion_tokens': llm_response.completion_tokens,
        })
        return llm_response

    def _map_status_error(self, response: httpx.Response) -> Exception:
        status = response.status_code
        body = response.text[:500]
        context = {'status': status, 'model': self.model}
        if status in (401, 403):
            return LLMAuthenticationError(f"{self.name} rejected the credentials: {body}", context)
        if status == 429:
            return LLMRateLimitError(f"{self.name} rate limit exceeded", _retry_after(response), context)
        if any(keyword in body.lower() for keyword in CONTEXT_OVERFLOW_KEYWORDS):
            return ContextOverflowError(f"Context overflow: {body}", context=context)
        return LLMResponseError(f"{self.name} HTTP error {status}: {body}", context)

    def _parse_response(self, response_json: Dict[str, Any], system_prompt: str,
                        user_prompt: str) -> LLMResponse:
        if not isinstance(response_json, dict):
            raise LLMResponseError(f"{self.name} returned an unexpected payload", {'model': self.model})

        error = response_json.get("error")
        if error:
            message = str(error.get("message") or error) if isinstance(error, dict) else str(error)
            if any(keyword in message.lower() for keyword in CONTEXT_OVERFLOW_KEYWORDS):
                raise ContextOverflowError(f"Context overflow: {message}", context={'model': self.model})
            raise LLMResponseError(f"{self.name} returned an error: {message}", {'model': self.model})

        choices = response_json.get("choices") or []
        if not choices:
            raise LLMResponseError(f"{self.name} response has no choices", {'model': self.model})
        choice = choices[0] if isinstance(choices, list) else None
        if not isinstance(choice, dict):
            raise LLMResponseError(f"{self.name} returned a malformed choice: {str(choice)[:200]}",
                                   {'model': self.model})
        message = choice.get("message")
        if message is not None and not isinstance(message, dict):
            raise LLMResponseError(f"{self.name} returned a malformed message", {'model': self.model})
        content = (message or {}).get("content") or ""
        if not isinstance(content, str):
            raise LLMResponseError(f"{self.name} returned non-text content", {'model': self.model})
        model = response_json.get("model") or self.model

        usage = response_json.get("usage")
        if isinstance(usage, dict) and usage:
            prompt_tokens = usage.get("prompt_tokens", 0)
            completion_tokens = usage.get("completion_tokens", 0)
        else:
            prompt_tokens = count_tokens(system_prompt, model) + count_tokens(user_prompt, model)
            completion_tokens = count_tokens(content, model)

        return LLMResponse(content=content, prompt_tokens=prompt_tokens,
                           completion_tokens=completion_tokens, model=model)
