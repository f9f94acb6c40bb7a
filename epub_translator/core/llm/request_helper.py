"""
Shared request workflow for translation backends.

Each backend owns one TranslationRequestHelper and hands it a coroutine that
performs a single chat request. The helper builds the prompts, splits text
that exceeds the per-request budget, sends the pieces in order, re-joins them
and turns failures into unsuccessful TranslationResults.
"""

import time
from typing import Awaitable, Callable, List, Optional

from ...config import estimate_cost
from ...utils.unified_logger import LogType, UnifiedLogger, get_logger
from ..cancellation import CancellationToken, raise_if_cancelled
from ..chunking import TokenChunker, estimate_tokens
from ..exceptions import LLMResponseError, TranslationCancelledError, TranslationError
from ..models import TranslationMetrics, TranslationOptions, TranslationResult
from .base import LLMResponse

SYSTEM_PROMPT = "You are a professional translator specialized in technical content."

SendFunction = Callable[[str, str, TranslationOptions], Awaitable[LLMResponse]]


def build_translation_prompt(text: str, source_language: str, target_language: str,
                             options: TranslationOptions) -> str:
    """User prompt asking for a faithful translation of `text`."""
    lines = [
        f"You are a professional translator with expertise in {source_language} and {target_language}.",
        f"Please translate the following text from {source_language} to {target_language}.",
    ]
    if options.preserve_formatting:
        lines.append("Preserve all formatting, line breaks, and special characters.")
    if options.use_contextual_hints:
        lines.append("If there are technical terms or idioms, ensure they are translated "
                     "appropriately for the target culture.")
    if options.custom_terminology:
        lines.append("")
        lines.append("Use these fixed translations for the following terms:")
        for term, translation in sorted(options.custom_terminology.items()):
            lines.append(f"- {term} => {translation}")

    lines += [
        "",
        "Text to translate:",
        text,
        "",
        "Requirements:",
        "- Maintain the original meaning and tone",
        "- Ensure natural flow in the target language",
        "- Keep technical terms accurate",
    ]
    if options.preserve_formatting:
        lines.append("- Maintain any markdown or HTML formatting if present")
    lines += [
        "- Reply with the translation only, without commentary",
        "",
        "Translation:",
    ]
    return "\n".join(lines)


def _trailing_whitespace(text: str) -> str:
    return text[len(text.rstrip()):]


class TranslationRequestHelper:
    """Prompting, splitting and metrics shared by every backend."""

    def __init__(self, provider_name: str, model: str,
                 logger: Optional[UnifiedLogger] = None):
        self.provider_name = provider_name
        self.model = model
        self.logger = logger or get_logger()

    def split(self, text: str, options: TranslationOptions) -> List[str]:
        return TokenChunker(options.max_tokens_per_request).split_text(text)

    async def translate(self, send: SendFunction, text: str, source_language: str,
                        target_language: str, options: TranslationOptions,
                        cancel_token: Optional[CancellationToken] = None) -> TranslationResult:
        """
        Translate `text` through `send`, one request per budget-sized piece.

        Returns:
            TranslationResult; on any oracle error success is False and
            `error` holds the message

        Raises:
            TranslationCancelledError: If the token is cancelled between requests
        """
        metrics = TranslationMetrics(provider=self.provider_name,
                                     source_token_count=estimate_tokens(text),
                                     character_count=len(text))
        result = TranslationResult(original_content=text, metrics=metrics)
        start = time.perf_counter()

        chunks = self.split(text, options)
        result.metadata = {'model': self.model, 'chunks': len(chunks)}
        try:
            pieces = []
            for chunk in chunks:
                raise_if_cancelled(cancel_token)
                pieces.append(await self._translate_chunk(send, chunk, source_language,
                                                          target_language, options, metrics))
            result.translated_content = "".join(pieces)
            result.success = True
            metrics.target_token_count = estimate_tokens(result.translated_content)
        except TranslationCancelledError:
            raise
        except TranslationError as e:
            result.error = str(e)
            self.logger.debug(f"{self.provider_name} translation failed", LogType.ERROR_DETAIL,
                              {'details': str(e)})
        finally:
            metrics.processing_time = time.perf_counter() - start
        return result

    async def _translate_chunk(self, send: SendFunction, chunk: str, source_language: str,
                               target_language: str, options: TranslationOptions,
                               metrics: TranslationMetrics) -> str:
        prompt = build_translation_prompt(chunk.strip(), source_language, target_language, options)
        self.logger.debug(f"Sending {len(chunk)} characters to {self.provider_name}", LogType.LLM_REQUEST,
                          {'provider': self.provider_name, 'model': self.model,
                           'system_prompt': SYSTEM_PROMPT, 'user_prompt': prompt})

        response = await send(SYSTEM_PROMPT, prompt, options)

        metrics.prompt_tokens += response.prompt_tokens
        metrics.completion_tokens += response.completion_tokens
        metrics.cost += estimate_cost(response.model or self.model,
                                      response.prompt_tokens, response.completion_tokens)

        translated = (response.content or "").strip()
        if not translated:
            raise LLMResponseError("Provider returned an empty translation",
                                   {'provider': self.provider_name})
        return translated + _trailing_whitespace(chunk)
