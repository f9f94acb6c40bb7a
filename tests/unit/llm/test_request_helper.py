"""Tests for prompt construction and the shared request workflow."""

import pytest

from epub_translator.core.cancellation import CancellationToken
from epub_translator.core.exceptions import (
    LLMAuthenticationError,
    TranslationCancelledError,
)
from epub_translator.core.llm import LLMResponse
from epub_translator.core.llm.request_helper import (
    SYSTEM_PROMPT,
    TranslationRequestHelper,
    build_translation_prompt,
)
from epub_translator.core.models import TranslationOptions


class FakeSend:
    """Records prompts and answers each one with a canned response."""

    def __init__(self, answers=None, error=None, model="gpt-4o-mini"):
        self.answers = list(answers or [])
        self.error = error
        self.model = model
        self.prompts = []

    async def __call__(self, system_prompt, user_prompt, options):
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        content = self.answers.pop(0) if self.answers else "译文"
        return LLMResponse(content=content, prompt_tokens=100, completion_tokens=40, model=self.model)


class TestBuildTranslationPrompt:

    def test_names_languages_and_text(self):
        prompt = build_translation_prompt("Hello there.", "English", "Chinese", TranslationOptions())
        assert "from English to Chinese" in prompt
        assert "Hello there." in prompt
        assert prompt.endswith("Translation:")

    def test_formatting_and_hint_lines_are_optional(self):
        plain = TranslationOptions(preserve_formatting=False, use_contextual_hints=False)
        prompt = build_translation_prompt("Hi.", "en", "zh", plain)
        assert "Preserve all formatting" not in prompt
        assert "idioms" not in prompt

        rich = build_translation_prompt("Hi.", "en", "zh", TranslationOptions())
        assert "Preserve all formatting" in rich
        assert "idioms" in rich

    def test_custom_terminology_listed(self):
        options = TranslationOptions(custom_terminology={"widget": "小部件", "API": "接口"})
        prompt = build_translation_prompt("The widget API.", "en", "zh", options)
        assert "- API => 接口" in prompt
        assert "- widget => 小部件" in prompt
        assert prompt.index("- API") < prompt.index("- widget")


class TestTranslationRequestHelper:

    @pytest.mark.asyncio
    async def test_single_request(self, quiet_logger):
        helper = TranslationRequestHelper("openai", "gpt-4o-mini", quiet_logger)
        send = FakeSend(["  你好。  "])

        result = await helper.translate(send, "Hello. ", "en", "zh", TranslationOptions())

        assert result.success
        assert result.translated_content == "你好。 "
        assert send.prompts[0][0] == SYSTEM_PROMPT
        assert result.metrics.prompt_tokens == 100
        assert result.metrics.completion_tokens == 40
        assert result.metrics.cost > 0
        assert result.metadata == {'model': 'gpt-4o-mini', 'chunks': 1}
        assert result.metrics.processing_time >= 0

    @pytest.mark.asyncio
    async def test_unknown_model_costs_nothing(self, quiet_logger):
        helper = TranslationRequestHelper("openai", "local-model", quiet_logger)
        result = await helper.translate(FakeSend(model="local-model"), "Hi.", "en", "zh", TranslationOptions())
        assert result.metrics.cost == 0.0

    @pytest.mark.asyncio
    async def test_oracle_error_becomes_failed_result(self, quiet_logger):
        helper = TranslationRequestHelper("openai", "gpt-4o-mini", quiet_logger)
        send = FakeSend(error=LLMAuthenticationError("bad key"))

        result = await helper.translate(send, "Hello.", "en", "zh", TranslationOptions())

        assert not result.success
        assert "bad key" in result.error
        assert result.translated_content == ""

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, quiet_logger):
        helper = TranslationRequestHelper("openai", "gpt-4o-mini", quiet_logger)
        token = CancellationToken()
        token.cancel("stop")
        send = FakeSend()

        with pytest.raises(TranslationCancelledError):
            await helper.translate(send, "Hello.", "en", "zh", TranslationOptions(), token)
        assert send.prompts == []

    def test_split_uses_request_budget(self, quiet_logger):
        helper = TranslationRequestHelper("openai", "gpt-4o-mini", quiet_logger)
        text = "Short sentence one. Short sentence two. Short sentence three."
        assert helper.split(text, TranslationOptions()) == [text]
        pieces = helper.split(text, TranslationOptions(max_tokens_per_request=8))
        assert len(pieces) > 1
        assert "".join(pieces) == text
