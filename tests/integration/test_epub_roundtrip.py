"""
End-to-end pipeline test: load an EPUB, translate it with a scripted
provider served over a stubbed HTTP transport, save it and read it back.
"""

import json
import zipfile

import httpx
import pytest
from lxml import etree

from epub_translator.core.epub import EpubProcessor
from epub_translator.core.llm import OpenAIProvider
from epub_translator.core.memory import TranslationMemory
from epub_translator.core.models import TranslationOptions
from epub_translator.core.orchestrator import TranslationOrchestrator
from fixtures.fake_providers import ScriptedProvider
from fixtures.sample_epub import build_epub, paragraphs_to_body

FAST_TIERS = [("short", 50, 8, 0.0), ("medium", 100, 6, 0.0), ("long", 200, 4, 0.0), ("very_long", None, 2, 0.0)]

RICH_BODY = """  <h1>Rich Chapter</h1>
  <p class="first">Plain <em>emphasised</em> prose.</p>
  <blockquote><p>Quoted wisdom.</p></blockquote>
  <ul><li>First item</li><li>Second item</li></ul>
  <p>Line one<br/>line two</p>
  <img src="../images/figure.png" alt="figure"/>
  <table><tr><th>Key</th><td>Value</td></tr></table>"""


def chat_handler(request: httpx.Request) -> httpx.Response:
    """Fake chat-completions API that upper-cases the text to translate."""
    prompt = json.loads(request.content)["messages"][1]["content"]
    text = prompt.split("Text to translate:\n", 1)[1].split("\n\nRequirements:", 1)[0]
    return httpx.Response(200, json={
        "model": "gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": text.upper()}}],
        "usage": {"prompt_tokens": 50, "completion_tokens": 10},
    })


@pytest.mark.integration
class TestEpubRoundTrip:

    @pytest.mark.asyncio
    async def test_full_pipeline_over_http(self, tmp_path, quiet_logger):
        source = build_epub(tmp_path / "rich.epub", [
            ("Rich Chapter", RICH_BODY),
            ("Plain", paragraphs_to_body("Plain", ["Just text.", "More text."])),
        ], extra_files={"OEBPS/images/figure.png": b"\x89PNG fake"})
        output = tmp_path / "rich_zh.epub"

        processor = EpubProcessor(logger=quiet_logger)
        document = await processor.load(source)
        assert processor.validate_structure(document)

        options = TranslationOptions(source_language="en", target_language="zh", retry_delay=0.0)
        provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(chat_handler),
                                  logger=quiet_logger)
        memory = await TranslationMemory.open(str(tmp_path / "tm"), logger=quiet_logger)
        orchestrator = TranslationOrchestrator(provider, memory=memory, tiers=FAST_TIERS, logger=quiet_logger)
        try:
            report = await orchestrator.translate_document(document, "zh", options)
        finally:
            await provider.close()

        assert report.fully_translated
        assert report.metrics.prompt_tokens == 50 * document.paragraph_count
        assert await processor.save_translated_epub(document, str(output), "zh")
        assert processor.validate_output(str(output))

        with zipfile.ZipFile(output) as archive:
            names = archive.namelist()
            assert names[0] == "mimetype"
            assert archive.read("OEBPS/images/figure.png") == b"\x89PNG fake"
            assert "<dc:language>zh</dc:language>" in archive.read("OEBPS/content.opf").decode("utf-8")
            chapter = archive.read("OEBPS/text/chapter_001.xhtml")

        root = etree.fromstring(chapter)
        ns = {"x": "http://www.w3.org/1999/xhtml"}
        assert root.findtext(".//x:h1", namespaces=ns) == "RICH CHAPTER"
        assert root.find(".//x:p[@class='first']", namespaces=ns).text == "PLAIN EMPHASISED PROSE."
        assert root.findtext(".//x:blockquote/x:p", namespaces=ns) == "QUOTED WISDOM."
        assert [li.text for li in root.iterfind(".//x:li", namespaces=ns)] == ["FIRST ITEM", "SECOND ITEM"]
        assert root.find(".//x:img", namespaces=ns).get("src") == "../images/figure.png"
        assert root.find(".//x:link", namespaces=ns) is not None

        reloaded = await processor.load(str(output))
        assert reloaded.source_language == "zh"
        assert [p.content for p in reloaded.chapters[1].paragraphs] == ["PLAIN", "JUST TEXT.", "MORE TEXT."]

    @pytest.mark.asyncio
    async def test_failures_keep_source_text(self, simple_epub, tmp_path, quiet_logger):
        """Paragraphs the provider never manages to translate stay readable in the output."""
        provider = ScriptedProvider(lambda text, call: None if "window" in text else f"[zh] {text}")
        processor = EpubProcessor(logger=quiet_logger)
        document = await processor.load(simple_epub)
        options = TranslationOptions(max_retries=2, retry_delay=0.0)

        report = await TranslationOrchestrator(provider, tiers=FAST_TIERS, logger=quiet_logger).translate_document(
            document, "zh", options)
        output = tmp_path / "partial.epub"
        assert await processor.save_translated_epub(document, str(output), "zh")

        assert [f.paragraph_id for f in report.failures] == ["chapter1_p0003"]
        with zipfile.ZipFile(output) as archive:
            chapter = archive.read("OEBPS/text/chapter_001.xhtml").decode("utf-8")
        assert "She opened the window and looked at the sea." in chapter
        assert "[zh] The morning was quiet." in chapter
        assert all(p.translated_content for _, p in document.iter_paragraphs())
