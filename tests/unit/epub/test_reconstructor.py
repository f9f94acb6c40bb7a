"""Unit tests for chapter reconstruction."""

from lxml import etree

from epub_translator.core.epub import (
    ChapterReconstructor,
    EpubChapter,
    EpubParagraph,
    ParagraphType,
    build_basic_chapter_content,
    extract_paragraphs,
)
from epub_translator.core.epub.reconstructor import locate_node, locate_text_run
from epub_translator.core.epub.xml_helpers import parse_markup


def chapter_from(markup, title="Sample"):
    return EpubChapter(id="ch1", title=title, original_path="text/ch1.xhtml",
                       original_content=markup, paragraphs=extract_paragraphs(markup, "ch1"))


def parse(output):
    return etree.fromstring(output.encode('utf-8'))


class TestChapterReconstructor:

    def test_writes_translations_in_place(self, sample_chapter_markup, quiet_logger):
        chapter = chapter_from(sample_chapter_markup)
        for i, paragraph in enumerate(chapter.paragraphs):
            paragraph.translated_content = f"译文{i}"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        root = parse(output)
        ns = {"x": "http://www.w3.org/1999/xhtml"}
        assert root.findtext(".//x:h1", namespaces=ns) == "译文0"
        assert root.findtext(".//x:body/x:p", namespaces=ns) == "译文1"
        assert root.findtext(".//x:blockquote/x:p", namespaces=ns) == "译文2"
        assert [li.text for li in root.iterfind(".//x:li", namespaces=ns)] == ["译文3", "译文4"]
        # Markup outside the translated blocks is untouched
        assert root.findtext(".//x:style", namespaces=ns) == "p { color: red; }"
        assert "Sample" == root.findtext(".//x:title", namespaces=ns)

    def test_untranslated_paragraph_keeps_source_text(self, sample_chapter_markup, quiet_logger):
        chapter = chapter_from(sample_chapter_markup)
        chapter.paragraphs[0].translated_content = "开始"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "开始" in output
        assert "A quoted line." in output

    def test_inline_markup_replaced_by_text(self, sample_chapter_markup, quiet_logger):
        chapter = chapter_from(sample_chapter_markup)
        chapter.paragraphs[1].translated_content = "第一段，带有强调。"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "<em>" not in output
        assert "第一段，带有强调。" in output

    def test_duplicate_paragraphs_claimed_once(self, quiet_logger):
        markup = '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>Same.</p><p>Same.</p></body></html>'
        chapter = chapter_from(markup)
        chapter.paragraphs[0].translated_content = "甲"
        chapter.paragraphs[1].translated_content = "乙"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert output.index("甲") < output.index("乙")

    def test_falls_back_to_content_search(self, quiet_logger):
        """A stale node path is recovered by matching the paragraph text."""
        markup = '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>One.</p><p>Two.</p></body></html>'
        chapter = chapter_from(markup)
        chapter.paragraphs[1].node_path = "/html[1]/body[1]/p[7]"
        chapter.paragraphs[1].translated_content = "二"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "<p>二</p>" in output
        assert "<p>One.</p>" in output

    def test_unlocatable_paragraph_regenerates_chapter(self, sample_chapter_markup, quiet_logger):
        """No partial rewrites: one unresolvable paragraph switches to the skeleton."""
        chapter = chapter_from(sample_chapter_markup)
        chapter.paragraphs[3].content = "Text that is not in the markup"
        for paragraph in chapter.paragraphs:
            paragraph.translated_content = "T:" + paragraph.content

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "<style>" not in output
        assert "<h1>T:The Beginning</h1>" in output
        assert "<blockquote><p>T:A quoted line.</p></blockquote>" in output
        assert "<pre>T:code block</pre>" in output
        assert any(entry['level'] == 'WARNING' for entry in quiet_logger.entries)
        parse(output)

    def test_missing_markup_generates_skeleton(self, quiet_logger):
        chapter = EpubChapter(id="c", title="Empty", original_path="c.xhtml", paragraphs=[
            EpubParagraph(id="c_p0001", content="Hello", translated_content="你好"),
        ])
        output = ChapterReconstructor(quiet_logger).rebuild(chapter)
        assert "<p>你好</p>" in output

    def test_invalid_xml_characters_removed(self, quiet_logger):
        markup = '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>Bell</p></body></html>'
        chapter = chapter_from(markup)
        chapter.paragraphs[0].translated_content = "铃\x07声"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "<p>铃声</p>" in output
        parse(output)


class TestBuildBasicChapterContent:

    def test_escapes_text_and_title(self):
        chapter = EpubChapter(id="c", title="Q&A", original_path="c.xhtml", paragraphs=[
            EpubParagraph(id="p1", content="a < b", paragraph_type=ParagraphType.HEADING2),
            EpubParagraph(id="p2", content="x", translated_content="<tag> & more"),
        ])

        output = build_basic_chapter_content(chapter)

        assert "<title>Q&amp;A</title>" in output
        assert "<h2>a &lt; b</h2>" in output
        assert "<p>&lt;tag&gt; &amp; more</p>" in output
        root = parse(output)
        assert root.tag == "{http://www.w3.org/1999/xhtml}html"


class TestLocateNode:

    def test_claimed_nodes_skipped(self):
        markup = '<html><body><p>Twice</p><p>Twice</p></body></html>'
        tree, _ = parse_markup(markup)
        root = tree.getroot()
        paragraph = EpubParagraph(id="p", content="Twice")

        first = locate_node(root, paragraph)
        second = locate_node(root, paragraph, {first})

        assert first is not None and second is not None
        assert first is not second
        assert locate_node(root, paragraph, {first, second}) is None


class TestMixedContainerRewrite:

    MARKUP = ('<html xmlns="http://www.w3.org/1999/xhtml"><body>'
              '<div class="note">Intro sentence directly in the div.<p>Nested paragraph.</p>Closing words.</div>'
              '</body></html>')
    NS = {"x": "http://www.w3.org/1999/xhtml"}

    def test_text_runs_replaced_around_blocks(self, quiet_logger):
        chapter = chapter_from(self.MARKUP)
        for paragraph, text in zip(chapter.paragraphs, ["引言。", "嵌套段落。", "结语。"]):
            paragraph.translated_content = text

        root = parse(ChapterReconstructor(quiet_logger).rebuild(chapter))

        div = root.find(".//x:div", namespaces=self.NS)
        assert div.get("class") == "note"
        assert div.text == "引言。"
        nested = div.find("x:p", namespaces=self.NS)
        assert nested.text == "嵌套段落。"
        assert nested.tail == "结语。"

    def test_inline_markup_in_run_replaced(self, quiet_logger):
        markup = ('<html xmlns="http://www.w3.org/1999/xhtml"><body>'
                  '<div>Read <em>this</em> first. <p>Body.</p></div></body></html>')
        chapter = chapter_from(markup)
        chapter.paragraphs[0].translated_content = "先读这个。"
        chapter.paragraphs[1].translated_content = "正文。"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "<em>" not in output
        div = parse(output).find(".//x:div", namespaces=self.NS)
        assert div.text == "先读这个。 "
        assert div.find("x:p", namespaces=self.NS).text == "正文。"

    def test_stale_run_address_found_by_content(self, quiet_logger):
        chapter = chapter_from(self.MARKUP)
        chapter.paragraphs[2].node_path = "/html[1]/body[1]/div[4]/text()[2]"
        chapter.paragraphs[2].translated_content = "结语。"

        output = ChapterReconstructor(quiet_logger).rebuild(chapter)

        assert "结语。" in output
        assert "Intro sentence directly in the div." in output
        assert not any(entry['level'] == 'WARNING' for entry in quiet_logger.entries)

    def test_locate_text_run_respects_claims(self):
        tree, _ = parse_markup(self.MARKUP)
        root = tree.getroot()
        paragraph = extract_paragraphs(self.MARKUP, "ch1")[0]

        run = locate_text_run(root, paragraph)

        assert run is not None
        assert run.index == 1
        assert locate_text_run(root, paragraph, {run.key}) is None
