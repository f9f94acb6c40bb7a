"""Unit tests for paragraph extraction."""

from epub_translator.core.epub import ParagraphType, extract_paragraphs
from epub_translator.core.epub.extractor import ParagraphExtractor, split_text_run_path


class TestParagraphExtractor:

    def test_extracts_blocks_in_document_order(self, sample_chapter_markup):
        paragraphs = extract_paragraphs(sample_chapter_markup, "ch1")

        assert [p.content for p in paragraphs] == [
            "The Beginning",
            "First paragraph with emphasis inside.",
            "A quoted line.",
            "Item one",
            "Item two",
            "code block",
        ]

    def test_paragraph_types(self, sample_chapter_markup):
        paragraphs = extract_paragraphs(sample_chapter_markup, "ch1")

        assert [p.paragraph_type for p in paragraphs] == [
            ParagraphType.HEADING1,
            ParagraphType.TEXT,
            ParagraphType.QUOTE,
            ParagraphType.LIST,
            ParagraphType.LIST,
            ParagraphType.CODE,
        ]

    def test_ids_and_node_paths(self, sample_chapter_markup):
        paragraphs = extract_paragraphs(sample_chapter_markup, "ch1")

        assert paragraphs[0].id == "ch1_p0001"
        assert paragraphs[5].id == "ch1_p0006"
        assert paragraphs[1].node_path == "/html[1]/body[1]/p[1]"
        assert paragraphs[2].node_path == "/html[1]/body[1]/blockquote[1]/p[1]"

    def test_empty_blocks_skipped(self, sample_chapter_markup):
        """Whitespace-only paragraphs are not translatable units."""
        paragraphs = extract_paragraphs(sample_chapter_markup, "ch1")
        assert all(p.content.strip() for p in paragraphs)

    def test_deterministic(self, sample_chapter_markup):
        first = extract_paragraphs(sample_chapter_markup, "ch1")
        second = ParagraphExtractor().extract(sample_chapter_markup, "ch1")
        assert first == second

    def test_attributes_and_original_html(self):
        markup = ('<html xmlns="http://www.w3.org/1999/xhtml"><body>'
                  '<p class="lead" id="intro">Hello <b>there</b>.</p></body></html>')
        paragraph = extract_paragraphs(markup, "c")[0]
        assert paragraph.attributes == {"class": "lead", "id": "intro"}
        assert "<b>there</b>" in paragraph.original_html
        assert paragraph.content == "Hello there."

    def test_container_with_only_text_is_a_paragraph(self):
        markup = '<html><body><div>Loose text in a div</div><section><p>Nested</p></section></body></html>'
        paragraphs = extract_paragraphs(markup, "c")
        assert [p.content for p in paragraphs] == ["Loose text in a div", "Nested"]

    def test_headings_levels_and_tables(self):
        markup = ('<html><body><h3>Sub</h3><table><tr><th>Name</th><td>Value</td></tr></table>'
                  '</body></html>')
        paragraphs = extract_paragraphs(markup, "c")
        assert paragraphs[0].paragraph_type == ParagraphType.HEADING3
        assert paragraphs[0].paragraph_type.heading_level == 3
        assert [p.paragraph_type for p in paragraphs[1:]] == [ParagraphType.TABLE, ParagraphType.TABLE]

    def test_scripts_and_svg_ignored(self):
        markup = ('<html><body><script>var x = 1;</script><svg><text>label</text></svg>'
                  '<p>Visible</p></body></html>')
        assert [p.content for p in extract_paragraphs(markup, "c")] == ["Visible"]

    def test_empty_markup(self):
        assert extract_paragraphs("", "c") == []
        assert extract_paragraphs("   \n", "c") == []

    def test_word_count(self, sample_chapter_markup):
        paragraph = extract_paragraphs(sample_chapter_markup, "ch1")[1]
        assert paragraph.word_count == 5
        assert not paragraph.is_translated


class TestMixedContainers:

    MARKUP = ('<html xmlns="http://www.w3.org/1999/xhtml"><body>'
              '<div class="note">Intro sentence directly in the div.<p>Nested paragraph.</p>Closing words.</div>'
              '</body></html>')

    def test_direct_text_runs_extracted_in_order(self):
        paragraphs = extract_paragraphs(self.MARKUP, "c")

        assert [p.content for p in paragraphs] == [
            "Intro sentence directly in the div.",
            "Nested paragraph.",
            "Closing words.",
        ]
        assert [p.node_path for p in paragraphs] == [
            "/html[1]/body[1]/div[1]/text()[1]",
            "/html[1]/body[1]/div[1]/p[1]",
            "/html[1]/body[1]/div[1]/text()[2]",
        ]
        assert paragraphs[0].attributes == {"class": "note"}
        assert paragraphs[0].paragraph_type == ParagraphType.TEXT

    def test_inline_markup_belongs_to_run(self):
        markup = '<html><body><div>Read <em>this</em> first.<p>Body.</p></div></body></html>'
        run = extract_paragraphs(markup, "c")[0]

        assert run.content == "Read this first."
        assert run.original_html == "Read <em>this</em> first."

    def test_nested_list_item_text(self):
        markup = ('<html xmlns="http://www.w3.org/1999/xhtml"><body>'
                  '<ul><li>Parent item<ul><li>Child item</li></ul></li></ul></body></html>')
        paragraphs = extract_paragraphs(markup, "c")

        assert [p.content for p in paragraphs] == ["Parent item", "Child item"]
        assert [p.paragraph_type for p in paragraphs] == [ParagraphType.LIST, ParagraphType.LIST]
        assert paragraphs[0].node_path == "/html[1]/body[1]/ul[1]/li[1]/text()[1]"

    def test_whitespace_between_blocks_ignored(self, sample_chapter_markup):
        paragraphs = extract_paragraphs(sample_chapter_markup, "ch1")
        assert not any("text()" in p.node_path for p in paragraphs)


class TestTextRunPaths:

    def test_split_text_run_path(self):
        assert split_text_run_path("/html[1]/body[1]/div[1]/text()[2]") == ("/html[1]/body[1]/div[1]", 2)
        assert split_text_run_path("/html[1]/body[1]/p[3]") == ("/html[1]/body[1]/p[3]", None)
        assert split_text_run_path("") == ("", None)
