"""
Paragraph extraction for EPUB chapters

This module walks a chapter's markup tree and turns every translatable block
(headings, paragraphs, quotes, preformatted text, list items, table cells and
block containers holding their own text) into an EpubParagraph carrying its
text, type, attributes and structural address.

A container that mixes its own text with nested blocks, such as
``<div>Intro<p>Nested</p>Outro</div>``, yields one paragraph per text run
between its block children. A run is addressed as the container's path plus
``/text()[n]``, n counting runs from 1.
"""
import re
from dataclasses import dataclass, field
from html import escape
from typing import Dict, List, Optional, Tuple

from lxml import etree

from .models import EpubParagraph, ParagraphType
from .xml_helpers import (
    build_node_path,
    collect_text,
    is_element,
    local_name,
    parse_markup,
)

HEADING_TAGS = {f'h{level}': ParagraphType.heading(level) for level in range(1, 7)}

BLOCK_TAGS: Dict[str, ParagraphType] = {
    'p': ParagraphType.TEXT,
    'blockquote': ParagraphType.QUOTE,
    'pre': ParagraphType.CODE,
    'li': ParagraphType.LIST,
    'dt': ParagraphType.LIST,
    'dd': ParagraphType.LIST,
    'td': ParagraphType.TABLE,
    'th': ParagraphType.TABLE,
    'caption': ParagraphType.TABLE,
}

CONTAINER_TAGS = frozenset({
    'div', 'section', 'article', 'aside', 'header', 'footer', 'main',
    'figure', 'figcaption', 'address', 'center', 'nav',
})

# Subtrees that never hold translatable prose
SKIPPED_TAGS = frozenset({'head', 'script', 'style', 'svg', 'math', 'title'})

# Ancestors whose semantics carry over to nested blocks
INHERITED_TYPES = {
    'blockquote': ParagraphType.QUOTE,
    'ul': ParagraphType.LIST,
    'ol': ParagraphType.LIST,
    'dl': ParagraphType.LIST,
    'table': ParagraphType.TABLE,
}

_TEXT_RUN_SUFFIX = re.compile(r'/text\(\)\[(\d+)\]$')


def _is_candidate(element) -> bool:
    name = local_name(element)
    return name in HEADING_TAGS or name in BLOCK_TAGS or name in CONTAINER_TAGS


def _has_candidate_descendant(element) -> bool:
    for descendant in element.iterdescendants():
        if is_element(descendant) and _is_candidate(descendant):
            return True
    return False


def is_mixed_container(element) -> bool:
    """A candidate block that also holds nested candidate blocks."""
    return is_element(element) and _is_candidate(element) and _has_candidate_descendant(element)


def _is_run_boundary(child) -> bool:
    if not is_element(child):
        return False
    return (local_name(child) in SKIPPED_TAGS
            or _is_candidate(child)
            or _has_candidate_descendant(child))


def _paragraph_type(name: str, inherited: Optional[ParagraphType]) -> ParagraphType:
    if name in HEADING_TAGS:
        return HEADING_TAGS[name]
    if name in BLOCK_TAGS and name != 'p':
        return BLOCK_TAGS[name]
    if inherited is not None:
        return inherited
    if name in BLOCK_TAGS:
        return BLOCK_TAGS[name]
    return ParagraphType.TEXT


@dataclass
class TextRun:
    """Text and inline markup of a mixed container between two of its block children.

    `anchor` is the block child whose tail starts the run, or None for the
    run opening the container.
    """
    container: etree._Element
    index: int
    anchor: Optional[etree._Element] = None
    members: List[etree._Element] = field(default_factory=list)

    @property
    def key(self) -> Tuple[etree._Element, int]:
        return (self.container, self.index)

    def _leading(self) -> str:
        return (self.container.text if self.anchor is None else self.anchor.tail) or ''

    @property
    def text(self) -> str:
        parts = [self._leading()]
        for member in self.members:
            if is_element(member):
                parts.append(collect_text(member))
            parts.append(member.tail or '')
        return ''.join(parts)

    @property
    def html(self) -> str:
        parts = [escape(self._leading(), quote=False)]
        parts += [etree.tostring(member, encoding='unicode', with_tail=True) for member in self.members]
        return ''.join(parts)

    def replace(self, text: str) -> None:
        """Replace the run with plain text, keeping its outer whitespace."""
        original = self.text
        leading = original[:len(original) - len(original.lstrip())]
        trailing = original[len(original.rstrip()):]
        for member in self.members:
            self.container.remove(member)
        self.members = []
        value = leading + text + trailing if original.strip() else text
        if self.anchor is None:
            self.container.text = value
        else:
            self.anchor.tail = value


def text_runs(container) -> List[TextRun]:
    """Split a container's children into text runs separated by block children."""
    runs = [TextRun(container, 1)]
    for child in container:
        if _is_run_boundary(child):
            runs.append(TextRun(container, len(runs) + 1, anchor=child))
        else:
            runs[-1].members.append(child)
    return runs


def text_run_path(container_path: str, index: int) -> str:
    return f"{container_path}/text()[{index}]"


def split_text_run_path(node_path: str) -> Tuple[str, Optional[int]]:
    """('/html[1]/body[1]/div[1]', 2) for '/html[1]/body[1]/div[1]/text()[2]'; index None for element paths."""
    match = _TEXT_RUN_SUFFIX.search(node_path or '')
    if match is None:
        return node_path, None
    return node_path[:match.start()], int(match.group(1))


class ParagraphExtractor:
    """Extract translatable paragraphs from chapter markup.

    Extraction is a pure function of the markup: the same input always yields
    the same paragraphs, ids and node paths.
    """

    def extract(self, markup: str, chapter_id: str = "chapter") -> List[EpubParagraph]:
        if not markup or not markup.strip():
            return []

        tree, _ = parse_markup(markup)
        root = tree.getroot()
        body = next(
            (el for el in root.iter() if is_element(el) and local_name(el) == 'body'),
            root
        )

        paragraphs: List[EpubParagraph] = []
        self._walk(body, chapter_id, paragraphs, None)
        return paragraphs

    def _walk(self, element, chapter_id: str, paragraphs: List[EpubParagraph],
              inherited: Optional[ParagraphType]) -> None:
        for child in element:
            if is_element(child):
                self._visit(child, chapter_id, paragraphs, inherited)

    def _visit(self, element, chapter_id: str, paragraphs: List[EpubParagraph],
               inherited: Optional[ParagraphType]) -> None:
        name = local_name(element)
        if name in SKIPPED_TAGS:
            return

        child_inherited = INHERITED_TYPES.get(name, inherited)

        if not _is_candidate(element):
            self._walk(element, chapter_id, paragraphs, child_inherited)
        elif not _has_candidate_descendant(element):
            self._add_paragraph(element, name, chapter_id, paragraphs, inherited)
        else:
            runs = text_runs(element)
            paragraph_type = _paragraph_type(name, inherited)
            self._add_text_run(runs[0], paragraph_type, chapter_id, paragraphs)
            for run in runs[1:]:
                self._visit(run.anchor, chapter_id, paragraphs, child_inherited)
                self._add_text_run(run, paragraph_type, chapter_id, paragraphs)

    def _add_paragraph(self, element, name: str, chapter_id: str,
                       paragraphs: List[EpubParagraph],
                       inherited: Optional[ParagraphType]) -> None:
        content = collect_text(element).strip()
        if not content:
            return

        paragraphs.append(EpubParagraph(
            id=f"{chapter_id}_p{len(paragraphs) + 1:04d}",
            content=content,
            paragraph_type=_paragraph_type(name, inherited),
            node_path=build_node_path(element),
            attributes={str(key): str(value) for key, value in element.attrib.items()},
            original_html=etree.tostring(element, encoding='unicode', with_tail=False),
        ))

    def _add_text_run(self, run: TextRun, paragraph_type: ParagraphType, chapter_id: str,
                      paragraphs: List[EpubParagraph]) -> None:
        content = run.text.strip()
        if not content:
            return

        paragraphs.append(EpubParagraph(
            id=f"{chapter_id}_p{len(paragraphs) + 1:04d}",
            content=content,
            paragraph_type=paragraph_type,
            node_path=text_run_path(build_node_path(run.container), run.index),
            attributes={str(key): str(value) for key, value in run.container.attrib.items()},
            original_html=run.html.strip(),
        ))


def extract_paragraphs(markup: str, chapter_id: str = "chapter") -> List[EpubParagraph]:
    """Module-level convenience wrapper around ParagraphExtractor."""
    return ParagraphExtractor().extract(markup, chapter_id)
