"""
Chapter reconstruction

Rebuilds a chapter's markup by writing each paragraph's translated text back
into the node it was extracted from. All nodes are located before anything is
modified; if any paragraph cannot be located the chapter is regenerated as a
minimal XHTML skeleton instead, so a chapter is never half rewritten.
"""
import re
from html import escape
from typing import List, Optional, Set, Tuple, Union

from lxml import etree

from ...utils.unified_logger import LogType, UnifiedLogger, get_logger
from .exceptions import NodeResolutionError
from .extractor import TextRun, is_mixed_container, split_text_run_path, text_runs
from .models import EpubChapter, EpubParagraph, ParagraphType
from .xml_helpers import (
    XHTML_NAMESPACE,
    collect_text,
    ensure_well_formed_xhtml,
    is_element,
    normalize_text,
    parse_markup,
    resolve_node_path,
    serialize_tree,
)

# Characters XML 1.0 does not allow in text nodes
_XML_INVALID_CHARS = re.compile('[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]')


def _find_by_address(root, paragraph: EpubParagraph, claimed: Set) -> Optional[etree._Element]:
    if not paragraph.node_path:
        return None
    node = resolve_node_path(root, paragraph.node_path)
    if node is None or node in claimed:
        return None
    if normalize_text(collect_text(node)) != normalize_text(paragraph.content):
        return None
    return node


def _find_by_content(root, paragraph: EpubParagraph, claimed: Set) -> Optional[etree._Element]:
    wanted = normalize_text(paragraph.content)
    matches = [
        el for el in root.iter()
        if is_element(el) and el not in claimed and normalize_text(collect_text(el)) == wanted
    ]
    if not matches:
        return None

    # Wrappers share their only child's text; keep the innermost match
    best = matches[0]
    for candidate in matches[1:]:
        if any(ancestor is best for ancestor in candidate.iterancestors()):
            best = candidate
        else:
            break
    return best


def locate_node(root, paragraph: EpubParagraph, claimed: Optional[Set] = None) -> Optional[etree._Element]:
    """
    Find the element a paragraph was extracted from.

    The recorded structural address is tried first; when it no longer resolves
    (or resolves to different text) the tree is scanned for an element whose
    text equals the paragraph content. Elements in `claimed` are never returned.
    """
    claimed = claimed if claimed is not None else set()
    node = _find_by_address(root, paragraph, claimed)
    if node is None:
        node = _find_by_content(root, paragraph, claimed)
    return node


def _matching_run(runs: List[TextRun], wanted: str, claimed: Set) -> Optional[TextRun]:
    for run in runs:
        if run.key not in claimed and normalize_text(run.text) == wanted:
            return run
    return None


def locate_text_run(root, paragraph: EpubParagraph, claimed: Optional[Set] = None) -> Optional[TextRun]:
    """
    Find the text run of a mixed container a paragraph was extracted from.

    The container path and run number are tried first, then every mixed
    container in the tree is scanned for a run with the paragraph's text.
    Runs whose key is in `claimed` are never returned.
    """
    claimed = claimed if claimed is not None else set()
    wanted = normalize_text(paragraph.content)
    container_path, index = split_text_run_path(paragraph.node_path)

    container = resolve_node_path(root, container_path) if index else None
    if container is not None and is_mixed_container(container):
        runs = text_runs(container)
        if index <= len(runs):
            run = _matching_run([runs[index - 1]], wanted, claimed)
            if run is not None:
                return run

    for element in root.iter():
        if is_mixed_container(element):
            run = _matching_run(text_runs(element), wanted, claimed)
            if run is not None:
                return run
    return None


def locate_target(root, paragraph: EpubParagraph,
                  claimed: Set) -> Union[etree._Element, TextRun, None]:
    """Element or text run to rewrite for a paragraph, depending on its address."""
    if split_text_run_path(paragraph.node_path)[1] is not None:
        return locate_text_run(root, paragraph, claimed)
    return locate_node(root, paragraph, claimed)


def replace_inner_text(element, text: str) -> None:
    """Replace an element's children and text with plain text, keeping its attributes and tail."""
    for child in list(element):
        element.remove(child)
    element.text = _XML_INVALID_CHARS.sub('', text)


def build_basic_chapter_content(chapter: EpubChapter) -> str:
    """Minimal valid XHTML chapter generated from paragraph types alone."""
    lines = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<!DOCTYPE html>',
        f'<html xmlns="{XHTML_NAMESPACE}">',
        '<head>',
        f'<title>{escape(chapter.title or "")}</title>',
        '</head>',
        '<body>',
    ]
    for paragraph in chapter.paragraphs:
        text = escape(_XML_INVALID_CHARS.sub('', paragraph.translated_content or paragraph.content))
        level = paragraph.paragraph_type.heading_level
        if level:
            lines.append(f'<h{level}>{text}</h{level}>')
        elif paragraph.paragraph_type == ParagraphType.QUOTE:
            lines.append(f'<blockquote><p>{text}</p></blockquote>')
        elif paragraph.paragraph_type == ParagraphType.CODE:
            lines.append(f'<pre>{text}</pre>')
        else:
            lines.append(f'<p>{text}</p>')
    lines += ['</body>', '</html>']
    return ensure_well_formed_xhtml('\n'.join(lines))


class ChapterReconstructor:
    """Rewrite chapter markup with translated paragraph text."""

    def __init__(self, logger: Optional[UnifiedLogger] = None):
        self.logger = logger or get_logger()

    def rebuild(self, chapter: EpubChapter) -> str:
        if not chapter.original_content or not chapter.original_content.strip():
            self.logger.warning(
                f"Chapter '{chapter.title}' has no original markup, generating basic content"
            )
            return build_basic_chapter_content(chapter)

        try:
            return self._rewrite(chapter)
        except NodeResolutionError as e:
            self.logger.warning(
                f"Chapter '{chapter.title}': {e}. Falling back to basic chapter content",
                LogType.FILE_OPERATION,
                {'paragraph': e.paragraph_id, 'node_path': e.node_path}
            )
        except (etree.LxmlError, ValueError) as e:
            self.logger.warning(
                f"Chapter '{chapter.title}' could not be rewritten ({e}). "
                f"Falling back to basic chapter content"
            )
        return build_basic_chapter_content(chapter)

    def _rewrite(self, chapter: EpubChapter) -> str:
        tree, _ = parse_markup(chapter.original_content)
        root = tree.getroot()

        targets: List[Tuple[Union[etree._Element, TextRun], EpubParagraph]] = []
        claimed: Set = set()
        for paragraph in chapter.paragraphs:
            target = locate_target(root, paragraph, claimed)
            if target is None:
                raise NodeResolutionError(
                    f"paragraph {paragraph.id} could not be located",
                    paragraph_id=paragraph.id,
                    node_path=paragraph.node_path
                )
            claimed.add(target.key if isinstance(target, TextRun) else target)
            targets.append((target, paragraph))

        for target, paragraph in targets:
            text = paragraph.translated_content or paragraph.content
            if isinstance(target, TextRun):
                target.replace(_XML_INVALID_CHARS.sub('', text))
            else:
                replace_inner_text(target, text)

        return serialize_tree(tree)

