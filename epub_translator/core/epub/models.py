"""
In-memory document model: document -> chapters -> paragraphs, plus resources
and navigation. Data only; loading and rebuilding live in processor.py and
reconstructor.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from ..models import TranslationMetrics


class ParagraphType(Enum):
    TEXT = "text"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    HEADING4 = "heading4"
    HEADING5 = "heading5"
    HEADING6 = "heading6"
    QUOTE = "quote"
    CODE = "code"
    LIST = "list"
    TABLE = "table"
    IMAGE = "image"
    OTHER = "other"

    @property
    def heading_level(self) -> Optional[int]:
        """1-6 for heading types, None otherwise."""
        if self.value.startswith("heading"):
            return int(self.value[-1])
        return None

    @classmethod
    def heading(cls, level: int) -> 'ParagraphType':
        return cls(f"heading{level}")


class ResourceType(Enum):
    IMAGE = "image"
    FONT = "font"
    STYLESHEET = "stylesheet"
    OTHER = "other"


IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp', '.bmp'}
FONT_EXTENSIONS = {'.ttf', '.otf', '.woff', '.woff2'}
STYLESHEET_EXTENSIONS = {'.css'}

MIME_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.webp': 'image/webp',
    '.bmp': 'image/bmp',
    '.ttf': 'font/ttf',
    '.otf': 'font/otf',
    '.woff': 'font/woff',
    '.woff2': 'font/woff2',
    '.css': 'text/css',
    '.xhtml': 'application/xhtml+xml',
    '.html': 'text/html',
    '.htm': 'text/html',
    '.ncx': 'application/x-dtbncx+xml',
    '.opf': 'application/oebps-package+xml',
    '.xml': 'application/xml',
    '.js': 'application/javascript',
}


def resource_type_for(path: str) -> ResourceType:
    """Classify a container member by its extension."""
    ext = PurePosixPath(path).suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return ResourceType.IMAGE
    if ext in FONT_EXTENSIONS:
        return ResourceType.FONT
    if ext in STYLESHEET_EXTENSIONS:
        return ResourceType.STYLESHEET
    return ResourceType.OTHER


def mime_type_for(path: str) -> str:
    return MIME_TYPES.get(PurePosixPath(path).suffix.lower(), 'application/octet-stream')


@dataclass
class EpubParagraph:
    """A translatable block of a chapter.

    `node_path` is the structural address of the block inside the chapter
    markup (see xml_helpers.build_node_path); `original_html` is the raw
    fragment as extracted.
    """
    id: str
    content: str
    paragraph_type: ParagraphType = ParagraphType.TEXT
    node_path: str = ""
    translated_content: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    original_html: str = ""

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def is_translated(self) -> bool:
        return bool(self.translated_content)


@dataclass
class EpubChapter:
    id: str
    title: str
    original_path: str
    original_content: str = ""
    paragraphs: List[EpubParagraph] = field(default_factory=list)
    styles: Dict[str, str] = field(default_factory=dict)


@dataclass
class EpubResource:
    id: str
    path: str
    media_type: str
    content: bytes = b""
    resource_type: ResourceType = ResourceType.OTHER


@dataclass
class EpubNavigationItem:
    title: str
    href: str
    children: List['EpubNavigationItem'] = field(default_factory=list)


@dataclass
class EpubDocument:
    file_path: str
    title: str = ""
    author: str = ""
    source_language: str = ""
    target_language: str = ""
    chapters: List[EpubChapter] = field(default_factory=list)
    resources: Dict[str, EpubResource] = field(default_factory=dict)
    navigation: List[EpubNavigationItem] = field(default_factory=list)
    cover_image: Optional[bytes] = None
    opf_path: str = ""
    translation_metrics: Optional[TranslationMetrics] = None

    @property
    def paragraph_count(self) -> int:
        return sum(len(chapter.paragraphs) for chapter in self.chapters)

    def iter_paragraphs(self):
        """Yield (chapter, paragraph) pairs in reading order."""
        for chapter in self.chapters:
            for paragraph in chapter.paragraphs:
                yield chapter, paragraph
