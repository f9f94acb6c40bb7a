"""
EPUB document handling.

Loading and saving archives, paragraph extraction, chapter reconstruction
and the run statistics and events reported while translating.
"""

from .events import Event, EventBus, EventType
from .exceptions import (
    ArchiveAssemblyError,
    ChapterIndexError,
    EpubError,
    EpubLoadError,
    InvalidStructureError,
    NodeResolutionError,
)
from .extractor import ParagraphExtractor, extract_paragraphs
from .models import (
    EpubChapter,
    EpubDocument,
    EpubNavigationItem,
    EpubParagraph,
    EpubResource,
    ParagraphType,
    ResourceType,
)
from .processor import EpubProcessor
from .reconstructor import ChapterReconstructor, build_basic_chapter_content
from .translation_metrics import TranslationStatistics
from .xml_helpers import ensure_well_formed_xhtml

__all__ = [
    'ArchiveAssemblyError',
    'ChapterIndexError',
    'ChapterReconstructor',
    'EpubChapter',
    'EpubDocument',
    'EpubError',
    'EpubLoadError',
    'EpubNavigationItem',
    'EpubParagraph',
    'EpubProcessor',
    'EpubResource',
    'Event',
    'EventBus',
    'EventType',
    'InvalidStructureError',
    'NodeResolutionError',
    'ParagraphExtractor',
    'ParagraphType',
    'ResourceType',
    'TranslationStatistics',
    'build_basic_chapter_content',
    'ensure_well_formed_xhtml',
    'extract_paragraphs',
]
