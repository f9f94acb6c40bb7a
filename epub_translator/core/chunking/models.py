"""
Data models for token-budgeted batching.

Provides enums, dataclasses, and exceptions for the chunking engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List


class BoundaryType(Enum):
    """Boundary a batch or segment was cut on."""
    PARAGRAPH_END = "paragraph_end"
    SENTENCE_END = "sentence_end"
    WORD = "word"


class ChunkingError(Exception):
    """Base exception for chunking operations."""
    pass


class ChunkingConfigurationError(ChunkingError):
    """Invalid chunking configuration."""
    pass


@dataclass
class BatchUnit:
    """One paragraph inside a batch.

    `segments` holds the paragraph content split into request-sized pieces;
    it is a single element unless the paragraph alone exceeds the budget.
    Joining the segments reproduces the paragraph content exactly.
    """
    paragraph: Any
    segments: List[str]
    token_count: int

    @property
    def is_split(self) -> bool:
        return len(self.segments) > 1


@dataclass
class ParagraphBatch:
    """Ordered group of paragraphs whose estimated tokens fit one budget."""
    index: int
    units: List[BatchUnit] = field(default_factory=list)
    token_count: int = 0
    boundary: BoundaryType = BoundaryType.PARAGRAPH_END

    @property
    def paragraphs(self) -> List[Any]:
        return [unit.paragraph for unit in self.units]

    @property
    def max_word_count(self) -> int:
        """Word count of the longest paragraph in the batch."""
        return max((len(unit.paragraph.content.split()) for unit in self.units), default=0)

    @property
    def original_text(self) -> str:
        return ''.join(segment for unit in self.units for segment in unit.segments)
