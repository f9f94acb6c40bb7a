"""
Token-budgeted batching with natural boundary preservation.

Paragraphs are packed into batches whose estimated token count stays within
a budget. A paragraph too large on its own is split on sentence boundaries,
and a sentence still too large is split between words. Every piece keeps its
trailing whitespace, so joining the pieces in order gives back the input.
"""
import re
from typing import Dict, List, Sequence

from .models import (
    BatchUnit,
    BoundaryType,
    ChunkingConfigurationError,
    ParagraphBatch,
)

WORD_WEIGHT = 1.3
CHARACTER_WEIGHT = 0.1

# Split after . ! ? (optionally followed by closing quotes/brackets) and the
# whitespace that follows, or directly after CJK full-width terminators.
_SENTENCE_BOUNDARY = re.compile(r'(?<=[.!?])["\'”’)\]]*\s+|(?<=[。！？])')
_WORD_PIECE = re.compile(r'\S+\s*|\s+')


def estimate_tokens(text: str) -> int:
    """
    Cheap deterministic token estimate: 1.3 per whitespace-delimited word
    plus 0.1 per character. Never decreases as text is appended.
    """
    if not text:
        return 0
    return int(len(text.split()) * WORD_WEIGHT + len(text) * CHARACTER_WEIGHT)


def split_into_sentences(text: str) -> List[str]:
    """Split text into sentences, each keeping its trailing whitespace."""
    sentences = []
    last_end = 0
    for match in _SENTENCE_BOUNDARY.finditer(text):
        end = match.end()
        if end > last_end:
            sentences.append(text[last_end:end])
            last_end = end
    if last_end < len(text):
        sentences.append(text[last_end:])
    return sentences


def split_into_words(text: str) -> List[str]:
    """Split text into words, each keeping its trailing whitespace."""
    return _WORD_PIECE.findall(text)


class TokenChunker:
    """
    Token-budgeted chunker that respects natural boundaries.

    Batches never exceed `max_tokens` (summed per-paragraph estimates) except
    when a single word is larger than the budget by itself.
    """

    def __init__(self, max_tokens: int = 2000):
        """
        Initialize the TokenChunker.

        Args:
            max_tokens: Maximum estimated tokens per batch or segment
        """
        if max_tokens <= 0:
            raise ChunkingConfigurationError(f"max_tokens must be positive, got {max_tokens}")
        self.max_tokens = max_tokens

    def count_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    def _pack(self, pieces: List[str]) -> List[str]:
        """Greedily join consecutive pieces while the joined text fits the budget."""
        packed = []
        current = ""
        for piece in pieces:
            if current and estimate_tokens(current + piece) > self.max_tokens:
                packed.append(current)
                current = piece
            else:
                current += piece
        if current:
            packed.append(current)
        return packed

    def split_text(self, text: str) -> List[str]:
        """
        Split a single text into segments that each fit the budget.

        Sentence boundaries are preferred; a sentence over budget is split
        between words. A single word over budget is kept whole.

        Returns:
            Segments whose concatenation equals `text`
        """
        if not text:
            return []
        if estimate_tokens(text) <= self.max_tokens:
            return [text]

        pieces: List[str] = []
        for sentence in split_into_sentences(text):
            if estimate_tokens(sentence) > self.max_tokens:
                pieces.extend(self._pack(split_into_words(sentence)))
            else:
                pieces.append(sentence)
        return self._pack(pieces)

    def batch_paragraphs(self, paragraphs: Sequence) -> List[ParagraphBatch]:
        """
        Group paragraphs (objects with a `content` attribute) into batches.

        Consecutive paragraphs are accumulated until the next one would push
        the batch over budget. A paragraph over budget on its own becomes a
        batch by itself with its content split by split_text().
        """
        batches: List[ParagraphBatch] = []
        current = ParagraphBatch(index=0)

        def flush():
            nonlocal current
            if current.units:
                batches.append(current)
                current = ParagraphBatch(index=len(batches))

        for paragraph in paragraphs:
            tokens = estimate_tokens(paragraph.content)

            if tokens > self.max_tokens:
                flush()
                segments = self.split_text(paragraph.content)
                boundary = (BoundaryType.SENTENCE_END
                            if len(split_into_sentences(paragraph.content)) > 1
                            else BoundaryType.WORD)
                current.units.append(BatchUnit(paragraph, segments, tokens))
                current.token_count = tokens
                current.boundary = boundary
                flush()
                continue

            if current.units and current.token_count + tokens > self.max_tokens:
                flush()

            current.units.append(BatchUnit(paragraph, [paragraph.content], tokens))
            current.token_count += tokens

        flush()
        return batches

    def get_stats(self, batches: List[ParagraphBatch]) -> Dict:
        """
        Get statistics about a batching result.

        Args:
            batches: Batches from batch_paragraphs()

        Returns:
            Dictionary with statistics
        """
        if not batches:
            return {
                "total_batches": 0,
                "total_paragraphs": 0,
                "split_paragraphs": 0,
                "avg_tokens": 0,
                "min_tokens": 0,
                "max_tokens": 0,
            }

        token_counts = [batch.token_count for batch in batches]
        return {
            "total_batches": len(batches),
            "total_paragraphs": sum(len(batch.units) for batch in batches),
            "split_paragraphs": sum(1 for batch in batches for unit in batch.units if unit.is_split),
            "avg_tokens": sum(token_counts) / len(token_counts),
            "min_tokens": min(token_counts),
            "max_tokens": max(token_counts),
        }
