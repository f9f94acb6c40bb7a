"""Token-budgeted chunking engine."""
from .models import (
    BatchUnit,
    BoundaryType,
    ChunkingConfigurationError,
    ChunkingError,
    ParagraphBatch,
)
from .token_chunker import (
    TokenChunker,
    estimate_tokens,
    split_into_sentences,
    split_into_words,
)

__all__ = [
    'BatchUnit',
    'BoundaryType',
    'ChunkingConfigurationError',
    'ChunkingError',
    'ParagraphBatch',
    'TokenChunker',
    'estimate_tokens',
    'split_into_sentences',
    'split_into_words',
]
