"""Translation memory: fuzzy-matched, persisted translation cache."""
from .models import TranslationMemoryEntry, memory_key
from .similarity import levenshtein_distance, similarity
from .translation_memory import SIMILARITY_FLOOR, TranslationMemory

__all__ = [
    'SIMILARITY_FLOOR',
    'TranslationMemory',
    'TranslationMemoryEntry',
    'levenshtein_distance',
    'memory_key',
    'similarity',
]
