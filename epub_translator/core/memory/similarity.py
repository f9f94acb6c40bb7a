"""
Normalized edit-distance similarity used for fuzzy translation memory lookups.
"""
from typing import Optional

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character insertions, deletions and substitutions."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str, score_cutoff: Optional[float] = None) -> float:
    """
    1 - distance / max(len(a), len(b)).

    Symmetric, within [0, 1], and 1.0 only for identical strings. Scores
    below `score_cutoff` come back as 0.0.
    """
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b, score_cutoff=score_cutoff)


def similarity_upper_bound(a: str, b: str) -> float:
    """
    Cheap upper bound of similarity(a, b) from the lengths alone, since the
    edit distance is at least the length difference.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return min(len(a), len(b)) / longest
