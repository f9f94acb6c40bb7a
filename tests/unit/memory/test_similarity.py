"""Unit tests for edit-distance similarity."""

import pytest

from epub_translator.core.memory.similarity import (
    levenshtein_distance,
    similarity,
    similarity_upper_bound,
)


class TestLevenshteinDistance:

    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ])
    def test_known_distances(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected


class TestSimilarity:

    def test_identical_strings(self):
        assert similarity("Hello world", "Hello world") == 1.0
        assert similarity("", "") == 1.0

    def test_symmetric(self):
        pairs = [("kitten", "sitting"), ("The cat sat.", "The cat sat down."), ("a", "")]
        for a, b in pairs:
            assert similarity(a, b) == similarity(b, a)

    def test_bounded(self):
        for a, b in [("abc", "xyz"), ("abc", ""), ("hello", "hallo"), ("x", "xxxxxxxx")]:
            assert 0.0 <= similarity(a, b) <= 1.0

    def test_one_only_for_identical(self):
        assert similarity("Hello world", "Hello world!") < 1.0
        assert similarity("abc", "abd") < 1.0

    def test_completely_different(self):
        assert similarity("abc", "xyz") == 0.0

    def test_value(self):
        # distance 3 over length 7
        assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_upper_bound_holds(self):
        for a, b in [("kitten", "sitting"), ("short", "a much longer string"), ("", "abc")]:
            assert similarity(a, b) <= similarity_upper_bound(a, b)

    def test_score_cutoff(self):
        assert similarity("kitten", "sitting", score_cutoff=0.5) == pytest.approx(1 - 3 / 7)
        assert similarity("kitten", "sitting", score_cutoff=0.9) == 0.0
        assert similarity("same", "same", score_cutoff=0.9) == 1.0
