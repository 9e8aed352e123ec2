"""
Tests for switchyard/threshold.py
"""
import pytest

from switchyard.threshold import derive_threshold, effective_limit


class TestDeriveThreshold:
    def test_two_word_query_is_broad(self):
        assert derive_threshold("sync files") == 0.5

    def test_short_query_is_broad(self):
        assert derive_threshold("weather") == 0.5

    def test_medium_query_keeps_default(self):
        # 24 characters, four words
        assert derive_threshold("read a file from my disk") == 0.65

    def test_long_specific_query_is_precise(self):
        query = "find the exact specific configuration for database connection pooling"
        assert derive_threshold(query) == 0.75

    def test_specificity_wins_over_broadness(self):
        # Short and one word, but contains "exact"
        assert derive_threshold("exact") == 0.75
        # Two words, but longer than 30 characters
        assert derive_threshold("supercalifragilistic expialidocious") == 0.75

    def test_keyword_match_is_case_sensitive(self):
        assert derive_threshold("find Exact match now") == 0.65

    def test_word_count_splits_on_single_spaces(self):
        # Double space yields an empty word, so this counts as three words
        assert derive_threshold("list  directories") == 0.65

    @pytest.mark.parametrize("explicit, expected", [
        (0.3, 0.3),
        (0, 0.0),
        (1, 1.0),
        (-0.2, 0.0),
        (1.7, 1.0),
    ])
    def test_explicit_numbers_are_clamped(self, explicit, expected):
        assert derive_threshold("sync files", explicit) == expected

    @pytest.mark.parametrize("explicit", [None, "0.9", True, [0.9]])
    def test_non_numeric_explicit_falls_back_to_policy(self, explicit):
        assert derive_threshold("sync files", explicit) == 0.5


class TestEffectiveLimit:
    @pytest.mark.parametrize("value, expected", [
        (None, 10),
        (5, 5),
        (5.9, 5),
        ("25", 25),
        ("30 tools", 30),
        ("abc", 10),
        (0, 10),
        ("0", 10),
        (-5, 1),
        (250, 100),
        ("1000", 100),
        (float("nan"), 10),
        (True, 10),
        ({"n": 3}, 10),
    ])
    def test_limit_is_parsed_and_clamped(self, value, expected):
        assert effective_limit(value) == expected
