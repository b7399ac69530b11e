"""Unit tests for token estimation and throughput helpers."""

import math
import sys

from relaychat.infra.tokens import (
    count_words,
    estimate_tokens,
    safe_elapsed,
    tokens_per_second,
    truncate_to_tokens,
)


class TestEstimateTokens:
    def test_empty_is_zero(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_rounds_up(self):
        assert estimate_tokens("a") == 1
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_four_hundred_chars_is_one_hundred_tokens(self):
        assert estimate_tokens("x" * 400) == 100


class TestTruncateToTokens:
    def test_keeps_leading_characters(self):
        assert truncate_to_tokens("abcdefghij", 2) == "abcdefgh"

    def test_negative_allowance_keeps_nothing(self):
        assert truncate_to_tokens("abcdef", -3) == ""


class TestCountWords:
    def test_empty_is_zero(self):
        assert count_words("") == 0
        assert count_words(None) == 0

    def test_plain_fragment(self):
        assert count_words("Hel") == 1
        assert count_words("two words") == 2

    def test_leading_space_counts_an_empty_field(self):
        """Split semantics: ``" world"`` yields ``["", "world"]``."""
        assert count_words(" world") == 2


class TestThroughput:
    def test_zero_duration_uses_epsilon(self):
        assert safe_elapsed(0.0) == sys.float_info.epsilon
        assert safe_elapsed(-1.0) == sys.float_info.epsilon

    def test_positive_duration_unchanged(self):
        assert safe_elapsed(1.5) == 1.5

    def test_zero_duration_throughput_is_finite(self):
        rate = tokens_per_second(10, 0.0)
        assert math.isfinite(rate)
        assert rate > 0

    def test_rate(self):
        assert tokens_per_second(10, 2.0) == 5.0
