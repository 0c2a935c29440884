"""
Tests for Tokenizer class.

Tests cover:
1. Token counting (accurate and approximate)
2. Truncation to a token budget
3. Edge cases (empty, unicode)
"""

import pytest

from mnemorag.config import TokenizerConfig
from mnemorag.core.tokenizer import Tokenizer


@pytest.fixture
def approximate_tokenizer():
    return Tokenizer(TokenizerConfig(provider="approximate", chars_per_token=4.0))


class TestTokenCounting:
    """Tests for token counting functionality."""

    def test_count_tokens_simple(self):
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("React integrates with Redis.")
        assert count > 0
        assert isinstance(count, int)

    def test_count_tokens_empty(self):
        assert Tokenizer().count_tokens("") == 0

    def test_count_tokens_unicode(self):
        assert Tokenizer().count_tokens("Hello, 世界! 🌍") > 0

    def test_count_tokens_deterministic(self):
        tokenizer = Tokenizer()
        text = "The quick brown fox jumps over the lazy dog."
        assert tokenizer.count_tokens(text) == tokenizer.count_tokens(text)

    def test_approximate_count(self, approximate_tokenizer):
        assert approximate_tokenizer.count_tokens("a" * 40) == 10
        assert approximate_tokenizer.estimate_tokens("") == 0


class TestTruncate:
    """Tests for budget truncation."""

    def test_short_text_unchanged(self):
        tokenizer = Tokenizer()
        assert tokenizer.truncate("React and Redis", max_tokens=100) == "React and Redis"

    def test_long_text_truncated(self):
        tokenizer = Tokenizer()
        text = "This is a test sentence. " * 200

        truncated = tokenizer.truncate(text, max_tokens=50)

        assert tokenizer.count_tokens(truncated) <= 50
        assert text.startswith(truncated)

    def test_zero_budget(self):
        assert Tokenizer().truncate("anything", max_tokens=0) == ""

    def test_approximate_truncate(self, approximate_tokenizer):
        assert approximate_tokenizer.truncate("abcdefghij", max_tokens=2) == "abcdefgh"
