"""
Tests for text normalization.
"""

from cardscan.normalizer import normalize_text, split_lines


class TestNormalizeText:
    """Test cases for normalize_text."""

    def test_empty(self):
        """Test empty and None-like input."""
        assert normalize_text("") == ""
        assert normalize_text(None) == ""

    def test_line_endings_and_blank_lines(self):
        """Test CRLF handling and blank line removal."""
        assert normalize_text("王小明\r\n\r\n經理\r手機") == "王小明\n經理\n手機"

    def test_control_characters_removed(self):
        """Test control characters are stripped."""
        assert normalize_text("王小\x00明\x07") == "王小明"

    def test_inline_whitespace_collapsed(self):
        """Test tabs, NBSP and ideographic spaces collapse to one space."""
        assert normalize_text("  John\t Smith 　 ") == "John Smith"

    def test_idempotent(self):
        """Test normalizing twice changes nothing."""
        text = " a \t b\r\n\n\x01c  "
        once = normalize_text(text)
        assert normalize_text(once) == once


class TestSplitLines:
    """Test cases for split_lines."""

    def test_split_lines(self):
        """Test lines are trimmed and empty ones dropped."""
        assert split_lines(" a \n\n  b  c \n   ") == ["a", "b c"]
