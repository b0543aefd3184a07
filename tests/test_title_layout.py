"""
Tests for banner title wrapping.
"""

import pytest

from storyreel.config import TitleBoxStyle
from storyreel.services.title_layout import split_long_word, wrap_title, wrap_title_for_style


class TestWrapTitle:
    """Tests for greedy character-budget wrapping."""

    def test_banner_example(self):
        """The reference title wraps into two lines and a 164px box."""
        layout = wrap_title("A Very Long Banner Title That Needs Wrapping", max_chars_per_line=26)

        assert layout.lines == ["A Very Long Banner Title", "That Needs Wrapping"]
        assert layout.box_height == 20 + 20 + 2 * 62

    def test_single_short_line_uses_min_height(self):
        """Short titles never shrink the box below the minimum."""
        layout = wrap_title("Short title", min_height=120)

        assert layout.lines == ["Short title"]
        assert layout.box_height == 120

    def test_empty_title(self):
        """An empty title produces one empty line and the minimum box."""
        layout = wrap_title("   ")

        assert layout.lines == [""]
        assert layout.box_height == 120

    def test_max_lines_truncates(self):
        """Text beyond max_lines is dropped."""
        layout = wrap_title("aaa bbb ccc ddd", max_chars_per_line=3, max_lines=2)

        assert layout.lines == ["aaa", "bbb"]
        assert layout.box_height == 20 + 20 + 2 * 62

    def test_long_word_is_hard_split(self):
        """A word longer than the budget is broken into fragments."""
        layout = wrap_title("Supercalifragilisticexpialidocious rocks", max_chars_per_line=10)

        assert layout.lines == ["Supercalif", "ragilistic", "expialidoc", "ious rocks"]

    @pytest.mark.parametrize(
        "title,max_chars,max_lines",
        [
            ("TIFU by microwaving a fork and setting my whole kitchen on fire", 26, 6),
            ("one two three four five six seven eight nine ten eleven twelve", 8, 3),
            ("x" * 200, 26, 6),
            ("Honestly I can't believe my roommate did this to me again!!!", 12, 4),
        ],
    )
    def test_bounds_hold(self, title, max_chars, max_lines):
        """No line exceeds the budget and the line count never exceeds max_lines."""
        layout = wrap_title(title, max_chars_per_line=max_chars, max_lines=max_lines)

        assert 1 <= len(layout.lines) <= max_lines
        assert all(len(line) <= max_chars for line in layout.lines)
        assert layout.box_height == max(120, 40 + len(layout.lines) * 62)

    def test_invalid_budget(self):
        """A non-positive character budget is rejected."""
        with pytest.raises(ValueError):
            wrap_title("hello", max_chars_per_line=0)

    def test_uses_style(self):
        """The configured box style drives wrapping."""
        style = TitleBoxStyle()
        style.max_chars_per_line = 10
        style.min_height = 50

        layout = wrap_title_for_style("hello big world", style)

        assert layout.lines == ["hello big", "world"]
        assert layout.box_height == 164


class TestSplitLongWord:
    """Tests for hard word splitting."""

    @pytest.mark.parametrize("word", ["a", "abcdef", "abcdefghijk", "x" * 53])
    def test_fragments_reassemble(self, word):
        """Concatenating fragments yields the original word."""
        parts = split_long_word(word, 5)

        assert "".join(parts) == word
        assert all(1 <= len(p) <= 5 for p in parts)
