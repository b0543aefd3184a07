"""
Title Layout - Wraps banner title text into a bounded, dynamically sized box.
"""

from dataclasses import dataclass, field
from typing import Optional

from storyreel.config import TitleBoxStyle


@dataclass
class TitleLayout:
    """Wrapped title lines and the resulting box geometry (pixels)."""

    lines: list[str] = field(default_factory=list)
    box_height: int = 0
    line_height: int = 62
    padding_top: int = 20
    padding_bottom: int = 20


def split_long_word(word: str, max_chars: int) -> list[str]:
    """Hard-split a word into max_chars fragments; joining them yields the word."""
    parts = []
    while len(word) > max_chars:
        parts.append(word[:max_chars])
        word = word[max_chars:]
    if word:
        parts.append(word)
    return parts


def wrap_title(
    title: str,
    max_chars_per_line: int = 26,
    max_lines: int = 6,
    line_height: int = 62,
    padding_top: int = 20,
    padding_bottom: int = 20,
    min_height: int = 120,
) -> TitleLayout:
    """
    Greedy character-budget word wrap.

    Words longer than the budget are broken into fixed-size fragments first, so no
    line can exceed max_chars_per_line. Text beyond max_lines is dropped. The box
    height grows with the final line count but never drops below min_height.
    """
    if max_chars_per_line < 1:
        raise ValueError("max_chars_per_line must be positive")

    text = (title or "").strip()
    lines: list[str] = []

    if text:
        words = [
            fragment
            for word in text.split()
            for fragment in split_long_word(word, max_chars_per_line)
        ]
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= max_chars_per_line:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = word
            if len(lines) >= max_lines:
                current = ""
                break
        if current and len(lines) < max_lines:
            lines.append(current)
    else:
        lines = [""]

    box_height = max(min_height, padding_top + padding_bottom + len(lines) * line_height)
    return TitleLayout(
        lines=lines,
        box_height=box_height,
        line_height=line_height,
        padding_top=padding_top,
        padding_bottom=padding_bottom,
    )


def wrap_title_for_style(title: str, style: Optional[TitleBoxStyle] = None) -> TitleLayout:
    """Wrap a title with the configured banner box style."""
    style = style or TitleBoxStyle()
    return wrap_title(
        title,
        max_chars_per_line=style.max_chars_per_line,
        max_lines=style.max_lines,
        line_height=style.line_height,
        padding_top=style.padding_top,
        padding_bottom=style.padding_bottom,
        min_height=style.min_height,
    )
