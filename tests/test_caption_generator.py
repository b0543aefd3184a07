"""
Tests for per-word ASS caption generation.
"""

import pytest

from storyreel.config import CaptionStyle
from storyreel.services.caption_aligner import WordTimestamp
from storyreel.services.caption_generator import (
    CaptionError,
    CaptionGeneratorService,
    build_pop_in_tag,
    escape_ass_text,
    format_ass_time,
    hex_to_ass,
)


def dialogue_lines(content: str) -> list[str]:
    return [line for line in content.splitlines() if line.startswith("Dialogue:")]


class TestAssHelpers:
    """Tests for ASS formatting helpers."""

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0:00:00.00"),
            (1230, "0:00:01.23"),
            (61_000, "0:01:01.00"),
            (3_723_450, "1:02:03.45"),
        ],
    )
    def test_format_ass_time(self, ms, expected):
        assert format_ass_time(ms) == expected

    def test_hex_to_ass(self):
        """RGB hex becomes &H00BBGGRR."""
        assert hex_to_ass("#FF8000") == "&H000080FF"

    def test_escape_ass_text(self):
        """Override braces and line breaks cannot leak into the event."""
        assert escape_ass_text("{\\b1}hi\nthere") == "(/b1)hi there"

    def test_pop_in_tag(self):
        """Shrink + transparent, overshoot opaque by 80ms, settle by 140ms."""
        assert build_pop_in_tag(CaptionStyle()) == (
            "{\\fscx70\\fscy70\\alpha&HFF&"
            "\\t(0,80,\\fscx110\\fscy110\\alpha&H00&)"
            "\\t(80,140,\\fscx100\\fscy100)}"
        )


class TestCaptionGeneratorService:
    """Tests for ASS file generation."""

    def test_one_event_per_word(self, settings, tmp_path):
        """Each word gets its own upper-cased event with the pop-in tag."""
        words = [
            WordTimestamp("Hello", 0.0, 0.5),
            WordTimestamp("world", 0.5, 1.0),
        ]
        output = tmp_path / "captions.ass"

        path = CaptionGeneratorService(settings).generate_captions(words, str(output))

        assert path == str(output)
        content = output.read_text(encoding="utf-8")
        events = dialogue_lines(content)
        assert len(events) == 2
        assert events[0].startswith("Dialogue: 0,0:00:00.00,0:00:00.50,Default,,0,0,0,,")
        assert events[0].endswith("}HELLO")
        assert events[1].endswith("}WORLD")
        assert all("\\t(0,80," in e for e in events)
        assert "PlayResX: 1080" in content
        assert "PlayResY: 1920" in content

    def test_offset_shifts_every_word(self, settings, tmp_path):
        """Words are shifted by the intro duration."""
        words = [
            WordTimestamp("one", 0.0, 0.4),
            WordTimestamp("two", 0.4, 3.6),
        ]
        output = tmp_path / "captions.ass"

        CaptionGeneratorService(settings).generate_captions(words, str(output), offset_sec=1.5)

        events = dialogue_lines(output.read_text(encoding="utf-8"))
        assert events[0].startswith("Dialogue: 0,0:00:01.50,0:00:01.90,")
        assert events[1].startswith("Dialogue: 0,0:00:01.90,0:00:05.10,")

    def test_zero_length_words_skipped(self, settings, tmp_path):
        """Words that round to no visible time produce no event."""
        words = [
            WordTimestamp("a", 0.0, 0.001),
            WordTimestamp("b", 0.001, 1.0),
        ]
        output = tmp_path / "captions.ass"

        CaptionGeneratorService(settings).generate_captions(words, str(output))

        events = dialogue_lines(output.read_text(encoding="utf-8"))
        assert len(events) == 1
        assert events[0].endswith("}B")

    def test_no_words(self, settings, tmp_path):
        """Nothing to caption returns None and writes nothing."""
        output = tmp_path / "captions.ass"

        assert CaptionGeneratorService(settings).generate_captions([], str(output)) is None
        assert not output.exists()

    def test_unwritable_path(self, settings, tmp_path):
        """Write failures surface as CaptionError."""
        blocker = tmp_path / "file"
        blocker.write_text("x")

        with pytest.raises(CaptionError):
            CaptionGeneratorService(settings).generate_captions(
                [WordTimestamp("a", 0, 1)], str(blocker / "captions.ass")
            )
