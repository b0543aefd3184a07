"""
Caption Generator Service - Writes per-word ASS subtitles with a pop-in animation.
"""

import logging
import os
from typing import Optional

from storyreel.config import CaptionStyle, Settings, get_settings
from storyreel.services.caption_aligner import WordTimestamp

logger = logging.getLogger(__name__)


# ASS alignment values (numpad layout)
# 7 8 9 (top)
# 4 5 6 (middle)
# 1 2 3 (bottom)
POSITION_MAP = {
    "top": 8,
    "center": 5,
    "bottom": 2,
}


def format_ass_time(ms: int) -> str:
    """Format milliseconds to ASS time format (H:MM:SS.CC)."""
    ms = max(0, ms)
    total_seconds = ms // 1000
    centiseconds = (ms % 1000) // 10
    seconds = total_seconds % 60
    minutes = (total_seconds // 60) % 60
    hours = total_seconds // 3600

    return f"{hours}:{minutes:02d}:{seconds:02d}.{centiseconds:02d}"


def hex_to_ass(hex_color: str) -> str:
    """Convert hex color to ASS format (&HAABBGGRR)."""
    clean = hex_color.lstrip("#")

    r = int(clean[0:2], 16)
    g = int(clean[2:4], 16)
    b = int(clean[4:6], 16)

    return f"&H00{b:02X}{g:02X}{r:02X}"


def escape_ass_text(text: str) -> str:
    """Neutralize override braces, backslashes, and line breaks in dialogue text."""
    return (
        (text or "")
        .replace("\\", "/")
        .replace("{", "(")
        .replace("}", ")")
        .replace("\r", " ")
        .replace("\n", " ")
    )


def build_pop_in_tag(style: CaptionStyle) -> str:
    """
    Override block for the pop-in: start small and transparent, overshoot to
    full opacity, then settle at 100% scale.
    """
    start = style.pop_start_scale
    peak = style.pop_overshoot_scale
    t1 = style.pop_overshoot_ms
    t2 = style.pop_settle_ms
    return (
        f"{{\\fscx{start}\\fscy{start}\\alpha&HFF&"
        f"\\t(0,{t1},\\fscx{peak}\\fscy{peak}\\alpha&H00&)"
        f"\\t({t1},{t2},\\fscx100\\fscy100)}}"
    )


class CaptionGeneratorService:
    """
    Service for generating word-by-word ASS captions.

    Each word is its own Dialogue event so the pop-in transform restarts at the
    word's own start time.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def generate_captions(
        self,
        words: list[WordTimestamp],
        output_path: str,
        offset_sec: float = 0.0,
        caption_style: Optional[CaptionStyle] = None,
    ) -> Optional[str]:
        """
        Write an ASS subtitle file for a word sequence.

        Args:
            words: Word timestamps relative to the narration start
            output_path: Path to save the .ass file
            offset_sec: Length of the preceding intro segment; every word is shifted by it
            caption_style: Optional custom caption styling

        Returns:
            Path to generated .ass file, or None if no words were given

        Raises:
            CaptionError: If the file cannot be written
        """
        if not words:
            logger.debug("No words to caption")
            return None

        style = caption_style or self.settings.get_caption_style()
        events = self.build_events(words, offset_sec, style)

        content = self._generate_ass_header(style) + self._generate_events_header() + "\n".join(events) + "\n"

        try:
            directory = os.path.dirname(output_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise CaptionError(f"Failed to write captions to {output_path}: {e}")

        logger.info(f"Generated ASS captions: {output_path} ({len(events)} events, offset={offset_sec:.2f}s)")
        return output_path

    def build_events(
        self,
        words: list[WordTimestamp],
        offset_sec: float,
        style: CaptionStyle,
    ) -> list[str]:
        """One Dialogue line per word; words that round to zero length are skipped."""
        pop_tag = build_pop_in_tag(style)
        events: list[str] = []

        for word in words:
            start_ms = int(round((word.start_sec + offset_sec) * 100)) * 10
            end_ms = int(round((word.end_sec + offset_sec) * 100)) * 10
            if end_ms <= start_ms:
                continue

            text = escape_ass_text(word.text.strip())
            if style.uppercase:
                text = text.upper()
            if not text:
                continue

            events.append(
                f"Dialogue: 0,{format_ass_time(start_ms)},{format_ass_time(end_ms)},"
                f"Default,,0,0,0,,{pop_tag}{text}"
            )

        return events

    def _generate_ass_header(self, style: CaptionStyle) -> str:
        """Generate ASS header with style definitions."""
        primary_color = hex_to_ass(style.primary_color)
        outline_color = hex_to_ass(style.outline_color)
        alignment = POSITION_MAP[style.position]
        bold = -1 if style.bold else 0
        width = self.settings.target_output_width
        height = self.settings.target_output_height

        return f"""[Script Info]
Title: Storyreel Captions
ScriptType: v4.00+
WrapStyle: 2
ScaledBorderAndShadow: yes
YCbCr Matrix: TV.709
PlayResX: {width}
PlayResY: {height}

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{style.font_name},{style.font_size},{primary_color},{primary_color},{outline_color},&H80000000,{bold},0,0,0,100,100,0,0,1,{style.outline_width},{style.shadow_depth},{alignment},60,60,0,1

"""

    def _generate_events_header(self) -> str:
        """Generate ASS events section header."""
        return "[Events]\nFormat: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"


class CaptionError(Exception):
    """Exception raised when a caption file cannot be produced."""
    pass
