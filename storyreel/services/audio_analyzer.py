"""
Audio Analyzer Service - Measures raw and effective (silence-trimmed) narration length.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

from storyreel.config import Settings, get_settings
from storyreel.services.media_tools import MediaToolError, probe_duration, run_command

logger = logging.getLogger(__name__)


SILENCE_START_PATTERN = re.compile(r"silence_start:\s*([0-9.]+)")


@dataclass
class AudioAsset:
    """A narration clip with its measured durations."""

    path: str
    raw_duration_sec: float
    effective_duration_sec: float


def parse_silence_starts(stderr_text: str) -> list[float]:
    """Collect every silence_start offset reported by ffmpeg's silencedetect filter."""
    starts: list[float] = []
    for match in SILENCE_START_PATTERN.finditer(stderr_text or ""):
        try:
            value = float(match.group(1))
        except ValueError:
            continue
        if math.isfinite(value):
            starts.append(value)
    return starts


def trim_trailing_silence(
    total_sec: float,
    silence_starts: list[float],
    min_silence_sec: float = 0.25,
    window_sec: float = 1.5,
) -> float:
    """
    Return the end of speech given the silence starts detected in a clip.

    The last silence start counts as trailing dead air only when it falls in
    [total - window - min_silence, total - min_silence]; otherwise the clip's
    full length is returned.
    """
    if not silence_starts:
        return total_sec

    last_start = silence_starts[-1]
    lower = total_sec - window_sec - min_silence_sec
    upper = total_sec - min_silence_sec

    if lower <= last_start <= upper and last_start > 0:
        return last_start
    return total_sec


class AudioAnalyzerService:
    """
    Service for measuring narration clips.

    Raw duration comes from ffprobe. Effective duration trims trailing silence
    (ffmpeg silencedetect) so time-boxed overlays vanish when speech ends.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def analyze(self, audio_path: str) -> AudioAsset:
        """
        Measure an encoded narration file.

        Raises:
            MediaToolError: If the raw duration cannot be probed
        """
        raw = await probe_duration(audio_path, self.settings.probe_timeout_seconds)

        try:
            starts = await self._detect_silence_starts(audio_path)
            effective = trim_trailing_silence(
                raw,
                starts,
                min_silence_sec=self.settings.min_silence_seconds,
                window_sec=self.settings.trailing_silence_window_seconds,
            )
        except MediaToolError as e:
            logger.warning(f"Silence detection failed for {audio_path}, using raw duration: {e}")
            effective = raw

        # Floor keeps short overlays visible without exceeding the clip itself
        effective = min(raw, max(effective, self.settings.min_overlay_seconds))

        logger.info(
            f"Audio analyzed: {audio_path} (raw={raw:.2f}s, effective={effective:.2f}s)"
        )
        return AudioAsset(
            path=audio_path,
            raw_duration_sec=raw,
            effective_duration_sec=effective,
        )

    async def _detect_silence_starts(self, audio_path: str) -> list[float]:
        """Run silencedetect and return all silence_start offsets."""
        cmd = [
            "ffmpeg",
            "-hide_banner",
            "-nostats",
            "-i", audio_path,
            "-af", (
                f"silencedetect=n={self.settings.silence_threshold_db:g}dB"
                f":d={self.settings.min_silence_seconds:g}"
            ),
            "-f", "null",
            "-",
        ]
        result = await run_command(cmd, self.settings.silence_detect_timeout_seconds)

        if result.returncode != 0:
            error_msg = result.stderr.decode(errors="replace")[-300:] if result.stderr else "Unknown error"
            raise MediaToolError(f"silencedetect failed: {error_msg}")

        return parse_silence_starts(result.stderr.decode(errors="replace"))
