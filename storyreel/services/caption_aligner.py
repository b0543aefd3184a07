"""
Caption Aligner Service - Word-level timestamps for narration captions.

Two strategies:
- Heuristic: distribute the narration length across script words weighted by length.
- Transcription: measured Whisper timings, reconciled against the authored script.

Every returned sequence satisfies start[i] <= end[i] <= start[i+1] and ends exactly
at the requested total duration.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

from storyreel.config import Settings, get_settings
from storyreel.services.transcription_service import (
    TranscriptionError,
    TranscriptionService,
    TranscriptWord,
)

logger = logging.getLogger(__name__)


TRAILING_PUNCTUATION = re.compile(r"[.,!?;:]+$")


@dataclass
class WordTimestamp:
    """A word and the span during which it is spoken."""

    text: str
    start_sec: float
    end_sec: float


def split_script_words(text: str) -> list[str]:
    """Split narration text into display words, stripping trailing punctuation."""
    words = []
    for raw in (text or "").split():
        cleaned = TRAILING_PUNCTUATION.sub("", raw)
        if cleaned:
            words.append(cleaned)
    return words


def build_heuristic_timestamps(text: str, total_duration_sec: float) -> list[WordTimestamp]:
    """
    Distribute total duration across words proportionally to character length.

    Each word weighs max(1, len(word)); spans are laid end to end and the last
    word's end is pinned to the total to absorb floating-point drift.
    """
    words = split_script_words(text)
    if not words or not math.isfinite(total_duration_sec) or total_duration_sec <= 0:
        return []

    weights = [max(1, len(w)) for w in words]
    weight_sum = sum(weights)

    stamps: list[WordTimestamp] = []
    t = 0.0
    for word, weight in zip(words, weights):
        start = t
        end = t + (weight / weight_sum) * total_duration_sec
        stamps.append(WordTimestamp(text=word, start_sec=start, end_sec=end))
        t = end

    stamps[-1].end_sec = total_duration_sec
    return stamps


def normalize_word(word: str) -> str:
    """Lower-case and drop every non-alphanumeric character."""
    return "".join(ch for ch in word.lower() if ch.isalnum())


def word_match_ratio(script_words: list[str], transcribed_words: list[str]) -> float:
    """Fraction of positions where normalized words agree (equal-length lists only)."""
    if not script_words or len(script_words) != len(transcribed_words):
        return 0.0
    matches = sum(
        1 for a, b in zip(script_words, transcribed_words)
        if normalize_word(a) == normalize_word(b)
    )
    return matches / len(script_words)


def enforce_monotonic(stamps: list[WordTimestamp], total_duration_sec: float) -> list[WordTimestamp]:
    """
    Clamp a timestamp sequence into [0, total] without overlaps.

    Measured timings may overlap slightly or run past a silence-trimmed end;
    starts are pushed forward to the previous end and the last end is pinned.
    """
    if not stamps:
        return []

    fixed: list[WordTimestamp] = []
    previous_end = 0.0
    for stamp in stamps:
        start = min(max(stamp.start_sec, previous_end, 0.0), total_duration_sec)
        end = min(max(stamp.end_sec, start), total_duration_sec)
        fixed.append(WordTimestamp(text=stamp.text, start_sec=start, end_sec=end))
        previous_end = end

    fixed[-1].end_sec = total_duration_sec
    return fixed


def reconcile_transcription(
    script_text: str,
    transcribed: list[TranscriptWord],
    total_duration_sec: float,
    match_ratio_threshold: float = 0.7,
) -> list[WordTimestamp]:
    """
    Merge measured timings with the authored script.

    With equal word counts and a normalized match ratio at or above the threshold,
    the script's words are paired with the transcription's timings. Otherwise the
    transcription's own words and timings are used as-is.
    """
    script_words = split_script_words(script_text)
    transcribed_texts = [w.text for w in transcribed]

    use_script = (
        len(script_words) == len(transcribed)
        and word_match_ratio(script_words, transcribed_texts) >= match_ratio_threshold
    )

    if use_script:
        stamps = [
            WordTimestamp(text=script_word, start_sec=w.start_sec, end_sec=w.end_sec)
            for script_word, w in zip(script_words, transcribed)
        ]
    else:
        logger.info(
            f"Transcription diverges from script (script={len(script_words)} words, "
            f"transcribed={len(transcribed)} words), using transcribed words"
        )
        stamps = [
            WordTimestamp(text=w.text, start_sec=w.start_sec, end_sec=w.end_sec)
            for w in transcribed
        ]

    return enforce_monotonic(stamps, total_duration_sec)


class CaptionAlignerService:
    """
    Service for producing word timestamps for a narration clip.

    Transcription is preferred when enabled; any failure, disablement, or empty
    result falls back to the deterministic heuristic.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transcription_service: Optional[TranscriptionService] = None,
    ):
        self.settings = settings or get_settings()
        self.transcription_service = transcription_service or TranscriptionService(self.settings)

    async def align(
        self,
        text: str,
        audio_path: Optional[str],
        total_duration_sec: float,
    ) -> list[WordTimestamp]:
        """
        Produce word timestamps spanning exactly [0, total_duration_sec].

        Args:
            text: Script the narration was synthesized from
            audio_path: Narration audio, if available
            total_duration_sec: Effective narration duration
        """
        if total_duration_sec <= 0 or not split_script_words(text):
            return []

        if audio_path and self.transcription_service.is_available:
            try:
                transcribed = await self.transcription_service.transcribe_words(audio_path, text)
                if transcribed:
                    stamps = reconcile_transcription(
                        text,
                        transcribed,
                        total_duration_sec,
                        match_ratio_threshold=self.settings.match_ratio_threshold,
                    )
                    logger.info(f"Aligned {len(stamps)} words from transcription")
                    return stamps
                logger.warning("Transcription returned no words, using heuristic timing")
            except TranscriptionError as e:
                logger.warning(f"Transcription failed, using heuristic timing: {e}")
        else:
            logger.info("Transcription disabled, using heuristic timing")

        stamps = build_heuristic_timestamps(text, total_duration_sec)
        logger.info(f"Aligned {len(stamps)} words heuristically over {total_duration_sec:.2f}s")
        return stamps
