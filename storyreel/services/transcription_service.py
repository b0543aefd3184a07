"""
Transcription Service - Word-level narration timing using Whisper via Groq.
"""

import asyncio
import logging
import math
import os
from dataclasses import dataclass
from typing import Optional

from groq import Groq

from storyreel.config import Settings, get_settings

logger = logging.getLogger(__name__)


# Whisper only conditions on the tail of the prompt (224 tokens)
MAX_PROMPT_CHARS = 800


@dataclass
class TranscriptWord:
    """A transcribed word with timing in seconds."""

    text: str
    start_sec: float
    end_sec: float


class TranscriptionService:
    """
    Service for transcribing narration with word-level timestamps.

    The original script is passed as the decoding prompt so Whisper favours
    the authored spelling of names and slang.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Groq] = None):
        self.settings = settings or get_settings()
        self._groq_client = client
        if self._groq_client is None:
            self._init_client()

    def _init_client(self):
        """Initialize the Groq client when an API key is configured."""
        if self.settings.groq_api_key:
            self._groq_client = Groq(
                api_key=self.settings.groq_api_key,
                timeout=self.settings.transcription_timeout_seconds,
                max_retries=0,
            )
            logger.info("Groq client initialized for transcription")
        else:
            logger.info("GROQ_API_KEY not set. Transcription unavailable.")

    @property
    def is_available(self) -> bool:
        return self.settings.transcription_enabled and self._groq_client is not None

    async def transcribe_words(
        self,
        audio_path: str,
        reference_text: str,
    ) -> list[TranscriptWord]:
        """
        Transcribe an audio file into validated word timings.

        Args:
            audio_path: Path to narration audio (MP3, WAV, etc.)
            reference_text: Script the narration was synthesized from

        Returns:
            Words with non-empty text and finite start < end, in spoken order

        Raises:
            TranscriptionError: If disabled, unconfigured, timed out, or the API fails
        """
        if not self.is_available:
            raise TranscriptionError("Transcription disabled or GROQ_API_KEY not set")

        if not os.path.isfile(audio_path):
            raise TranscriptionError(f"Audio file not found: {audio_path}")

        logger.info(f"Transcribing narration: {audio_path} (provider=groq)")

        loop = asyncio.get_event_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, self._sync_transcribe, audio_path, reference_text),
                timeout=self.settings.transcription_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise TranscriptionError(
                f"Transcription timed out after {self.settings.transcription_timeout_seconds:.0f}s"
            )
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Groq transcription failed: {e}")

        words = self._parse_words(response)
        logger.info(f"Transcription returned {len(words)} valid words")
        return words

    def _sync_transcribe(self, audio_path: str, reference_text: str):
        """Blocking Groq call (run in executor)."""
        with open(audio_path, "rb") as audio_file:
            kwargs = {
                "file": (os.path.basename(audio_path), audio_file),
                "model": self.settings.transcription_model,
                "response_format": "verbose_json",
                "timestamp_granularities": ["word"],
            }

            prompt = (reference_text or "").strip()
            if prompt:
                kwargs["prompt"] = prompt[-MAX_PROMPT_CHARS:]

            return self._groq_client.audio.transcriptions.create(**kwargs)

    def _get_value(self, obj, key: str, default=None):
        """Get value from object (handles both dict and object attributes)."""
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    def _parse_words(self, response) -> list[TranscriptWord]:
        """Parse a verbose_json response, dropping malformed words."""
        response_words = self._get_value(response, "words") or []
        words: list[TranscriptWord] = []
        dropped = 0

        for word_data in response_words:
            text = str(self._get_value(word_data, "word", "") or "").strip()
            try:
                start = float(self._get_value(word_data, "start"))
                end = float(self._get_value(word_data, "end"))
            except (TypeError, ValueError):
                dropped += 1
                continue

            if not text or not math.isfinite(start) or not math.isfinite(end) or start >= end:
                dropped += 1
                continue

            words.append(TranscriptWord(text=text, start_sec=start, end_sec=end))

        if dropped:
            logger.debug(f"Dropped {dropped} malformed transcription words")

        words.sort(key=lambda w: w.start_sec)
        return words


class TranscriptionError(Exception):
    """Exception raised when transcription fails."""
    pass
