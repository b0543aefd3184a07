"""
Speech Synthesis Service - Narration audio via the ElevenLabs text-to-speech API.
"""

import logging
from typing import Optional

import httpx

from storyreel.config import Settings, get_settings

logger = logging.getLogger(__name__)


VOICE_IDS = {
    "brian": "ThT5KcBeYPX3keUQqHPh",
    "adam": "pNInz6obpgDQGcFmaJgB",
    "antoni": "ErXwobaYiN019PkySvjV",
    "sarah": "EXAVITQu4vr4xnSDxMaL",
    "laura": "pFZP5JQG7iQjIQuC4Bku",
    "rachel": "21m00Tcm4TlvDq8ikWAM",
}

DEFAULT_VOICE = "adam"


def resolve_voice_id(voice: Optional[str]) -> str:
    """Map a voice alias to its ElevenLabs id; unknown values pass through as raw ids."""
    value = (voice or DEFAULT_VOICE).strip()
    return VOICE_IDS.get(value.lower(), value)


class SpeechSynthesisService:
    """
    Service for synthesizing narration audio.

    Returns None when synthesis is unavailable (no API key or empty text) so the
    caller can treat the segment as absent.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.settings.elevenlabs_api_key)

    async def synthesize(self, text: str, voice: Optional[str]) -> Optional[bytes]:
        """
        Synthesize text to MP3 bytes.

        Args:
            text: Text to speak
            voice: Voice alias (e.g. "adam") or raw ElevenLabs voice id

        Returns:
            MP3 bytes, or None if synthesis is unavailable

        Raises:
            SpeechSynthesisError: If the API call fails or times out
        """
        text = (text or "").strip()
        if not text:
            return None
        if not self.is_available:
            logger.warning("ELEVENLABS_API_KEY not set, skipping synthesis")
            return None

        voice_id = resolve_voice_id(voice)
        url = f"{self.settings.elevenlabs_base_url.rstrip('/')}/text-to-speech/{voice_id}"
        payload = {
            "text": text,
            "model_id": self.settings.elevenlabs_model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.elevenlabs_api_key,
        }

        logger.info(f"Synthesizing narration ({len(text)} chars) with voice {voice_id}")

        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload, headers=headers, timeout=self.settings.tts_timeout_seconds
                )
            else:
                async with httpx.AsyncClient(timeout=self.settings.tts_timeout_seconds) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise SpeechSynthesisError(f"ElevenLabs request failed: {e}")

        if response.status_code != 200:
            raise SpeechSynthesisError(
                f"ElevenLabs error {response.status_code}: {response.text[:200]}"
            )

        if not response.content:
            raise SpeechSynthesisError("ElevenLabs returned empty audio")

        logger.info(f"Synthesized {len(response.content) / 1024:.1f} KB of audio")
        return response.content


class SpeechSynthesisError(Exception):
    """Exception raised when speech synthesis fails."""
    pass
