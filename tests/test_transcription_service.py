"""
Tests for Groq word-level transcription.
"""

import asyncio
from types import SimpleNamespace

import pytest

from storyreel.services.transcription_service import (
    MAX_PROMPT_CHARS,
    TranscriptionError,
    TranscriptionService,
)


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "story.mp3"
    path.write_bytes(b"ID3")
    return str(path)


def make_service(settings, mocker, response=None, error=None):
    client = mocker.MagicMock()
    if error is not None:
        client.audio.transcriptions.create.side_effect = error
    else:
        client.audio.transcriptions.create.return_value = response
    return TranscriptionService(settings, client=client), client


class TestTranscriptionService:
    """Tests for response parsing and error mapping."""

    def test_parses_dict_and_object_words(self, settings, mocker, audio_file):
        response = SimpleNamespace(words=[
            {"word": " Hello", "start": 0.0, "end": 0.4},
            SimpleNamespace(word="world", start=0.4, end=0.9),
        ])
        service, client = make_service(settings, mocker, response=response)

        words = asyncio.run(service.transcribe_words(audio_file, "Hello world"))

        assert [(w.text, w.start_sec, w.end_sec) for w in words] == [("Hello", 0.0, 0.4), ("world", 0.4, 0.9)]
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "whisper-large-v3-turbo"
        assert kwargs["response_format"] == "verbose_json"
        assert kwargs["timestamp_granularities"] == ["word"]
        assert kwargs["prompt"] == "Hello world"

    def test_drops_malformed_words(self, settings, mocker, audio_file):
        response = {"words": [
            {"word": "", "start": 0.0, "end": 0.2},
            {"word": "late", "start": 1.0, "end": 0.5},
            {"word": "nan", "start": float("nan"), "end": 1.0},
            {"word": "missing"},
            {"word": "second", "start": 0.6, "end": 0.8},
            {"word": "first", "start": 0.2, "end": 0.5},
        ]}
        service, _ = make_service(settings, mocker, response=response)

        words = asyncio.run(service.transcribe_words(audio_file, ""))

        assert [w.text for w in words] == ["first", "second"]

    def test_prompt_keeps_tail(self, settings, mocker, audio_file):
        service, client = make_service(settings, mocker, response={"words": []})
        script = "x" * (MAX_PROMPT_CHARS + 50) + "END"

        asyncio.run(service.transcribe_words(audio_file, script))

        prompt = client.audio.transcriptions.create.call_args.kwargs["prompt"]
        assert len(prompt) == MAX_PROMPT_CHARS
        assert prompt.endswith("END")

    def test_api_failure(self, settings, mocker, audio_file):
        service, _ = make_service(settings, mocker, error=RuntimeError("rate limited"))

        with pytest.raises(TranscriptionError, match="rate limited"):
            asyncio.run(service.transcribe_words(audio_file, "Hello"))

    def test_disabled(self, settings, mocker, audio_file):
        settings.transcription_enabled = False
        service, client = make_service(settings, mocker, response={"words": []})

        assert not service.is_available
        with pytest.raises(TranscriptionError):
            asyncio.run(service.transcribe_words(audio_file, "Hello"))
        client.audio.transcriptions.create.assert_not_called()

    def test_no_api_key(self, settings):
        service = TranscriptionService(settings)

        assert not service.is_available

    def test_missing_file(self, settings, mocker, tmp_path):
        service, _ = make_service(settings, mocker, response={"words": []})

        with pytest.raises(TranscriptionError, match="not found"):
            asyncio.run(service.transcribe_words(str(tmp_path / "nope.mp3"), "Hello"))
