"""
Tests for narration duration and trailing-silence analysis.
"""

import asyncio

import pytest

from storyreel.services.audio_analyzer import (
    AudioAnalyzerService,
    parse_silence_starts,
    trim_trailing_silence,
)
from storyreel.services.media_tools import MediaToolError


SILENCEDETECT_STDERR = b"""
[silencedetect @ 0x55] silence_start: 0.912
[silencedetect @ 0x55] silence_end: 1.204 | silence_duration: 0.292
[silencedetect @ 0x55] silence_start: 3.6
size=N/A time=00:00:04.00 bitrate=N/A speed= 312x
"""


class TestParseSilenceStarts:
    """Tests for silencedetect output parsing."""

    def test_collects_all_starts(self):
        """Every silence_start offset is returned in order."""
        assert parse_silence_starts(SILENCEDETECT_STDERR.decode()) == [0.912, 3.6]

    def test_empty_output(self):
        """No silence lines means no starts."""
        assert parse_silence_starts("") == []
        assert parse_silence_starts(None) == []


class TestTrimTrailingSilence:
    """Tests for the trailing-silence window rule."""

    @pytest.mark.parametrize("silence_start", [2.25, 3.0, 3.6, 3.75])
    def test_start_inside_window_becomes_end(self, silence_start):
        """A last silence start within [T-1.5-min, T-min] is the end of speech."""
        assert trim_trailing_silence(4.0, [silence_start], 0.25, 1.5) == silence_start

    @pytest.mark.parametrize("silence_start", [1.0, 2.2, 3.8, 3.95])
    def test_start_outside_window_keeps_total(self, silence_start):
        """Silence too early or too close to the end leaves the raw duration."""
        assert trim_trailing_silence(4.0, [silence_start], 0.25, 1.5) == 4.0

    def test_only_last_start_counts(self):
        """Earlier pauses are ignored even when they fall in the window."""
        assert trim_trailing_silence(4.0, [3.0, 3.9], 0.25, 1.5) == 4.0

    def test_no_silence(self):
        """No detected silence leaves the raw duration."""
        assert trim_trailing_silence(4.0, [], 0.25, 1.5) == 4.0

    def test_window_is_configurable(self):
        """A wider window accepts earlier silence starts."""
        assert trim_trailing_silence(10.0, [6.0], 0.25, 1.5) == 10.0
        assert trim_trailing_silence(10.0, [6.0], 0.25, 5.0) == 6.0


class TestAudioAnalyzerService:
    """Tests for AudioAnalyzerService with ffmpeg mocked out."""

    def test_trims_trailing_silence(self, settings, mocker, make_completed_process):
        """4.0s raw with silence from 3.6s yields 3.6s effective."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(return_value=4.0),
        )
        mocker.patch(
            "storyreel.services.audio_analyzer.run_command",
            new=mocker.AsyncMock(return_value=make_completed_process(stderr=SILENCEDETECT_STDERR)),
        )

        asset = asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/story.mp3"))

        assert asset.path == "/tmp/story.mp3"
        assert asset.raw_duration_sec == 4.0
        assert asset.effective_duration_sec == 3.6

    def test_silence_detection_failure_uses_raw(self, settings, mocker):
        """Any silencedetect error degrades to effective == raw."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(return_value=4.0),
        )
        mocker.patch(
            "storyreel.services.audio_analyzer.run_command",
            new=mocker.AsyncMock(side_effect=MediaToolError("ffmpeg timed out")),
        )

        asset = asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/story.mp3"))

        assert asset.effective_duration_sec == 4.0

    def test_nonzero_exit_uses_raw(self, settings, mocker, make_completed_process):
        """A failing ffmpeg run is treated like a detection failure."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(return_value=4.0),
        )
        mocker.patch(
            "storyreel.services.audio_analyzer.run_command",
            new=mocker.AsyncMock(return_value=make_completed_process(returncode=1, stderr=b"boom")),
        )

        asset = asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/story.mp3"))

        assert asset.effective_duration_sec == 4.0

    def test_effective_floor(self, settings, mocker, make_completed_process):
        """Effective duration is floored at the minimum overlay length."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(return_value=2.0),
        )
        mocker.patch(
            "storyreel.services.audio_analyzer.run_command",
            new=mocker.AsyncMock(return_value=make_completed_process(stderr=b"silence_start: 0.3")),
        )

        asset = asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/short.mp3"))

        assert asset.effective_duration_sec == pytest.approx(settings.min_overlay_seconds)

    def test_floor_never_exceeds_raw(self, settings, mocker, make_completed_process):
        """Clips shorter than the floor keep effective <= raw."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(return_value=0.4),
        )
        mocker.patch(
            "storyreel.services.audio_analyzer.run_command",
            new=mocker.AsyncMock(return_value=make_completed_process()),
        )

        asset = asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/blip.mp3"))

        assert asset.effective_duration_sec == 0.4

    def test_duration_lookup_failure_propagates(self, settings, mocker):
        """Without a raw duration there is nothing to analyze."""
        mocker.patch(
            "storyreel.services.audio_analyzer.probe_duration",
            new=mocker.AsyncMock(side_effect=MediaToolError("ffprobe failed")),
        )

        with pytest.raises(MediaToolError):
            asyncio.run(AudioAnalyzerService(settings).analyze("/tmp/missing.mp3"))
