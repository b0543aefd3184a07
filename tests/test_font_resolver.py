"""
Tests for drawtext font resolution.
"""

import asyncio

from storyreel.services.font_resolver import resolve_font_file
from storyreel.services.media_tools import MediaToolError


class TestResolveFontFile:
    def test_fontconfig_match(self, mocker, tmp_path, make_completed_process):
        font = tmp_path / "PTSans-Bold.ttf"
        font.write_bytes(b"")
        run = mocker.patch(
            "storyreel.services.font_resolver.run_command",
            mocker.AsyncMock(return_value=make_completed_process(stdout=str(font).encode())),
        )

        assert asyncio.run(resolve_font_file("PT Sans", fallbacks=[])) == str(font)
        assert run.call_args.args[0] == ["fc-match", "-f", "%{file}", "PT Sans"]

    def test_missing_fc_match_uses_fallback(self, mocker, tmp_path):
        fallback = tmp_path / "DejaVuSans.ttf"
        fallback.write_bytes(b"")
        mocker.patch(
            "storyreel.services.font_resolver.run_command",
            mocker.AsyncMock(side_effect=MediaToolError("fc-match not found in PATH")),
        )

        result = asyncio.run(resolve_font_file("PT Sans", fallbacks=[str(tmp_path / "nope.ttf"), str(fallback)]))

        assert result == str(fallback)

    def test_nonexistent_match_uses_fallback(self, mocker, tmp_path, make_completed_process):
        fallback = tmp_path / "DejaVuSans.ttf"
        fallback.write_bytes(b"")
        mocker.patch(
            "storyreel.services.font_resolver.run_command",
            mocker.AsyncMock(return_value=make_completed_process(stdout=b"/gone/font.ttf")),
        )

        assert asyncio.run(resolve_font_file("PT Sans", fallbacks=[str(fallback)])) == str(fallback)

    def test_nothing_found(self, mocker, make_completed_process):
        mocker.patch(
            "storyreel.services.font_resolver.run_command",
            mocker.AsyncMock(return_value=make_completed_process(returncode=1)),
        )

        assert asyncio.run(resolve_font_file("PT Sans", fallbacks=[])) is None
