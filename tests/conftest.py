"""
Pytest configuration and fixtures.
"""

import os
import subprocess
import sys
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from storyreel.config import Settings  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment, with storage under tmp_path."""
    return Settings(
        _env_file=None,
        elevenlabs_api_key=None,
        groq_api_key=None,
        asset_bucket=None,
        background_base_url=None,
        temp_directory=str(tmp_path / "work"),
        output_directory=str(tmp_path / "videos"),
        assets_directory=str(tmp_path / "public"),
        logs_directory=str(tmp_path / "logs"),
    )


@pytest.fixture
def make_completed_process():
    """Factory for subprocess results as returned by run_command."""

    def _make(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)

    return _make


class FakeCatalog:
    """In-memory stand-in for the S3 asset catalog."""

    def __init__(self, clips: Optional[dict[str, list[str]]] = None, configured: bool = True, error=None):
        self.clips = clips or {}
        self.configured = configured
        self.error = error
        self.listed_prefixes: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def list_clips(self, category_prefix: str) -> list[str]:
        self.listed_prefixes.append(category_prefix)
        if self.error is not None:
            raise self.error
        return list(self.clips.get(category_prefix, []))

    def clip_url(self, key: str) -> str:
        return f"https://cdn.example.com/{key}"


@pytest.fixture
def fake_catalog_factory():
    return FakeCatalog
