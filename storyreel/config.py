"""
Configuration module using Pydantic Settings for environment variable management.

Tunable values (API keys, catalog location, empirical timing constants) come from
environment variables. Rendering geometry and external-call timeouts are hardcoded
for consistency across workers.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class TitleBoxStyle:
    """Banner title box styling (hardcoded)."""

    box_width: int = 900
    max_chars_per_line: int = 26
    max_lines: int = 6
    line_height: int = 62  # tuned for fontsize 52
    padding_top: int = 20
    padding_bottom: int = 20
    min_height: int = 120
    font_size: int = 52
    text_x: int = 20
    subreddit_font_size: int = 44
    author_font_size: int = 36
    label_x: int = 190


class CaptionStyle:
    """Word caption styling (hardcoded)."""

    font_name: str = "PT Sans"
    font_size: int = 86
    primary_color: str = "#FFFFFF"
    outline_color: str = "#000000"
    outline_width: int = 8
    shadow_depth: int = 3
    position: Literal["top", "center", "bottom"] = "center"
    bold: bool = True
    uppercase: bool = True

    # Pop-in animation: shrink + transparent -> overshoot opaque -> settle
    pop_start_scale: int = 70
    pop_overshoot_scale: int = 110
    pop_overshoot_ms: int = 80
    pop_settle_ms: int = 140


# ============================================================
# BACKGROUND CATEGORIES
# ============================================================

class BackgroundCategory:
    """Canonical background category identifiers."""

    MINECRAFT = "minecraft"
    SUBWAY = "subway"
    COOKING = "cooking"
    WORKERS = "workers"
    ASMR = "asmr"
    RANDOM = "random"


CANONICAL_CATEGORIES = [
    BackgroundCategory.MINECRAFT,
    BackgroundCategory.SUBWAY,
    BackgroundCategory.COOKING,
    BackgroundCategory.WORKERS,
    BackgroundCategory.ASMR,
]

# Alternate spellings accepted from clients
CATEGORY_ALIASES = {
    "minecraft-parkour": BackgroundCategory.MINECRAFT,
    "minecraft_parkour": BackgroundCategory.MINECRAFT,
    "subway-surfers": BackgroundCategory.SUBWAY,
    "subway_surfers": BackgroundCategory.SUBWAY,
    "subwaysurfers": BackgroundCategory.SUBWAY,
    "worker": BackgroundCategory.WORKERS,
    "satisfying": BackgroundCategory.ASMR,
}

# Catalog prefixes listed in order; legacy uploads live under the long names
CATEGORY_PREFIXES = {
    BackgroundCategory.MINECRAFT: ["minecraft", "minecraft-parkour"],
    BackgroundCategory.SUBWAY: ["subway", "subway-surfers"],
    BackgroundCategory.COOKING: ["cooking"],
    BackgroundCategory.WORKERS: ["workers", "worker"],
    BackgroundCategory.ASMR: ["asmr", "satisfying"],
}

GENERIC_BACKGROUND_URL = "https://interactive-examples.mdn.mozilla.net/media/cc0-videos/flower.mp4"


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    All processing/rendering settings are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES
    # ============================================================

    # Application
    app_name: str = "storyreel-worker"
    log_level: str = "INFO"

    # Speech synthesis (ElevenLabs)
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_model_id: str = "eleven_monolingual_v1"
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"

    # Transcription (Groq Whisper)
    groq_api_key: Optional[str] = None
    transcription_enabled: bool = True

    # Asset catalog (S3-compatible, e.g. Cloudflare R2)
    asset_bucket: Optional[str] = None
    asset_endpoint_url: Optional[str] = None
    asset_region: str = "auto"
    asset_access_key_id: Optional[str] = None
    asset_secret_access_key: Optional[str] = None
    asset_root_prefix: str = "backgrounds"

    # Background fallbacks
    background_base_url: Optional[str] = None
    background_filename: str = "1.mp4"
    bg_minecraft_url: Optional[str] = None
    bg_subway_url: Optional[str] = None
    bg_cooking_url: Optional[str] = None
    bg_workers_url: Optional[str] = None
    bg_asmr_url: Optional[str] = None
    montage_categories: list[str] = ["cooking", "workers"]

    # Fonts
    font_family: str = "PT Sans"

    # Rendering
    allow_degraded_render: bool = False

    # Storage locations
    temp_directory: str = "/tmp/storyreel"
    output_directory: str = "public/videos"
    assets_directory: str = "public"
    logs_directory: str = "logs"

    # Job handling
    max_workers: int = 2  # Max concurrent jobs
    max_segment_workers: int = 3  # Max concurrent montage segment cuts
    job_ttl_seconds: int = 3600
    max_tracked_jobs: int = 500

    # Empirical timing constants
    match_ratio_threshold: float = 0.7
    trailing_silence_window_seconds: float = 1.5
    silence_threshold_db: float = -35.0
    min_silence_seconds: float = 0.25
    min_overlay_seconds: float = 0.6
    montage_chunk_seconds: float = 6.0

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    @property
    def max_concurrent_jobs(self) -> int:
        return self.max_workers

    # Rendering Configuration
    @property
    def target_output_width(self) -> int:
        return 1080

    @property
    def target_output_height(self) -> int:
        return 1920

    @property
    def target_fps(self) -> int:
        return 30

    @property
    def ffmpeg_preset(self) -> str:
        return "veryfast"

    @property
    def ffmpeg_crf(self) -> int:
        return 23

    @property
    def audio_sample_rate(self) -> int:
        return 44100

    @property
    def silent_video_duration_seconds(self) -> float:
        return 5.0

    # Transcription Configuration
    @property
    def transcription_model(self) -> str:
        return "whisper-large-v3-turbo"

    # External call timeouts (seconds)
    @property
    def tts_timeout_seconds(self) -> float:
        return 60.0

    @property
    def transcription_timeout_seconds(self) -> float:
        return 120.0

    @property
    def probe_timeout_seconds(self) -> float:
        return 30.0

    @property
    def silence_detect_timeout_seconds(self) -> float:
        return 60.0

    @property
    def catalog_timeout_seconds(self) -> float:
        return 15.0

    @property
    def download_timeout_seconds(self) -> float:
        return 120.0

    @property
    def segment_timeout_seconds(self) -> float:
        return 180.0

    @property
    def render_timeout_seconds(self) -> float:
        return 900.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def get_title_box_style(self) -> TitleBoxStyle:
        """Build TitleBoxStyle from settings."""
        return TitleBoxStyle()

    def get_caption_style(self) -> CaptionStyle:
        """Build CaptionStyle from settings."""
        style = CaptionStyle()
        style.font_name = self.font_family
        return style

    def get_category_override_url(self, category: str) -> Optional[str]:
        """Per-category background URL from BG_<CATEGORY>_URL, if set."""
        return getattr(self, f"bg_{category}_url", None)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
