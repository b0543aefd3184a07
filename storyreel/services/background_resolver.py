"""
Background Resolver Service - Picks or builds a background video for a job.

Single-clip categories use one random catalog clip as-is. Montage categories cut
random chunks from several clips, normalize them to the canonical frame, and
concatenate them into one track of the required length.
"""

import asyncio
import logging
import math
import os
import random
from dataclasses import dataclass, field
from typing import Literal, Optional

import httpx

from storyreel.config import (
    CANONICAL_CATEGORIES,
    CATEGORY_ALIASES,
    CATEGORY_PREFIXES,
    GENERIC_BACKGROUND_URL,
    BackgroundCategory,
    Settings,
    get_settings,
)
from storyreel.services.asset_catalog import AssetCatalog, AssetCatalogError
from storyreel.services.media_tools import MediaToolError, probe_duration, run_command

logger = logging.getLogger(__name__)


# Tolerance for float division when counting chunks
DURATION_EPSILON = 1e-6

# Shortest chunk ffmpeg can cut (durations are passed with millisecond precision)
MIN_CHUNK_SECONDS = 0.001


@dataclass
class MontageSegment:
    """One chunk of a montage background."""

    source_url: str
    duration_sec: float
    start_sec: float = 0.0
    path: Optional[str] = None


@dataclass
class BackgroundSelection:
    """Resolved background for a job."""

    mode: Literal["single", "montage"]
    category: str
    total_duration_sec: float
    source_url: Optional[str] = None
    segments: list[MontageSegment] = field(default_factory=list)
    local_path: Optional[str] = None  # Input handed to the renderer (file or URL)
    is_fallback: bool = False

    @property
    def segment_urls(self) -> list[str]:
        return [s.source_url for s in self.segments]


def normalize_category(category: Optional[str], rng: Optional[random.Random] = None) -> str:
    """
    Map a client category (alias, mixed case, or "random") to a canonical name.

    Unknown categories are returned lower-cased so their default URL still resolves.
    """
    rng = rng or random.Random()
    value = (category or BackgroundCategory.RANDOM).strip().lower()
    value = CATEGORY_ALIASES.get(value, value)
    if value == BackgroundCategory.RANDOM:
        return rng.choice(CANONICAL_CATEGORIES)
    return value


def split_duration(
    total_duration_sec: float,
    chunk_sec: float,
    min_chunk_sec: float = MIN_CHUNK_SECONDS,
) -> list[float]:
    """
    Split a duration into ceil(total / chunk) chunks of at most chunk_sec.

    All chunks but the last are exactly chunk_sec; the last takes the remainder.
    A remainder shorter than min_chunk_sec cannot be cut, so it is folded into
    the previous chunk instead.
    """
    if total_duration_sec <= 0:
        return []
    if chunk_sec <= 0:
        raise ValueError("chunk_sec must be positive")

    count = max(1, math.ceil(total_duration_sec / chunk_sec - DURATION_EPSILON))
    if count > 1 and total_duration_sec - chunk_sec * (count - 1) < min_chunk_sec:
        count -= 1
    chunks = [chunk_sec] * (count - 1)
    chunks.append(total_duration_sec - chunk_sec * (count - 1))
    return chunks


def pick_start_offset(
    clip_duration_sec: Optional[float],
    segment_duration_sec: float,
    rng: random.Random,
) -> float:
    """Random start leaving room for the segment; 0 if the clip length is unknown or too short."""
    if not clip_duration_sec or clip_duration_sec <= segment_duration_sec:
        return 0.0
    return rng.uniform(0.0, clip_duration_sec - segment_duration_sec)


def default_background_url(category: str, settings: Settings) -> str:
    """
    Well-known URL for a category.

    Priority: BG_<CATEGORY>_URL -> <background_base_url>/<category>/<filename> -> generic sample.
    """
    override = settings.get_category_override_url(category)
    if override:
        return override
    base = (settings.background_base_url or "").rstrip("/")
    if base and category in CANONICAL_CATEGORIES:
        return f"{base}/{category}/{settings.background_filename}"
    return GENERIC_BACKGROUND_URL


class BackgroundResolverService:
    """
    Service for resolving the background track of a job.

    Catalog outages or empty categories degrade to the category's default URL.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[AssetCatalog] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog or AssetCatalog(self.settings)
        self.rng = rng or random.Random()

    async def resolve(
        self,
        category: Optional[str],
        total_duration_sec: float,
        work_dir: str,
    ) -> BackgroundSelection:
        """
        Resolve a background clip or montage covering total_duration_sec.

        Args:
            category: Client category (aliases and "random" accepted)
            total_duration_sec: Required length of the final video
            work_dir: Job workspace for downloads and segment files
        """
        canonical = normalize_category(category, self.rng)
        logger.info(
            f"Resolving background: requested={category!r}, category={canonical}, "
            f"duration={total_duration_sec:.2f}s"
        )

        candidates = await self._list_candidates(canonical)

        if not candidates:
            url = default_background_url(canonical, self.settings)
            logger.warning(f"No catalog clips for '{canonical}', using default background: {url}")
            return await self._resolve_single(canonical, url, total_duration_sec, work_dir, is_fallback=True)

        if canonical in self.settings.montage_categories:
            try:
                return await self._resolve_montage(canonical, candidates, total_duration_sec, work_dir)
            except (MediaToolError, BackgroundResolutionError) as e:
                url = default_background_url(canonical, self.settings)
                logger.warning(f"Montage build failed for '{canonical}', using default background: {e}")
                return await self._resolve_single(canonical, url, total_duration_sec, work_dir, is_fallback=True)

        url = self.rng.choice(candidates)
        return await self._resolve_single(canonical, url, total_duration_sec, work_dir)

    async def _list_candidates(self, category: str) -> list[str]:
        """List candidate clip URLs across every catalog prefix of a category."""
        if not self.catalog.is_configured:
            logger.info("Asset catalog not configured, skipping listing")
            return []

        prefixes = CATEGORY_PREFIXES.get(category, [category])
        loop = asyncio.get_event_loop()
        urls: list[str] = []

        for prefix in prefixes:
            try:
                keys = await asyncio.wait_for(
                    loop.run_in_executor(None, self.catalog.list_clips, prefix),
                    timeout=self.settings.catalog_timeout_seconds,
                )
                urls.extend(self.catalog.clip_url(key) for key in keys)
            except asyncio.TimeoutError:
                logger.warning(f"Asset catalog listing timed out for prefix '{prefix}'")
            except AssetCatalogError as e:
                logger.warning(f"Asset catalog unavailable for prefix '{prefix}': {e}")

        # Deduplicate, keeping listing order
        return list(dict.fromkeys(urls))

    async def _resolve_single(
        self,
        category: str,
        url: str,
        total_duration_sec: float,
        work_dir: str,
        is_fallback: bool = False,
    ) -> BackgroundSelection:
        """Use one clip as-is; download it so the renderer can loop it locally."""
        local_path = os.path.join(work_dir, "background.mp4")
        try:
            await self._download(url, local_path)
        except httpx.HTTPError as e:
            logger.warning(f"Background download failed, streaming from URL instead: {e}")
            local_path = url

        return BackgroundSelection(
            mode="single",
            category=category,
            total_duration_sec=total_duration_sec,
            source_url=url,
            local_path=local_path,
            is_fallback=is_fallback,
        )

    async def _resolve_montage(
        self,
        category: str,
        candidates: list[str],
        total_duration_sec: float,
        work_dir: str,
    ) -> BackgroundSelection:
        """Cut, normalize, and concatenate random chunks into one track."""
        durations = split_duration(
            total_duration_sec,
            self.settings.montage_chunk_seconds,
            min_chunk_sec=1.0 / self.settings.target_fps,
        )
        if not durations:
            raise BackgroundResolutionError("Montage requires a positive duration")

        segments_dir = os.path.join(work_dir, "segments")
        os.makedirs(segments_dir, exist_ok=True)

        segments = [
            MontageSegment(
                source_url=self.rng.choice(candidates),
                duration_sec=duration,
                path=os.path.join(segments_dir, f"segment-{i:03d}.mp4"),
            )
            for i, duration in enumerate(durations)
        ]

        logger.info(
            f"Building montage: {len(segments)} segments x {self.settings.montage_chunk_seconds:g}s "
            f"from {len(candidates)} candidates"
        )

        semaphore = asyncio.Semaphore(self.settings.max_segment_workers)

        async def prepare(segment: MontageSegment) -> None:
            async with semaphore:
                await self._prepare_segment(segment)

        results = await asyncio.gather(*[prepare(s) for s in segments], return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result

        montage_path = os.path.join(work_dir, "background_montage.mp4")
        await self._concat_segments([s.path for s in segments], montage_path, segments_dir)

        return BackgroundSelection(
            mode="montage",
            category=category,
            total_duration_sec=total_duration_sec,
            segments=segments,
            local_path=montage_path,
        )

    async def _prepare_segment(self, segment: MontageSegment) -> None:
        """Probe a clip, pick a random offset, and cut a normalized chunk."""
        try:
            clip_duration = await probe_duration(segment.source_url, self.settings.probe_timeout_seconds)
        except MediaToolError as e:
            logger.debug(f"Duration unknown for {segment.source_url}, cutting from 0: {e}")
            clip_duration = None

        segment.start_sec = pick_start_offset(clip_duration, segment.duration_sec, self.rng)

        width = self.settings.target_output_width
        height = self.settings.target_output_height
        video_filter = (
            f"scale={width}:{height}:force_original_aspect_ratio=increase,"
            f"crop={width}:{height},fps={self.settings.target_fps},setsar=1,"
            f"tpad=stop_mode=clone:stop_duration={segment.duration_sec:.3f}"
        )

        cmd = [
            "ffmpeg", "-y",
            "-ss", f"{segment.start_sec:.3f}",
            "-i", segment.source_url,
            "-t", f"{segment.duration_sec:.3f}",
            "-vf", video_filter,
            "-an",
            "-c:v", "libx264",
            "-preset", self.settings.ffmpeg_preset,
            "-crf", str(self.settings.ffmpeg_crf),
            "-pix_fmt", "yuv420p",
            segment.path,
        ]
        result = await run_command(cmd, self.settings.segment_timeout_seconds)

        if result.returncode != 0 or not os.path.isfile(segment.path):
            error_msg = result.stderr.decode(errors="replace")[-300:] if result.stderr else "Unknown error"
            raise BackgroundResolutionError(f"Segment cut failed for {segment.source_url}: {error_msg}")

    async def _concat_segments(self, segment_paths: list[str], output_path: str, list_dir: str) -> None:
        """Join identically encoded segments with the concat demuxer."""
        list_path = os.path.join(list_dir, "segments.txt")
        with open(list_path, "w", encoding="utf-8") as f:
            for path in segment_paths:
                escaped = os.path.abspath(path).replace("'", "'\\''")
                f.write(f"file '{escaped}'\n")

        cmd = [
            "ffmpeg", "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", list_path,
            "-c", "copy",
            output_path,
        ]
        result = await run_command(cmd, self.settings.segment_timeout_seconds)

        if result.returncode != 0 or not os.path.isfile(output_path):
            error_msg = result.stderr.decode(errors="replace")[-300:] if result.stderr else "Unknown error"
            raise BackgroundResolutionError(f"Montage concatenation failed: {error_msg}")

    async def _download(self, url: str, output_path: str) -> None:
        """Download a clip using httpx."""
        logger.info(f"Downloading background: {url}")

        async with httpx.AsyncClient(
            timeout=self.settings.download_timeout_seconds,
            follow_redirects=True,
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()

                with open(output_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)

        file_size = os.path.getsize(output_path)
        logger.info(f"Background downloaded: {output_path} ({file_size / 1024 / 1024:.1f} MB)")


class BackgroundResolutionError(Exception):
    """Exception raised when a background track cannot be built."""
    pass
