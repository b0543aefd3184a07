"""
Story Video Pipeline - Orchestrator for one narrated short-form video.

This service sequences the full workflow:
1. Narration synthesis for the opening (title) and story segments (ElevenLabs)
2. Duration and trailing-silence analysis (ffprobe / silencedetect)
3. Background resolution (single clip or montage) and caption alignment (Groq Whisper)
4. Title layout and per-word ASS caption generation
5. Composition graph assembly and rendering (FFmpeg), with optional degraded retry
"""

import asyncio
import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from storyreel.config import Settings, get_settings
from storyreel.services.audio_analyzer import AudioAnalyzerService, AudioAsset
from storyreel.services.background_resolver import BackgroundResolverService, BackgroundSelection
from storyreel.services.caption_aligner import CaptionAlignerService, WordTimestamp
from storyreel.services.caption_generator import CaptionError, CaptionGeneratorService
from storyreel.services.composition import (
    AudioLayer,
    AudioTrack,
    BackgroundLayer,
    BannerLayer,
    CaptionLayer,
    build_composition_graph,
    build_fallback_graph,
    locate_banner_images,
    normalize_author_label,
    normalize_subreddit_label,
)
from storyreel.services.font_resolver import resolve_font_file
from storyreel.services.media_tools import MediaToolError
from storyreel.services.rendering_service import (
    FFmpegRenderer,
    Renderer,
    RenderResult,
    render_with_fallback,
)
from storyreel.services.speech_synthesis import SpeechSynthesisError, SpeechSynthesisService
from storyreel.services.title_layout import TitleLayout, wrap_title_for_style

logger = logging.getLogger(__name__)


STORY_BREAK_MARKER = "[BREAK]"


class JobStatus(str, Enum):
    """Status of a story video job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StoryJobRequest:
    """Request to render one story video."""

    title: str
    story_text: str
    background_category: str = "random"
    voice: Optional[str] = None
    subreddit: Optional[str] = None
    author: Optional[str] = None
    allow_degraded_render: Optional[bool] = None  # None uses the configured default
    job_id: Optional[str] = None

    def __post_init__(self):
        if self.job_id is None:
            self.job_id = str(uuid.uuid4())


@dataclass
class StoryJobProgress:
    """Progress update for a story video job."""

    job_id: str
    status: JobStatus
    progress_percent: float
    message: str
    output_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class StoryJobResult:
    """Final result of a story video job."""

    job_id: str
    status: JobStatus
    output_path: Optional[str] = None
    output_url: Optional[str] = None
    duration_sec: float = 0.0
    degraded: bool = False
    error: Optional[str] = None
    processing_time_seconds: float = 0


def split_story_text(story_text: str) -> str:
    """
    Narrated part of the story: everything before the first [BREAK] marker.

    When nothing precedes the marker, the whole text is narrated with markers removed.
    """
    text = story_text or ""
    head = text.split(STORY_BREAK_MARKER, 1)[0].strip()
    if head:
        return head
    return " ".join(text.replace(STORY_BREAK_MARKER, " ").split())


class StoryVideoPipeline:
    """
    Unified pipeline for narrated story videos.

    Every stage except rendering degrades instead of failing: missing narration
    becomes silence, probe errors drop the segment, transcription problems fall
    back to heuristic timing, and catalog outages use a default background.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        progress_callback: Optional[Callable[[StoryJobProgress], None]] = None,
        speech_service: Optional[SpeechSynthesisService] = None,
        audio_analyzer: Optional[AudioAnalyzerService] = None,
        caption_aligner: Optional[CaptionAlignerService] = None,
        background_resolver: Optional[BackgroundResolverService] = None,
        caption_generator: Optional[CaptionGeneratorService] = None,
        renderer: Optional[Renderer] = None,
    ):
        self.settings = settings or get_settings()
        self.progress_callback = progress_callback

        # Initialize services
        self.speech_service = speech_service or SpeechSynthesisService(self.settings)
        self.audio_analyzer = audio_analyzer or AudioAnalyzerService(self.settings)
        self.caption_aligner = caption_aligner or CaptionAlignerService(self.settings)
        self.background_resolver = background_resolver or BackgroundResolverService(self.settings)
        self.caption_generator = caption_generator or CaptionGeneratorService(self.settings)
        self.renderer = renderer or FFmpegRenderer(self.settings)

    def _setup_job_logging(self, job_id: str) -> Optional[logging.FileHandler]:
        """
        Set up job-specific file logging.

        Creates logs/job_<id>_<timestamp>.log and attaches it to the storyreel
        logger so every service's messages for this job land in one file.
        """
        try:
            logs_dir = Path(self.settings.logs_directory)
            logs_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_filename = logs_dir / f"job_{job_id}_{timestamp}.log"

            file_handler = logging.FileHandler(log_filename, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))

            logging.getLogger("storyreel").addHandler(file_handler)

            logger.info(f"Job logging initialized: {log_filename}")
            return file_handler

        except OSError as e:
            logger.warning(f"Failed to setup job logging: {e}")
            return None

    def _cleanup_job_logging(self, file_handler: Optional[logging.FileHandler]):
        """Remove the job-specific file handler."""
        if file_handler is None:
            return
        logging.getLogger("storyreel").removeHandler(file_handler)
        file_handler.close()

    async def process_job(self, request: StoryJobRequest) -> StoryJobResult:
        """
        Render a story video end to end.

        Args:
            request: StoryJobRequest with title, story text and options

        Returns:
            StoryJobResult with output path or error
        """
        start_time = time.time()
        job_id = request.job_id
        work_dir = os.path.join(self.settings.temp_directory, job_id)

        job_log_handler = self._setup_job_logging(job_id)

        try:
            os.makedirs(work_dir, exist_ok=True)
            logger.info(f"Starting story job: {job_id}")
            logger.info(
                f"Title: {request.title!r}, category: {request.background_category}, voice: {request.voice}"
            )

            # Step 1: Synthesize narration
            self._update_progress(job_id, JobStatus.PROCESSING, 5, "Synthesizing narration...")
            story_text = split_story_text(request.story_text)
            opening_path, story_path = await asyncio.gather(
                self._synthesize_segment("opening", request.title, request.voice, work_dir),
                self._synthesize_segment("story", story_text, request.voice, work_dir),
            )

            # Step 2: Measure narration
            self._update_progress(job_id, JobStatus.PROCESSING, 20, "Analyzing narration...")
            opening = await self._analyze_segment("opening", opening_path)
            story = await self._analyze_segment("story", story_path)

            opening_sec = opening.effective_duration_sec if opening else 0.0
            story_sec = story.effective_duration_sec if story else 0.0
            total_sec = opening_sec + story_sec
            if total_sec <= 0:
                total_sec = self.settings.silent_video_duration_seconds
                logger.warning(f"No narration available, rendering {total_sec:.1f}s silent video")

            logger.info(
                f"Durations: opening={opening_sec:.2f}s, story={story_sec:.2f}s, total={total_sec:.2f}s"
            )

            # Step 3: Background and caption timing
            self._update_progress(job_id, JobStatus.PROCESSING, 35, "Preparing background and captions...")
            background, words = await asyncio.gather(
                self.background_resolver.resolve(request.background_category, total_sec, work_dir),
                self._align_story(story_text, story),
            )
            logger.info(
                f"Background: mode={background.mode}, category={background.category}, "
                f"default={background.is_fallback}, source={background.local_path or background.source_url}"
            )
            if background.is_fallback:
                logger.warning(f"Job {job_id} is using the default background for '{background.category}'")

            # Step 4: Title layout and caption track
            self._update_progress(job_id, JobStatus.PROCESSING, 60, "Laying out title and captions...")
            layout = wrap_title_for_style(request.title, self.settings.get_title_box_style())
            caption_path = self._write_captions(words, opening_sec, work_dir)

            # Step 5: Compose and render
            self._update_progress(job_id, JobStatus.PROCESSING, 70, "Rendering video...")
            output_path = os.path.join(self.settings.output_directory, f"{job_id}.mp4")
            render_result = await self._render(
                request, background, layout, opening, story, opening_sec, caption_path, total_sec, output_path
            )

            output_url = f"/videos/{job_id}.mp4"
            processing_time = time.time() - start_time

            self._update_progress(
                job_id, JobStatus.COMPLETED, 100,
                "Video ready" + (" (degraded)" if render_result.degraded else ""),
                output_url=output_url,
            )

            logger.info(f"Job {job_id} completed in {processing_time:.1f}s")

            return StoryJobResult(
                job_id=job_id,
                status=JobStatus.COMPLETED,
                output_path=render_result.output_path,
                output_url=output_url,
                duration_sec=total_sec,
                degraded=render_result.degraded,
                processing_time_seconds=processing_time,
            )

        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")

            self._update_progress(job_id, JobStatus.FAILED, 100, "Processing failed", error=str(e))

            return StoryJobResult(
                job_id=job_id,
                status=JobStatus.FAILED,
                error=str(e),
                processing_time_seconds=time.time() - start_time,
            )

        finally:
            if os.path.isdir(work_dir):
                try:
                    shutil.rmtree(work_dir)
                except OSError as e:
                    logger.warning(f"Failed to cleanup work dir: {e}")

            self._cleanup_job_logging(job_log_handler)

    async def _synthesize_segment(
        self,
        segment: str,
        text: str,
        voice: Optional[str],
        work_dir: str,
    ) -> Optional[str]:
        """Synthesize one narration segment to <work_dir>/<segment>.mp3; None if absent."""
        try:
            audio = await self.speech_service.synthesize(text, voice)
        except SpeechSynthesisError as e:
            logger.warning(f"Synthesis failed for {segment} segment, treating as absent: {e}")
            return None

        if not audio:
            logger.info(f"No {segment} narration (synthesis unavailable or empty text)")
            return None

        path = os.path.join(work_dir, f"{segment}.mp3")
        with open(path, "wb") as f:
            f.write(audio)
        return path

    async def _analyze_segment(self, segment: str, audio_path: Optional[str]) -> Optional[AudioAsset]:
        """Measure a narration file; an unreadable file drops the segment."""
        if not audio_path:
            return None
        try:
            return await self.audio_analyzer.analyze(audio_path)
        except MediaToolError as e:
            logger.warning(f"Duration probe failed for {segment} segment, treating as absent: {e}")
            return None

    async def _align_story(self, story_text: str, story: Optional[AudioAsset]) -> list[WordTimestamp]:
        if story is None:
            return []
        return await self.caption_aligner.align(story_text, story.path, story.effective_duration_sec)

    def _write_captions(
        self,
        words: list[WordTimestamp],
        offset_sec: float,
        work_dir: str,
    ) -> Optional[str]:
        try:
            return self.caption_generator.generate_captions(
                words,
                os.path.join(work_dir, "captions.ass"),
                offset_sec=offset_sec,
            )
        except CaptionError as e:
            logger.warning(f"Caption generation failed, rendering without captions: {e}")
            return None

    async def _render(
        self,
        request: StoryJobRequest,
        background: BackgroundSelection,
        layout: TitleLayout,
        opening: Optional[AudioAsset],
        story: Optional[AudioAsset],
        opening_sec: float,
        caption_path: Optional[str],
        total_sec: float,
        output_path: str,
    ) -> RenderResult:
        """Assemble the layer list, build both graphs and render."""
        settings = self.settings

        background_layer = BackgroundLayer(
            background.local_path or background.source_url,
            loop=background.mode == "single",
            width=settings.target_output_width,
            height=settings.target_output_height,
            fps=settings.target_fps,
        )

        banner_layer = None
        if opening is not None:
            top_image, bottom_image = locate_banner_images(settings.assets_directory)
            if (request.title or "").strip() and (top_image or bottom_image):
                banner_layer = BannerLayer.from_assets(
                    request.title,
                    layout,
                    opening_sec,
                    top_image,
                    bottom_image,
                    subreddit_label=normalize_subreddit_label(request.subreddit),
                    author_label=normalize_author_label(request.author),
                    font_file=await resolve_font_file(settings.font_family),
                    style=settings.get_title_box_style(),
                )
            else:
                logger.info("Banner skipped (no title text or banner images)")

        caption_layer = CaptionLayer(caption_path) if caption_path else None

        audio_layer = AudioLayer.from_tracks(
            [
                AudioTrack("opening", opening.path, opening.effective_duration_sec) if opening else None,
                AudioTrack("story", story.path, story.effective_duration_sec) if story else None,
            ],
            sample_rate=settings.audio_sample_rate,
        )

        graph = build_composition_graph(
            [background_layer, banner_layer, caption_layer, audio_layer], total_sec
        )
        fallback_graph = build_fallback_graph(background_layer, audio_layer, total_sec)

        allow_degraded = (
            settings.allow_degraded_render
            if request.allow_degraded_render is None
            else request.allow_degraded_render
        )

        return await render_with_fallback(
            self.renderer,
            graph,
            output_path,
            fallback_graph=fallback_graph,
            allow_degraded=allow_degraded,
        )

    def _update_progress(
        self,
        job_id: str,
        status: JobStatus,
        progress: float,
        message: str,
        output_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Report job progress via callback."""
        logger.debug(f"Job {job_id}: {status.value} - {progress:.0f}% - {message}")
        if self.progress_callback:
            try:
                self.progress_callback(StoryJobProgress(
                    job_id=job_id,
                    status=status,
                    progress_percent=progress,
                    message=message,
                    output_url=output_url,
                    error=error,
                ))
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")
