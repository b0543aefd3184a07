"""
Rendering Service - Turns a composition graph into an MP4 via a Renderer.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from storyreel.config import Settings, get_settings
from storyreel.services.composition import CompositionGraph
from storyreel.services.media_tools import MediaToolError, run_command

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    """Result of rendering operation: an output path or an error message."""

    output_path: Optional[str] = None
    error: Optional[str] = None
    file_size_bytes: int = 0
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.output_path is not None and self.error is None


class Renderer(ABC):
    """Anything that can turn a CompositionGraph into a video file."""

    @abstractmethod
    async def render(self, graph: CompositionGraph, output_path: str) -> RenderResult:
        """Render the graph; failures are reported in the result, not raised."""


class FFmpegRenderer(Renderer):
    """
    Renderer backed by the ffmpeg CLI.

    H.264 / AAC output at the canonical frame rate, capped to the graph's
    duration so looping backgrounds terminate.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build_command(self, graph: CompositionGraph, output_path: str) -> list[str]:
        cmd = ["ffmpeg", "-y", "-hide_banner"]
        for media in graph.inputs:
            cmd.extend(media.options)
            cmd.extend(["-i", media.path])

        cmd.extend([
            "-filter_complex", graph.filter_complex(),
            "-map", f"[{graph.video_label}]",
        ])

        if graph.has_audio:
            cmd.extend([
                "-map", f"[{graph.audio_label}]",
                "-c:a", "aac",
                "-b:a", "128k",
                "-ar", str(self.settings.audio_sample_rate),
            ])
        else:
            cmd.append("-an")

        cmd.extend([
            "-c:v", "libx264",
            "-preset", self.settings.ffmpeg_preset,
            "-crf", str(self.settings.ffmpeg_crf),
            "-r", str(self.settings.target_fps),
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            "-t", f"{graph.duration_sec:.3f}",
            output_path,
        ])
        return cmd

    async def render(self, graph: CompositionGraph, output_path: str) -> RenderResult:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        cmd = self.build_command(graph, output_path)

        logger.info(
            f"Rendering {output_path} (layers={graph.layers}, duration={graph.duration_sec:.2f}s)"
        )
        logger.debug(f"filter_complex: {graph.filter_complex()}")

        try:
            result = await run_command(cmd, self.settings.render_timeout_seconds)
        except MediaToolError as e:
            return RenderResult(error=str(e))

        if result.returncode != 0:
            error_msg = result.stderr.decode(errors="replace")[-1000:] if result.stderr else "Unknown error"
            return RenderResult(error=f"FFmpeg failed: {error_msg}")

        if not os.path.isfile(output_path):
            return RenderResult(error=f"FFmpeg produced no output at {output_path}")

        return RenderResult(output_path=output_path, file_size_bytes=os.path.getsize(output_path))


async def render_with_fallback(
    renderer: Renderer,
    graph: CompositionGraph,
    output_path: str,
    fallback_graph: Optional[CompositionGraph] = None,
    allow_degraded: bool = False,
) -> RenderResult:
    """
    Render the full graph; on failure retry once with the minimal graph if allowed.

    Raises:
        RenderingError: If the render fails and no degraded retry succeeds
    """
    result = await renderer.render(graph, output_path)
    if result.ok:
        logger.info(f"Render complete: {output_path} ({result.file_size_bytes / 1024 / 1024:.1f} MB)")
        return result

    logger.error(f"Render failed: {result.error}")

    if not allow_degraded or fallback_graph is None:
        raise RenderingError(result.error or "Render failed")

    logger.warning(f"Retrying with degraded graph (layers={fallback_graph.layers})")
    fallback = await renderer.render(fallback_graph, output_path)
    if not fallback.ok:
        raise RenderingError(
            f"Degraded render also failed: {fallback.error} (original error: {result.error})"
        )

    fallback.degraded = True
    logger.warning(f"Degraded render complete: {output_path}")
    return fallback


class RenderingError(Exception):
    """Exception raised when rendering fails."""
    pass
