"""
Services for the story video worker.

Includes:
- External collaborators (speech synthesis, transcription, asset catalog, ffmpeg)
- Timing and layout (audio analysis, caption alignment, title layout)
- Composition, rendering and job orchestration
"""

from storyreel.services.asset_catalog import AssetCatalog
from storyreel.services.audio_analyzer import AudioAnalyzerService
from storyreel.services.background_resolver import BackgroundResolverService
from storyreel.services.caption_aligner import CaptionAlignerService
from storyreel.services.caption_generator import CaptionGeneratorService
from storyreel.services.job_store import JobStore
from storyreel.services.rendering_service import FFmpegRenderer, Renderer
from storyreel.services.speech_synthesis import SpeechSynthesisService
from storyreel.services.story_pipeline import StoryVideoPipeline
from storyreel.services.transcription_service import TranscriptionService

__all__ = [
    "AssetCatalog",
    "AudioAnalyzerService",
    "BackgroundResolverService",
    "CaptionAlignerService",
    "CaptionGeneratorService",
    "FFmpegRenderer",
    "JobStore",
    "Renderer",
    "SpeechSynthesisService",
    "StoryVideoPipeline",
    "TranscriptionService",
]
