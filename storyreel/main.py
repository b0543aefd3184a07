"""
FastAPI application entry point for the Storyreel worker.

Storyreel turns a title and story text into a narrated 9:16 video:
1. Narration via ElevenLabs, caption timing via Groq Whisper (with heuristic fallback)
2. Background clips or montages from an S3-compatible asset catalog
3. FFmpeg composition with an intro banner and per-word pop-in captions
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storyreel import __version__
from storyreel.config import get_settings
from storyreel.routers import health, videos
from storyreel.services.job_store import JobStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Creates working directories, the job store and the concurrency gate.
    """
    settings = get_settings()
    logger.info("Starting Storyreel worker...")

    os.makedirs(settings.temp_directory, exist_ok=True)
    os.makedirs(settings.output_directory, exist_ok=True)
    logger.info(f"Temp directory: {settings.temp_directory}, output directory: {settings.output_directory}")

    # Limits how many render jobs run simultaneously
    app.state.job_semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)
    logger.info(f"Max concurrent jobs: {settings.max_concurrent_jobs}")

    app.state.job_store = JobStore(
        ttl_seconds=settings.job_ttl_seconds,
        max_jobs=settings.max_tracked_jobs,
    )

    _verify_external_tools()

    logger.info("Storyreel ready to accept requests.")

    yield

    logger.info("Shutting down Storyreel worker...")
    app.state.job_store = None
    app.state.job_semaphore = None

    if os.path.isdir(settings.temp_directory):
        try:
            shutil.rmtree(settings.temp_directory)
        except OSError as e:
            logger.warning(f"Failed to clean up temp directory: {e}")

    logger.info("Shutdown complete")


def _verify_external_tools():
    """Verify that required external tools are available."""
    tools = {
        "ffmpeg": "FFmpeg for rendering",
        "ffprobe": "FFprobe for duration probing",
        "fc-match": "fontconfig for font resolution",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"✓ {description} available")
        else:
            logger.warning(f"✗ {description} NOT FOUND - some features may not work")


# Create FastAPI application
app = FastAPI(
    title="Storyreel",
    description="""
Storyreel - narrated short-form story video worker.

## Usage

1. Submit a job: `POST /generate-video`
2. Poll status: `GET /video-status/{job_id}`
3. Download the result from `output_url` (`GET /videos/{job_id}.mp4`)
    """,
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(videos.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": get_settings().app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }
