"""
Video API Router - Job submission, status polling and finished-file serving.
"""

import asyncio
import logging
import os

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse

from storyreel.config import get_settings
from storyreel.schemas.requests import VideoJobRequest
from storyreel.schemas.responses import VideoJobStatusResponse, VideoJobSubmitResponse
from storyreel.services.job_store import JobStore, JobStoreError
from storyreel.services.story_pipeline import (
    JobStatus,
    StoryJobProgress,
    StoryJobRequest,
    StoryVideoPipeline,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Videos"])


# ============================================================================
# Dependencies
# ============================================================================


def get_job_store(request: Request) -> JobStore:
    """Get the job store from app state (initialized at startup)."""
    store = getattr(request.app.state, "job_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store not initialized",
        )
    return store


def get_job_semaphore(request: Request) -> asyncio.Semaphore:
    """Get the job semaphore from app state (initialized at startup)."""
    semaphore = getattr(request.app.state, "job_semaphore", None)
    if semaphore is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job semaphore not initialized",
        )
    return semaphore


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/generate-video", response_model=VideoJobSubmitResponse, status_code=status.HTTP_202_ACCEPTED)
@router.post("/api/generate-video", response_model=VideoJobSubmitResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_video_job(
    request: VideoJobRequest,
    background_tasks: BackgroundTasks,
    store: JobStore = Depends(get_job_store),
    semaphore: asyncio.Semaphore = Depends(get_job_semaphore),
) -> VideoJobSubmitResponse:
    """
    Submit a new story video job.

    The job will be processed asynchronously. Poll GET /video-status/{job_id}.
    """
    job_request = StoryJobRequest(
        title=request.title,
        story_text=request.story_text,
        background_category=request.background_category,
        voice=request.voice_id,
        subreddit=request.subreddit,
        author=request.author,
        allow_degraded_render=request.allow_degraded_render,
    )

    try:
        store.create(job_request.job_id, message="Video generation started.")
    except JobStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    background_tasks.add_task(_process_job_background, job_request, store, semaphore)

    logger.info(
        f"Job {job_request.job_id} submitted (category={request.background_category}, voice={request.voice_id})"
    )

    return VideoJobSubmitResponse(
        job_id=job_request.job_id,
        status=JobStatus.PROCESSING.value,
        message="Video generation started.",
        status_url=f"/video-status/{job_request.job_id}",
    )


@router.get("/video-status/{job_id}", response_model=VideoJobStatusResponse)
@router.get("/api/video-status/{job_id}", response_model=VideoJobStatusResponse)
async def get_video_status(
    job_id: str,
    store: JobStore = Depends(get_job_store),
) -> VideoJobStatusResponse:
    """
    Get the status of a video job.

    Returns progress while processing, the output URL once completed, or the
    error message if the job failed.
    """
    record = store.get(job_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job not found: {job_id}",
        )

    return VideoJobStatusResponse(
        job_id=record.job_id,
        status=record.status.value,
        progress_percent=record.progress_percent,
        message=record.message,
        output_url=record.output_url,
        error=record.error,
    )


@router.get("/videos/{filename}")
async def get_video_file(filename: str) -> FileResponse:
    """Serve a finished video from the output directory."""
    settings = get_settings()
    safe_name = os.path.basename(filename)
    path = os.path.join(settings.output_directory, safe_name)

    if safe_name != filename or not safe_name.endswith(".mp4") or not os.path.isfile(path):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found",
        )

    return FileResponse(path, media_type="video/mp4", filename=safe_name)


# ============================================================================
# Background Processing
# ============================================================================


async def _process_job_background(
    request: StoryJobRequest,
    store: JobStore,
    semaphore: asyncio.Semaphore,
) -> None:
    """
    Process a video job in the background with concurrency control.
    """

    def progress_callback(progress: StoryJobProgress) -> None:
        store.update(
            progress.job_id,
            status=progress.status,
            progress_percent=progress.progress_percent,
            message=progress.message,
            output_url=progress.output_url,
            error=progress.error,
        )

    async with semaphore:
        try:
            pipeline = StoryVideoPipeline(progress_callback=progress_callback)
            await pipeline.process_job(request)
        except Exception as e:
            logger.exception(f"Background job failed: {e}")
            store.update(
                request.job_id,
                status=JobStatus.FAILED,
                message="Processing failed",
                error=str(e),
            )
