"""
Response schemas for the video generation API.

These schemas define the JSON format polled by the scheduler and dashboard.
"""

from typing import Optional

from pydantic import BaseModel, Field


class VideoJobSubmitResponse(BaseModel):
    """Response after submitting a video job."""

    success: bool = True
    job_id: str
    status: str
    message: str
    status_url: str


class VideoJobStatusResponse(BaseModel):
    """Response for job status query."""

    job_id: str
    status: str = Field(..., description="processing, completed or failed")
    progress_percent: float = Field(..., ge=0, le=100)
    message: str = ""
    output_url: Optional[str] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    timestamp: str
    services: dict[str, str] = {}
