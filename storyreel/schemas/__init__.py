"""
Pydantic schemas for request/response models.
"""

from storyreel.schemas.requests import VideoJobRequest
from storyreel.schemas.responses import (
    HealthResponse,
    VideoJobStatusResponse,
    VideoJobSubmitResponse,
)

__all__ = [
    "VideoJobRequest",
    "VideoJobSubmitResponse",
    "VideoJobStatusResponse",
    "HealthResponse",
]
