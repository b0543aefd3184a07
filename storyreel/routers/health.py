"""
Health check endpoints for the video worker.
"""

import shutil
from datetime import datetime, timezone

from fastapi import APIRouter

from storyreel import __version__
from storyreel.config import get_settings
from storyreel.schemas.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
@router.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running, with the availability of each
    external collaborator for diagnostics.
    """
    settings = get_settings()
    services = {
        "ffmpeg": "available" if shutil.which("ffmpeg") else "missing",
        "speech_synthesis": "configured" if settings.elevenlabs_api_key else "disabled",
        "transcription": (
            "configured" if settings.groq_api_key and settings.transcription_enabled else "disabled"
        ),
        "asset_catalog": "configured" if settings.asset_bucket else "defaults_only",
    }

    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        services=services,
    )
