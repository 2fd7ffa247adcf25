"""
Health check endpoints for the edit service.
"""

import shutil

from fastapi import APIRouter, Request

from vedit_engine import __version__
from vedit_engine.config import get_settings
from vedit_engine.errors import ScratchSpaceError
from vedit_engine.schemas.responses import HealthResponse, ReadinessResponse
from vedit_engine.services.scratch_space import ScratchSpace

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(status="healthy", version=__version__)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Ready when FFmpeg and FFprobe are on PATH and the scratch directory is
    writable.
    """
    settings = get_settings()
    ffmpeg_ok = shutil.which(settings.ffmpeg_path) is not None
    ffprobe_ok = shutil.which(settings.ffprobe_path) is not None

    scratch = getattr(request.app.state, "scratch_space", None) or ScratchSpace(settings.scratch_directory)
    try:
        scratch.ensure_ready()
        scratch_ok = True
    except ScratchSpaceError:
        scratch_ok = False

    return ReadinessResponse(
        ready=ffmpeg_ok and ffprobe_ok and scratch_ok,
        ffmpeg="available" if ffmpeg_ok else "missing",
        ffprobe="available" if ffprobe_ok else "missing",
        scratch_directory="writable" if scratch_ok else "unavailable",
    )
