"""
FastAPI application entry point for the Vedit media transformation engine.

Provides:
1. Single edits (color grades, effects, text, captions, geometry, timing)
2. Clip merging
3. Auto-enhance suggestions
"""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vedit_engine import __version__
from vedit_engine.config import get_settings
from vedit_engine.errors import MediaEngineError
from vedit_engine.routers import edits, health
from vedit_engine.schemas.responses import ErrorResponse
from vedit_engine.services.artifact_store import create_artifact_store
from vedit_engine.services.concat_pipeline import ConcatenationPipeline
from vedit_engine.services.enhance_planner import EnhancePlanner
from vedit_engine.services.filter_compiler import FilterCompiler
from vedit_engine.services.scratch_space import ScratchSpace
from vedit_engine.services.transcoder import Transcoder
from vedit_engine.services.transformation_pipeline import TransformationPipeline

# Configure logging
_settings = get_settings()
logging.basicConfig(
    level="DEBUG" if _settings.debug else _settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Wires the pipelines and bounds concurrent edits.
    """
    settings = get_settings()
    logger.info("Starting Vedit engine...")

    scratch = ScratchSpace(settings.scratch_directory)
    try:
        scratch.ensure_ready()
    except MediaEngineError as e:
        # Readiness reports this; requests fail with SCRATCH_UNAVAILABLE
        logger.error(f"Scratch directory unavailable: {e}")

    # Limits how many FFmpeg processes run at once
    edit_semaphore = asyncio.Semaphore(settings.max_concurrent_edits)
    logger.info(f"Max concurrent edits: {settings.max_concurrent_edits}")

    store = create_artifact_store(settings)
    transcoder = Transcoder()
    concat_pipeline = ConcatenationPipeline(
        store=store, scratch=scratch, transcoder=transcoder, settings=settings
    )
    transformation_pipeline = TransformationPipeline(
        store=store,
        scratch=scratch,
        compiler=FilterCompiler(),
        transcoder=transcoder,
        concat_pipeline=concat_pipeline,
        settings=settings,
    )

    # Store in app state for dependency injection
    app.state.scratch_space = scratch
    app.state.edit_semaphore = edit_semaphore
    app.state.transcoder = transcoder
    app.state.concat_pipeline = concat_pipeline
    app.state.transformation_pipeline = transformation_pipeline
    app.state.enhance_planner = EnhancePlanner(settings=settings)

    _verify_external_tools(settings.ffmpeg_path, settings.ffprobe_path)

    logger.info(f"Vedit engine ready (storage: {settings.storage_backend})")

    yield

    logger.info("Shutdown complete")


def _verify_external_tools(ffmpeg_path: str, ffprobe_path: str):
    """Verify that the configured FFmpeg binaries are available."""
    tools = {
        ffmpeg_path: "FFmpeg for rendering",
        ffprobe_path: "FFprobe for media analysis",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"✓ {description} available")
        else:
            logger.warning(f"✗ {description} NOT FOUND - edits will fail")


# Create FastAPI application
app = FastAPI(
    title=_settings.app_name,
    description="""
Media transformation engine.

## Usage

- Apply an edit: `POST /edits` with `{mediaUrl, instruction: {operation, params}, isImage}`
- Merge clips: `POST /merge` with `{clipUrls}`
- Auto-enhance suggestions: `POST /enhance/suggestions`
- Preset names: `GET /presets`
    """,
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MediaEngineError)
async def media_engine_error_handler(request: Request, exc: MediaEngineError) -> JSONResponse:
    """Render engine failures with their status code and retry hint."""
    body = ErrorResponse(
        error=type(exc).__name__,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        retryable=exc.retryable,
    )
    return JSONResponse(status_code=exc.http_status, content=body.model_dump())


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(edits.router, tags=["Edits"])


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": get_settings().app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }
