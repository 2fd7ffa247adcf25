"""
Edit API Router - single edits, merges, auto-enhance suggestions and presets.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from vedit_engine.auth import verify_api_key
from vedit_engine.config import get_available_subtitle_presets, get_settings
from vedit_engine.errors import CompileError, MediaEngineError
from vedit_engine.schemas.requests import EditRequest, EnhanceRequest, MergeRequest
from vedit_engine.schemas.responses import EditResponse, EnhanceResponse, MergeResponse, PresetsResponse
from vedit_engine.services.concat_pipeline import ConcatenationPipeline
from vedit_engine.services.enhance_planner import EnhancePlanner, VideoMetadata
from vedit_engine.services.filter_presets import preset_catalog
from vedit_engine.services.transcoder import Transcoder
from vedit_engine.services.transformation_pipeline import TransformationPipeline, process_with_limit

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================


def _from_state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return getattr(request.app.state, name)


async def get_transformation_pipeline(request: Request) -> TransformationPipeline:
    """Get the transformation pipeline from app state (initialized at startup)."""
    return _from_state(request, "transformation_pipeline")


async def get_concat_pipeline(request: Request) -> ConcatenationPipeline:
    return _from_state(request, "concat_pipeline")


async def get_enhance_planner(request: Request) -> EnhancePlanner:
    return _from_state(request, "enhance_planner")


async def get_transcoder(request: Request) -> Transcoder:
    return _from_state(request, "transcoder")


def get_edit_semaphore(request: Request) -> Optional[asyncio.Semaphore]:
    return getattr(request.app.state, "edit_semaphore", None)


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/edits", response_model=EditResponse, response_model_by_alias=True)
async def apply_edit(
    body: EditRequest,
    pipeline: TransformationPipeline = Depends(get_transformation_pipeline),
    semaphore: Optional[asyncio.Semaphore] = Depends(get_edit_semaphore),
    _: None = Depends(verify_api_key),
) -> EditResponse:
    """
    Apply one edit instruction to a video or image.

    When the edit fails and SERVE_ORIGINAL_ON_FAILURE is enabled, the
    response carries the original URL with ``fallback=true`` and the error.
    Invalid instructions are always reported as 400.
    """
    operation = body.instruction.operation
    logger.info(f"Edit request: {operation} on {body.media_url} (image={body.is_image})")

    try:
        result = await process_with_limit(
            pipeline,
            semaphore,
            body.media_url,
            body.instruction.model_dump(),
            body.is_image,
        )
    except CompileError:
        raise
    except MediaEngineError as e:
        if not get_settings().serve_original_on_failure:
            raise
        logger.warning(f"Edit {operation} failed, serving original media: {e}")
        return EditResponse(
            success=False,
            url=body.media_url,
            operation=operation,
            fallback=True,
            error=e.to_dict(),
        )

    return EditResponse(
        success=True,
        url=result.url,
        operation=result.operation,
        warnings=result.warnings,
        passthrough=result.passthrough,
        processing_time_seconds=round(result.processing_time_seconds, 2),
    )


@router.post("/merge", response_model=MergeResponse, response_model_by_alias=True)
async def merge_clips(
    body: MergeRequest,
    pipeline: ConcatenationPipeline = Depends(get_concat_pipeline),
    semaphore: Optional[asyncio.Semaphore] = Depends(get_edit_semaphore),
    _: None = Depends(verify_api_key),
) -> MergeResponse:
    """
    Concatenate two or more clips in order.

    Fewer than two clips is a 400 (InsufficientInputsError).
    """
    logger.info(f"Merge request: {len(body.clip_urls)} clips")

    if semaphore is None:
        merged_url = await pipeline.merge(body.clip_urls)
    else:
        async with semaphore:
            merged_url = await pipeline.merge(body.clip_urls)

    return MergeResponse(
        success=True,
        merged_url=merged_url,
        message=f"Successfully merged {len(body.clip_urls)} clips",
    )


@router.post("/enhance/suggestions", response_model=EnhanceResponse, response_model_by_alias=True)
async def enhance_suggestions(
    body: EnhanceRequest,
    planner: EnhancePlanner = Depends(get_enhance_planner),
    transcoder: Transcoder = Depends(get_transcoder),
    _: None = Depends(verify_api_key),
) -> EnhanceResponse:
    """
    Suggest auto-enhance instructions for a video.

    Quick mode looks at probed metadata only; deep mode asks the configured
    content analyzer.
    """
    info = await transcoder.probe(body.media_url)
    if info is None:
        logger.warning(f"Could not probe {body.media_url}, using default metadata")
        metadata = VideoMetadata(duration_seconds=body.duration or 0.0)
    else:
        metadata = VideoMetadata(
            duration_seconds=body.duration or info.duration_seconds,
            width=info.width or 1920,
            height=info.height or 1080,
            bitrate=info.bitrate,
            format_name=info.format_name or "mp4",
        )

    plan = await planner.plan(body.media_url, metadata, body.mode)
    count = len(plan.operations)
    return EnhanceResponse(
        mode=plan.mode,
        operations=plan.operations,
        suggestions=plan.suggestions,
        video_metadata=plan.metadata,
        warning=plan.warning,
        message=f"Suggested {count} enhancement{'s' if count != 1 else ''}",
    )


@router.get("/presets", response_model=PresetsResponse, response_model_by_alias=True)
async def list_presets() -> PresetsResponse:
    """List preset names accepted by colorGrade, applyEffect, addTransition, addText and filter."""
    catalog = preset_catalog()
    return PresetsResponse(
        color_grades=catalog["colorGrades"],
        effects=catalog["effects"],
        transitions=catalog["transitions"],
        text_styles=catalog["textStyles"],
        filters=catalog["filters"],
        subtitle_presets=get_available_subtitle_presets(),
    )
