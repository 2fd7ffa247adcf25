"""
Response schemas for the edit API.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EditResponse(CamelModel):
    """Result of a single edit."""

    success: bool
    url: str = Field(..., description="URL of the edited media (the original URL on fallback)")
    operation: str
    warnings: list[str] = Field(default_factory=list)
    passthrough: bool = False
    fallback: bool = Field(default=False, description="True when the original media was served after a failure")
    error: Optional[dict[str, Any]] = None
    processing_time_seconds: Optional[float] = None


class MergeResponse(CamelModel):
    """Result of a merge."""

    success: bool
    merged_url: str
    message: str


class EnhanceResponse(CamelModel):
    """Auto-enhance suggestions."""

    success: bool = True
    mode: str
    operations: list[dict[str, Any]]
    suggestions: dict[str, Any]
    video_metadata: dict[str, Any] = Field(default_factory=dict)
    warning: Optional[str] = None
    message: str


class PresetsResponse(CamelModel):
    """Preset names by category."""

    color_grades: list[str]
    effects: list[str]
    transitions: list[str]
    text_styles: list[str]
    filters: list[str]
    subtitle_presets: list[str]


class ErrorResponse(BaseModel):
    """Error body returned for engine failures."""

    success: bool = False
    error: str
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    retryable: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    ffmpeg: str = Field(..., description="available | missing")
    ffprobe: str = Field(..., description="available | missing")
    scratch_directory: str = Field(..., description="writable | unavailable")
