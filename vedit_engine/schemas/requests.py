"""
Request schemas for the edit API.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InstructionPayload(BaseModel):
    """An ``{operation, params}`` pair as produced by the instruction source."""

    operation: str = Field(..., min_length=1, description="Operation name, e.g. colorGrade")
    params: dict[str, Any] = Field(default_factory=dict, description="Operation parameters")


class EditRequest(BaseModel):
    """Request body for the /edits endpoint."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "mediaUrl": "https://cdn.example.com/uploads/clip.mp4",
                "instruction": {"operation": "colorGrade", "params": {"preset": "noir"}},
                "isImage": False,
            }
        },
    )

    media_url: str = Field(..., min_length=1, description="URL of the source video or image")
    instruction: InstructionPayload
    is_image: bool = Field(default=False, description="Whether the source is a still image")


class MergeRequest(BaseModel):
    """Request body for the /merge endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    clip_urls: list[str] = Field(..., description="Clip URLs in playback order (at least two)")


class EnhanceRequest(BaseModel):
    """Request body for the /enhance/suggestions endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    media_url: str = Field(..., min_length=1)
    mode: Literal["quick", "deep"] = "quick"
    duration: Optional[float] = Field(
        default=None,
        ge=0,
        description="Client-detected duration in seconds; takes precedence over probing",
    )
