"""
Pydantic schemas for instructions and request/response models.
"""

from vedit_engine.schemas.instructions import Instruction, OperationKind, parse_instruction
from vedit_engine.schemas.requests import EditRequest, EnhanceRequest, MergeRequest
from vedit_engine.schemas.responses import (
    EditResponse,
    EnhanceResponse,
    ErrorResponse,
    MergeResponse,
    PresetsResponse,
)

__all__ = [
    "Instruction",
    "OperationKind",
    "parse_instruction",
    "EditRequest",
    "MergeRequest",
    "EnhanceRequest",
    "EditResponse",
    "MergeResponse",
    "EnhanceResponse",
    "PresetsResponse",
    "ErrorResponse",
]
