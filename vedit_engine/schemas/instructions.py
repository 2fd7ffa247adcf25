"""
Typed edit instructions.

The instruction source delivers ``{operation, params}`` with a loosely shaped
``params`` map. Each operation gets its own parameter model here; numeric
values are clamped and fractions/percentages normalized once, at this
boundary, so the compiler only ever sees validated values.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from vedit_engine.config import get_subtitle_preset
from vedit_engine.errors import CompileError

logger = logging.getLogger(__name__)

MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 120
DEFAULT_FONT_SIZE = 36
FONT_SIZE_NAMES = {
    "small": 24,
    "medium": 36,
    "large": 48,
    "xlarge": 60,
}

MIN_SPEED = 0.25
MAX_SPEED = 4.0


class OperationKind(str, Enum):
    """Closed set of operations the engine knows how to compile."""

    TRIM = "trim"
    COLOR_GRADE = "colorGrade"
    APPLY_EFFECT = "applyEffect"
    ADD_TEXT = "addText"
    ADD_TRANSITION = "addTransition"
    ADD_MUSIC = "addMusic"
    APPLY_BRAND_KIT = "applyBrandKit"
    REMOVE_CLIP = "removeClip"
    FILTER = "filter"
    GENERATE_TRAILER = "generateTrailer"
    ADD_CAPTIONS = "addCaptions"
    CUSTOM_TEXT = "customText"
    CUSTOM_SUBTITLE = "customSubtitle"
    ADJUST_INTENSITY = "adjustIntensity"
    ADJUST_ZOOM = "adjustZoom"
    ADJUST_SPEED = "adjustSpeed"
    ROTATE = "rotate"
    CROP = "crop"
    REMOVE_OBJECT = "removeObject"
    MERGE = "merge"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def parse_font_size(size: Any) -> int:
    """
    Resolve a requested font size to an integer in [12, 120].

    Accepts numbers, numeric strings and the names small/medium/large/xlarge.
    Missing or unparseable values give the default (36).
    """
    if size is None or size == "" or isinstance(size, bool):
        return DEFAULT_FONT_SIZE
    if isinstance(size, (int, float)):
        return int(_clamp(round(size), MIN_FONT_SIZE, MAX_FONT_SIZE))
    if isinstance(size, str):
        named = FONT_SIZE_NAMES.get(size.strip().lower())
        if named is not None:
            return named
        try:
            return int(_clamp(round(float(size.strip().rstrip("px"))), MIN_FONT_SIZE, MAX_FONT_SIZE))
        except ValueError:
            return DEFAULT_FONT_SIZE
    return DEFAULT_FONT_SIZE


def normalize_fraction(value: float, name: str) -> float:
    """
    Normalize a crop/region value given either as a fraction (0-1) or a
    percentage (0-100) to a fraction.

    Raises:
        CompileError: If the value is outside [0, 100]
    """
    if value < 0 or value > 100:
        raise CompileError(f"{name} must be within [0, 100], got {value}", {"param": name})
    return value if value <= 1 else value / 100


class OperationParams(BaseModel):
    """Base for every operation's parameters (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TimeWindowParams(OperationParams):
    """Optional ``[start_time, end_time]`` restriction shared by filter-style operations."""

    start_time: Optional[float] = Field(default=None, ge=0)
    end_time: Optional[float] = Field(default=None, ge=0)


class TrimParams(OperationParams):
    start: float = Field(default=0.0, ge=0)
    end: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.end is not None and self.end <= self.start:
            raise ValueError(f"trim end ({self.end}) must be after start ({self.start})")
        return self


class ColorGradeParams(TimeWindowParams):
    preset: Optional[str] = None
    style: Optional[str] = None

    @property
    def grade_name(self) -> Optional[str]:
        return self.preset or self.style


class ApplyEffectParams(TimeWindowParams):
    preset: Optional[str] = None
    intensity: float = 0.5

    @field_validator("intensity", mode="before")
    @classmethod
    def clamp_intensity(cls, v):
        if v is None:
            return 0.5
        return _clamp(float(v), 0.0, 1.0)


class TextParams(TimeWindowParams):
    """Parameters for preset-styled or custom-styled text overlays."""

    text: str = ""
    preset: Optional[str] = None
    text_style: Optional[str] = None
    position: str = "bottom"
    font_size: Optional[int] = None
    font_color: Optional[str] = None
    background_color: Optional[str] = None

    @field_validator("font_size", mode="before")
    @classmethod
    def clamp_font_size(cls, v):
        if v is None or v == "":
            return None
        return parse_font_size(v)

    @field_validator("text", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)

    @property
    def has_custom_style(self) -> bool:
        return bool(self.font_size or self.font_color or self.background_color)


class TransitionParams(OperationParams):
    type: str = "fade"
    preset: Optional[str] = None
    duration: float = 1.0

    @field_validator("duration", mode="before")
    @classmethod
    def minimum_duration(cls, v):
        if v is None:
            return 1.0
        return max(0.5, float(v))

    @property
    def transition_name(self) -> str:
        return self.preset or self.type


class MusicParams(OperationParams):
    volume: float = 0.3
    music_url: Optional[str] = None
    preset: Optional[str] = None

    @field_validator("volume", mode="before")
    @classmethod
    def clamp_volume(cls, v):
        if v is None:
            return 0.3
        return _clamp(float(v), 0.0, 2.0)


class BrandKitParams(OperationParams):
    logo_url: Optional[str] = None
    watermark: Optional[str] = None
    watermark_url: Optional[str] = None
    colors: list[str] = Field(default_factory=list)

    @property
    def watermark_source(self) -> Optional[str]:
        return self.watermark_url or self.watermark


class RemoveClipParams(OperationParams):
    start_time: float = Field(ge=0)
    end_time: float = Field(ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError(f"endTime ({self.end_time}) must be after startTime ({self.start_time})")
        return self


class FilterParams(TimeWindowParams):
    type: str
    value: Optional[float] = None

    @model_validator(mode="after")
    def clamp_noise(self):
        if self.value is not None and self.type.strip().lower() in ("noise", "noise reduction"):
            self.value = _clamp(self.value, 0.0, 100.0)
        return self


class KeyMoment(OperationParams):
    start: float = Field(default=0.0, ge=0)
    end: Optional[float] = None


class TrailerParams(OperationParams):
    duration: float = Field(default=20.0, gt=0)
    key_moments: list[KeyMoment] = Field(default_factory=list)


class CaptionRecord(OperationParams):
    """A timed caption: ``start < end`` (end defaults to start + 3s)."""

    text: str
    start: float = Field(ge=0)
    end: Optional[float] = None

    @model_validator(mode="after")
    def default_end(self):
        if self.end is None:
            self.end = self.start + 3
        if self.end <= self.start:
            raise ValueError(f"caption end ({self.end}) must be after start ({self.start})")
        return self


class CaptionParams(OperationParams):
    """
    Caption burn-in parameters. ``subtitle*`` keys take precedence over
    the short ``color``/``size``/``position`` forms.
    """

    captions: list[CaptionRecord]
    style: str = "Glow"
    subtitle_color: Optional[str] = None
    color: Optional[str] = None
    subtitle_size: Optional[int] = None
    size: Optional[int] = None
    subtitle_position: Optional[str] = None
    position: Optional[str] = None
    background_color: Optional[str] = None
    bg_color: Optional[str] = None
    subtitle_preset: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def apply_subtitle_preset(cls, data):
        # Explicit params win over the preset's values
        if isinstance(data, dict) and data.get("subtitlePreset"):
            merged = get_subtitle_preset(str(data["subtitlePreset"]))
            merged.update(data)
            return merged
        return data

    @field_validator("subtitle_size", "size", mode="before")
    @classmethod
    def clamp_size(cls, v):
        if v is None or v == "":
            return None
        return parse_font_size(v)

    @property
    def resolved_color(self) -> str:
        return self.subtitle_color or self.color or "white"

    @property
    def resolved_size(self) -> int:
        return self.subtitle_size or self.size or DEFAULT_FONT_SIZE

    @property
    def resolved_position(self) -> str:
        return (self.subtitle_position or self.position or "bottom").lower()

    @property
    def resolved_background(self) -> Optional[str]:
        return self.background_color or self.bg_color


class AdjustIntensityParams(OperationParams):
    effect_preset: Optional[str] = None
    new_intensity: Optional[float] = None
    direction: Optional[str] = None

    @property
    def intensity(self) -> float:
        if self.new_intensity is not None:
            return _clamp(self.new_intensity, 0.0, 1.0)
        if self.direction == "more":
            return 0.8
        if self.direction == "less":
            return 0.3
        return 0.5


class AdjustZoomParams(OperationParams):
    new_zoom: Optional[float] = None
    direction: Optional[str] = None

    @property
    def zoom(self) -> float:
        if self.new_zoom is not None:
            return _clamp(self.new_zoom, 0.5, 4.0)
        if self.direction == "in":
            return 1.5
        if self.direction == "out":
            return 0.8
        return 1.0


class SpeedParams(OperationParams):
    speed: float = 1.0

    @field_validator("speed", mode="before")
    @classmethod
    def clamp_speed(cls, v):
        if v is None:
            return 1.0
        v = float(v)
        if v <= 0:
            raise ValueError(f"speed must be positive, got {v}")
        return _clamp(v, MIN_SPEED, MAX_SPEED)


class RotateParams(OperationParams):
    rotation: Optional[float] = None
    angle: Optional[float] = None
    fill_color: str = "black@0"

    @property
    def degrees(self) -> float:
        if self.rotation is not None:
            return self.rotation
        return self.angle or 0.0


class CropParams(OperationParams):
    """Crop rectangle; every field is normalized to a fraction of the frame."""

    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0

    @model_validator(mode="after")
    def normalize(self):
        try:
            self.x = normalize_fraction(self.x, "x")
            self.y = normalize_fraction(self.y, "y")
            self.width = normalize_fraction(self.width, "width")
            self.height = normalize_fraction(self.height, "height")
        except CompileError as e:
            raise ValueError(e.message) from e
        if self.width <= 0 or self.height <= 0:
            raise ValueError("crop width and height must be greater than zero")
        if self.x + self.width > 1 + 1e-9 or self.y + self.height > 1 + 1e-9:
            raise ValueError("crop rectangle extends beyond the frame")
        return self


class RemoveObjectParams(OperationParams):
    region: str = "center"
    method: str = "blur"


class MergeParams(OperationParams):
    clips: list[str] = Field(default_factory=list)


ParamsModel = Union[
    TrimParams, ColorGradeParams, ApplyEffectParams, TextParams, TransitionParams,
    MusicParams, BrandKitParams, RemoveClipParams, FilterParams, TrailerParams,
    CaptionParams, AdjustIntensityParams, AdjustZoomParams, SpeedParams,
    RotateParams, CropParams, RemoveObjectParams, MergeParams,
]

PARAMS_MODELS: dict[OperationKind, type[OperationParams]] = {
    OperationKind.TRIM: TrimParams,
    OperationKind.COLOR_GRADE: ColorGradeParams,
    OperationKind.APPLY_EFFECT: ApplyEffectParams,
    OperationKind.ADD_TEXT: TextParams,
    OperationKind.ADD_TRANSITION: TransitionParams,
    OperationKind.ADD_MUSIC: MusicParams,
    OperationKind.APPLY_BRAND_KIT: BrandKitParams,
    OperationKind.REMOVE_CLIP: RemoveClipParams,
    OperationKind.FILTER: FilterParams,
    OperationKind.GENERATE_TRAILER: TrailerParams,
    OperationKind.ADD_CAPTIONS: CaptionParams,
    OperationKind.CUSTOM_TEXT: TextParams,
    OperationKind.CUSTOM_SUBTITLE: CaptionParams,
    OperationKind.ADJUST_INTENSITY: AdjustIntensityParams,
    OperationKind.ADJUST_ZOOM: AdjustZoomParams,
    OperationKind.ADJUST_SPEED: SpeedParams,
    OperationKind.ROTATE: RotateParams,
    OperationKind.CROP: CropParams,
    OperationKind.REMOVE_OBJECT: RemoveObjectParams,
    OperationKind.MERGE: MergeParams,
}


@dataclass
class Instruction:
    """
    A validated instruction.

    ``operation`` is ``None`` for operation names the engine does not know;
    those are passed through unedited.
    """

    operation: Optional[OperationKind]
    params: Optional[OperationParams]
    raw_operation: str
    raw_params: dict[str, Any] = field(default_factory=dict)

    @property
    def is_known(self) -> bool:
        return self.operation is not None


def _resolve_operation(name: str) -> Optional[OperationKind]:
    try:
        return OperationKind(name)
    except ValueError:
        lowered = name.lower()
        for kind in OperationKind:
            if kind.value.lower() == lowered:
                return kind
        return None


def parse_instruction(operation: str, params: Optional[dict[str, Any]] = None) -> Instruction:
    """
    Validate a raw ``{operation, params}`` pair.

    Args:
        operation: Operation name as emitted by the instruction source
        params: Loosely shaped parameter map

    Returns:
        Instruction with a typed parameter model, or an unknown-operation
        instruction with ``operation=None``

    Raises:
        CompileError: If the parameters are structurally invalid for a known operation
    """
    params = dict(params or {})
    kind = _resolve_operation(operation or "")

    if kind is None:
        return Instruction(operation=None, params=None, raw_operation=operation or "", raw_params=params)

    if kind in (OperationKind.ADD_CAPTIONS, OperationKind.CUSTOM_SUBTITLE):
        captions = params.get("captions")
        if not isinstance(captions, list):
            raise CompileError(
                f"{operation} requires a 'captions' list",
                {"operation": operation, "param": "captions"},
            )

    try:
        model = PARAMS_MODELS[kind].model_validate(params)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise CompileError(
            f"Invalid parameters for {operation}: {errors[0]['loc'] or 'params'}: {errors[0]['msg']}",
            {"operation": operation, "errors": errors},
        ) from e

    if kind == OperationKind.CUSTOM_SUBTITLE:
        logger.debug("Normalizing customSubtitle to addCaptions")
        kind = OperationKind.ADD_CAPTIONS

    return Instruction(operation=kind, params=model, raw_operation=operation, raw_params=params)
