"""
Auto-Enhance Planner - suggests a list of edit instructions for a video.

Quick mode uses metadata only (resolution, bitrate, duration). Deep mode
asks a content analyzer for suggestions; if the analyzer fails the planner
raises, unless quick-mode fallback is enabled, in which case the downgrade
is reported on the result.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol

import httpx

from vedit_engine.config import Settings, get_settings
from vedit_engine.errors import AnalysisError, MediaEngineError

logger = logging.getLogger(__name__)

EnhanceMode = Literal["quick", "deep"]

DEFAULT_COLOR_GRADE = "cinematic"
NOISE_REDUCTION_STRENGTH = {"strong": 30, "medium": 20, "light": 10}
MAX_EFFECTS = 2


@dataclass
class VideoMetadata:
    """Metadata the quick rules look at."""

    duration_seconds: float
    width: int = 1920
    height: int = 1080
    size_bytes: int = 0
    bitrate: int = 0  # bits per second, 0 when unknown
    format_name: str = "mp4"

    @property
    def bitrate_mbps(self) -> float:
        if self.bitrate > 0:
            return self.bitrate / 1_000_000
        if self.size_bytes > 0 and self.duration_seconds > 0:
            return self.size_bytes / 1024 / 1024 * 8 / self.duration_seconds
        return 0.0

    @property
    def is_low_resolution(self) -> bool:
        return self.width < 1280 or self.height < 720

    @property
    def is_high_resolution(self) -> bool:
        return self.width >= 1920 and self.height >= 1080

    @property
    def is_short(self) -> bool:
        return self.duration_seconds < 10

    @property
    def is_long(self) -> bool:
        return self.duration_seconds > 60

    @property
    def is_very_long(self) -> bool:
        return self.duration_seconds > 300

    @property
    def is_low_bitrate(self) -> bool:
        return self.bitrate_mbps < 2

    @property
    def is_high_bitrate(self) -> bool:
        return self.bitrate_mbps > 10


@dataclass
class EnhancePlan:
    """Suggested instructions plus how they were produced."""

    operations: list[dict[str, Any]]
    suggestions: dict[str, Any]
    mode: EnhanceMode
    warning: Optional[str] = None
    reasoning: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ContentAnalyzer(Protocol):
    """Produces suggestions from the actual content of a video."""

    async def analyze(self, media_url: str, metadata: VideoMetadata) -> dict[str, Any]:
        ...


class HttpContentAnalyzer:
    """
    Content analyzer backed by an external HTTP service.

    The service receives ``{mediaUrl, metadata}`` and answers with a
    suggestions object in the same shape the quick rules produce.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def analyze(self, media_url: str, metadata: VideoMetadata) -> dict[str, Any]:
        if not self.settings.enhance_analyzer_url:
            raise AnalysisError("No content analyzer configured (ENHANCE_ANALYZER_URL)")

        headers = {"Content-Type": "application/json"}
        if self.settings.enhance_analyzer_api_key:
            headers["Authorization"] = f"Bearer {self.settings.enhance_analyzer_api_key}"

        payload = {
            "mediaUrl": media_url,
            "metadata": {
                "duration": metadata.duration_seconds,
                "width": metadata.width,
                "height": metadata.height,
                "format": metadata.format_name,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.settings.enhance_analyzer_timeout_seconds) as client:
                response = await client.post(self.settings.enhance_analyzer_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise AnalysisError(f"Content analysis request failed: {e}") from e
        except ValueError as e:
            raise AnalysisError(f"Content analysis returned invalid JSON: {e}") from e

        suggestions = data.get("suggestions", data) if isinstance(data, dict) else None
        if not isinstance(suggestions, dict):
            raise AnalysisError("Content analysis returned no suggestions")
        return suggestions


def quick_suggestions(metadata: VideoMetadata) -> dict[str, Any]:
    """Metadata-only suggestions."""
    suggestions: dict[str, Any] = {
        "reasoning": "Suggestions based on video resolution, bitrate and duration.",
        "colorGrade": DEFAULT_COLOR_GRADE,
    }

    if metadata.is_high_resolution and metadata.is_high_bitrate:
        suggestions["colorGrade"] = "vibrant" if metadata.is_short else "cinematic"
    elif metadata.is_low_resolution or metadata.is_low_bitrate:
        # lower quality sources show artifacts under strong grades
        suggestions["colorGrade"] = "natural tone"

    if metadata.is_low_bitrate or metadata.is_low_resolution:
        suggestions["noiseReduction"] = {
            "needed": True,
            "intensity": "medium" if metadata.is_low_bitrate else "light",
        }

    if metadata.is_low_bitrate:
        suggestions["saturation"] = {"needed": True, "adjustment": "increase", "amount": 0.15}

    if metadata.is_low_resolution:
        suggestions["effects"] = ["soft focus"]

    if metadata.duration_seconds > 10:
        if metadata.is_short:
            suggestions["music"] = "Upbeat"
        elif metadata.is_long:
            suggestions["music"] = "Cinematic Epic"
        else:
            suggestions["music"] = "Ambient"

    if metadata.duration_seconds > 30:
        suggestions["transitions"] = ["Fade"]

    return suggestions


def build_operations(suggestions: dict[str, Any], duration: float) -> list[dict[str, Any]]:
    """
    Turn a suggestions object into ``{operation, params}`` instructions.

    Never returns an empty list: a color grade is always included.
    """
    operations: list[dict[str, Any]] = []

    color_grade = suggestions.get("colorGrade")
    if color_grade:
        operations.append({"operation": "colorGrade", "params": {"preset": color_grade}})

    noise = suggestions.get("noiseReduction")
    if isinstance(noise, dict) and noise.get("needed"):
        strength = NOISE_REDUCTION_STRENGTH.get(noise.get("intensity", "medium"), 20)
        operations.append({"operation": "filter", "params": {"type": "noise reduction", "value": strength}})

    saturation = suggestions.get("saturation")
    if isinstance(saturation, dict) and saturation.get("needed"):
        amount = saturation.get("amount") or 0.2
        adjustment = saturation.get("adjustment", "increase")
        if adjustment == "increase":
            value = 1 + amount
        elif adjustment == "decrease":
            value = 1 - amount
        else:
            value = 1.0
        operations.append({"operation": "filter", "params": {"type": "saturation", "value": round(value, 3)}})

    effects = suggestions.get("effects")
    if isinstance(effects, list):
        for effect in effects[:MAX_EFFECTS]:
            if "noise" in str(effect).lower():
                continue
            operations.append({"operation": "applyEffect", "params": {"preset": effect, "intensity": 0.5}})

    if suggestions.get("music") and duration > 10:
        operations.append({"operation": "addMusic", "params": {"preset": suggestions["music"]}})

    transitions = suggestions.get("transitions")
    if isinstance(transitions, list) and transitions and duration > 30:
        operations.append({"operation": "addTransition", "params": {"preset": transitions[0]}})

    text = suggestions.get("text")
    if isinstance(text, dict) and text.get("needed") is True and duration > 0:
        content = (text.get("suggestion") or text.get("text") or "").strip()
        if content and content.lower() != "welcome":
            operations.append({
                "operation": "addText",
                "params": {
                    "text": content,
                    "preset": text.get("style", "Bold"),
                    "position": text.get("position", "center"),
                },
            })

    speed = suggestions.get("speed")
    if speed and speed != 1.0 and duration > 0:
        operations.append({"operation": "adjustSpeed", "params": {"speed": speed}})

    if not operations:
        operations.append({"operation": "colorGrade", "params": {"preset": DEFAULT_COLOR_GRADE}})
        suggestions["colorGrade"] = DEFAULT_COLOR_GRADE

    return operations


class EnhancePlanner:
    """
    Plans auto-enhance instructions.

    Args:
        analyzer: Content analyzer for deep mode
        settings: Application settings
    """

    def __init__(self, analyzer: Optional[ContentAnalyzer] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.analyzer = analyzer or HttpContentAnalyzer(self.settings)

    async def plan(
        self,
        media_url: str,
        metadata: VideoMetadata,
        mode: EnhanceMode = "quick",
    ) -> EnhancePlan:
        """
        Suggest instructions for a video.

        Args:
            media_url: Video URL (used by deep analysis)
            metadata: Probed metadata
            mode: ``quick`` (metadata only) or ``deep`` (content analysis)

        Returns:
            EnhancePlan with at least one operation

        Raises:
            AnalysisError: If deep analysis fails and quick fallback is disabled
        """
        summary = {
            "duration": metadata.duration_seconds,
            "resolution": f"{metadata.width}x{metadata.height}",
            "format": metadata.format_name,
            "bitrateMbps": round(metadata.bitrate_mbps, 2),
        }

        if mode == "deep":
            try:
                suggestions = await self.analyzer.analyze(media_url, metadata)
                operations = build_operations(suggestions, metadata.duration_seconds)
                logger.info(f"Deep auto-enhance suggested {len(operations)} operation(s)")
                return EnhancePlan(
                    operations=operations,
                    suggestions=suggestions,
                    mode="deep",
                    reasoning=suggestions.get("reasoning"),
                    metadata=summary,
                )
            except MediaEngineError as e:
                if not self.settings.enhance_quick_fallback:
                    raise
                logger.warning(f"Deep analysis failed, falling back to quick mode: {e}")
                plan = self._quick_plan(metadata, summary)
                plan.warning = f"Deep analysis failed ({e.message}); quick suggestions returned instead"
                return plan

        return self._quick_plan(metadata, summary)

    def _quick_plan(self, metadata: VideoMetadata, summary: dict[str, Any]) -> EnhancePlan:
        suggestions = quick_suggestions(metadata)
        operations = build_operations(suggestions, metadata.duration_seconds)
        logger.info(f"Quick auto-enhance suggested {len(operations)} operation(s)")
        return EnhancePlan(
            operations=operations,
            suggestions=suggestions,
            mode="quick",
            reasoning=suggestions.get("reasoning"),
            metadata=summary,
        )
