"""
Configuration module using Pydantic Settings for environment variable management.

Only deployment-specific values are exposed as environment variables. Encoder
tuning and other processing constants are hardcoded as read-only properties.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class SubtitleStyleDefaults:
    """Subtitle styling defaults applied when a caption request omits a field."""

    font_name: str = "Arial"
    color: str = "white"
    size: int = 36
    position: Literal["top", "center", "bottom"] = "bottom"
    emphasis: str = "Glow"
    background_color: str = "&H80000000&"  # 50% black, used only when a box is requested
    margin_l: int = 10
    margin_r: int = 10
    margin_v: int = 30


# ============================================================
# SUBTITLE PRESETS
# ============================================================

class SubtitlePreset:
    """
    Named subtitle looks selectable from an edit request instead of
    spelling out color/size/position individually.
    """
    CLASSIC = "classic"
    GLOW = "glow"
    BOLD_BOXED = "bold_boxed"
    MINIMAL = "minimal"


def get_subtitle_preset(preset_id: str) -> dict:
    """
    Get caption parameters for a given subtitle preset ID.

    Args:
        preset_id: One of the SubtitlePreset constants

    Returns:
        Dict of caption parameters (color, size, position, style, backgroundColor)

    Raises:
        ValueError: If preset_id is not recognized
    """
    presets = {
        SubtitlePreset.CLASSIC: {
            "color": "white",
            "size": 36,
            "position": "bottom",
            "style": "plain",
        },
        SubtitlePreset.GLOW: {
            "color": "white",
            "size": 40,
            "position": "bottom",
            "style": "Glow",
        },
        SubtitlePreset.BOLD_BOXED: {
            "color": "yellow",
            "size": 44,
            "position": "bottom",
            "style": "Bold",
            "backgroundColor": "black",
        },
        SubtitlePreset.MINIMAL: {
            "color": "white",
            "size": 28,
            "position": "top",
            "style": "plain",
        },
    }

    key = preset_id.lower()
    if key not in presets:
        valid_presets = list(presets.keys())
        raise ValueError(f"Unknown subtitle preset: {preset_id}. Valid presets: {valid_presets}")

    return dict(presets[key])


def get_available_subtitle_presets() -> list[str]:
    """IDs accepted by ``get_subtitle_preset``."""
    return [
        SubtitlePreset.CLASSIC,
        SubtitlePreset.GLOW,
        SubtitlePreset.BOLD_BOXED,
        SubtitlePreset.MINIMAL,
    ]


class Settings(BaseSettings):
    """
    Application settings.

    Deployment and encoder choices come from environment variables;
    output layout values are hardcoded for consistent results.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES
    # ============================================================

    # Application
    app_name: str = "vedit-engine"
    debug: bool = False
    log_level: str = "INFO"

    # Artifact storage
    storage_backend: Literal["s3", "local"] = "s3"
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_bucket: str = "vedit-media"
    public_base_url: Optional[str] = None  # CDN in front of the bucket, if any
    local_output_directory: str = "./output"

    # Scratch space shared by all in-flight transformations
    scratch_directory: str = "/tmp/vedit"

    # Bare paths and file:// sources are only read from under this directory;
    # unset means local sources are refused
    local_source_root: Optional[str] = None

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_preset: str = "medium"
    ffmpeg_crf: int = 23

    # Security - API authentication
    vedit_api_key: Optional[str] = None

    # Timeouts (seconds)
    download_timeout_seconds: float = 300.0
    upload_timeout_seconds: float = 300.0
    transcode_timeout_seconds: float = 900.0

    # Performance tuning
    max_concurrent_edits: int = 4

    # Failure policy
    serve_original_on_failure: bool = True  # HTTP route re-serves the source URL when an edit fails
    enhance_quick_fallback: bool = False  # allow deep auto-enhance to degrade to quick mode

    # Deep auto-enhance content analysis service (optional)
    enhance_analyzer_url: Optional[str] = None
    enhance_analyzer_api_key: Optional[str] = None
    enhance_analyzer_timeout_seconds: float = 60.0

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    @property
    def jpeg_quality(self) -> int:
        return 2

    @property
    def processed_folder(self) -> str:
        return "vedit/processed"

    @property
    def merged_folder(self) -> str:
        return "vedit/merged"

    @property
    def default_video_extension(self) -> str:
        return "mp4"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
