"""
Subtitle Generator Service - Renders timed caption records to a styled ASS track.

Color, size, position and background are resolved once into the ``Default``
style in the header; dialogue events only carry timing and text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from vedit_engine.config import SubtitleStyleDefaults
from vedit_engine.errors import CompileError

logger = logging.getLogger(__name__)


# Vertical positions in ASS format (numpad layout, horizontally centered)
# 7 8 9 (top)
# 4 5 6 (middle)
# 1 2 3 (bottom)
ALIGNMENT_MAP = {
    "top": 8,
    "center": 5,
    "bottom": 2,
}

# Named colors in ASS &HAABBGGRR& form
ASS_COLORS = {
    "white": "&H00FFFFFF&",
    "black": "&H00000000&",
    "red": "&H000000FF&",
    "blue": "&H00FF0000&",
    "green": "&H0000FF00&",
    "yellow": "&H0000FFFF&",
    "cyan": "&H00FFFF00&",
    "magenta": "&H00FF00FF&",
}

# emphasis style -> (bold, outline, shadow)
EMPHASIS_MAP = {
    "glow": (False, 4, 2),
    "bold": (True, 2, 0),
}
DEFAULT_EMPHASIS = (False, 1, 0)

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


@dataclass
class Caption:
    """One timed caption line (seconds)."""

    text: str
    start: float
    end: float


@dataclass
class SubtitleStyle:
    """Everything that determines the look of the generated track."""

    color: str = SubtitleStyleDefaults.color
    size: int = SubtitleStyleDefaults.size
    position: str = SubtitleStyleDefaults.position
    emphasis: str = SubtitleStyleDefaults.emphasis
    background_color: Optional[str] = None
    font_name: str = SubtitleStyleDefaults.font_name


def to_ass_color(color: Optional[str], alpha: int = 0, default: str = "&H00FFFFFF&") -> str:
    """
    Convert a color name or ``#RRGGBB`` hex value to ASS ``&HAABBGGRR&``.

    Values already in ASS form are returned unchanged. Unknown names fall
    back to ``default``.
    """
    if not color:
        return default
    value = color.strip()
    if value.upper().startswith("&H"):
        return value if value.endswith("&") else f"{value}&"

    named = ASS_COLORS.get(value.lower())
    if named is not None:
        return f"&H{alpha:02X}{named[4:]}" if alpha else named

    match = _HEX_COLOR.match(value)
    if match:
        r, g, b = match.groups()
        return f"&H{alpha:02X}{b.upper()}{g.upper()}{r.upper()}&"

    logger.warning(f"Unrecognized subtitle color '{color}', using default")
    return default


def format_ass_time(seconds: float) -> str:
    """Format seconds as ASS time (H:MM:SS.cc)."""
    total_cs = int(round(max(0.0, seconds) * 100))
    centiseconds = total_cs % 100
    total_seconds = total_cs // 100
    secs = total_seconds % 60
    minutes = (total_seconds // 60) % 60
    hours = total_seconds // 3600

    return f"{hours}:{minutes:02d}:{secs:02d}.{centiseconds:02d}"


def sanitize_caption_text(text: str) -> str:
    """
    Prepare caption text for the ASS ``Text`` field.

    Markdown emphasis markers are stripped, braces are escaped so they are
    not read as override blocks, and line breaks become ``\\N``. ``Text`` is
    the last field of a Dialogue line, so commas inside it are literal and
    need no escaping.
    """
    cleaned = text.replace("**", "").replace("*", "")
    cleaned = cleaned.replace("{", "\\{").replace("}", "\\}")
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = cleaned.replace("\n", "\\N")
    return cleaned.strip()


class SubtitleGenerator:
    """
    Generates ASS subtitle files for caption burn-in.

    Args:
        allocate_path: Callable returning a fresh scratch path for a given
            extension and prefix. Used when ``generate`` is not given an
            explicit output path.
    """

    def __init__(self, allocate_path: Optional[Callable[[str, str], str]] = None):
        self._allocate_path = allocate_path

    def generate(
        self,
        captions: Sequence[Caption],
        style: SubtitleStyle,
        output_path: Optional[str] = None,
        play_resolution: Optional[tuple[int, int]] = None,
    ) -> str:
        """
        Write an ASS file for the captions.

        Args:
            captions: Caption records, rendered in the given order
            style: Track style
            output_path: Destination path (allocated from scratch if omitted)
            play_resolution: Source (width, height) so sizes scale to the frame

        Returns:
            Path to the generated .ass file

        Raises:
            CompileError: If there are no captions, a caption has
                ``end <= start``, or no output path can be determined
        """
        if not captions:
            raise CompileError("Cannot generate subtitles from zero caption records")

        for index, caption in enumerate(captions):
            if caption.end <= caption.start:
                raise CompileError(
                    f"Caption {index} ends ({caption.end}) before it starts ({caption.start})",
                    {"index": index},
                )

        if output_path is None:
            if self._allocate_path is None:
                raise CompileError("No output path for subtitle file")
            output_path = self._allocate_path("ass", "subtitles")

        content = self.render(captions, style, play_resolution)

        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)

        logger.debug(f"Generated ASS subtitles: {output_path} ({len(captions)} events)")
        return output_path

    def render(
        self,
        captions: Sequence[Caption],
        style: SubtitleStyle,
        play_resolution: Optional[tuple[int, int]] = None,
    ) -> str:
        """Render the full ASS document as a string."""
        events = [self._dialogue_line(caption) for caption in captions]
        return (
            self._generate_ass_header(style, play_resolution)
            + self._generate_events_header()
            + "\n".join(events)
            + "\n"
        )

    def _generate_ass_header(
        self,
        style: SubtitleStyle,
        play_resolution: Optional[tuple[int, int]],
    ) -> str:
        """Generate ASS header with the single Default style."""
        primary_color = to_ass_color(style.color)
        has_background = bool(style.background_color) and style.background_color != "transparent"
        back_color = (
            to_ass_color(style.background_color, alpha=0x80, default=SubtitleStyleDefaults.background_color)
            if has_background
            else SubtitleStyleDefaults.background_color
        )

        position = (style.position or "bottom").lower()
        alignment = ALIGNMENT_MAP.get(position, ALIGNMENT_MAP["bottom"])
        bold, outline, shadow = EMPHASIS_MAP.get((style.emphasis or "").lower(), DEFAULT_EMPHASIS)
        border_style = 3 if has_background else 1

        resolution = ""
        if play_resolution:
            width, height = play_resolution
            resolution = f"PlayResX: {width}\nPlayResY: {height}\n"

        return f"""[Script Info]
Title: Vedit Captions
ScriptType: v4.00+
WrapStyle: 0
ScaledBorderAndShadow: yes
{resolution}
[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{style.font_name},{style.size},{primary_color},{primary_color},{back_color},{back_color},{-1 if bold else 0},0,0,0,100,100,0,0,{border_style},{outline},{shadow},{alignment},{SubtitleStyleDefaults.margin_l},{SubtitleStyleDefaults.margin_r},{SubtitleStyleDefaults.margin_v},1

"""

    def _generate_events_header(self) -> str:
        """Generate ASS events section header."""
        return "[Events]\nFormat: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"

    def _dialogue_line(self, caption: Caption) -> str:
        start_cs = int(round(caption.start * 100))
        # sub-centisecond captions would otherwise collapse to zero length
        end_cs = max(int(round(caption.end * 100)), start_cs + 1)
        start_time = format_ass_time(start_cs / 100)
        end_time = format_ass_time(end_cs / 100)
        text = sanitize_caption_text(caption.text)
        return f"Dialogue: 0,{start_time},{end_time},Default,,0,0,0,,{text}"

