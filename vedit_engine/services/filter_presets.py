"""
Preset tables - the single source of truth for what every named look means.

Each table maps a lowercase preset name to filter parameters. Adding a preset
means adding one entry here; the compiler never special-cases names.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from vedit_engine.services.filter_expr import FilterNode, format_number

# Intensity at which every effect renders its reference parameters.
REFERENCE_INTENSITY = 0.5
DEFAULT_TRANSITION = "fade"
MIN_TRANSITION_DURATION = 0.5


# ============================================================
# COLOR GRADES
# ============================================================

@dataclass(frozen=True)
class ColorGrade:
    """``eq`` parameters plus optional follow-up filters."""

    contrast: Optional[float] = None
    brightness: Optional[float] = None
    saturation: Optional[float] = None
    gamma: Optional[float] = None
    curves_preset: Optional[str] = None

    def nodes(self) -> list[FilterNode]:
        nodes = [
            FilterNode(
                "eq",
                contrast=self.contrast,
                brightness=self.brightness,
                saturation=self.saturation,
                gamma=self.gamma,
            )
        ]
        if self.curves_preset:
            nodes.append(FilterNode("curves", preset=self.curves_preset))
        return nodes


COLOR_GRADES: dict[str, ColorGrade] = {
    "warm": ColorGrade(gamma=1.1, saturation=1.1, brightness=0.05),
    "cool": ColorGrade(gamma=0.95, saturation=0.9, brightness=-0.05),
    "vintage": ColorGrade(contrast=1.2, saturation=0.8, brightness=0.1),
    "moody": ColorGrade(contrast=1.3, saturation=0.7, brightness=-0.1),
    "cinematic": ColorGrade(contrast=1.1, brightness=0.05, saturation=0.9),
    "teal-orange": ColorGrade(gamma=1.1, saturation=1.3),
    "noir": ColorGrade(contrast=1.5, saturation=0.0, brightness=-0.2),
    "sepia": ColorGrade(saturation=0.5, curves_preset="vintage"),
    "dreamy": ColorGrade(gamma=1.05, brightness=0.05, saturation=0.95),
    "pastel": ColorGrade(saturation=0.6, brightness=0.1),
    "vibrant": ColorGrade(contrast=1.2, saturation=1.4, brightness=0.05),
    "muted": ColorGrade(contrast=1.1, saturation=0.7, brightness=-0.05),
    "cyberpunk": ColorGrade(contrast=1.4, saturation=1.5, brightness=0.2),
    "neon": ColorGrade(contrast=1.3, saturation=1.6, brightness=0.1),
    "golden hour": ColorGrade(gamma=1.15, saturation=1.2, brightness=0.1),
    "high contrast": ColorGrade(contrast=1.5, brightness=0.05, saturation=1.2),
    "washed film": ColorGrade(contrast=0.9, saturation=0.6, brightness=0.15),
    "studio tone": ColorGrade(contrast=1.2, brightness=0.0, saturation=1.0),
    "soft skin": ColorGrade(gamma=1.05, brightness=0.1, saturation=0.9),
    "shadow boost": ColorGrade(gamma=1.1, brightness=-0.1, contrast=1.2),
    "natural tone": ColorGrade(contrast=1.05, brightness=0.0, saturation=1.0),
    "bright punch": ColorGrade(contrast=1.3, brightness=0.1, saturation=1.3),
    "black & white": ColorGrade(saturation=0.0),
    "orange tint": ColorGrade(gamma=1.1, saturation=1.2),
    "monochrome": ColorGrade(saturation=0.0),
    "cinematic lut": ColorGrade(contrast=1.1, brightness=0.05, saturation=0.95),
    "sunset glow": ColorGrade(gamma=1.2, saturation=1.4, brightness=0.15),
}


# ============================================================
# VISUAL EFFECTS
# ============================================================

@dataclass(frozen=True)
class Effect:
    """
    A visual effect. ``build`` receives the intensity scale (1.0 at the
    reference intensity) and returns the filter chain. ``mirror`` style
    effects that need more than one pad set ``complex`` and are assembled by
    the compiler.
    """

    build: Callable[[float], list[FilterNode]]
    complex: bool = False


def _noise(strength: float, flags: str = "t+u") -> FilterNode:
    return FilterNode("noise", alls=round(max(0.0, min(100.0, strength))), allf=flags)


EFFECTS: dict[str, Effect] = {
    "blur": Effect(lambda k: [FilterNode("boxblur", format_number(2 + (k * REFERENCE_INTENSITY) * 4), 1)]),
    "glow": Effect(lambda k: [FilterNode("curves", preset="strong_contrast")]),
    "vhs": Effect(lambda k: [_noise(20 * k)]),
    "motion": Effect(lambda k: [FilterNode("hue", h=45)]),
    "film grain": Effect(lambda k: [_noise(10 * k, "t")]),
    "lens flare": Effect(lambda k: [FilterNode("eq", brightness=0.1, contrast=1.2)]),
    "bokeh": Effect(lambda k: [FilterNode("boxblur", 10, 5)]),
    "light leak": Effect(lambda k: [FilterNode("eq", brightness=0.15, saturation=1.2)]),
    "pixelate": Effect(lambda k: [
        FilterNode("scale", "iw/10", "ih/10"),
        FilterNode("scale", "iw*10", "ih*10", flags="neighbor"),
    ]),
    "distortion": Effect(lambda k: [FilterNode("lenscorrection", k1=0.2)]),
    "chromatic aberration": Effect(lambda k: [FilterNode("rgbashift", rh=2, gh=-2, bh=4)]),
    "shake": Effect(lambda k: [FilterNode("crop", "iw-20", "ih-20", "random(1)*20", "random(1)*20")]),
    "sparkle": Effect(lambda k: [FilterNode("eq", brightness=0.1, contrast=1.3)]),
    "shadow pulse": Effect(lambda k: [FilterNode("vignette", "PI/6")]),
    "dreamy glow": Effect(lambda k: [
        FilterNode("boxblur", 4, 2),
        FilterNode("eq", brightness=0.1, saturation=1.2),
    ]),
    "glitch flicker": Effect(lambda k: [FilterNode("hue", s=300)]),
    "zoom-in pulse": Effect(lambda k: [FilterNode("zoompan", z=1.1, d=1)]),
    "soft focus": Effect(lambda k: [FilterNode("boxblur", 3, 1)]),
    "old film": Effect(lambda k: [_noise(15 * k), FilterNode("hue", s=0.8)]),
    "dust overlay": Effect(lambda k: [_noise(5 * k)]),
    "light rays": Effect(lambda k: [FilterNode("eq", brightness=0.05, contrast=1.4)]),
    "mirror": Effect(lambda k: [], complex=True),
    "tilt shift": Effect(lambda k: [FilterNode("vignette", "PI/4")]),
    "fisheye": Effect(lambda k: [FilterNode("lenscorrection", k1=0.5)]),
    "bloom": Effect(lambda k: [
        FilterNode("boxblur", 8, 3),
        FilterNode("eq", brightness=0.1),
    ]),
}


def intensity_scale(intensity: float) -> float:
    return intensity / REFERENCE_INTENSITY


# ============================================================
# TRANSITIONS
# ============================================================

@dataclass(frozen=True)
class Transition:
    """
    An intro transition of duration ``d`` seconds.

    ``build`` returns a plain chain. ``reveal`` transitions slide the clip in
    over black and are given as ``(x, y)`` overlay expressions of ``t`` and
    ``d``; the compiler turns those into a complex graph.
    """

    build: Optional[Callable[[float], list[FilterNode]]] = None
    reveal: Optional[Callable[[float], tuple[str, str]]] = None


def _fade(duration: float, start: float = 0.0, kind: str = "in", **extra) -> FilterNode:
    return FilterNode("fade", t=kind, st=format_number(start), d=format_number(duration), **extra)


def _during(node: FilterNode, duration: float) -> FilterNode:
    return node.set("enable", f"between(t,0,{format_number(duration)})")


def _progress(d: float) -> str:
    """Transition progress in [0, 1]."""
    return f"min(t/{format_number(d)},1)"


TRANSITIONS: dict[str, Transition] = {
    "fade": Transition(build=lambda d: [_fade(d)]),
    "slide": Transition(reveal=lambda d: (f"-W+W*{_progress(d)}", "0")),
    "wipe": Transition(reveal=lambda d: ("0", f"-H+H*{_progress(d)}")),
    "zoom": Transition(build=lambda d: [
        FilterNode("zoompan", z="if(lte(zoom,1.0),1.5,max(1.001,zoom-0.0015))", d=1),
    ]),
    "cross dissolve": Transition(build=lambda d: [_fade(d), _fade(d, start=d, kind="out")]),
    "blur in/out": Transition(build=lambda d: [_during(FilterNode("boxblur", 8, 3), d), _fade(d)]),
    "spin": Transition(build=lambda d: [FilterNode("rotate", f"2*PI*(1-{_progress(d)})")]),
    "morph cut": Transition(build=lambda d: [_fade(d * 0.5)]),
    "split reveal": Transition(reveal=lambda d: (f"W/2*(1-{_progress(d)})", "0")),
    "flash": Transition(build=lambda d: [
        FilterNode("eq", brightness=f"if(lt(t,{format_number(d)}),sin(PI*t/{format_number(d)}),0)", eval="frame"),
    ]),
    "zoom blur": Transition(build=lambda d: [
        _during(FilterNode("boxblur", 4, 1), d),
        FilterNode("zoompan", z=1.1, d=1),
    ]),
    "cube rotate": Transition(build=lambda d: [FilterNode("rotate", f"PI*0.5*(1-{_progress(d)})")]),
    "3d flip": Transition(build=lambda d: [FilterNode("rotate", f"PI*(1-{_progress(d)})"), _fade(d)]),
    "warp": Transition(build=lambda d: [_during(FilterNode("lenscorrection", k1=-0.1), d), _fade(d)]),
    "ripple": Transition(build=lambda d: [
        FilterNode("rotate", f"0.05*sin(4*PI*t/{format_number(d)})*(1-{_progress(d)})"),
    ]),
    "glitch transition": Transition(build=lambda d: [_during(FilterNode("hue", s=300), d), _fade(d)]),
    "luma fade": Transition(build=lambda d: [_fade(d, alpha=1)]),
    "light sweep": Transition(build=lambda d: [
        FilterNode("eq", brightness=f"if(lt(t,{format_number(d)}),0.3*sin(PI*t/{format_number(d)}),0)", eval="frame"),
    ]),
    "stretch pull": Transition(reveal=lambda d: (f"W*(1-{_progress(d)})", "0")),
    "film roll": Transition(build=lambda d: [
        FilterNode("vignette", angle=f"PI/2*(1-{_progress(d)})", eval="frame"),
    ]),
    "page turn": Transition(build=lambda d: [
        FilterNode("rotate", f"PI*0.5*(1-{_progress(d)})", ow="iw", oh="ih"),
    ]),
    "diagonal wipe": Transition(reveal=lambda d: (f"-W+W*{_progress(d)}", f"-H+H*{_progress(d)}")),
    "motion blur transition": Transition(build=lambda d: [_during(FilterNode("boxblur", 10, 5), d), _fade(d)]),
    "cinematic cut": Transition(build=lambda d: [_fade(d * 0.3)]),
}


# ============================================================
# FILTERS
# ============================================================

FILTER_BUILDERS: dict[str, Callable[[Optional[float]], FilterNode]] = {
    "blur": lambda value: FilterNode("boxblur", 2, 1),
    "sharpen": lambda value: FilterNode("unsharp", 5, 5, 1.0, 5, 5, 0.0),
    "grayscale": lambda value: FilterNode("hue", s=0),
    "saturation": lambda value: FilterNode("eq", saturation=1.0 if value is None else value),
    "noise": lambda value: _noise(20 if value is None else value),
    "noise reduction": lambda value: _noise(20 if value is None else value),
}


# ============================================================
# TEXT STYLES
# ============================================================

@dataclass(frozen=True)
class Shadow:
    color: str
    x: int
    y: int


@dataclass(frozen=True)
class TextBox:
    color: str
    border_width: int


@dataclass(frozen=True)
class TextStyle:
    """drawtext styling for a text preset."""

    font_size: int = 48
    font_color: str = "white"
    border_width: int = 2
    border_color: str = "black"
    shadow: Optional[Shadow] = None
    box: Optional[TextBox] = None
    default_text: str = "Text"


DEFAULT_TEXT_PRESET = "subtitle"

TEXT_STYLES: dict[str, TextStyle] = {
    "subtitle": TextStyle(font_size=36, border_width=3, shadow=Shadow("black@0.8", 2, 2), default_text="Your Subtitle"),
    "caption overlay": TextStyle(font_size=36, border_width=3, shadow=Shadow("black@0.8", 2, 2), default_text="Caption"),
    "minimal": TextStyle(font_size=40, font_color="white@0.9", border_width=0, default_text="Minimal"),
    "bold": TextStyle(font_size=56, border_width=3, shadow=Shadow("black@0.9", 3, 3), default_text="BOLD"),
    "cinematic": TextStyle(font_size=52, font_color="yellow", shadow=Shadow("black@1.0", 0, 4), default_text="CINEMATIC"),
    "retro": TextStyle(font_size=44, font_color="cyan", shadow=Shadow("black@0.9", 2, 2), default_text="RETRO"),
    "handwritten": TextStyle(font_size=42, font_color="black", border_width=0, shadow=Shadow("white@0.5", 1, 1), default_text="Handwritten"),
    "neon glow": TextStyle(font_size=54, font_color="cyan", border_width=4, border_color="cyan", shadow=Shadow("cyan@0.8", 0, 0), default_text="NEON"),
    "typewriter": TextStyle(font_size=38, font_color="lime", box=TextBox("black@0.7", 5), default_text="Typewriter"),
    "glitch": TextStyle(font_size=50, font_color="magenta", border_width=3, border_color="yellow", shadow=Shadow("cyan@0.7", -2, -2), default_text="GLITCH"),
    "lower third": TextStyle(font_size=42, border_width=3, box=TextBox("black@0.8", 8), default_text="Lower Third"),
    "gradient": TextStyle(font_size=48, shadow=Shadow("black@0.9", 2, 2), default_text="Gradient"),
    "fade-in title": TextStyle(font_size=58, shadow=Shadow("black@1.0", 0, 4), default_text="Title"),
    "3d text": TextStyle(font_size=54, border_width=5, shadow=Shadow("black@0.5", -3, -3), default_text="3D TEXT"),
    "shadowed": TextStyle(font_size=48, border_width=0, shadow=Shadow("black@0.8", 5, 5), default_text="Shadowed"),
    "animated quote": TextStyle(font_size=40, box=TextBox("white@0.2", 3), default_text="Quote"),
    "headline": TextStyle(font_size=60, border_width=0, shadow=Shadow("black@1.0", 0, 6), default_text="HEADLINE"),
    "modern sans": TextStyle(font_size=46, border_width=0, default_text="Modern"),
    "serif classic": TextStyle(font_size=44, font_color="wheat", border_width=1, shadow=Shadow("black@0.6", 2, 2), default_text="Classic"),
    "story caption": TextStyle(font_size=32, border_width=0, box=TextBox("black@0.5", 10), default_text="Story"),
    "kinetic title": TextStyle(font_size=56, border_width=3, shadow=Shadow("black@0.9", 0, 3), default_text="KINETIC"),
    "news banner": TextStyle(font_size=44, font_color="yellow", box=TextBox("red@0.9", 5), default_text="NEWS"),
    "outline text": TextStyle(font_size=52, border_width=5, border_color="white", default_text="OUTLINE"),
    "glow edge": TextStyle(font_size=50, border_width=6, border_color="white", shadow=Shadow("white@0.3", 0, 0), default_text="GLOW"),
    "floating text": TextStyle(font_size=40, border_width=0, shadow=Shadow("black@0.6", 2, 2), default_text="Floating"),
}

BASE_TEXT_STYLE = TextStyle()


def lookup(table: dict, name: Optional[str]):
    """Case-insensitive table lookup returning ``None`` for unknown names."""
    if not name:
        return None
    return table.get(name.strip().lower())


def preset_catalog() -> dict[str, list[str]]:
    """Preset names grouped by category, for the presets endpoint."""
    return {
        "colorGrades": sorted(COLOR_GRADES),
        "effects": sorted(EFFECTS),
        "transitions": sorted(TRANSITIONS),
        "filters": sorted(FILTER_BUILDERS),
        "textStyles": sorted(TEXT_STYLES),
    }
