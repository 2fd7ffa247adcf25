"""
Region Resolver - maps symbolic positions and named frame regions to
filter coordinate expressions.

Regions are defined once as fractional edges of the frame. Crop rectangles,
overlay offsets and drawbox rectangles are all derived from those edges with
the same truncation, so an isolated region placed back at its overlay offset
lands on exactly the pixels it was cut from.
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

from vedit_engine.services.filter_expr import FilterNode

logger = logging.getLogger(__name__)

DEFAULT_REGION = "center"
DEFAULT_TEXT_POSITION = "bottom"

# drawtext x/y expressions keyed by symbolic position
TEXT_POSITIONS: dict[str, tuple[str, str]] = {
    "top": ("(w-text_w)/2", "50"),
    "bottom": ("(w-text_w)/2", "(h-text_h-50)"),
    "center": ("(w-text_w)/2", "(h-text_h)/2"),
    "left": ("50", "(h-text_h)/2"),
    "right": ("w-text_w-50", "(h-text_h)/2"),
    "top-left": ("50", "50"),
    "top-right": ("w-text_w-50", "50"),
    "bottom-left": ("50", "(h-text_h-50)"),
    "bottom-right": ("w-text_w-50", "(h-text_h-50)"),
}


@dataclass(frozen=True)
class FractionalRect:
    """A rectangle expressed as fractions of the frame: [x0, x1) x [y0, y1)."""

    x0: Fraction
    y0: Fraction
    x1: Fraction
    y1: Fraction


@dataclass(frozen=True)
class PixelRect:
    """A concrete rectangle in pixels."""

    x: int
    y: int
    width: int
    height: int


def _f(numerator: int, denominator: int = 1) -> Fraction:
    return Fraction(numerator, denominator)


# Regions to isolate (blur / black-out)
REGIONS: dict[str, FractionalRect] = {
    "left": FractionalRect(_f(0), _f(0), _f(1, 3), _f(1)),
    "right": FractionalRect(_f(2, 3), _f(0), _f(1), _f(1)),
    "top": FractionalRect(_f(0), _f(0), _f(1), _f(1, 3)),
    "bottom": FractionalRect(_f(0), _f(2, 3), _f(1), _f(1)),
    "center": FractionalRect(_f(1, 4), _f(1, 4), _f(3, 4), _f(3, 4)),
}

# Area kept when a region is cropped away
KEEP_REGIONS: dict[str, FractionalRect] = {
    "left": FractionalRect(_f(1, 3), _f(0), _f(1), _f(1)),
    "right": FractionalRect(_f(0), _f(0), _f(2, 3), _f(1)),
    "top": FractionalRect(_f(0), _f(1, 3), _f(1), _f(1)),
    "bottom": FractionalRect(_f(0), _f(0), _f(1), _f(2, 3)),
    "center": FractionalRect(_f(1, 8), _f(1, 8), _f(7, 8), _f(7, 8)),
}


def _edge(variable: str, fraction: Fraction) -> str:
    """Expression for ``trunc(variable * fraction)`` with trivial cases folded."""
    if fraction == 0:
        return "0"
    if fraction == 1:
        return variable
    return f"trunc({variable}*{fraction.numerator}/{fraction.denominator})"


def _span(variable: str, start: Fraction, end: Fraction) -> str:
    if start == 0:
        return _edge(variable, end)
    return f"{_edge(variable, end)}-{_edge(variable, start)}"


def _pixel_edge(size: int, fraction: Fraction) -> int:
    return int(size * fraction.numerator // fraction.denominator)


@dataclass(frozen=True)
class ResolvedRegion:
    """Every coordinate form of one named region."""

    name: str
    rect: FractionalRect

    def crop_node(self) -> FilterNode:
        """``crop`` isolating the region (input variables ``iw``/``ih``)."""
        r = self.rect
        return FilterNode(
            "crop",
            w=_span("iw", r.x0, r.x1),
            h=_span("ih", r.y0, r.y1),
            x=_edge("iw", r.x0),
            y=_edge("ih", r.y0),
            exact=1,
        )

    def overlay_node(self) -> FilterNode:
        """``overlay`` placing a processed region back (main frame is ``W``/``H``)."""
        return FilterNode(
            "overlay",
            x=_edge("W", self.rect.x0),
            y=_edge("H", self.rect.y0),
        )

    def drawbox_node(self, color: str = "black@1.0") -> FilterNode:
        """Filled ``drawbox`` covering the region."""
        r = self.rect
        return FilterNode(
            "drawbox",
            x=_edge("iw", r.x0),
            y=_edge("ih", r.y0),
            w=_span("iw", r.x0, r.x1),
            h=_span("ih", r.y0, r.y1),
            color=color,
            t="fill",
        )

    def pixel_rect(self, width: int, height: int) -> PixelRect:
        """Evaluate the region for a concrete frame size."""
        r = self.rect
        x = _pixel_edge(width, r.x0)
        y = _pixel_edge(height, r.y0)
        return PixelRect(
            x=x,
            y=y,
            width=_pixel_edge(width, r.x1) - x,
            height=_pixel_edge(height, r.y1) - y,
        )


class RegionResolver:
    """Resolves symbolic names to coordinate expressions."""

    def __init__(
        self,
        regions: Optional[dict[str, FractionalRect]] = None,
        keep_regions: Optional[dict[str, FractionalRect]] = None,
        text_positions: Optional[dict[str, tuple[str, str]]] = None,
    ):
        self.regions = regions or REGIONS
        self.keep_regions = keep_regions or KEEP_REGIONS
        self.text_positions = text_positions or TEXT_POSITIONS

    def resolve(self, name: Optional[str]) -> ResolvedRegion:
        """
        Resolve a named region, falling back to ``center`` for unknown names.

        Args:
            name: Region name (left, right, top, bottom, center)

        Returns:
            ResolvedRegion with crop, overlay and drawbox forms
        """
        key = (name or DEFAULT_REGION).strip().lower()
        if key not in self.regions:
            logger.warning(f"Unknown region '{name}', using {DEFAULT_REGION}")
            key = DEFAULT_REGION
        return ResolvedRegion(key, self.regions[key])

    def resolve_keep(self, name: Optional[str]) -> ResolvedRegion:
        """Resolve the area that remains when ``name`` is cropped away."""
        key = (name or DEFAULT_REGION).strip().lower()
        if key not in self.keep_regions:
            logger.warning(f"Unknown region '{name}', using {DEFAULT_REGION}")
            key = DEFAULT_REGION
        return ResolvedRegion(key, self.keep_regions[key])

    def text_position(self, position: Optional[str]) -> tuple[str, str]:
        """drawtext ``(x, y)`` expressions for a symbolic position (default bottom)."""
        key = (position or DEFAULT_TEXT_POSITION).strip().lower()
        return self.text_positions.get(key, self.text_positions[DEFAULT_TEXT_POSITION])
