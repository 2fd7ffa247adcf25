"""
Tests for region and text-position resolution.
"""

import pytest

from vedit_engine.services.region_resolver import (
    KEEP_REGIONS,
    REGIONS,
    TEXT_POSITIONS,
    RegionResolver,
)

FRAME_SIZES = [(1920, 1080), (1280, 720), (1081, 1921), (7, 5)]


@pytest.fixture
def resolver():
    return RegionResolver()


class TestRegions:
    """Tests for named region expressions."""

    def test_left_crop(self, resolver):
        node = resolver.resolve("left").crop_node()
        assert node.options == {"w": "trunc(iw*1/3)", "h": "ih", "x": "0", "y": "0", "exact": 1}

    def test_center_crop(self, resolver):
        node = resolver.resolve("center").crop_node()
        assert node.options["x"] == "trunc(iw*1/4)"
        assert node.options["w"] == "trunc(iw*3/4)-trunc(iw*1/4)"

    def test_unknown_region_falls_back_to_center(self, resolver):
        assert resolver.resolve("somewhere").name == "center"
        assert resolver.resolve(None).name == "center"

    def test_case_insensitive(self, resolver):
        assert resolver.resolve("  RIGHT ").name == "right"

    def test_drawbox_is_filled(self, resolver):
        node = resolver.resolve("bottom").drawbox_node()
        assert node.options["t"] == "fill"
        assert node.options["y"] == "trunc(ih*2/3)"

    @pytest.mark.parametrize("name", sorted(REGIONS))
    def test_overlay_lands_on_crop_origin(self, resolver, name):
        region = resolver.resolve(name)
        crop = region.crop_node().options
        overlay = region.overlay_node().options
        assert overlay["x"] == crop["x"].replace("iw", "W")
        assert overlay["y"] == crop["y"].replace("ih", "H")

    @pytest.mark.parametrize("name", sorted(REGIONS))
    @pytest.mark.parametrize("size", FRAME_SIZES)
    def test_region_within_frame(self, resolver, name, size):
        width, height = size
        rect = resolver.resolve(name).pixel_rect(width, height)
        assert rect.x >= 0 and rect.y >= 0
        assert rect.x + rect.width <= width
        assert rect.y + rect.height <= height
        assert rect.width > 0 and rect.height > 0

    @pytest.mark.parametrize("name", ["left", "right", "top", "bottom"])
    @pytest.mark.parametrize("size", FRAME_SIZES)
    def test_region_and_keep_area_tile_the_frame(self, resolver, name, size):
        width, height = size
        removed = resolver.resolve(name).pixel_rect(width, height)
        kept = resolver.resolve_keep(name).pixel_rect(width, height)

        if name in ("left", "right"):
            assert removed.height == kept.height == height
            assert removed.width + kept.width >= width
            left, right = (removed, kept) if name == "left" else (kept, removed)
            assert left.x == 0
            assert left.x + left.width <= right.x + right.width == width
        else:
            assert removed.width == kept.width == width
            assert removed.height + kept.height >= height
            top, bottom = (removed, kept) if name == "top" else (kept, removed)
            assert top.y == 0
            assert bottom.y + bottom.height == height

    def test_keep_regions_cover_every_region_name(self):
        assert set(KEEP_REGIONS) == set(REGIONS)


class TestTextPositions:
    """Tests for drawtext positions."""

    def test_bottom(self, resolver):
        assert resolver.text_position("bottom") == ("(w-text_w)/2", "(h-text_h-50)")

    def test_default_is_bottom(self, resolver):
        assert resolver.text_position(None) == TEXT_POSITIONS["bottom"]
        assert resolver.text_position("nowhere") == TEXT_POSITIONS["bottom"]

    def test_corner(self, resolver):
        assert resolver.text_position("Top-Right") == ("w-text_w-50", "50")
