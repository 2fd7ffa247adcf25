"""
Tests for instruction parsing, clamping and normalization.
"""

import pytest

from vedit_engine.errors import CompileError
from vedit_engine.schemas.instructions import (
    CaptionParams,
    CropParams,
    OperationKind,
    parse_font_size,
    parse_instruction,
)


class TestFontSize:
    """Tests for font size clamping."""

    @pytest.mark.parametrize(
        "requested,expected",
        [(9999, 120), (-5, 12), (48, 48), ("72", 72), ("large", 48), (None, 36), ("huge", 36), ("30px", 30)],
    )
    def test_parse(self, requested, expected):
        assert parse_font_size(requested) == expected

    def test_custom_text_clamps(self):
        instruction = parse_instruction("customText", {"text": "Hi", "fontSize": 9999})
        assert instruction.params.font_size == 120


class TestOperationResolution:
    """Tests for operation name handling."""

    def test_known_operation(self):
        instruction = parse_instruction("colorGrade", {"preset": "noir"})
        assert instruction.operation == OperationKind.COLOR_GRADE
        assert instruction.is_known

    def test_case_insensitive(self):
        assert parse_instruction("COLORGRADE", {}).operation == OperationKind.COLOR_GRADE

    def test_unknown_operation(self):
        instruction = parse_instruction("teleport", {"to": "mars"})
        assert instruction.operation is None
        assert not instruction.is_known
        assert instruction.raw_params == {"to": "mars"}

    def test_custom_subtitle_normalized(self):
        instruction = parse_instruction(
            "customSubtitle", {"captions": [{"text": "hi", "start": 0, "end": 1}]}
        )
        assert instruction.operation == OperationKind.ADD_CAPTIONS
        assert instruction.raw_operation == "customSubtitle"


class TestValidation:
    """Tests for structural validation."""

    def test_captions_required(self):
        with pytest.raises(CompileError):
            parse_instruction("addCaptions", {})

    def test_captions_must_be_list(self):
        with pytest.raises(CompileError):
            parse_instruction("addCaptions", {"captions": "hello"})

    def test_caption_end_defaults(self):
        instruction = parse_instruction("addCaptions", {"captions": [{"text": "a", "start": 2}]})
        assert instruction.params.captions[0].end == 5

    def test_caption_end_before_start(self):
        with pytest.raises(CompileError) as exc_info:
            parse_instruction("addCaptions", {"captions": [{"text": "a", "start": 2, "end": 1}]})
        assert exc_info.value.details["errors"]

    def test_trim_range(self):
        with pytest.raises(CompileError):
            parse_instruction("trim", {"start": 5, "end": 2})

    def test_remove_clip_range(self):
        with pytest.raises(CompileError):
            parse_instruction("removeClip", {"startTime": 4, "endTime": 4})

    def test_speed_must_be_positive(self):
        with pytest.raises(CompileError):
            parse_instruction("adjustSpeed", {"speed": 0})

    def test_speed_clamped(self):
        assert parse_instruction("adjustSpeed", {"speed": 10}).params.speed == 4.0
        assert parse_instruction("adjustSpeed", {"speed": 0.1}).params.speed == 0.25


class TestCrop:
    """Tests for crop normalization."""

    def test_percentages_normalized(self):
        params = CropParams.model_validate({"x": 10, "y": 20, "width": 50, "height": 50})
        assert (params.x, params.y, params.width, params.height) == (0.1, 0.2, 0.5, 0.5)

    def test_fractions_kept(self):
        params = CropParams.model_validate({"x": 0.25, "y": 0, "width": 0.5, "height": 1})
        assert params.x == 0.25
        assert params.height == 1

    @pytest.mark.parametrize(
        "params",
        [
            {"width": 150},
            {"x": -1},
            {"x": 60, "width": 50},
            {"width": 0},
        ],
    )
    def test_invalid(self, params):
        with pytest.raises(CompileError):
            parse_instruction("crop", params)


class TestDerivedValues:
    """Tests for params with derived properties."""

    def test_rotation_prefers_rotation_over_angle(self):
        assert parse_instruction("rotate", {"rotation": 90, "angle": 45}).params.degrees == 90
        assert parse_instruction("rotate", {"angle": 45}).params.degrees == 45
        assert parse_instruction("rotate", {}).params.degrees == 0

    def test_adjust_intensity_direction(self):
        assert parse_instruction("adjustIntensity", {"direction": "more"}).params.intensity == 0.8
        assert parse_instruction("adjustIntensity", {"direction": "less"}).params.intensity == 0.3
        assert parse_instruction("adjustIntensity", {"newIntensity": 3}).params.intensity == 1.0

    def test_adjust_zoom_direction(self):
        assert parse_instruction("adjustZoom", {"direction": "in"}).params.zoom == 1.5
        assert parse_instruction("adjustZoom", {"direction": "out"}).params.zoom == 0.8
        assert parse_instruction("adjustZoom", {"newZoom": 10}).params.zoom == 4.0

    def test_explicit_zero_is_not_missing(self):
        assert parse_instruction("adjustIntensity", {"newIntensity": 0, "direction": "more"}).params.intensity == 0.0
        assert parse_instruction("adjustZoom", {"newZoom": 0}).params.zoom == 0.5

    def test_caption_style_resolution(self):
        params = CaptionParams.model_validate({
            "captions": [],
            "subtitleColor": "yellow",
            "color": "red",
            "size": 9999,
            "position": "TOP",
            "bgColor": "black",
        })
        assert params.resolved_color == "yellow"
        assert params.resolved_size == 120
        assert params.resolved_position == "top"
        assert params.resolved_background == "black"

    def test_subtitle_preset_defaults(self):
        params = CaptionParams.model_validate({"captions": [], "subtitlePreset": "bold_boxed"})
        assert params.resolved_color == "yellow"
        assert params.resolved_size == 44
        assert params.resolved_background == "black"
        assert params.style == "Bold"

    def test_subtitle_preset_explicit_values_win(self):
        params = CaptionParams.model_validate({"captions": [], "subtitlePreset": "minimal", "position": "bottom"})
        assert params.resolved_position == "bottom"
        assert params.resolved_size == 28

    def test_unknown_subtitle_preset(self):
        with pytest.raises(CompileError):
            parse_instruction("addCaptions", {"captions": [], "subtitlePreset": "sparkly"})

    def test_effect_intensity_clamped(self):
        assert parse_instruction("applyEffect", {"preset": "blur", "intensity": 7}).params.intensity == 1.0

    def test_transition_minimum_duration(self):
        assert parse_instruction("addTransition", {"duration": 0.1}).params.duration == 0.5
