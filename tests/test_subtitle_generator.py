"""
Tests for ASS subtitle generation.
"""

import pytest

from vedit_engine.errors import CompileError
from vedit_engine.services.subtitle_generator import (
    Caption,
    SubtitleGenerator,
    SubtitleStyle,
    format_ass_time,
    sanitize_caption_text,
    to_ass_color,
)


def dialogue_lines(content):
    return [line for line in content.splitlines() if line.startswith("Dialogue:")]


def style_line(content):
    return next(line for line in content.splitlines() if line.startswith("Style:"))


@pytest.fixture
def generator():
    return SubtitleGenerator()


class TestFormatting:
    """Tests for time, color and text helpers."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00:00.00"), (1.5, "0:00:01.50"), (61.25, "0:01:01.25"), (3661.5, "1:01:01.50"), (-3, "0:00:00.00")],
    )
    def test_format_ass_time(self, seconds, expected):
        assert format_ass_time(seconds) == expected

    def test_named_color(self):
        assert to_ass_color("yellow") == "&H0000FFFF&"
        assert to_ass_color("White") == "&H00FFFFFF&"

    def test_hex_color_is_bgr(self):
        assert to_ass_color("#FF8000") == "&H000080FF&"

    def test_alpha(self):
        assert to_ass_color("black", alpha=0x80) == "&H80000000&"

    def test_unknown_color_uses_default(self):
        assert to_ass_color("chartreuse-ish") == "&H00FFFFFF&"
        assert to_ass_color(None, default="&H000000FF&") == "&H000000FF&"

    def test_ass_color_passthrough(self):
        assert to_ass_color("&H00112233") == "&H00112233&"

    def test_sanitize(self):
        assert sanitize_caption_text("**Wow**, {big}\nnews") == "Wow, \\{big\\}\\Nnews"


class TestRender:
    """Tests for the rendered document."""

    def test_events_in_order(self, generator):
        captions = [Caption("first", 0, 1.5), Caption("second", 1.5, 3), Caption("third, really", 3, 4.25)]
        lines = dialogue_lines(generator.render(captions, SubtitleStyle()))

        assert lines == [
            "Dialogue: 0,0:00:00.00,0:00:01.50,Default,,0,0,0,,first",
            "Dialogue: 0,0:00:01.50,0:00:03.00,Default,,0,0,0,,second",
            "Dialogue: 0,0:00:03.00,0:00:04.25,Default,,0,0,0,,third, really",
        ]

    def test_style_from_request(self, generator):
        content = generator.render(
            [Caption("x", 0, 1)],
            SubtitleStyle(color="yellow", size=44, position="top", emphasis="Bold"),
        )
        fields = style_line(content).split(",")
        assert fields[2] == "44"
        assert fields[3] == "&H0000FFFF&"
        assert fields[7] == "-1"
        assert fields[18] == "8"

    def test_background_uses_opaque_box(self, generator):
        content = generator.render([Caption("x", 0, 1)], SubtitleStyle(background_color="black"))
        fields = style_line(content).split(",")
        assert fields[6] == "&H80000000&"
        assert fields[15] == "3"

    def test_no_background_uses_outline(self, generator):
        fields = style_line(generator.render([Caption("x", 0, 1)], SubtitleStyle())).split(",")
        assert fields[15] == "1"
        assert fields[18] == "2"

    def test_play_resolution(self, generator):
        content = generator.render([Caption("x", 0, 1)], SubtitleStyle(), play_resolution=(1080, 1920))
        assert "PlayResX: 1080\nPlayResY: 1920" in content

    def test_sub_centisecond_caption_keeps_length(self, generator):
        line = dialogue_lines(generator.render([Caption("blink", 1.0, 1.001)], SubtitleStyle()))[0]
        assert line.startswith("Dialogue: 0,0:00:01.00,0:00:01.01,")


class TestGenerate:
    """Tests for writing the file."""

    def test_writes_file(self, generator, tmp_path):
        output = tmp_path / "captions.ass"
        path = generator.generate([Caption("héllo", 0, 1)], SubtitleStyle(), output_path=str(output))

        assert path == str(output)
        content = output.read_text(encoding="utf-8")
        assert content.startswith("[Script Info]")
        assert content.endswith("Default,,0,0,0,,héllo\n")

    def test_allocates_path(self, tmp_path):
        allocated = []

        def allocate(extension, prefix):
            path = str(tmp_path / f"{prefix}.{extension}")
            allocated.append(path)
            return path

        path = SubtitleGenerator(allocate_path=allocate).generate([Caption("x", 0, 1)], SubtitleStyle())
        assert allocated == [path]
        assert path.endswith("subtitles.ass")

    def test_no_captions(self, generator, tmp_path):
        with pytest.raises(CompileError):
            generator.generate([], SubtitleStyle(), output_path=str(tmp_path / "x.ass"))
        assert not (tmp_path / "x.ass").exists()

    def test_inverted_caption(self, generator, tmp_path):
        with pytest.raises(CompileError) as exc_info:
            generator.generate(
                [Caption("ok", 0, 1), Caption("bad", 3, 2)],
                SubtitleStyle(),
                output_path=str(tmp_path / "x.ass"),
            )
        assert exc_info.value.details == {"index": 1}

    def test_no_path_available(self, generator):
        with pytest.raises(CompileError):
            generator.generate([Caption("x", 0, 1)], SubtitleStyle())
