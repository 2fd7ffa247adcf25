"""
Tests for the filter expression builder and its escaping rules.
"""

import pytest

from vedit_engine.services.filter_expr import (
    ComplexFilterGraph,
    FilterChain,
    FilterNode,
    chain_with_time_window,
    escape_drawtext_text,
    escape_filter_path,
    escape_filter_value,
    format_number,
    time_window_expression,
    with_time_window,
)


class TestFormatNumber:
    """Tests for compact number rendering."""

    @pytest.mark.parametrize(
        "value,expected",
        [(1.0, "1"), (0.05, "0.05"), (-0.2, "-0.2"), (0.0, "0"), (3, "3"), (1.5, "1.5")],
    )
    def test_format(self, value, expected):
        assert format_number(value) == expected

    def test_bool(self):
        assert format_number(True) == "1"


class TestEscaping:
    """Tests for the option/graph/drawtext escaping levels."""

    def test_plain_value_unchanged(self):
        assert escape_filter_value("(w-text_w)/2") == "(w-text_w)/2"

    def test_commas_escaped_for_graph(self):
        assert escape_filter_value("between(t,1,2)") == r"between(t\,1\,2)"

    def test_colon_escaped_twice(self):
        # option level: ':' -> '\:'; graph level then escapes the backslash
        assert escape_filter_value("a:b") == r"a\\:b"

    def test_quote_and_brackets(self):
        assert escape_filter_value("it's [x]") == r"it\\\'s \[x\]"

    def test_drawtext_percent(self):
        assert escape_drawtext_text("50%") == r"50\%"

    def test_drawtext_full_pipeline(self):
        node = FilterNode("drawtext", text=escape_drawtext_text("Don't: 50%"))
        assert node.render() == r"drawtext=text=Don\\\'t\\: 50\\\\%"

    def test_windows_path(self):
        assert escape_filter_path("C:\\tmp\\vedit\\subs.ass", platform="win32") == "C:/tmp/vedit/subs.ass"

    def test_windows_path_rendered(self):
        node = FilterNode("subtitles", filename=escape_filter_path("C:\\tmp\\subs.ass", platform="win32"))
        assert node.render() == r"subtitles=filename=C\\:/tmp/subs.ass"

    def test_posix_path_untouched(self):
        assert escape_filter_path("/tmp/vedit/subs.ass", platform="linux") == "/tmp/vedit/subs.ass"


class TestFilterNode:
    """Tests for FilterNode rendering."""

    def test_no_arguments(self):
        assert FilterNode("hflip").render() == "hflip"

    def test_positional_then_options(self):
        node = FilterNode("boxblur", 10, 1, enable="gte(t,2)")
        assert node.render() == "boxblur=10:1:enable=gte(t\\,2)"

    def test_none_options_dropped(self):
        node = FilterNode("eq", contrast=1.5, brightness=None, saturation=0.0)
        assert node.render() == "eq=contrast=1.5:saturation=0"

    def test_set_overrides(self):
        node = FilterNode("drawbox", color="red").set("color", "black")
        assert node.render() == "drawbox=color=black"


class TestChainsAndGraphs:
    """Tests for simple chains and complex graphs."""

    def test_chain_render(self):
        chain = FilterChain().append(FilterNode("hflip")).extend([FilterNode("vflip")])
        assert chain.render() == "hflip,vflip"
        assert len(chain) == 2
        assert bool(FilterChain()) is False

    def test_complex_graph(self):
        graph = ComplexFilterGraph(video_output="vout")
        graph.add(["0:v"], FilterNode("split"), ["a", "b"])
        graph.add(["a", "b"], FilterNode("hstack"), ["vout"])
        assert graph.render() == "[0:v]split[a][b];[a][b]hstack[vout]"


class TestTimeWindow:
    """Tests for enable-expression helpers."""

    def test_between(self):
        assert time_window_expression(1, 3.5) == "between(t,1,3.5)"

    def test_start_only(self):
        assert time_window_expression(2, None) == "gte(t,2)"

    def test_inverted_window_uses_start(self):
        assert time_window_expression(5, 2) == "gte(t,5)"

    def test_no_window(self):
        assert time_window_expression(None, None) is None
        assert time_window_expression(None, 4) is None

    def test_applies_to_timeline_filter(self):
        node = with_time_window(FilterNode("eq", contrast=1.2), 1, 2)
        assert node.options["enable"] == "between(t,1,2)"

    def test_skips_non_timeline_filter(self):
        node = with_time_window(FilterNode("zoompan", z=1.1), 1, 2)
        assert "enable" not in node.options

    def test_chain_window(self):
        chain = chain_with_time_window([FilterNode("eq"), FilterNode("curves")], 0, 1)
        assert all(node.options["enable"] == "between(t,0,1)" for node in chain.nodes)
