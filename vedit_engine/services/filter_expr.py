"""
Filter Expression Builder - structured construction of FFmpeg filtergraphs.

FFmpeg parses a filtergraph description at three levels, each with its own
special characters:

1. Filtergraph level: ``\\ ' [ ] , ;`` separate filters, chains and pads.
2. Filter option level: ``\\ ' :`` separate ``key=value`` pairs.
3. Filter specific: drawtext expands ``%{...}`` sequences and unescapes ``\\``.

Every value rendered by ``FilterNode`` goes through option-level escaping and
then graph-level escaping, so callers never hand-escape anything. Text that
drawtext will expand must additionally go through ``escape_drawtext_text``
first.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

Value = Union[str, int, float, bool]

_OPTION_ESCAPES = str.maketrans({
    "\\": "\\\\",
    "'": "\\'",
    ":": "\\:",
})

_GRAPH_ESCAPES = str.maketrans({
    "\\": "\\\\",
    "'": "\\'",
    "[": "\\[",
    "]": "\\]",
    ",": "\\,",
    ";": "\\;",
})

_DRAWTEXT_ESCAPES = str.maketrans({
    "\\": "\\\\",
    "%": "\\%",
})

# Filters that accept the generic ``enable`` timeline option.
TIMELINE_FILTERS = frozenset({
    "boxblur", "colorbalance", "crop", "curves", "drawbox", "drawtext",
    "eq", "hue", "lenscorrection", "noise", "overlay", "rgbashift",
    "rotate", "unsharp", "vignette",
})


def format_number(value: Union[int, float]) -> str:
    """Render a number compactly (``1.0`` -> ``1``, ``0.050`` -> ``0.05``)."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _to_text(value: Value) -> str:
    if isinstance(value, str):
        return value
    return format_number(value)


def escape_option_value(value: str) -> str:
    """Escape a value for the filter option level (``key=value:key=value``)."""
    return value.translate(_OPTION_ESCAPES)


def escape_graph_value(value: str) -> str:
    """Escape already option-escaped text for the filtergraph level."""
    return value.translate(_GRAPH_ESCAPES)


def escape_filter_value(value: Value) -> str:
    """Escape a value for use as a filter argument inside a filtergraph."""
    return escape_graph_value(escape_option_value(_to_text(value)))


def escape_drawtext_text(text: str) -> str:
    """Escape characters drawtext itself interprets in its ``text`` option."""
    return text.translate(_DRAWTEXT_ESCAPES)


def escape_filter_path(path: str, platform: Optional[str] = None) -> str:
    """
    Normalize a file path for use as a filter argument.

    FFmpeg accepts forward slashes on every platform, so backslashes are
    converted. Drive-letter colons and any other special characters are then
    handled by the regular option/graph escaping when the path is rendered
    through ``FilterNode``.

    Args:
        path: Absolute or relative file path
        platform: Override for ``sys.platform`` (used in tests)

    Returns:
        Path with forward slashes only
    """
    platform = platform or sys.platform
    normalized = path.replace("\\", "/") if platform == "win32" else path
    return normalized


class FilterNode:
    """
    A single filter invocation: ``name=arg1:arg2:key=value``.

    Positional arguments are rendered first, in order, then keyword options in
    insertion order. Raw filter names are never escaped.
    """

    def __init__(self, name: str, *args: Value, **options: Optional[Value]):
        self.name = name
        self.args: list[Value] = list(args)
        self.options: dict[str, Value] = {
            key: value for key, value in options.items() if value is not None
        }

    def set(self, key: str, value: Value) -> "FilterNode":
        self.options[key] = value
        return self

    @property
    def supports_timeline(self) -> bool:
        return self.name in TIMELINE_FILTERS

    def render(self) -> str:
        parts = [escape_filter_value(arg) for arg in self.args]
        parts.extend(
            f"{key}={escape_filter_value(value)}" for key, value in self.options.items()
        )
        if not parts:
            return self.name
        return f"{self.name}={':'.join(parts)}"

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"FilterNode({self.render()!r})"


@dataclass
class FilterChain:
    """A comma-separated sequence of filters applied to one stream."""

    nodes: list[FilterNode] = field(default_factory=list)

    def append(self, node: FilterNode) -> "FilterChain":
        self.nodes.append(node)
        return self

    def extend(self, other: Union["FilterChain", Sequence[FilterNode]]) -> "FilterChain":
        nodes = other.nodes if isinstance(other, FilterChain) else other
        self.nodes.extend(nodes)
        return self

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def render(self) -> str:
        return ",".join(node.render() for node in self.nodes)

    def __str__(self) -> str:
        return self.render()


@dataclass
class GraphStatement:
    """One labelled chain in a complex filtergraph: ``[in]chain[out]``."""

    inputs: list[str]
    chain: FilterChain
    outputs: list[str]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return f"{ins}{self.chain.render()}{outs}"


@dataclass
class ComplexFilterGraph:
    """
    A multi-input / multi-output filtergraph passed via ``-filter_complex``.

    ``video_output`` and ``audio_output`` name the pads the transcoder must
    map; ``None`` means the stream is taken straight from the first input.
    """

    statements: list[GraphStatement] = field(default_factory=list)
    video_output: Optional[str] = None
    audio_output: Optional[str] = None

    def add(
        self,
        inputs: Sequence[str],
        chain: Union[FilterChain, FilterNode, Sequence[FilterNode]],
        outputs: Sequence[str],
    ) -> "ComplexFilterGraph":
        if isinstance(chain, FilterNode):
            chain = FilterChain([chain])
        elif not isinstance(chain, FilterChain):
            chain = FilterChain(list(chain))
        self.statements.append(GraphStatement(list(inputs), chain, list(outputs)))
        return self

    def render(self) -> str:
        return ";".join(statement.render() for statement in self.statements)

    def __str__(self) -> str:
        return self.render()


def time_window_expression(
    start: Optional[float],
    end: Optional[float],
) -> Optional[str]:
    """
    Build an ``enable`` expression for a time window.

    Returns ``between(t,start,end)`` when both ends are given and ordered,
    ``gte(t,start)`` when only the start is given, otherwise ``None``.
    """
    if start is not None and end is not None and end > start:
        return f"between(t,{format_number(start)},{format_number(end)})"
    if start is not None:
        return f"gte(t,{format_number(start)})"
    return None


def with_time_window(
    node: FilterNode,
    start: Optional[float],
    end: Optional[float],
) -> FilterNode:
    """Restrict ``node`` to a time window if it supports timeline editing."""
    expression = time_window_expression(start, end)
    if expression is None:
        return node
    if not node.supports_timeline:
        logger.warning(f"Filter '{node.name}' does not support timeline editing, applying to whole clip")
        return node
    return node.set("enable", expression)


def chain_with_time_window(
    nodes: Sequence[FilterNode],
    start: Optional[float],
    end: Optional[float],
) -> FilterChain:
    """Apply the same time window to every node of a chain."""
    return FilterChain([with_time_window(node, start, end) for node in nodes])
