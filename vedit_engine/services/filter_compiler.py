"""
Filter Compiler - turns a validated instruction into an FFmpeg filter graph.

Compilation is a pure function of the instruction, the media kind and the
auxiliary files the pipeline prepared. Operations that need extra files
(subtitles, logo/watermark/music inputs) declare them through
``requirements()`` first; the pipeline fulfils them into scratch space and
passes the local paths back in ``AuxiliaryFiles``.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from vedit_engine.errors import CompileError
from vedit_engine.schemas.instructions import (
    AdjustIntensityParams,
    AdjustZoomParams,
    ApplyEffectParams,
    BrandKitParams,
    CaptionParams,
    ColorGradeParams,
    CropParams,
    FilterParams,
    Instruction,
    MusicParams,
    OperationKind,
    RemoveClipParams,
    RemoveObjectParams,
    RotateParams,
    SpeedParams,
    TextParams,
    TrailerParams,
    TransitionParams,
    TrimParams,
    parse_font_size,
)
from vedit_engine.services import filter_presets as presets
from vedit_engine.services.filter_expr import (
    ComplexFilterGraph,
    FilterChain,
    FilterNode,
    chain_with_time_window,
    escape_drawtext_text,
    escape_filter_path,
    format_number,
    with_time_window,
)
from vedit_engine.services.font_resolver import FontResolver
from vedit_engine.services.region_resolver import RegionResolver
from vedit_engine.services.subtitle_generator import Caption, SubtitleStyle

logger = logging.getLogger(__name__)

VIDEO_OUT = "vout"
AUDIO_OUT = "aout"

# Names drawtext understands directly; anything else is passed through as-is.
TEXT_COLORS = {
    "white", "red", "blue", "yellow", "green", "black", "cyan",
    "magenta", "orange", "pink", "purple",
}

_HEX_RGB = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


@dataclass
class ExtraInput:
    """An auxiliary media input the pipeline must download before compiling."""

    key: str
    url: str


@dataclass
class SubtitleRequest:
    captions: list[Caption]
    style: SubtitleStyle


@dataclass
class Requirements:
    """Auxiliary artifacts an instruction needs before it can be compiled."""

    subtitles: Optional[SubtitleRequest] = None
    extra_inputs: list[ExtraInput] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.subtitles is None and not self.extra_inputs


@dataclass
class AuxiliaryFiles:
    """Local paths of prepared auxiliary artifacts."""

    subtitle_path: Optional[str] = None
    inputs: dict[str, str] = field(default_factory=dict)
    source_has_audio: bool = True


@dataclass
class CompiledEdit:
    """
    Everything the transcoder needs for one edit.

    Exactly one of ``complex_graph`` or the simple ``video_filters`` /
    ``audio_filters`` chains is populated. ``extra_inputs`` are local paths,
    added as inputs 1..n in order.
    """

    operation: Optional[OperationKind]
    video_filters: FilterChain = field(default_factory=FilterChain)
    audio_filters: FilterChain = field(default_factory=FilterChain)
    complex_graph: Optional[ComplexFilterGraph] = None
    input_options: list[str] = field(default_factory=list)
    output_options: list[str] = field(default_factory=list)
    extra_inputs: list[str] = field(default_factory=list)
    passthrough: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def graph(self) -> Union[FilterChain, ComplexFilterGraph]:
        return self.complex_graph if self.complex_graph is not None else self.video_filters

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def parse_text_color(color: Optional[str]) -> str:
    """Normalize a text color for drawtext (names, ``#hex`` and ``color@alpha`` accepted)."""
    if not color:
        return "white"
    value = color.strip()
    if value.startswith("#") or "@" in value:
        return value
    lowered = value.lower()
    return lowered if lowered in TEXT_COLORS else value


def atempo_chain(speed: float) -> list[FilterNode]:
    """
    Split an audio tempo factor into ``atempo`` stages each within [0.5, 2.0].
    """
    nodes = []
    remaining = speed
    while remaining > 2.0:
        nodes.append(FilterNode("atempo", "2.0"))
        remaining /= 2.0
    while remaining < 0.5:
        nodes.append(FilterNode("atempo", "0.5"))
        remaining /= 0.5
    if not math.isclose(remaining, 1.0, rel_tol=1e-9) or not nodes:
        nodes.append(FilterNode("atempo", format_number(remaining)))
    return nodes


class FilterCompiler:
    """
    Compiles instructions into FFmpeg filter graphs.

    Args:
        font_resolver: Supplies the drawtext font file (optional)
        region_resolver: Maps named regions/positions to coordinates
    """

    def __init__(
        self,
        font_resolver: Optional[FontResolver] = None,
        region_resolver: Optional[RegionResolver] = None,
    ):
        self.font_resolver = font_resolver or FontResolver()
        self.region_resolver = region_resolver or RegionResolver()

    # ============================================================
    # REQUIREMENTS
    # ============================================================

    def requirements(self, instruction: Instruction, media_is_image: bool = False) -> Requirements:
        """List auxiliary files ``instruction`` needs before compilation."""
        reqs = Requirements()
        params = instruction.params

        if instruction.operation == OperationKind.ADD_CAPTIONS and isinstance(params, CaptionParams):
            if params.captions:
                reqs.subtitles = SubtitleRequest(
                    captions=[Caption(c.text, c.start, c.end) for c in params.captions],
                    style=SubtitleStyle(
                        color=params.resolved_color,
                        size=params.resolved_size,
                        position=params.resolved_position,
                        emphasis=params.style,
                        background_color=params.resolved_background,
                    ),
                )

        elif instruction.operation == OperationKind.APPLY_BRAND_KIT and isinstance(params, BrandKitParams):
            if params.logo_url:
                reqs.extra_inputs.append(ExtraInput("logo", params.logo_url))
            if params.watermark_source:
                reqs.extra_inputs.append(ExtraInput("watermark", params.watermark_source))

        elif instruction.operation == OperationKind.ADD_MUSIC and isinstance(params, MusicParams):
            if params.music_url and not media_is_image:
                reqs.extra_inputs.append(ExtraInput("music", params.music_url))

        return reqs

    # ============================================================
    # COMPILE
    # ============================================================

    def compile(
        self,
        instruction: Instruction,
        media_is_image: bool = False,
        auxiliary: Optional[AuxiliaryFiles] = None,
    ) -> CompiledEdit:
        """
        Compile an instruction.

        Args:
            instruction: Validated instruction
            media_is_image: Whether the source is a still image
            auxiliary: Prepared auxiliary files for instructions that need them

        Returns:
            CompiledEdit describing filters and extra transcoder options

        Raises:
            CompileError: If the instruction cannot be expressed as a filter graph
        """
        auxiliary = auxiliary or AuxiliaryFiles()
        compiled = CompiledEdit(operation=instruction.operation)

        if not instruction.is_known:
            compiled.passthrough = True
            compiled.warn(
                f"Unknown operation '{instruction.raw_operation}', passing media through unedited"
            )
            return compiled

        handler = {
            OperationKind.TRIM: self._compile_trim,
            OperationKind.COLOR_GRADE: self._compile_color_grade,
            OperationKind.APPLY_EFFECT: self._compile_effect,
            OperationKind.ADD_TEXT: self._compile_text,
            OperationKind.CUSTOM_TEXT: self._compile_custom_text,
            OperationKind.ADD_TRANSITION: self._compile_transition,
            OperationKind.ADD_MUSIC: self._compile_music,
            OperationKind.APPLY_BRAND_KIT: self._compile_brand_kit,
            OperationKind.REMOVE_CLIP: self._compile_remove_clip,
            OperationKind.FILTER: self._compile_filter,
            OperationKind.GENERATE_TRAILER: self._compile_trailer,
            OperationKind.ADD_CAPTIONS: self._compile_captions,
            OperationKind.ADJUST_INTENSITY: self._compile_adjust_intensity,
            OperationKind.ADJUST_ZOOM: self._compile_adjust_zoom,
            OperationKind.ADJUST_SPEED: self._compile_speed,
            OperationKind.ROTATE: self._compile_rotate,
            OperationKind.CROP: self._compile_crop,
            OperationKind.REMOVE_OBJECT: self._compile_remove_object,
        }.get(instruction.operation)

        if handler is None:
            raise CompileError(
                f"Operation '{instruction.raw_operation}' cannot be compiled to a single filter graph",
                {"operation": instruction.raw_operation},
            )

        handler(compiled, instruction.params, media_is_image, auxiliary)
        logger.debug(f"Compiled {instruction.operation.value}: {compiled.graph}")
        return compiled

    # ------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------

    def _compile_trim(self, compiled: CompiledEdit, params: TrimParams, is_image, aux) -> None:
        logger.info(f"Trimming from {params.start}s to {params.end if params.end is not None else 'end'}")
        if params.start > 0:
            compiled.input_options += ["-ss", format_number(params.start)]
        if params.end is not None:
            compiled.output_options += ["-t", format_number(params.end - params.start)]

    def _compile_remove_clip(self, compiled: CompiledEdit, params: RemoveClipParams, is_image, aux) -> None:
        if is_image:
            compiled.warn("removeClip has no effect on images")
            return

        logger.info(f"Removing segment {params.start_time}s to {params.end_time}s")
        keep = (
            f"not(between(t,{format_number(params.start_time)},{format_number(params.end_time)}))"
        )
        compiled.video_filters.extend([
            FilterNode("select", keep),
            FilterNode("setpts", "N/FRAME_RATE/TB"),
        ])
        compiled.audio_filters.extend([
            FilterNode("aselect", keep),
            FilterNode("asetpts", "N/SR/TB"),
        ])

    def _compile_trailer(self, compiled: CompiledEdit, params: TrailerParams, is_image, aux) -> None:
        logger.info(f"Generating {params.duration}s trailer")
        if params.key_moments:
            start = params.key_moments[0].start
            if start > 0:
                compiled.input_options += ["-ss", format_number(start)]
        if not is_image:
            compiled.output_options += ["-t", format_number(params.duration)]
        compiled.video_filters.append(FilterNode("eq", contrast=1.2, saturation=1.1))

    def _compile_speed(self, compiled: CompiledEdit, params: SpeedParams, is_image, aux) -> None:
        speed = params.speed
        if math.isclose(speed, 1.0):
            logger.info("Speed factor is 1.0, no retiming needed")
            return
        if is_image:
            compiled.warn("adjustSpeed has no effect on images")
            return

        logger.info(f"Setting playback speed to {speed}x")
        compiled.video_filters.append(FilterNode("setpts", f"PTS/{format_number(speed)}"))
        compiled.audio_filters.extend(atempo_chain(speed))

    # ------------------------------------------------------------
    # Looks
    # ------------------------------------------------------------

    def _compile_color_grade(self, compiled: CompiledEdit, params: ColorGradeParams, is_image, aux) -> None:
        name = params.grade_name
        grade = presets.lookup(presets.COLOR_GRADES, name)
        if grade is None:
            compiled.warn(f"Unknown color grade '{name}', leaving colors unchanged")
            return

        logger.info(f"Applying color grade: {name}")
        compiled.video_filters.extend(
            chain_with_time_window(grade.nodes(), params.start_time, params.end_time)
        )

    def _compile_effect(self, compiled: CompiledEdit, params: ApplyEffectParams, is_image, aux) -> None:
        self._apply_effect(compiled, params.preset, params.intensity, params.start_time, params.end_time)

    def _compile_adjust_intensity(self, compiled: CompiledEdit, params: AdjustIntensityParams, is_image, aux) -> None:
        logger.info(f"Adjusting {params.effect_preset or 'effect'} intensity to {params.intensity}")
        self._apply_effect(compiled, params.effect_preset, params.intensity, None, None)

    def _apply_effect(
        self,
        compiled: CompiledEdit,
        name: Optional[str],
        intensity: float,
        start: Optional[float],
        end: Optional[float],
    ) -> None:
        effect = presets.lookup(presets.EFFECTS, name)
        if effect is None:
            compiled.warn(f"Unknown effect '{name}', no effect applied")
            return

        logger.info(f"Applying effect: {name} (intensity {intensity})")
        if effect.complex:
            if start is not None:
                compiled.warn(f"Effect '{name}' does not support time ranges, applying to whole clip")
            compiled.complex_graph = self._mirror_graph()
            return

        nodes = effect.build(presets.intensity_scale(intensity))
        compiled.video_filters.extend(chain_with_time_window(nodes, start, end))

    def _mirror_graph(self) -> ComplexFilterGraph:
        """Left half of the frame next to its horizontal reflection."""
        graph = ComplexFilterGraph(video_output=VIDEO_OUT)
        graph.add(
            ["0:v"],
            [FilterNode("crop", w="trunc(iw/2)", h="ih", x=0, y=0), FilterNode("split")],
            ["mirror_left", "mirror_src"],
        )
        graph.add(["mirror_src"], FilterNode("hflip"), ["mirror_right"])
        graph.add(["mirror_left", "mirror_right"], FilterNode("hstack"), [VIDEO_OUT])
        return graph

    def _compile_filter(self, compiled: CompiledEdit, params: FilterParams, is_image, aux) -> None:
        builder = presets.lookup(presets.FILTER_BUILDERS, params.type)
        if builder is None:
            compiled.warn(f"Unknown filter type '{params.type}', no filter applied")
            return

        logger.info(f"Applying filter: {params.type}")
        node = with_time_window(builder(params.value), params.start_time, params.end_time)
        compiled.video_filters.append(node)

    def _compile_transition(self, compiled: CompiledEdit, params: TransitionParams, is_image, aux) -> None:
        name = params.transition_name
        transition = presets.lookup(presets.TRANSITIONS, name)
        if transition is None:
            compiled.warn(f"Unknown transition '{name}', using {presets.DEFAULT_TRANSITION}")
            transition = presets.TRANSITIONS[presets.DEFAULT_TRANSITION]

        duration = max(presets.MIN_TRANSITION_DURATION, params.duration)
        logger.info(f"Adding transition: {name} ({duration}s)")

        if transition.reveal is not None:
            x, y = transition.reveal(duration)
            graph = ComplexFilterGraph(video_output=VIDEO_OUT)
            graph.add(["0:v"], FilterNode("split"), ["reveal_fg", "reveal_src"])
            graph.add(["reveal_src"], FilterNode("drawbox", color="black", t="fill"), ["reveal_bg"])
            graph.add(["reveal_bg", "reveal_fg"], FilterNode("overlay", x=x, y=y), [VIDEO_OUT])
            compiled.complex_graph = graph
        else:
            compiled.video_filters.extend(transition.build(duration))

    def _compile_adjust_zoom(self, compiled: CompiledEdit, params: AdjustZoomParams, is_image, aux) -> None:
        zoom = params.zoom
        if math.isclose(zoom, 1.0):
            logger.info("Zoom factor is 1.0, nothing to do")
            return

        z = format_number(zoom)
        logger.info(f"Adjusting zoom to {z}x")
        if zoom > 1:
            compiled.video_filters.extend([
                FilterNode("crop", w=f"iw/{z}", h=f"ih/{z}", x=f"(iw-iw/{z})/2", y=f"(ih-ih/{z})/2"),
                FilterNode("scale", f"trunc(iw*{z}/2)*2", f"trunc(ih*{z}/2)*2"),
            ])
        else:
            compiled.video_filters.extend([
                FilterNode("scale", f"trunc(iw*{z}/2)*2", f"trunc(ih*{z}/2)*2"),
                FilterNode(
                    "pad",
                    w=f"trunc(iw/{z}/2)*2",
                    h=f"trunc(ih/{z}/2)*2",
                    x="(ow-iw)/2",
                    y="(oh-ih)/2",
                    color="black",
                ),
            ])

    # ------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------

    def _compile_rotate(self, compiled: CompiledEdit, params: RotateParams, is_image, aux) -> None:
        degrees = params.degrees
        normalized = degrees % 360
        logger.info(f"Rotating {format_number(degrees)} degrees")

        if math.isclose(normalized, 0.0) or math.isclose(normalized, 360.0):
            return
        if math.isclose(normalized, 90.0):
            compiled.video_filters.append(FilterNode("transpose", 1))
        elif math.isclose(normalized, 270.0):
            compiled.video_filters.append(FilterNode("transpose", 2))
        elif math.isclose(normalized, 180.0):
            compiled.video_filters.extend([FilterNode("transpose", 1), FilterNode("transpose", 1)])
        else:
            radians = degrees * math.pi / 180
            compiled.video_filters.append(
                FilterNode("rotate", format_number(radians), fillcolor=params.fill_color)
            )

    def _compile_crop(self, compiled: CompiledEdit, params: CropParams, is_image, aux) -> None:
        logger.info(
            f"Cropping x={params.x:.3f} y={params.y:.3f} w={params.width:.3f} h={params.height:.3f}"
        )
        compiled.video_filters.append(
            FilterNode(
                "crop",
                f"iw*{format_number(params.width)}",
                f"ih*{format_number(params.height)}",
                f"iw*{format_number(params.x)}",
                f"ih*{format_number(params.y)}",
            )
        )

    def _compile_remove_object(self, compiled: CompiledEdit, params: RemoveObjectParams, is_image, aux) -> None:
        method = params.method.strip().lower()
        logger.info(f"Removing object from {params.region} using {method}")

        if method == "blur":
            region = self.region_resolver.resolve(params.region)
            graph = ComplexFilterGraph(video_output=VIDEO_OUT)
            graph.add(["0:v"], FilterNode("split"), ["region_base", "region_src"])
            graph.add(
                ["region_src"],
                [
                    region.crop_node(),
                    FilterNode("boxblur", luma_radius="min(20,min(w,h)/4)", luma_power=1),
                ],
                ["region_blurred"],
            )
            graph.add(["region_base", "region_blurred"], region.overlay_node(), [VIDEO_OUT])
            compiled.complex_graph = graph
        elif method == "crop":
            keep = self.region_resolver.resolve_keep(params.region)
            compiled.video_filters.append(keep.crop_node())
        elif method == "black":
            region = self.region_resolver.resolve(params.region)
            compiled.video_filters.append(region.drawbox_node())
        else:
            compiled.warn(f"Unknown removal method '{params.method}', blurring whole frame")
            compiled.video_filters.append(FilterNode("boxblur", 10, 1))

    # ------------------------------------------------------------
    # Text
    # ------------------------------------------------------------

    def _font_option(self) -> Optional[str]:
        font_path = self.font_resolver.resolve()
        return escape_filter_path(font_path) if font_path else None

    def _compile_text(self, compiled: CompiledEdit, params: TextParams, is_image, aux) -> None:
        if params.has_custom_style:
            self._compile_custom_text(compiled, params, is_image, aux)
            return

        preset_name = params.preset or presets.DEFAULT_TEXT_PRESET
        style = presets.lookup(presets.TEXT_STYLES, preset_name) or presets.BASE_TEXT_STYLE
        text = params.text or style.default_text
        x, y = self.region_resolver.text_position(params.position)
        logger.info(f"Adding text '{text}' with style '{preset_name}'")

        node = FilterNode(
            "drawtext",
            fontfile=self._font_option(),
            text=escape_drawtext_text(text),
            fontcolor=style.font_color,
            fontsize=style.font_size,
            x=x,
            y=y,
            borderw=style.border_width,
            bordercolor=style.border_color,
        )
        if style.shadow:
            node.set("shadowcolor", style.shadow.color)
            node.set("shadowx", style.shadow.x)
            node.set("shadowy", style.shadow.y)
        if style.box:
            node.set("box", 1)
            node.set("boxcolor", style.box.color)
            node.set("boxborderw", style.box.border_width)

        compiled.video_filters.append(with_time_window(node, params.start_time, params.end_time))

    def _compile_custom_text(self, compiled: CompiledEdit, params: TextParams, is_image, aux) -> None:
        text = params.text if params.text.strip() else (params.text_style or params.preset or "Text")
        font_size = params.font_size or parse_font_size(None)
        x, y = self.region_resolver.text_position(params.position)
        logger.info(f"Adding custom text '{text}' (size {font_size})")

        node = FilterNode(
            "drawtext",
            fontfile=self._font_option(),
            text=escape_drawtext_text(text),
            fontcolor=parse_text_color(params.font_color),
            fontsize=font_size,
            x=x,
            y=y,
        )

        background = params.background_color
        if background and background.strip().lower() != "transparent":
            box_color = parse_text_color(background)
            if "@" not in box_color:
                box_color = f"{box_color}@0.8"
            node.set("box", 1)
            node.set("boxcolor", box_color)
            node.set("boxborderw", 10)
        else:
            node.set("shadowcolor", "black@0.8")
            node.set("shadowx", 2)
            node.set("shadowy", 2)

        compiled.video_filters.append(with_time_window(node, params.start_time, params.end_time))

    def _compile_captions(self, compiled: CompiledEdit, params: CaptionParams, is_image, aux: AuxiliaryFiles) -> None:
        if not params.captions:
            compiled.warn("No captions provided, skipping subtitle burn-in")
            return
        if not aux.subtitle_path:
            raise CompileError("Caption burn-in requires a generated subtitle file")

        logger.info(f"Burning in {len(params.captions)} captions")
        compiled.video_filters.append(
            FilterNode("subtitles", filename=escape_filter_path(aux.subtitle_path))
        )

    # ------------------------------------------------------------
    # Audio and branding
    # ------------------------------------------------------------

    def _compile_music(self, compiled: CompiledEdit, params: MusicParams, is_image, aux: AuxiliaryFiles) -> None:
        if is_image:
            compiled.warn("addMusic has no effect on images")
            return

        volume = format_number(params.volume)
        music_path = aux.inputs.get("music")
        if params.music_url and not music_path:
            raise CompileError("Music track was requested but not prepared")

        if music_path:
            logger.info(f"Mixing music track at volume {volume}")
            compiled.extra_inputs.append(music_path)
            graph = ComplexFilterGraph(audio_output=AUDIO_OUT)
            if aux.source_has_audio:
                graph.add(["1:a"], FilterNode("volume", volume), ["music"])
                graph.add(
                    ["0:a", "music"],
                    FilterNode("amix", inputs=2, duration="first", dropout_transition=0),
                    [AUDIO_OUT],
                )
            else:
                # Silent source: the track becomes the soundtrack, cut to the video length
                graph.add(["1:a"], FilterNode("volume", volume), [AUDIO_OUT])
                compiled.output_options.append("-shortest")
            compiled.complex_graph = graph
        else:
            logger.info(f"Setting audio volume to {volume}")
            compiled.audio_filters.append(FilterNode("volume", volume))

    def _compile_brand_kit(self, compiled: CompiledEdit, params: BrandKitParams, is_image, aux: AuxiliaryFiles) -> None:
        tint = None
        if params.colors:
            match = _HEX_RGB.match(params.colors[0].strip())
            if match:
                r, g, b = (int(part, 16) for part in match.groups())
                tint = FilterNode(
                    "colorbalance",
                    rs=round(r / 255, 3),
                    gs=round(g / 255, 3),
                    bs=round(b / 255, 3),
                )
            else:
                compiled.warn(f"Brand color '{params.colors[0]}' is not a hex color, skipping tint")

        overlays = []
        if params.logo_url:
            overlays.append(("logo", FilterNode("overlay", x="W-w-20", y=20)))
        if params.watermark_source:
            overlays.append(("watermark", FilterNode("overlay", x="W-w-20", y="H-h-20", format="auto")))

        if not overlays:
            if tint is not None:
                compiled.video_filters.append(tint)
            else:
                compiled.warn("Brand kit has no logo, watermark or colors, nothing applied")
            return

        logger.info(f"Applying brand kit ({', '.join(key for key, _ in overlays)})")
        graph = ComplexFilterGraph(video_output=VIDEO_OUT)
        current = "0:v"
        for index, (key, overlay) in enumerate(overlays, start=1):
            path = aux.inputs.get(key)
            if not path:
                raise CompileError(f"Brand kit {key} was requested but not prepared")
            compiled.extra_inputs.append(path)
            is_last = index == len(overlays) and tint is None
            label = VIDEO_OUT if is_last else f"brand_{key}"
            graph.add([current, f"{index}:v"], overlay, [label])
            current = label
        if tint is not None:
            graph.add([current], tint, [VIDEO_OUT])

        compiled.complex_graph = graph
