"""
Transformation Pipeline - orchestrates one edit from source URL to result URL.

Steps (strictly sequential within one call):
1. Download the source into a fresh scratch file
2. Compile the instruction (generating subtitle files / fetching overlay
   inputs first when the instruction needs them)
3. Run FFmpeg once (or copy the file through for unknown operations)
4. Verify the output exists and is non-empty
5. Upload the result
6. Delete every scratch file created by the call, on every exit path

The pipeline never substitutes the original media on failure; that policy
belongs to the caller.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from vedit_engine.config import Settings, get_settings
from vedit_engine.errors import MediaEngineError, UnknownOperationWarning
from vedit_engine.schemas.instructions import Instruction, MergeParams, OperationKind, parse_instruction
from vedit_engine.services.artifact_store import ArtifactStore, create_artifact_store
from vedit_engine.services.filter_compiler import AuxiliaryFiles, FilterCompiler, Requirements
from vedit_engine.services.scratch_space import ScratchSession, ScratchSpace, extension_of
from vedit_engine.services.subtitle_generator import SubtitleGenerator
from vedit_engine.services.transcoder import MediaInfo, Transcoder, scaled_timeout

logger = logging.getLogger(__name__)
warning_logger = logging.getLogger("vedit_engine.warnings")


class PipelineStage(str, Enum):
    """Stages of a single ``process()`` call."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    COMPILING = "compiling"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


StageCallback = Callable[[PipelineStage], None]


@dataclass
class ProcessResult:
    """Outcome of a successful edit."""

    url: str
    operation: str
    warnings: list[str] = field(default_factory=list)
    passthrough: bool = False
    processing_time_seconds: float = 0.0
    stages: list[PipelineStage] = field(default_factory=list)


class TransformationPipeline:
    """
    Applies one instruction to one media reference.

    Args:
        store: Artifact store used for download and upload
        scratch: Shared scratch space
        compiler: Filter compiler
        transcoder: FFmpeg runner
        concat_pipeline: Pipeline used when a ``merge`` instruction arrives here
        settings: Application settings
    """

    def __init__(
        self,
        store: Optional[ArtifactStore] = None,
        scratch: Optional[ScratchSpace] = None,
        compiler: Optional[FilterCompiler] = None,
        transcoder: Optional[Transcoder] = None,
        concat_pipeline=None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or create_artifact_store(self.settings)
        self.scratch = scratch or ScratchSpace(self.settings.scratch_directory)
        self.compiler = compiler or FilterCompiler()
        self.transcoder = transcoder or Transcoder()
        self.concat_pipeline = concat_pipeline

    async def process(
        self,
        media_url: str,
        instruction: Union[Instruction, dict[str, Any]],
        is_image: bool = False,
        on_stage: Optional[StageCallback] = None,
    ) -> ProcessResult:
        """
        Apply an edit instruction to a media URL.

        Args:
            media_url: Source media URL
            instruction: Validated Instruction or raw ``{operation, params}`` dict
            is_image: Whether the source is a still image
            on_stage: Optional callback invoked on every stage transition

        Returns:
            ProcessResult with the URL of the new media

        Raises:
            MediaEngineError: Any failure (download, compile, execution,
                verification, upload). Scratch files are cleaned up first.
        """
        if isinstance(instruction, dict):
            instruction = parse_instruction(instruction.get("operation", ""), instruction.get("params"))

        if instruction.operation == OperationKind.MERGE:
            return await self._delegate_merge(media_url, instruction)

        start_time = time.time()
        stages: list[PipelineStage] = [PipelineStage.IDLE]
        operation_name = instruction.raw_operation

        def enter(stage: PipelineStage) -> None:
            stages.append(stage)
            logger.info(f"[{operation_name}] {stage.value}")
            if on_stage:
                on_stage(stage)

        with self.scratch.session() as session:
            try:
                enter(PipelineStage.DOWNLOADING)
                default_ext = "png" if is_image else self.settings.default_video_extension
                input_ext = extension_of(media_url, default_ext)
                input_path = session.new_temp_file(input_ext, "input")
                await self.store.download(media_url, input_path)

                media_info = None
                if not is_image:
                    media_info = await self.transcoder.probe(input_path)

                enter(PipelineStage.COMPILING)
                requirements = self.compiler.requirements(instruction, is_image)
                auxiliary = await self._prepare_auxiliary(requirements, session, media_info)
                compiled = self.compiler.compile(instruction, is_image, auxiliary)

                enter(PipelineStage.EXECUTING)
                output_ext = input_ext if (is_image or compiled.passthrough) else self.settings.default_video_extension
                output_path = session.new_temp_file(output_ext, "output")

                if compiled.passthrough:
                    warning_logger.warning(
                        f"{UnknownOperationWarning.__name__}: operation '{operation_name}' "
                        f"is not supported, copying {media_url} unchanged"
                    )
                    await self.transcoder.copy(input_path, output_path)
                else:
                    cmd = self.transcoder.build_edit_command(input_path, output_path, compiled, is_image)
                    await self.transcoder.run(cmd, timeout=self._transcode_timeout(media_info))

                enter(PipelineStage.VERIFYING)
                output_size = self.transcoder.verify_output(output_path)
                logger.debug(f"Output verified: {output_path} ({output_size} bytes)")

                enter(PipelineStage.UPLOADING)
                url = await self.store.upload(output_path, self.settings.processed_folder, is_image)

                enter(PipelineStage.DONE)
                return ProcessResult(
                    url=url,
                    operation=operation_name,
                    warnings=list(compiled.warnings),
                    passthrough=compiled.passthrough,
                    processing_time_seconds=time.time() - start_time,
                    stages=stages,
                )

            except MediaEngineError as e:
                enter(PipelineStage.FAILED)
                logger.error(f"[{operation_name}] failed: {e}")
                raise
            except Exception as e:
                enter(PipelineStage.FAILED)
                logger.exception(f"[{operation_name}] unexpected failure")
                raise MediaEngineError(f"Unexpected failure during {operation_name}: {e}") from e

    async def _prepare_auxiliary(
        self,
        requirements: Requirements,
        session: ScratchSession,
        media_info: Optional[MediaInfo],
    ) -> AuxiliaryFiles:
        """Generate subtitle files and download extra inputs into scratch."""
        auxiliary = AuxiliaryFiles()
        if media_info is not None:
            auxiliary.source_has_audio = media_info.has_audio
        if requirements.empty:
            return auxiliary

        if requirements.subtitles is not None:
            generator = SubtitleGenerator(allocate_path=session.new_temp_file)
            play_resolution = None
            if media_info and media_info.width and media_info.height:
                play_resolution = (media_info.width, media_info.height)
            auxiliary.subtitle_path = generator.generate(
                requirements.subtitles.captions,
                requirements.subtitles.style,
                play_resolution=play_resolution,
            )

        for extra in requirements.extra_inputs:
            path = session.new_temp_file(extension_of(extra.url, "png"), extra.key)
            await self.store.download(extra.url, path)
            auxiliary.inputs[extra.key] = path

        return auxiliary

    def _transcode_timeout(self, media_info: Optional[MediaInfo]) -> float:
        duration = media_info.duration_seconds if media_info else 0.0
        return scaled_timeout(self.settings.transcode_timeout_seconds, duration)

    async def _delegate_merge(self, media_url: str, instruction: Instruction) -> ProcessResult:
        if self.concat_pipeline is None:
            raise MediaEngineError("merge requested but no concatenation pipeline is configured")

        params = instruction.params if isinstance(instruction.params, MergeParams) else MergeParams()
        start_time = time.time()
        url = await self.concat_pipeline.merge([media_url, *params.clips])
        return ProcessResult(
            url=url,
            operation=instruction.raw_operation,
            processing_time_seconds=time.time() - start_time,
        )


async def process_with_limit(
    pipeline: TransformationPipeline,
    semaphore: Optional[asyncio.Semaphore],
    *args,
    **kwargs,
) -> ProcessResult:
    """Run ``pipeline.process`` under a concurrency limit."""
    if semaphore is None:
        return await pipeline.process(*args, **kwargs)
    async with semaphore:
        return await pipeline.process(*args, **kwargs)
