"""
Transcoder - builds and runs FFmpeg / FFprobe invocations.

Subprocesses run in the default thread pool via ``run_in_executor`` (asyncio
subprocess support is unavailable on Windows without the Proactor loop), are
bounded by a timeout, and are killed when it expires.
"""

import asyncio
import json
import logging
import os
import shutil
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from vedit_engine.config import get_settings
from vedit_engine.errors import ExecutionError, VerificationError
from vedit_engine.services.filter_compiler import CompiledEdit

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

JPEG_EXTENSIONS = ("jpg", "jpeg")

# Extra transcode time allowed per second of source media
TIMEOUT_SECONDS_PER_MEDIA_SECOND = 4.0


def scaled_timeout(base_seconds: float, media_seconds: float) -> float:
    """Transcode timeout for media of the given length."""
    if media_seconds > 0:
        return base_seconds + media_seconds * TIMEOUT_SECONDS_PER_MEDIA_SECOND
    return base_seconds


@dataclass
class MediaInfo:
    """Metadata extracted with ffprobe."""

    duration_seconds: float
    width: int
    height: int
    bitrate: int
    has_audio: bool
    format_name: str = ""


@dataclass
class CommandResult:
    returncode: int
    stderr_tail: str


class Transcoder:
    """
    Runs FFmpeg for edit and concat jobs.

    Args:
        ffmpeg_path: FFmpeg binary
        ffprobe_path: FFprobe binary
        preset: x264 preset for video output
        crf: x264 constant rate factor
    """

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        ffprobe_path: Optional[str] = None,
        preset: Optional[str] = None,
        crf: Optional[int] = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path
        self.preset = preset or settings.ffmpeg_preset
        self.crf = crf if crf is not None else settings.ffmpeg_crf
        self.jpeg_quality = settings.jpeg_quality

    # ============================================================
    # COMMAND BUILDING
    # ============================================================

    def _video_encoding_args(self) -> list[str]:
        return [
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-movflags", "+faststart",
        ]

    def build_edit_command(
        self,
        input_path: str,
        output_path: str,
        compiled: CompiledEdit,
        is_image: bool = False,
    ) -> list[str]:
        """
        Build the FFmpeg command for a compiled edit.

        Args:
            input_path: Local source file
            output_path: Local destination (extension selects the container)
            compiled: Output of the filter compiler
            is_image: Treat the source as a still image

        Returns:
            Argument list for ``subprocess.run``
        """
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-nostdin"]

        if is_image:
            cmd += ["-loop", "1", "-t", "1"]
        cmd += compiled.input_options
        cmd += ["-i", input_path]
        for extra in compiled.extra_inputs:
            cmd += ["-i", extra]

        graph = compiled.complex_graph
        if graph is not None:
            cmd += ["-filter_complex", graph.render()]
            cmd += ["-map", f"[{graph.video_output}]" if graph.video_output else "0:v"]
            if not is_image:
                cmd += ["-map", f"[{graph.audio_output}]" if graph.audio_output else "0:a?"]
        else:
            if compiled.video_filters:
                cmd += ["-vf", compiled.video_filters.render()]
            if compiled.audio_filters and not is_image:
                cmd += ["-af", compiled.audio_filters.render()]

        cmd += compiled.output_options

        if is_image:
            extension = os.path.splitext(output_path)[1].lstrip(".").lower()
            if extension in JPEG_EXTENSIONS:
                cmd += ["-q:v", str(self.jpeg_quality)]
            cmd += ["-frames:v", "1", "-an"]
        else:
            cmd += self._video_encoding_args()

        cmd.append(output_path)
        return cmd

    def build_concat_command(self, manifest_path: str, output_path: str) -> list[str]:
        """
        Build the FFmpeg concat-demuxer command for a manifest.

        The output is re-encoded so clips with different encodings still
        produce one playable, seekable file.
        """
        return [
            self.ffmpeg_path, "-y", "-hide_banner", "-nostdin",
            "-f", "concat",
            "-safe", "0",
            "-i", manifest_path,
            *self._video_encoding_args(),
            "-avoid_negative_ts", "make_zero",
            "-fflags", "+genpts",
            output_path,
        ]

    # ============================================================
    # EXECUTION
    # ============================================================

    def _run_sync(self, cmd: list[str], timeout: Optional[float]) -> CommandResult:
        """Run a command synchronously (for use with run_in_executor on Windows)."""
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"{os.path.basename(cmd[0])} timed out after {timeout}s",
                {"timeout_seconds": timeout},
                timed_out=True,
            ) from e
        except FileNotFoundError as e:
            raise ExecutionError(f"Executable not found: {cmd[0]}") from e

        stderr = result.stderr.decode(errors="replace") if result.stderr else ""
        return CommandResult(result.returncode, stderr[-1000:])

    def _run_with_progress_sync(
        self,
        cmd: list[str],
        timeout: Optional[float],
        total_duration: float,
        on_progress: ProgressCallback,
    ) -> CommandResult:
        """Run FFmpeg with ``-progress pipe:1`` and report percent complete."""
        cmd = cmd[:1] + ["-progress", "pipe:1", "-nostats"] + cmd[1:]
        tail: deque[str] = deque(maxlen=40)

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ExecutionError(f"Executable not found: {cmd[0]}") from e

        timed_out = threading.Event()

        def kill():
            timed_out.set()
            process.kill()

        timer = threading.Timer(timeout, kill) if timeout else None
        if timer:
            timer.start()
        try:
            for line in process.stdout:
                line = line.strip()
                if line.startswith("out_time_us=") or line.startswith("out_time_ms="):
                    value = line.split("=", 1)[1]
                    if value.isdigit() and total_duration > 0:
                        percent = min(100.0, int(value) / 1_000_000 / total_duration * 100)
                        on_progress(percent)
                elif line and "=" not in line:
                    tail.append(line)
            process.wait()
        finally:
            if timer:
                timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()

        if timed_out.is_set():
            raise ExecutionError(
                f"{os.path.basename(cmd[0])} timed out after {timeout}s",
                {"timeout_seconds": timeout},
                timed_out=True,
            )
        if process.returncode == 0:
            on_progress(100.0)
        return CommandResult(process.returncode, "\n".join(tail)[-1000:])

    async def run(
        self,
        cmd: list[str],
        timeout: Optional[float] = None,
        total_duration: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Run FFmpeg asynchronously.

        Raises:
            ExecutionError: On non-zero exit or timeout (the process is killed)
        """
        logger.debug(f"Running: {' '.join(cmd)}")

        loop = asyncio.get_event_loop()
        if on_progress is not None:
            result = await loop.run_in_executor(
                None, self._run_with_progress_sync, cmd, timeout, total_duration, on_progress
            )
        else:
            result = await loop.run_in_executor(None, self._run_sync, cmd, timeout)

        if result.returncode != 0:
            error_msg = result.stderr_tail or "Unknown error"
            raise ExecutionError(
                f"FFmpeg failed (exit {result.returncode}): {error_msg}",
                {"returncode": result.returncode},
                returncode=result.returncode,
            )

    async def copy(self, source_path: str, output_path: str) -> None:
        """Copy media unchanged (pass-through)."""
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, shutil.copyfile, source_path, output_path)
        except OSError as e:
            raise ExecutionError(f"Pass-through copy failed: {e}") from e

    @staticmethod
    def verify_output(output_path: str) -> int:
        """
        Confirm the transcoder actually produced a non-empty file.

        Returns:
            Output size in bytes

        Raises:
            VerificationError: If the file is missing or empty
        """
        if not os.path.isfile(output_path):
            raise VerificationError(f"Output file not created: {output_path}")
        size = os.path.getsize(output_path)
        if size == 0:
            raise VerificationError(f"Output file is empty: {output_path}")
        return size

    # ============================================================
    # PROBING
    # ============================================================

    def _run_ffprobe_sync(self, media_path: str) -> tuple[int, bytes, bytes]:
        """Run ffprobe synchronously (for use with run_in_executor on Windows)."""
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            media_path,
        ]

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=60,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            return 1, b"", str(e).encode()
        return result.returncode, result.stdout, result.stderr

    async def probe(self, media_path: str) -> Optional[MediaInfo]:
        """
        Get media metadata using ffprobe.

        Returns:
            MediaInfo, or None if the file could not be probed
        """
        loop = asyncio.get_event_loop()
        returncode, stdout, stderr = await loop.run_in_executor(
            None, self._run_ffprobe_sync, media_path
        )

        if returncode != 0:
            logger.warning(f"ffprobe failed for {media_path}: {stderr.decode(errors='replace')[:200]}")
            return None

        try:
            return parse_probe_output(json.loads(stdout.decode()))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse ffprobe output: {e}")
            return None


def parse_probe_output(info: dict) -> MediaInfo:
    """Extract the fields the engine uses from ``ffprobe -print_format json`` output."""
    streams = info.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    has_audio = any(s.get("codec_type") == "audio" for s in streams)
    format_info = info.get("format", {})

    return MediaInfo(
        duration_seconds=float(format_info.get("duration") or 0),
        width=int(video_stream.get("width", 0)) if video_stream else 0,
        height=int(video_stream.get("height", 0)) if video_stream else 0,
        bitrate=int(format_info.get("bit_rate") or 0),
        has_audio=has_audio,
        format_name=format_info.get("format_name", ""),
    )
