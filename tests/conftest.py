"""
Pytest configuration and fixtures.
"""

import os
import sys
from typing import Optional
from urllib.parse import unquote, urlparse

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vedit_engine.config import Settings
from vedit_engine.services.artifact_store import LocalArtifactStore
from vedit_engine.services.concat_pipeline import ConcatenationPipeline
from vedit_engine.services.filter_compiler import FilterCompiler
from vedit_engine.services.font_resolver import FontResolver
from vedit_engine.services.scratch_space import ScratchSpace
from vedit_engine.services.transcoder import MediaInfo, Transcoder
from vedit_engine.services.transformation_pipeline import TransformationPipeline

SAMPLE_VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"fake-video-payload" * 64
SAMPLE_IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-image-payload" * 16


class FakeTranscoder(Transcoder):
    """
    Transcoder that records commands instead of running FFmpeg.

    ``run`` writes ``output_bytes`` to the last argument (the output path)
    unless ``write_output`` is False, and snapshots every scratch file that
    exists at that moment so tests can inspect subtitle files and manifests.
    """

    def __init__(
        self,
        output_bytes: bytes = b"edited-output",
        fail: Optional[Exception] = None,
        write_output: bool = True,
        media_info: Optional[MediaInfo] = None,
    ):
        super().__init__(ffmpeg_path="ffmpeg", ffprobe_path="ffprobe", preset="medium", crf=23)
        self.output_bytes = output_bytes
        self.fail = fail
        self.write_output = write_output
        self.media_info = media_info
        self.commands: list[list[str]] = []
        self.timeouts: list[Optional[float]] = []
        self.snapshots: dict[str, bytes] = {}
        self.probed: list[str] = []

    async def run(self, cmd, timeout=None, total_duration=0.0, on_progress=None):
        self.commands.append(cmd)
        self.timeouts.append(timeout)

        output_dir = os.path.dirname(cmd[-1])
        for name in os.listdir(output_dir):
            path = os.path.join(output_dir, name)
            if os.path.isfile(path):
                with open(path, "rb") as f:
                    self.snapshots[name] = f.read()

        if self.fail is not None:
            raise self.fail
        if self.write_output:
            with open(cmd[-1], "wb") as f:
                f.write(self.output_bytes)
        if on_progress is not None:
            on_progress(100.0)

    async def probe(self, media_path):
        self.probed.append(media_path)
        return self.media_info


def url_to_path(url: str) -> str:
    """Local path behind a ``file://`` URL returned by the local store."""
    return unquote(urlparse(url).path)


def scratch_files(scratch: ScratchSpace) -> list[str]:
    if not os.path.isdir(scratch.root):
        return []
    return sorted(os.listdir(scratch.root))


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and pointed at tmp_path."""
    return Settings(
        _env_file=None,
        storage_backend="local",
        scratch_directory=str(tmp_path / "scratch"),
        local_output_directory=str(tmp_path / "output"),
        local_source_root=str(tmp_path),
        vedit_api_key=None,
    )


@pytest.fixture
def scratch(settings):
    return ScratchSpace(settings.scratch_directory)


@pytest.fixture
def store(settings):
    return LocalArtifactStore(settings)


@pytest.fixture
def compiler():
    """Compiler with no font file so drawtext output is deterministic."""
    return FilterCompiler(font_resolver=FontResolver(candidates=[]))


@pytest.fixture
def video_file(tmp_path):
    source_dir = tmp_path / "source"
    source_dir.mkdir(exist_ok=True)
    path = source_dir / "clip.mp4"
    path.write_bytes(SAMPLE_VIDEO_BYTES)
    return str(path)


@pytest.fixture
def image_file(tmp_path):
    source_dir = tmp_path / "source"
    source_dir.mkdir(exist_ok=True)
    path = source_dir / "photo.png"
    path.write_bytes(SAMPLE_IMAGE_BYTES)
    return str(path)


@pytest.fixture
def make_clips(tmp_path):
    """Create ``n`` distinct local clip files."""

    def _make(n: int) -> list[str]:
        clip_dir = tmp_path / "clips"
        clip_dir.mkdir(exist_ok=True)
        paths = []
        for index in range(n):
            path = clip_dir / f"part{index}.mp4"
            path.write_bytes(SAMPLE_VIDEO_BYTES + str(index).encode())
            paths.append(str(path))
        return paths

    return _make


@pytest.fixture
def make_pipeline(settings, scratch, store, compiler):
    """Build a TransformationPipeline around a fake transcoder."""

    def _make(transcoder: Optional[FakeTranscoder] = None, artifact_store=None) -> TransformationPipeline:
        transcoder = transcoder or FakeTranscoder()
        artifact_store = artifact_store or store
        concat = ConcatenationPipeline(
            store=artifact_store, scratch=scratch, transcoder=transcoder, settings=settings
        )
        return TransformationPipeline(
            store=artifact_store,
            scratch=scratch,
            compiler=compiler,
            transcoder=transcoder,
            concat_pipeline=concat,
            settings=settings,
        )

    return _make
