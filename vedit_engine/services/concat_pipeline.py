"""
Concatenation Pipeline - joins an ordered list of clips into one video.

Clips are downloaded into scratch space in order, listed in an FFmpeg
concat-demuxer manifest, re-encoded into a single output and uploaded.
Every scratch artifact (clips, manifest, output) is deleted on exit.
"""

import logging
import time
from typing import Callable, Optional, Sequence

from vedit_engine.config import Settings, get_settings
from vedit_engine.errors import InsufficientInputsError, MediaEngineError
from vedit_engine.services.artifact_store import ArtifactStore, create_artifact_store
from vedit_engine.services.scratch_space import ScratchSession, ScratchSpace, extension_of
from vedit_engine.services.transcoder import Transcoder, scaled_timeout

logger = logging.getLogger(__name__)

MIN_CLIPS = 2

ProgressCallback = Callable[[float], None]


def manifest_entry(path: str) -> str:
    """One concat-demuxer ``file`` directive, single-quote escaped."""
    escaped = path.replace("\\", "/").replace("'", "'\\''")
    return f"file '{escaped}'"


def build_manifest(paths: Sequence[str]) -> str:
    return "\n".join(manifest_entry(path) for path in paths) + "\n"


class ConcatenationPipeline:
    """
    Merges clips end to end.

    Args:
        store: Artifact store used for download and upload
        scratch: Shared scratch space
        transcoder: FFmpeg runner
        settings: Application settings
    """

    def __init__(
        self,
        store: Optional[ArtifactStore] = None,
        scratch: Optional[ScratchSpace] = None,
        transcoder: Optional[Transcoder] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or create_artifact_store(self.settings)
        self.scratch = scratch or ScratchSpace(self.settings.scratch_directory)
        self.transcoder = transcoder or Transcoder()

    async def merge(
        self,
        clip_urls: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Concatenate clips in the given order.

        Args:
            clip_urls: Two or more clip URLs
            on_progress: Optional callback receiving percent complete

        Returns:
            URL of the merged video

        Raises:
            InsufficientInputsError: If fewer than two clips are given
            MediaEngineError: On download, execution, verification or upload failure
        """
        clip_urls = [url for url in clip_urls if url]
        if len(clip_urls) < MIN_CLIPS:
            raise InsufficientInputsError(
                f"At least {MIN_CLIPS} clip URLs are required, got {len(clip_urls)}",
                {"clip_count": len(clip_urls)},
            )

        start_time = time.time()
        logger.info(f"Merging {len(clip_urls)} clips")

        with self.scratch.session() as session:
            try:
                clip_paths = await self._download_clips(clip_urls, session)

                manifest_path = session.new_temp_file("txt", "concat")
                with open(manifest_path, "w", encoding="utf-8") as f:
                    f.write(build_manifest(clip_paths))

                total_duration = await self._total_duration(clip_paths)

                output_path = session.new_temp_file(self.settings.default_video_extension, "merged")
                cmd = self.transcoder.build_concat_command(manifest_path, output_path)
                await self.transcoder.run(
                    cmd,
                    timeout=scaled_timeout(self.settings.transcode_timeout_seconds, total_duration),
                    total_duration=total_duration,
                    on_progress=on_progress,
                )

                self.transcoder.verify_output(output_path)
                url = await self.store.upload(output_path, self.settings.merged_folder)

            except MediaEngineError as e:
                logger.error(f"Merge failed: {e}")
                raise
            except Exception as e:
                logger.exception("Merge failed unexpectedly")
                raise MediaEngineError(f"Unexpected failure during merge: {e}") from e

        logger.info(f"Merged {len(clip_urls)} clips in {time.time() - start_time:.1f}s: {url}")
        return url

    async def _download_clips(self, clip_urls: Sequence[str], session: ScratchSession) -> list[str]:
        paths = []
        for index, url in enumerate(clip_urls):
            path = session.new_temp_file(
                extension_of(url, self.settings.default_video_extension), f"clip{index}"
            )
            await self.store.download(url, path)
            paths.append(path)
        return paths

    async def _total_duration(self, clip_paths: Sequence[str]) -> float:
        total = 0.0
        for path in clip_paths:
            info = await self.transcoder.probe(path)
            if info:
                total += info.duration_seconds
        return total
