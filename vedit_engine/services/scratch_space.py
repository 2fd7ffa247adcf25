"""
Scratch Space - owns the shared temp directory and per-call artifact cleanup.

The directory is shared by every concurrent transformation, but each file
in it belongs to exactly one call: every generated name carries a
millisecond timestamp plus a random token, and a ``ScratchSession`` deletes
everything it handed out when the call finishes, whichever way it finishes.
"""

import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from vedit_engine.errors import ScratchSpaceError

logger = logging.getLogger(__name__)


class ScratchSpace:
    """
    Lazily created, verified-writable scratch directory.

    Args:
        root: Directory for temporary artifacts
    """

    def __init__(self, root: str):
        self.root = str(root)
        self._ready = False
        self._lock = threading.Lock()

    def ensure_ready(self) -> None:
        """
        Create the directory and verify it is writable (once per process).

        Raises:
            ScratchSpaceError: If the directory cannot be created or written
        """
        if self._ready:
            return

        with self._lock:
            if self._ready:
                return
            try:
                os.makedirs(self.root, exist_ok=True)
                probe = os.path.join(self.root, f".write_probe_{uuid.uuid4().hex}")
                with open(probe, "wb") as f:
                    f.write(b"ok")
                os.remove(probe)
            except OSError as e:
                raise ScratchSpaceError(
                    f"Scratch directory is not writable: {self.root} ({e})",
                    {"path": self.root},
                ) from e

            self._ready = True
            logger.info(f"Scratch directory ready: {self.root}")

    def new_temp_file(self, extension: str, prefix: str = "tmp") -> str:
        """
        Allocate a unique path in the scratch directory.

        Any stale file already at that path is removed so the transcoder
        never refuses to overwrite it.

        Args:
            extension: File extension without the dot
            prefix: Name prefix describing the artifact (input, output, ...)

        Returns:
            Absolute path that does not exist yet
        """
        self.ensure_ready()
        extension = extension.lstrip(".") or "bin"
        name = f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}.{extension}"
        path = os.path.abspath(os.path.join(self.root, name))
        if os.path.exists(path):
            os.remove(path)
        return path

    @contextmanager
    def session(self) -> Iterator["ScratchSession"]:
        """Scope a set of artifacts to one call; all are deleted on exit."""
        scratch_session = ScratchSession(self)
        try:
            yield scratch_session
        finally:
            scratch_session.cleanup()


class ScratchSession:
    """Tracks the artifacts created during one ``process()`` / ``merge()`` call."""

    def __init__(self, space: ScratchSpace):
        self.space = space
        self.paths: list[str] = []

    def new_temp_file(self, extension: str, prefix: str = "tmp") -> str:
        path = self.space.new_temp_file(extension, prefix)
        self.paths.append(path)
        return path

    def track(self, path: str) -> str:
        """Take ownership of a file created outside ``new_temp_file``."""
        if path not in self.paths:
            self.paths.append(path)
        return path

    def cleanup(self) -> list[str]:
        """
        Delete every tracked artifact.

        Returns:
            Paths that could not be removed
        """
        failed = []
        for path in self.paths:
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                logger.warning(f"Failed to clean up {path}: {e}")
                failed.append(path)
        if self.paths:
            logger.debug(f"Cleaned up {len(self.paths) - len(failed)} scratch file(s)")
        self.paths = []
        return failed


def extension_of(path_or_url: Optional[str], default: str) -> str:
    """Extension of a local path or URL (query string ignored), lowercased."""
    if not path_or_url:
        return default
    clean = path_or_url.split("?", 1)[0].split("#", 1)[0]
    suffix = Path(clean).suffix.lstrip(".")
    return suffix.lower() if suffix and suffix.isalnum() else default
