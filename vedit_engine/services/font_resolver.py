"""
Font Resolver - finds a usable font file for drawtext.
"""

import logging
import os
import sys
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

FONT_CANDIDATES: dict[str, list[str]] = {
    "win32": [
        "C:\\Windows\\Fonts\\arial.ttf",
        "C:\\Windows\\Fonts\\Arial.ttf",
        "C:\\Windows\\Fonts\\calibri.ttf",
        "C:\\Windows\\Fonts\\Calibri.ttf",
    ],
    "darwin": [
        "/System/Library/Fonts/Helvetica.ttc",
        "/System/Library/Fonts/Arial.ttf",
    ],
    "linux": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/ttf-dejavu/DejaVuSans-Bold.ttf",
    ],
}


def candidates_for_platform(platform: Optional[str] = None) -> list[str]:
    """Ordered font candidates for a ``sys.platform`` value (linux table for unknown ones)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return list(FONT_CANDIDATES["win32"])
    if platform == "darwin":
        return list(FONT_CANDIDATES["darwin"])
    return list(FONT_CANDIDATES["linux"])


class FontResolver:
    """
    Returns the first existing font from an ordered candidate list.

    When nothing matches, ``resolve()`` returns ``None`` and the caller omits
    the ``fontfile`` directive so FFmpeg falls back to its default font.
    """

    def __init__(
        self,
        candidates: Optional[Sequence[str]] = None,
        exists: Callable[[str], bool] = os.path.isfile,
    ):
        self.candidates = list(candidates) if candidates is not None else candidates_for_platform()
        self._exists = exists
        self._resolved: Optional[str] = None
        self._searched = False

    def resolve(self) -> Optional[str]:
        if self._searched:
            return self._resolved

        for path in self.candidates:
            if self._exists(path):
                logger.debug(f"Using font: {path}")
                self._resolved = path
                break
        else:
            logger.warning("No candidate font found, relying on FFmpeg default font")

        self._searched = True
        return self._resolved
