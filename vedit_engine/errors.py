"""
Error taxonomy for the media transformation engine.

Every failure inside ``process()`` / ``merge()`` surfaces as one of the
``MediaEngineError`` subclasses below so the caller can decide whether to
retry, fall back to the original media, or report the failure.
"""

from typing import Any, Optional


class MediaEngineError(Exception):
    """Base class for all engine failures."""

    code = "MEDIA_ENGINE_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class DownloadError(MediaEngineError):
    """Source media is unreachable or unreadable."""

    code = "DOWNLOAD_FAILED"
    http_status = 502


class CompileError(MediaEngineError):
    """Instruction parameters are structurally invalid."""

    code = "INVALID_INSTRUCTION"
    http_status = 400


class InsufficientInputsError(CompileError):
    """Concatenation requested with fewer than two inputs."""

    code = "INSUFFICIENT_INPUTS"


class ExecutionError(MediaEngineError):
    """External transcoder exited non-zero or was killed by timeout."""

    code = "TRANSCODE_FAILED"
    retryable = True

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        returncode: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(message, details)
        self.returncode = returncode
        self.timed_out = timed_out


class VerificationError(ExecutionError):
    """Transcoder reported success but the output file is missing or empty."""

    code = "OUTPUT_VERIFICATION_FAILED"


class UploadError(MediaEngineError):
    """Result file could not be persisted to the artifact store."""

    code = "UPLOAD_FAILED"
    http_status = 502
    retryable = True


class ScratchSpaceError(MediaEngineError):
    """Scratch directory is missing or not writable (configuration problem)."""

    code = "SCRATCH_UNAVAILABLE"
    http_status = 503


class AnalysisError(MediaEngineError):
    """Content analysis for deep auto-enhance failed."""

    code = "ANALYSIS_FAILED"
    http_status = 502
    retryable = True


class UnknownOperationWarning(UserWarning):
    """An unrecognized operation was passed through without editing."""
    pass
