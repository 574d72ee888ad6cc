"""Exceptions raised by the transcoding pipeline.

Two families matter to callers:

- ConfigurationError: a run-wide precondition failed (no usable encoder,
  quality check requested without libvmaf). Raised before any file is
  touched and aborts the run.
- FileProcessingError: something went wrong with one file (probe, encode,
  scoring). The batch logs it, counts it and moves on.

InvariantViolationError is deliberately outside both families: it marks a
defect in the bitrate policy and is never caught by the batch runner.
"""

from pathlib import Path
from typing import Optional, Union


class TranscodeError(Exception):
    """Base exception for shrink_transcode errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(TranscodeError):
    """Raised when the run cannot start with the requested configuration."""


class EncoderUnavailableError(ConfigurationError):
    """Raised when no usable HEVC encoder (or ffmpeg itself) is available."""


class FileProcessingError(TranscodeError):
    """Base exception for failures scoped to a single file."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            message = f"{self.path}: {message}"
        super().__init__(message)


class ProbeError(FileProcessingError):
    """Raised when ffprobe cannot describe a file's video stream."""


class EncodeError(FileProcessingError):
    """Raised when the ffmpeg encode exits non-zero or produces no output."""

    def __init__(self, path: Union[str, Path], returncode: int, diagnostics: str = "") -> None:
        self.returncode = returncode
        self.diagnostics = diagnostics
        message = f"ffmpeg failed with exit code {returncode}"
        if diagnostics:
            message = f"{message}: {diagnostics}"
        super().__init__(message, path)


class QualityScoreError(FileProcessingError):
    """Raised when the libvmaf comparison fails or its output cannot be read."""


class InvariantViolationError(RuntimeError):
    """Raised when the bitrate policy is asked for something it cannot answer."""
