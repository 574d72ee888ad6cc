"""
System utilities for shrink_transcode.

This module provides system-level utilities including:
- Subprocess execution
- Temporary/scratch file registry and exit cleanup
- CPU core detection
- Human readable sizes
"""

import os
import sys
import shlex
import signal
import atexit
import subprocess
import tempfile
import contextlib
from pathlib import Path
from typing import Optional

import psutil

from ....utils.logging import get_logger

logger = get_logger("system_utils")


class _TempFilesRegistry(list):
    """Ordered registry of temp/scratch files with set-like add/discard."""

    def add(self, item):
        key = str(item)
        if key not in self:
            super().append(key)

    def discard(self, item):
        key = str(item)
        if key in self:
            super().remove(key)


TEMP_FILES = _TempFilesRegistry()
_HANDLERS_INSTALLED = False


def file_exists(path: "str | os.PathLike[str] | Path") -> bool:
    """Thin existence wrapper; False on unexpected OSError."""
    try:
        return Path(path).exists()
    except OSError:
        return False


def _cleanup():
    """Remove registered temp files that still exist."""
    for f in list(TEMP_FILES):
        try:
            if file_exists(f):
                os.remove(f)
                logger.cleanup(f"removed {f}")
        except OSError as e:
            logger.warn(f"Could not remove {f}: {e}")
        finally:
            TEMP_FILES.discard(f)


def cleanup_temp_files():
    """Public cleanup function (wrapper around _cleanup)."""
    _cleanup()


def install_cleanup_handlers():
    """Register exit cleanup of TEMP_FILES and turn SIGINT/SIGTERM into a clean exit."""
    global _HANDLERS_INSTALLED
    if _HANDLERS_INSTALLED:
        return
    atexit.register(_cleanup)
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda s, f: sys.exit(130 if s == signal.SIGINT else 143))
    _HANDLERS_INSTALLED = True


def format_size(bytes_size: int) -> str:
    """Convert bytes to human readable format:
    - Bytes: integer no decimal ("500 B", "0 B")
    - >= KB: two decimals ("1.50 KB", "2.00 MB")
    """
    negative = bytes_size < 0
    size = float(abs(bytes_size))
    units = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']
    unit_index = 0
    while unit_index < len(units) - 1 and size >= 1024.0:
        size /= 1024.0
        unit_index += 1
    unit = units[unit_index]
    if unit == 'B':
        formatted = f"{int(size)} {unit}"
    else:
        formatted = f"{size:.2f} {unit}"
    return f"-{formatted}" if negative else formatted


def format_cmd(cmd: list[str]) -> str:
    """Shell-quoted rendering of an argument list, for logs only."""
    return " ".join(shlex.quote(str(c)) for c in cmd)


def run_command(cmd: list[str], timeout: Optional[float] = 30, capture_output: bool = True,
                text: bool = True, check: bool = False) -> subprocess.CompletedProcess:
    """
    Standardized subprocess command runner with consistent error handling.

    Args:
        cmd: Command as list of strings
        timeout: Timeout in seconds (default: 30, None waits forever)
        capture_output: Whether to capture stdout/stderr (default: True)
        text: Whether to use text mode (default: True)
        check: Whether to raise exception on non-zero exit (default: False)

    Returns:
        CompletedProcess object
    """
    logger.cmd(format_cmd(cmd))
    try:
        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            check=check
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd[:3])}...")
        raise
    except subprocess.CalledProcessError as e:
        logger.debug(f"Command failed: {' '.join(cmd[:3])}... (exit code: {e.returncode})")
        raise


@contextlib.contextmanager
def temporary_file(suffix: str = ".tmp", prefix: str = "shrink_transcode_"):
    """
    Context manager for temporary files with automatic cleanup.

    Ensures temp files are tracked in TEMP_FILES and cleaned up properly.

    Yields:
        Path: Path to the temporary file
    """
    temp_file = None
    try:
        fd, temp_path = tempfile.mkstemp(suffix=suffix, prefix=prefix)
        os.close(fd)  # Close the file descriptor, keep the path
        temp_file = Path(temp_path)
        TEMP_FILES.add(temp_file)

        yield temp_file

    finally:
        if temp_file:
            try:
                if file_exists(temp_file):
                    temp_file.unlink()
            except OSError as e:
                logger.debug(f"Failed to cleanup temp file {temp_file}: {e}")
            finally:
                TEMP_FILES.discard(temp_file)


def get_cpu_cores() -> int:
    """Physical core count, at least 1."""
    cores = psutil.cpu_count(logical=False) or psutil.cpu_count(logical=True)
    return max(1, cores or 1)
