"""
Transcoding engine module for shrink_transcode.

Runs one ffmpeg encode to completion and reports the produced file, or
raises EncodeError with ffmpeg's diagnostics.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ....utils.logging import get_logger
from ..errors import EncodeError
from ..system.system_utils import format_cmd, format_size, run_command

logger = get_logger("transcoding_engine")

DIAGNOSTIC_TAIL_LINES = 10


@dataclass(frozen=True)
class EncodeResult:
    """A finished encode attempt."""
    output_path: Path
    size_bytes: int


def _tail(text: str, lines: int = DIAGNOSTIC_TAIL_LINES) -> str:
    return '\n'.join((text or '').strip().splitlines()[-lines:])


def run_encode(cmd: List[str], output_file: Path, verbose: bool = False) -> EncodeResult:
    """Run an ffmpeg encode and wait for it; no timeout is applied.

    Raises EncodeError on a non-zero exit or when the expected output is missing.
    """
    output_file = Path(output_file)
    if verbose:
        logger.encoder(f"Executing command: {format_cmd(cmd)}")

    try:
        result = run_command(cmd, timeout=None)
    except OSError as e:
        raise EncodeError(output_file, -1, f"could not start ffmpeg: {e}") from e
    except subprocess.SubprocessError as e:
        raise EncodeError(output_file, -1, str(e)) from e

    if verbose:
        for line in (result.stdout or '').splitlines():
            logger.encoder(line)
        for line in _tail(result.stderr).splitlines():
            logger.encoder(line)

    if result.returncode != 0:
        raise EncodeError(output_file, result.returncode, _tail(result.stderr))

    if not output_file.exists():
        raise EncodeError(output_file, result.returncode,
                          f"ffmpeg exited cleanly but {output_file.name} was not written")

    size_bytes = output_file.stat().st_size
    logger.debug(f"Encoded {output_file.name}: {format_size(size_bytes)}")
    return EncodeResult(output_path=output_file, size_bytes=size_bytes)
