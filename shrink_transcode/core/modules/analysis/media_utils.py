"""
Media utilities for shrink_transcode.

This module provides media-specific utilities including:
- FFprobe operations for video metadata
- The VideoProperties record every later stage works from
"""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ....utils.logging import get_logger
from ..errors import ProbeError
from ..system.system_utils import run_command

logger = get_logger("media_utils")

PROBE_FIELDS = (
    "width", "height", "bit_rate", "pix_fmt", "codec_name",
    "color_space", "color_primaries", "color_transfer", "duration",
)
REQUIRED_FIELDS = ("width", "height", "bit_rate", "pix_fmt", "codec_name", "duration")


@dataclass(frozen=True)
class VideoProperties:
    """Technical properties of a source file's first video stream."""
    path: Path
    width: int
    height: int
    bit_rate: int  # bits per second
    pix_fmt: str
    codec_name: str
    duration: float  # seconds
    size_bytes: int
    color_space: Optional[str] = None
    color_primaries: Optional[str] = None
    color_transfer: Optional[str] = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid dimensions {self.width}x{self.height} for {self.path}")
        if self.duration <= 0:
            raise ValueError(f"Invalid duration {self.duration} for {self.path}")

    @property
    def bitrate_kbps(self) -> int:
        return self.bit_rate // 1024

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def build_probe_cmd(file: Path) -> List[str]:
    """ffprobe command returning the first video stream's fields as JSON."""
    return [
        "ffprobe", "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=" + ",".join(PROBE_FIELDS),
        "-of", "json",
        str(file),
    ]


def parse_probe_output(file: Path, output: str, size_bytes: int) -> VideoProperties:
    """Turn ffprobe JSON into VideoProperties, raising ProbeError on anything unusable."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Failed to parse video info: {e}", file) from e

    streams = data.get('streams') or []
    if not streams:
        raise ProbeError("No video stream found in file", file)

    stream = streams[0]
    missing = [field for field in REQUIRED_FIELDS if stream.get(field) in (None, "", "N/A")]
    if missing:
        raise ProbeError(
            f"Not all required fields found in video stream (missing: {', '.join(missing)}). "
            f"JSON: {json.dumps(stream)}", file)

    try:
        return VideoProperties(
            path=file,
            width=int(stream['width']),
            height=int(stream['height']),
            bit_rate=int(stream['bit_rate']),
            pix_fmt=stream['pix_fmt'],
            codec_name=stream['codec_name'],
            duration=float(stream['duration']),
            size_bytes=size_bytes,
            color_space=stream.get('color_space') or None,
            color_primaries=stream.get('color_primaries') or None,
            color_transfer=stream.get('color_transfer') or None,
        )
    except ValueError as e:
        raise ProbeError(f"Invalid video stream values: {e}", file) from e


def probe_video(file: Path, runner: Callable[..., subprocess.CompletedProcess] = run_command) -> VideoProperties:
    """Probe a file with ffprobe and return its VideoProperties."""
    file = Path(file)
    try:
        size_bytes = file.stat().st_size
    except OSError as e:
        raise ProbeError(f"Cannot read file: {e}", file) from e

    try:
        result = runner(build_probe_cmd(file), timeout=60)
    except (OSError, subprocess.SubprocessError) as e:
        raise ProbeError(f"Failed to run ffprobe: {e}", file) from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise ProbeError(f"Failed to get video info (ffprobe exit {result.returncode}): {stderr}", file)

    properties = parse_probe_output(file, result.stdout or "", size_bytes)
    logger.debug(f"Probed {file.name}: {properties.resolution} {properties.codec_name} "
                 f"{properties.bitrate_kbps} Kbps {properties.pix_fmt}")
    return properties
