"""Shared fixtures for the test suite."""

import subprocess
from pathlib import Path

from shrink_transcode.core.modules.analysis.media_utils import VideoProperties
from shrink_transcode.core.modules.config.encoder_config import EncoderCapabilitySet, EncoderChoice


def make_video(path="movie.mp4", width=1920, height=1080, kbps=10000, pix_fmt="yuv420p",
               duration=60.0, size_bytes=None, **colors) -> VideoProperties:
    """VideoProperties whose bitrate_kbps equals kbps."""
    if size_bytes is None:
        size_bytes = int(kbps * 1024 * duration / 8)
    return VideoProperties(
        path=Path(path), width=width, height=height, bit_rate=kbps * 1024,
        pix_fmt=pix_fmt, codec_name="h264", duration=duration, size_bytes=size_bytes,
        **colors)


def make_capabilities(encoder=EncoderChoice.APPLE, supports_vmaf=True,
                      supports_temporal_aq=False, cpu_cores=4) -> EncoderCapabilitySet:
    return EncoderCapabilitySet(encoder=encoder, supports_temporal_aq=supports_temporal_aq,
                                supports_vmaf=supports_vmaf, cpu_cores=cpu_cores)


def completed(cmd=None, returncode=0, stdout="", stderr="") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(cmd or [], returncode, stdout=stdout, stderr=stderr)
