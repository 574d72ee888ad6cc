"""
EncoderConfigBuilder: Centralized FFmpeg command construction

Builds the exact argument list for a bitrate-targeted HEVC encode on the
chosen encoder, plus the libvmaf comparison command. Commands are always
lists of discrete arguments and never pass through a shell.

Also detects which HEVC encoder the host can use and which optional
features (NVENC temporal AQ, libvmaf) its ffmpeg build offers.
"""

import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ....utils.logging import get_logger
from ..analysis.media_utils import VideoProperties
from ..errors import EncoderUnavailableError
from ..system.system_utils import get_cpu_cores, run_command

logger = get_logger("encoder_config")

# Sources in these formats get a main10 profile instead of a forced pix_fmt
UPSAMPLE_SAFE_PIX_FMTS = frozenset({"yuv420p", "yuv420p10le"})


class EncoderChoice(Enum):
    """HEVC encoders, in order of preference."""
    APPLE = "hevc_videotoolbox"
    NVIDIA = "hevc_nvenc"
    CPU = "libx265"

    @property
    def is_hardware(self) -> bool:
        return self is not EncoderChoice.CPU


@dataclass(frozen=True)
class EncoderCapabilitySet:
    """What the host's ffmpeg can do, resolved once per run."""
    encoder: EncoderChoice
    supports_temporal_aq: bool = False
    supports_vmaf: bool = False
    cpu_cores: int = 1


def _output_of(runner: Callable[..., subprocess.CompletedProcess], cmd: List[str]) -> str:
    try:
        result = runner(cmd)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"{' '.join(cmd[:3])}... failed: {e}")
        return ""
    return ((result.stdout or "") + "\n" + (result.stderr or "")).lower()


def detect_encoder_capabilities(use_cpu: bool = False,
                                runner: Callable[..., subprocess.CompletedProcess] = run_command,
                                which: Callable[[str], Optional[str]] = shutil.which) -> EncoderCapabilitySet:
    """Detect the HEVC encoder to use and the optional features available.

    Preference: Apple VideoToolbox, then NVIDIA NVENC. use_cpu forces libx265.
    Raises EncoderUnavailableError when ffmpeg/ffprobe are missing, or when no
    hardware encoder exists and use_cpu was not requested.
    """
    missing = [tool for tool in ("ffprobe", "ffmpeg") if not which(tool)]
    if missing:
        raise EncoderUnavailableError(f"{' and '.join(missing)} not found in system path")

    encoders = _output_of(runner, ["ffmpeg", "-hide_banner", "-encoders"])
    has_apple = EncoderChoice.APPLE.value in encoders
    has_nvenc = EncoderChoice.NVIDIA.value in encoders

    if use_cpu:
        encoder = EncoderChoice.CPU
    elif has_apple:
        encoder = EncoderChoice.APPLE
    elif has_nvenc:
        encoder = EncoderChoice.NVIDIA
    else:
        raise EncoderUnavailableError(
            "No hardware HEVC encoder found (neither Apple VideoToolbox nor NVIDIA NVENC); "
            "use --use-cpu for libx265")

    supports_temporal_aq = False
    if has_nvenc:
        nvenc_help = _output_of(runner, ["ffmpeg", "-hide_banner", "-h", "encoder=hevc_nvenc"])
        supports_temporal_aq = "temporal" in nvenc_help

    filters = _output_of(runner, ["ffmpeg", "-hide_banner", "-filters"])
    supports_vmaf = "libvmaf" in filters

    capabilities = EncoderCapabilitySet(
        encoder=encoder,
        supports_temporal_aq=supports_temporal_aq,
        supports_vmaf=supports_vmaf,
        cpu_cores=get_cpu_cores(),
    )
    logger.debug(f"Detected capabilities: {capabilities}")
    return capabilities


class EncoderConfigBuilder:
    """Builds FFmpeg encoder commands with consistent configuration across encoders."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset builder state for new command."""
        self.base_params = {}
        self.encoder_params = {}
        self.format_params = {}
        self.color_params = {}
        self.rate_control_params = {}
        return self

    def set_base_config(self, input_file: str, output_file: str, hide_banner: bool = True,
                        loglevel: str = "error", stats: bool = True,
                        hwaccel: Optional[str] = None) -> 'EncoderConfigBuilder':
        """Set basic FFmpeg parameters."""
        self.base_params = {
            'input_file': input_file,
            'output_file': output_file,
            'hide_banner': hide_banner,
            'loglevel': loglevel,
            'stats': stats,
            'hwaccel': hwaccel,
        }
        return self

    def set_encoder(self, encoder: str, bitrate: int) -> 'EncoderConfigBuilder':
        """Set video encoder and average bitrate (kbps)."""
        self.encoder_params = {
            'encoder': encoder,
            'bitrate': bitrate,
        }
        return self

    def set_pixel_format(self, pix_fmt: Optional[str]) -> 'EncoderConfigBuilder':
        """Request main10 for upsample-safe sources, otherwise keep the source pix_fmt."""
        if pix_fmt in UPSAMPLE_SAFE_PIX_FMTS:
            self.format_params = {'profile': 'main10'}
        elif pix_fmt:
            self.format_params = {'pix_fmt': pix_fmt}
        else:
            self.format_params = {}
        return self

    def set_color_tags(self, color_space: Optional[str] = None, color_primaries: Optional[str] = None,
                       color_transfer: Optional[str] = None) -> 'EncoderConfigBuilder':
        """Carry over source color tags; absent tags are left out."""
        self.color_params = {
            'colorspace': color_space,
            'color_primaries': color_primaries,
            'color_trc': color_transfer,
        }
        return self

    def set_rate_control(self, maxrate: Optional[int] = None, preset: Optional[str] = None,
                         rc: Optional[str] = None, spatial_aq: bool = False,
                         aq_strength: Optional[int] = None, temporal_aq: bool = False,
                         quality: Optional[str] = None,
                         x265_params: Optional[Dict[str, str]] = None) -> 'EncoderConfigBuilder':
        """Set encoder-specific rate control and quality parameters."""
        self.rate_control_params = {
            'maxrate': maxrate,
            'preset': preset,
            'rc': rc,
            'spatial_aq': spatial_aq,
            'aq_strength': aq_strength,
            'temporal_aq': temporal_aq,
            'quality': quality,
            'x265_params': x265_params or {},
        }
        return self

    def build_command(self) -> List[str]:
        """Build the complete FFmpeg command."""
        cmd = ['ffmpeg']

        if self.base_params.get('hide_banner'):
            cmd.append('-hide_banner')

        if self.base_params.get('loglevel'):
            cmd.extend(['-loglevel', self.base_params['loglevel']])

        if self.base_params.get('stats'):
            cmd.append('-stats')

        # Hardware decode must precede the input it applies to
        if self.base_params.get('hwaccel'):
            cmd.extend(['-hwaccel', self.base_params['hwaccel'],
                        '-hwaccel_output_format', self.base_params['hwaccel']])

        cmd.extend(['-i', self.base_params['input_file']])

        # Audio is copied untouched, only video is re-encoded
        cmd.extend(['-c:a', 'copy'])

        encoder = self.encoder_params.get('encoder')
        if encoder:
            cmd.extend(['-c:v', encoder])
        if self.encoder_params.get('bitrate') is not None:
            cmd.extend(['-b:v', f"{self.encoder_params['bitrate']}k"])

        cmd.extend(['-tag:v', 'hvc1',
                    '-map_metadata', '0',
                    '-movflags', '+use_metadata_tags',
                    '-y'])

        cmd.extend(self._build_format_params())
        cmd.extend(self._build_color_params())
        cmd.extend(self._build_rate_control_params())

        cmd.append(self.base_params['output_file'])
        return cmd

    def _build_format_params(self) -> List[str]:
        """Build profile / pixel format parameters."""
        if self.format_params.get('profile'):
            return ['-profile:v', self.format_params['profile']]
        if self.format_params.get('pix_fmt'):
            return ['-pix_fmt', self.format_params['pix_fmt']]
        return []

    def _build_color_params(self) -> List[str]:
        """Build color space parameters."""
        params = []
        for flag in ('colorspace', 'color_primaries', 'color_trc'):
            value = self.color_params.get(flag)
            if value:
                params.extend([f'-{flag}', value])
        return params

    def _build_rate_control_params(self) -> List[str]:
        """Build encoder-specific rate control parameters."""
        params = []
        rc = self.rate_control_params

        if rc.get('maxrate') is not None:
            params.extend(['-maxrate:v', f"{rc['maxrate']}k"])
        if rc.get('preset'):
            params.extend(['-preset', rc['preset']])
        if rc.get('rc'):
            params.extend(['-rc', rc['rc']])
        if rc.get('spatial_aq'):
            params.extend(['-spatial_aq', '1'])
        if rc.get('aq_strength') is not None:
            params.extend(['-aq-strength', str(rc['aq_strength'])])
        if rc.get('temporal_aq'):
            params.extend(['-temporal-aq', '1'])
        if rc.get('quality'):
            params.extend(['-quality', rc['quality']])
        if rc.get('x265_params'):
            params.extend(['-x265-params', ':'.join(f"{k}={v}" for k, v in rc['x265_params'].items())])

        return params

    def build_bitrate_encode_cmd(self, video: VideoProperties, capabilities: EncoderCapabilitySet,
                                 bitrate: int, output_file: Path,
                                 spike_factor: float = 1.25) -> List[str]:
        """Build the bitrate-targeted encode command for one attempt."""
        self.reset()
        encoder = capabilities.encoder

        self.set_base_config(
            str(video.path), str(output_file),
            hwaccel='cuda' if encoder is EncoderChoice.NVIDIA else None)
        self.set_encoder(encoder.value, bitrate)
        self.set_pixel_format(video.pix_fmt)
        self.set_color_tags(video.color_space, video.color_primaries, video.color_transfer)

        if encoder is EncoderChoice.NVIDIA:
            # Only NVENC's VBR mode takes a peak ceiling
            self.set_rate_control(
                maxrate=int(bitrate * spike_factor), preset='p7', rc='vbr',
                spatial_aq=True, aq_strength=12,
                temporal_aq=capabilities.supports_temporal_aq)
        elif encoder is EncoderChoice.APPLE:
            self.set_rate_control(quality='quality')
        else:  # libx265
            self.set_rate_control(preset='medium',
                                  x265_params={'pools': str(capabilities.cpu_cores)})

        return self.build_command()

    def build_vmaf_comparison_cmd(self, reference_file: str, encoded_file: str,
                                  log_path: str, threads: int = 1,
                                  n_subsample: int = 10) -> List[str]:
        """Build VMAF comparison command (distorted input first, reference second)."""
        options = ':'.join([
            f"log_path={_escape_filter_value(log_path)}",
            "log_fmt=json",
            f"n_threads={max(1, threads)}",
            f"n_subsample={n_subsample}",
        ])
        return [
            'ffmpeg', '-hide_banner', '-loglevel', 'error',
            '-i', encoded_file,
            '-i', reference_file,
            '-lavfi', f'libvmaf={options}',
            '-f', 'null', '-'
        ]


def _escape_filter_value(value: str) -> str:
    """Escape a filter option value (Windows separators and drive colons)."""
    return value.replace('\\', '/').replace(':', r'\:')
