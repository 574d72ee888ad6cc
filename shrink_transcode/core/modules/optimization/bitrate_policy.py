"""
Bitrate policy for shrink_transcode.

Pure functions mapping a resolution class to its target HEVC bitrate and
the increment used when a VMAF check fails. Portrait sources use the same
values as their landscape counterparts.
"""

import math
from typing import Dict, Optional, Tuple

# (long edge, short edge) -> (base bitrate kbps, escalation step kbps)
RESOLUTION_BITRATES: Dict[Tuple[int, int], Tuple[int, int]] = {
    (1280, 720): (4000, 1000),
    (1920, 1080): (8000, 2000),
    (3840, 2160): (28000, 4000),
}


def _resolution_key(width: int, height: int) -> Tuple[int, int]:
    return (max(width, height), min(width, height))


def is_supported_resolution(width: int, height: int) -> bool:
    return _resolution_key(width, height) in RESOLUTION_BITRATES


def base_bitrate_for(width: int, height: int) -> Optional[int]:
    """Base target bitrate in kbps, or None for an unsupported resolution."""
    entry = RESOLUTION_BITRATES.get(_resolution_key(width, height))
    return entry[0] if entry else None


def bitrate_step_for(width: int, height: int) -> Optional[int]:
    """Escalation step in kbps, or None for an unsupported resolution."""
    entry = RESOLUTION_BITRATES.get(_resolution_key(width, height))
    return entry[1] if entry else None


def is_acceptable(current_kbps: float, base_kbps: float, overhead_factor: float) -> bool:
    """True when the current bitrate is within overhead_factor of the base bitrate."""
    return current_kbps <= base_kbps * overhead_factor


def estimate_output_size_kb(bitrate_kbps: float, duration: float) -> int:
    """Projected output size in KB for a bitrate held over duration seconds."""
    return int(math.ceil(bitrate_kbps * duration / 8))


def max_attempts(current_kbps: float, base_kbps: int, step_kbps: int, overhead_factor: float) -> int:
    """Upper bound on encode attempts before the source itself becomes acceptable.

    Once base * overhead_factor reaches the current bitrate, evaluation
    accepts the original, so escalation cannot continue past that point.
    """
    if step_kbps <= 0:
        raise ValueError(f"step_kbps must be positive, got {step_kbps}")
    if is_acceptable(current_kbps, base_kbps, overhead_factor):
        return 0
    ceiling = current_kbps / overhead_factor
    return int(math.ceil((ceiling - base_kbps) / step_kbps)) + 1
