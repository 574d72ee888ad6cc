"""
VMAF evaluation for shrink_transcode.

Compares an encoded candidate against its original with ffmpeg's libvmaf
filter and returns the pooled harmonic-mean VMAF score (0-100).

libvmaf writes its JSON report to a temporary log file rather than stdout,
since not every platform's ffmpeg can write the log to /dev/stdout.
"""

import json
import subprocess
from pathlib import Path
from typing import Callable

from ....utils.logging import get_logger
from ..config.encoder_config import EncoderConfigBuilder
from ..errors import QualityScoreError
from ..system.system_utils import get_cpu_cores, run_command, temporary_file

logger = get_logger("vmaf_evaluator")


def parse_vmaf_log(log_text: str, distorted: Path) -> float:
    """Extract pooled_metrics.vmaf.harmonic_mean from a libvmaf JSON log."""
    try:
        report = json.loads(log_text)
    except json.JSONDecodeError as e:
        raise QualityScoreError(f"Failed to parse VMAF output: {e}", distorted) from e

    try:
        return float(report['pooled_metrics']['vmaf']['harmonic_mean'])
    except (KeyError, TypeError, ValueError) as e:
        raise QualityScoreError("Invalid VMAF output format: no pooled_metrics found", distorted) from e


def compute_vmaf_score(reference: Path, distorted: Path, n_threads: int = 0,
                       runner: Callable[..., subprocess.CompletedProcess] = run_command) -> float:
    """Compute VMAF score between reference (original) and distorted (encoded) video.

    n_threads: 0 uses the physical core count.
    Raises QualityScoreError when libvmaf fails or its report is unusable.
    """
    threads = n_threads if n_threads and n_threads > 0 else get_cpu_cores()

    with temporary_file(suffix=".json", prefix="vmaf_") as log_path:
        cmd = EncoderConfigBuilder().build_vmaf_comparison_cmd(
            str(reference), str(distorted), str(log_path), threads=threads)
        logger.debug(f"Scoring {Path(distorted).name} against {Path(reference).name} with {threads} threads")

        try:
            result = runner(cmd, timeout=None)
        except (OSError, subprocess.SubprocessError) as e:
            raise QualityScoreError(f"Failed to run VMAF command: {e}", distorted) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            last_lines = ' | '.join(stderr.splitlines()[-3:]) or 'unknown error'
            raise QualityScoreError(
                f"VMAF command failed with exit code {result.returncode}: {last_lines}", distorted)

        try:
            log_text = log_path.read_text(encoding='utf-8')
        except OSError as e:
            raise QualityScoreError(f"Failed to read VMAF log: {e}", distorted) from e

        if not log_text.strip():
            raise QualityScoreError("VMAF command produced no report", distorted)

    score = parse_vmaf_log(log_text, distorted)
    logger.debug(f"VMAF harmonic mean for {Path(distorted).name}: {score:.2f}")
    return score
