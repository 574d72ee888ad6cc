"""
Transcode controller for shrink_transcode.

Drives one source file through the encode / quality-control loop:

    EVALUATE -> ENCODE -> SCORE (optional) -> FINALIZE
                  ^                 |
                  +---- ESCALATE <--+  (VMAF below threshold)

EVALUATE accepts the untouched original as soon as its own bitrate is
within the overhead factor of the current target. ESCALATE deletes the
rejected scratch output and raises the target by the resolution's step.
FINALIZE is the only state that touches the source path.

Encode, scoring and finalize failures are fatal for the file: the scratch output is
removed and the error propagates to the caller.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ....config import TranscodeSettings
from ....utils.logging import get_logger
from ..analysis.media_utils import VideoProperties
from ..analysis.vmaf_evaluator import compute_vmaf_score
from ..config.encoder_config import EncoderCapabilitySet, EncoderConfigBuilder
from ..errors import ConfigurationError, FileProcessingError, InvariantViolationError
from ..optimization import bitrate_policy
from ..system.outcome_log import OutcomeLog
from ..system.system_utils import format_size
from .file_manager import FileManager, scratch_path_for
from .transcoding_engine import EncodeResult, run_encode

logger = get_logger("transcode_controller")

EncodeFn = Callable[..., EncodeResult]
ScoreFn = Callable[..., float]


class TranscodeState(Enum):
    EVALUATE = "evaluate"
    ENCODE = "encode"
    SCORE = "score"
    ESCALATE = "escalate"
    FINALIZE = "finalize"


@dataclass
class TranscodeTarget:
    """Per-file mutable state; only escalate() changes the bitrate."""
    video: VideoProperties
    bitrate_kbps: int
    attempts: int = 0

    def escalate(self, step_kbps: int) -> None:
        self.bitrate_kbps += step_kbps


@dataclass(frozen=True)
class TranscodeOutcome:
    """Structured record of a file whose processing completed."""
    original_path: Path
    original_size_bytes: int
    final_path: Path
    final_size_bytes: int
    bitrate_kbps: int
    vmaf_score: Optional[float] = None
    encoded: bool = True
    attempts: int = 0

    @property
    def savings_bytes(self) -> int:
        return self.original_size_bytes - self.final_size_bytes


class TranscodeController:
    """Runs the adaptive encode loop for one file at a time."""

    def __init__(self, settings: TranscodeSettings, capabilities: EncoderCapabilitySet,
                 encode: EncodeFn = run_encode, score: ScoreFn = compute_vmaf_score,
                 outcome_log: Optional[OutcomeLog] = None,
                 file_manager: Optional[FileManager] = None):
        if settings.check_quality and not capabilities.supports_vmaf:
            raise ConfigurationError("Quality check requested but VMAF is not available in ffmpeg")

        self.settings = settings
        self.capabilities = capabilities
        self.encode = encode
        self.score = score
        self.outcome_log = outcome_log
        self.file_manager = file_manager or FileManager()
        self.command_builder = EncoderConfigBuilder()

    def process(self, video: VideoProperties) -> TranscodeOutcome:
        """Process one file and return its outcome.

        Raises FileProcessingError subclasses for encode/scoring failures and
        InvariantViolationError for resolutions the policy cannot escalate.
        """
        base = bitrate_policy.base_bitrate_for(video.width, video.height)
        step = bitrate_policy.bitrate_step_for(video.width, video.height)
        if base is None:
            raise InvariantViolationError(
                f"{video.path}: unsupported resolution {video.resolution} reached the controller")

        target = TranscodeTarget(video=video, bitrate_kbps=base)
        attempt_limit = (bitrate_policy.max_attempts(
            video.bitrate_kbps, base, step, self.settings.overhead_factor) if step else 1)
        scratch = scratch_path_for(video.path)
        result: Optional[EncodeResult] = None
        vmaf_score: Optional[float] = None
        state = TranscodeState.EVALUATE

        while True:
            if state is TranscodeState.EVALUATE:
                if bitrate_policy.is_acceptable(video.bitrate_kbps, target.bitrate_kbps,
                                                self.settings.overhead_factor):
                    logger.info(f"File bitrate {video.bitrate_kbps} Kbps is acceptable with base "
                                f"bitrate {target.bitrate_kbps} Kbps, keeping original.")
                    return TranscodeOutcome(
                        original_path=video.path, original_size_bytes=video.size_bytes,
                        final_path=video.path, final_size_bytes=video.size_bytes,
                        bitrate_kbps=target.bitrate_kbps, vmaf_score=None,
                        encoded=False, attempts=target.attempts)
                if target.attempts >= attempt_limit:
                    raise InvariantViolationError(
                        f"{video.path}: exceeded {attempt_limit} encode attempts at "
                        f"{target.bitrate_kbps} Kbps")
                state = TranscodeState.ENCODE

            elif state is TranscodeState.ENCODE:
                target.attempts += 1
                result = self._encode(target, scratch)
                state = TranscodeState.SCORE if self.settings.check_quality else TranscodeState.FINALIZE

            elif state is TranscodeState.SCORE:
                vmaf_score = self._score(video, scratch)
                if vmaf_score >= self.settings.min_vmaf_score:
                    state = TranscodeState.FINALIZE
                else:
                    state = TranscodeState.ESCALATE

            elif state is TranscodeState.ESCALATE:
                self.file_manager.cleanup_temp_file(scratch)
                if step is None:
                    raise InvariantViolationError(
                        f"{video.path}: no bitrate step defined for {video.resolution}")
                logger.warn(
                    f"With bitrate {target.bitrate_kbps}k the VMAF score {vmaf_score:.2f} is below "
                    f"acceptable threshold {self.settings.min_vmaf_score}, retrying with higher "
                    f"bitrate {target.bitrate_kbps + step}k.")
                target.escalate(step)
                state = TranscodeState.EVALUATE

            elif state is TranscodeState.FINALIZE:
                return self._finalize(target, scratch, result, vmaf_score)

    def _encode(self, target: TranscodeTarget, scratch: Path) -> EncodeResult:
        video = target.video
        cmd = self.command_builder.build_bitrate_encode_cmd(
            video, self.capabilities, target.bitrate_kbps, scratch,
            spike_factor=self.settings.spike_factor)

        logger.encoder(f"Encoding {video.path.name} at {target.bitrate_kbps} Kbps "
                       f"with {self.capabilities.encoder.value} (attempt {target.attempts})")
        self.file_manager.register_temp_file(scratch)
        try:
            result = self.encode(cmd, scratch, verbose=self.settings.verbose)
        except FileProcessingError:
            self.file_manager.cleanup_temp_file(scratch)
            raise

        logger.info(f"Processed file size: {format_size(result.size_bytes)}, "
                    f"savings: {format_size(video.size_bytes - result.size_bytes)}")
        return result

    def _score(self, video: VideoProperties, scratch: Path) -> float:
        try:
            vmaf_score = self.score(video.path, scratch, n_threads=self.settings.vmaf_threads)
        except FileProcessingError:
            self.file_manager.cleanup_temp_file(scratch)
            raise
        logger.vmaf(f"VMAF score: {vmaf_score:.2f}")
        return vmaf_score

    def _finalize(self, target: TranscodeTarget, scratch: Path, result: EncodeResult,
                  vmaf_score: Optional[float]) -> TranscodeOutcome:
        video = target.video
        try:
            final_path = self.file_manager.finalize(scratch, video.path, self.settings.replace_existing)
        except OSError:
            self.file_manager.cleanup_temp_file(scratch)
            raise
        if self.settings.replace_existing:
            logger.result(f"Replaced original file with optimal version: {final_path}")
        else:
            logger.result(f"Saved optimal file as: {final_path}")

        outcome = TranscodeOutcome(
            original_path=video.path,
            original_size_bytes=video.size_bytes,
            final_path=final_path,
            final_size_bytes=result.size_bytes,
            bitrate_kbps=target.bitrate_kbps,
            vmaf_score=vmaf_score if self.settings.check_quality else None,
            encoded=True,
            attempts=target.attempts,
        )
        if self.outcome_log is not None:
            self.outcome_log.record(outcome)
        return outcome
