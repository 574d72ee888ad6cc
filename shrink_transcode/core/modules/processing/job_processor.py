"""
Job processing module for shrink_transcode.

Runs the transcode controller over a list of candidate files one at a
time, in order, and keeps per-run totals. Per-file failures are logged,
counted and skipped over; configuration errors and invariant violations
abort the whole run.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ....config import TranscodeSettings
from ....utils.logging import create_progress_bar, get_logger
from ..analysis.media_utils import VideoProperties
from ..errors import FileProcessingError
from ..system.system_utils import format_size
from .transcode_controller import TranscodeController, TranscodeOutcome

logger = get_logger("job_processor")


@dataclass
class BatchStats:
    """Running totals for one batch."""
    files_considered: int = 0
    files_skipped: int = 0
    files_errored: int = 0
    total_original_size: int = 0
    total_final_size: int = 0
    outcomes: List[TranscodeOutcome] = field(default_factory=list)
    errors: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def files_processed(self) -> int:
        return len(self.outcomes)

    @property
    def total_savings(self) -> int:
        return self.total_original_size - self.total_final_size

    def add_outcome(self, outcome: TranscodeOutcome) -> None:
        self.outcomes.append(outcome)
        self.total_original_size += outcome.original_size_bytes
        self.total_final_size += outcome.final_size_bytes

    def add_error(self, path: Path, message: str) -> None:
        self.files_errored += 1
        self.errors.append((path, message))


class BatchRunner:
    """Sequentially drives the controller over candidate files."""

    def __init__(self, controller: TranscodeController, settings: TranscodeSettings):
        self.controller = controller
        self.settings = settings

    def run(self, files: List[VideoProperties], stats: Optional[BatchStats] = None) -> BatchStats:
        """Process every file in order and return the accumulated stats.

        Pass a BatchStats to keep partial totals visible to the caller if the
        run is aborted by an exception.
        """
        stats = stats if stats is not None else BatchStats()
        stats.files_considered += len(files)
        mode = "replacing originals" if self.settings.replace_existing else "writing .optimal.mp4 files"
        if self.settings.check_quality:
            mode += f", VMAF >= {self.settings.min_vmaf_score}"
        logger.info(f"Processing {len(files)} file(s), {mode}")

        with create_progress_bar(total=len(files), desc="Transcoding", unit="file") as pbar:
            for index, video in enumerate(files, start=1):
                pbar.set_postfix_str(video.path.name)
                logger.info(f"[{index}/{len(files)}] {video.path} "
                            f"({video.resolution}, {video.bitrate_kbps} Kbps, {format_size(video.size_bytes)})")
                try:
                    outcome = self.controller.process(video)
                except FileProcessingError as e:
                    logger.error(str(e))
                    stats.add_error(video.path, e.message)
                except OSError as e:
                    logger.error(f"{video.path}: {e}")
                    stats.add_error(video.path, str(e))
                else:
                    stats.add_outcome(outcome)
                    self._report(outcome)
                finally:
                    pbar.update(1)

        return stats

    def _report(self, outcome: TranscodeOutcome) -> None:
        name = outcome.original_path.name
        if not outcome.encoded:
            logger.result(f"{name}: kept original")
            return
        message = (f"{name}: {outcome.bitrate_kbps} Kbps after {outcome.attempts} attempt(s), "
                   f"saved {format_size(outcome.savings_bytes)}")
        if self.settings.check_quality and outcome.vmaf_score is not None:
            message += f", VMAF {outcome.vmaf_score:.2f}"
        logger.result(message)
