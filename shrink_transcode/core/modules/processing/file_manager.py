"""
File Processing Workflows Module

Centralizes everything that touches the filesystem around a transcode:
- Discovery of .mp4 sources under one or more directories
- Skip decisions before any encode (markers, probe errors, resolution, bitrate)
- Scratch (.tmp.mp4) and result (.optimal.mp4) path derivation
- Finalize renames and promotion of .optimal.mp4 files over originals
- Scratch file registration and stale scratch cleanup
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from ....utils.logging import get_logger
from ..analysis.media_utils import VideoProperties, probe_video
from ..errors import ProbeError
from ..optimization import bitrate_policy
from ..system.system_utils import TEMP_FILES, format_size

logger = get_logger("file_manager")

VIDEO_EXTENSION = ".mp4"
OPTIMAL_MARKER = "optimal"
SCRATCH_MARKER = "tmp"


def marker_path(path: Path, marker: str) -> Path:
    """<dir>/<stem>.<marker><suffix> for a source path, keeping the source suffix case."""
    path = Path(path)
    return path.with_name(f"{path.stem}.{marker}{path.suffix}")


def optimal_path_for(path: Path) -> Path:
    return marker_path(path, OPTIMAL_MARKER)


def scratch_path_for(path: Path) -> Path:
    return marker_path(path, SCRATCH_MARKER)


def has_marker(path: Path, marker: str) -> bool:
    """Case-insensitive check for a <stem>.<marker>.mp4 name."""
    return Path(path).name.lower().endswith(f".{marker}{VIDEO_EXTENSION}")


def is_auxiliary_file(path: Path) -> bool:
    """True for files this tool produced (.optimal.mp4 results, .tmp.mp4 scratch)."""
    return any(has_marker(path, marker) for marker in (OPTIMAL_MARKER, SCRATCH_MARKER))


@dataclass
class DiscoveryResult:
    """Result of scanning directories for transcode candidates."""
    candidates: List[VideoProperties] = field(default_factory=list)
    skipped_files: List[Tuple[Path, str]] = field(default_factory=list)  # (file, reason)
    total_files_found: int = 0

    @property
    def total_current_size(self) -> int:
        return sum(video.size_bytes for video in self.candidates)


class FileManager:
    """Centralized file discovery, skip decisions and scratch file management."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def discover_video_files(self, directories: Iterable[Path]) -> List[Path]:
        """Recursively list .mp4 files, directory by directory, in sorted order."""
        files: List[Path] = []
        for directory in directories:
            directory = Path(str(directory).strip('"\' '))
            if not directory.is_dir():
                raise ValueError(f"Path not found or not a directory: {directory}")

            found = sorted(
                p for p in directory.rglob("*")
                if p.is_file() and p.suffix.lower() == VIDEO_EXTENSION
                and not p.name.startswith('.')
            )
            logger.discovery(f"Directory: {directory} ({len(found)} .mp4 files)")
            files.extend(found)
        return files

    def gather_candidates(self, directories: Iterable[Path], overhead_factor: float,
                          overwrite: bool = False,
                          probe: Callable[[Path], VideoProperties] = probe_video) -> DiscoveryResult:
        """Probe discovered files and keep the ones worth encoding."""
        files = self.discover_video_files(directories)
        result = DiscoveryResult(total_files_found=len(files))

        for path in files:
            reason = None
            video: Optional[VideoProperties] = None

            if is_auxiliary_file(path):
                reason = "auxiliary file"
            else:
                try:
                    video = probe(path)
                except ProbeError as e:
                    logger.error(str(e))
                    reason = f"probe failed: {e.message}"

            if video is not None:
                reason = self.skip_reason(video, overhead_factor, overwrite)

            if reason:
                result.skipped_files.append((path, reason))
                logger.skip(f"{path}: {reason}")
                continue

            result.candidates.append(video)
            base = bitrate_policy.base_bitrate_for(video.width, video.height)
            estimate_kb = bitrate_policy.estimate_output_size_kb(base, video.duration)
            logger.discovery(
                f"{path}: {video.resolution}, {video.bitrate_kbps} Kbps, {video.pix_fmt}, "
                f"{format_size(video.size_bytes)} -> ~{format_size(estimate_kb * 1024)} at {base} Kbps")

        return result

    def skip_reason(self, video: VideoProperties, overhead_factor: float, overwrite: bool = False) -> Optional[str]:
        """Why a probed file should not be encoded, or None if it should."""
        base = bitrate_policy.base_bitrate_for(video.width, video.height)
        if base is None:
            return f"unsupported resolution {video.resolution}"

        if bitrate_policy.is_acceptable(video.bitrate_kbps, base, overhead_factor):
            return f"bitrate {video.bitrate_kbps} Kbps is acceptable"

        if not overwrite:
            optimal = optimal_path_for(video.path)
            if optimal.exists():
                return f"optimal version already exists ({optimal.name})"

        return None

    def register_temp_file(self, file_path: Path) -> None:
        """Register a scratch file for exit cleanup."""
        TEMP_FILES.add(file_path)

    def unregister_temp_file(self, file_path: Path) -> None:
        TEMP_FILES.discard(file_path)

    def cleanup_temp_file(self, file_path: Path) -> bool:
        """Remove a scratch file if present. Returns True when a file was removed."""
        file_path = Path(file_path)
        self.unregister_temp_file(file_path)
        if file_path.exists():
            file_path.unlink()
            if self.debug:
                logger.cleanup(f"Removed {file_path.name}")
            return True
        return False

    def finalize(self, scratch: Path, original: Path, replace_existing: bool) -> Path:
        """Atomically move an accepted scratch file into place and return its final path."""
        target = Path(original) if replace_existing else optimal_path_for(original)
        os.replace(scratch, target)
        self.unregister_temp_file(scratch)
        return target

    def find_optimal_files(self, directories: Iterable[Path]) -> List[Path]:
        """All .optimal.mp4 files under the given directories, sorted per directory."""
        found: List[Path] = []
        for directory in directories:
            directory = Path(str(directory).strip('"\' '))
            if not directory.is_dir():
                raise ValueError(f"Path not found or not a directory: {directory}")
            found.extend(sorted(
                p for p in directory.rglob("*") if p.is_file() and has_marker(p, OPTIMAL_MARKER)))
        return found

    @staticmethod
    def original_path_for(optimal_file: Path) -> Path:
        """Inverse of optimal_path_for."""
        optimal_file = Path(optimal_file)
        stem = Path(optimal_file.stem).stem
        return optimal_file.with_name(f"{stem}{optimal_file.suffix}")

    def promote_optimal_file(self, optimal_file: Path) -> Path:
        """Replace the original with its .optimal.mp4 sibling."""
        original = self.original_path_for(optimal_file)
        os.replace(optimal_file, original)
        return original

    def startup_scavenge(self, directories: Iterable[Path]) -> int:
        """Remove stale .tmp.mp4 scratch files left by interrupted runs."""
        removed = 0
        for directory in directories:
            directory = Path(str(directory).strip('"\' '))
            if not directory.is_dir():
                continue
            for stale_file in directory.rglob("*"):
                if not stale_file.is_file() or not has_marker(stale_file, SCRATCH_MARKER):
                    continue
                try:
                    stale_file.unlink()
                    removed += 1
                    logger.cleanup(f"Removed stale scratch file: {stale_file}")
                except OSError as e:
                    logger.warn(f"Could not remove {stale_file}: {e}")
        return removed
