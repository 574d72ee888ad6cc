"""
Main entry point for the `videos` command.

Scans directories for .mp4 files, reports what would be re-encoded and the
projected savings, then (unless --dry-run) drives the transcode controller
over every candidate and prints the totals.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from ..config import DEFAULT_MIN_VMAF, DEFAULT_OVERHEAD_FACTOR, DEFAULT_SPIKE_FACTOR, TranscodeSettings, get_config
from ..utils.logging import get_logger, print_section_header, print_separator, set_debug_mode
from .modules.config.encoder_config import EncoderCapabilitySet, detect_encoder_capabilities
from .modules.errors import ConfigurationError, InvariantViolationError
from .modules.optimization import bitrate_policy
from .modules.processing.file_manager import DiscoveryResult, FileManager
from .modules.processing.job_processor import BatchRunner, BatchStats
from .modules.processing.transcode_controller import TranscodeController
from .modules.system.outcome_log import OutcomeLog
from .modules.system.system_utils import format_size, install_cleanup_handlers

logger = get_logger("main")

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_INVARIANT_VIOLATION = 2


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shrink-transcode videos",
        description="Re-encode .mp4 files to HEVC at resolution-based bitrates, optionally VMAF-verified")

    parser.add_argument("directories", nargs="+", metavar="DIR", help="Directories to scan recursively")

    parser.add_argument("--dry-run", action="store_true",
                        help="Only report candidates and projected savings")
    parser.add_argument("--replace-existing", action="store_true",
                        help="Replace originals instead of writing <name>.optimal.mp4 alongside")
    parser.add_argument("--check-quality", action="store_true",
                        help="Verify each encode with VMAF and raise the bitrate until it passes")
    parser.add_argument("--use-cpu", action="store_true",
                        help="Use libx265 instead of a hardware encoder")
    parser.add_argument("--overwrite", action="store_true",
                        help="Re-encode files even if an .optimal.mp4 version already exists")
    parser.add_argument("--cleanup", action="store_true",
                        help="Remove stale .tmp.mp4 scratch files before processing")

    parser.add_argument("--min-vmaf", type=float, default=None,
                        help=f"Minimum acceptable VMAF score (default: {DEFAULT_MIN_VMAF})")
    parser.add_argument("--overhead-factor", type=float, default=None,
                        help=f"Bitrate tolerance over the base bitrate (default: {DEFAULT_OVERHEAD_FACTOR})")
    parser.add_argument("--spike-factor", type=float, default=None,
                        help=f"NVENC peak bitrate multiplier (default: {DEFAULT_SPIKE_FACTOR})")
    parser.add_argument("--log-file", default=None,
                        help="JSON lines outcome log (default: LOG_FILE or var/app.log)")

    parser.add_argument("--verbose", action="store_true", help="Show ffmpeg commands and output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def print_settings(settings: TranscodeSettings, log_file: Path, dry_run: bool):
    print_section_header("SETTINGS")
    print(f"  Overhead factor:   {settings.overhead_factor}")
    print(f"  Spike factor:      {settings.spike_factor}")
    print(f"  Check quality:     {settings.check_quality}")
    if settings.check_quality:
        print(f"  Minimum VMAF:      {settings.min_vmaf_score}")
    print(f"  Replace existing:  {settings.replace_existing}")
    print(f"  Overwrite:         {settings.overwrite}")
    print(f"  Dry run:           {dry_run}")
    print(f"  Outcome log:       {log_file}")


def print_capabilities(capabilities: EncoderCapabilitySet):
    print_section_header("ENCODER")
    print(f"  Encoder:           {capabilities.encoder.value}"
          f" ({'hardware' if capabilities.encoder.is_hardware else 'software'})")
    print(f"  Temporal AQ:       {'yes' if capabilities.supports_temporal_aq else 'no'}")
    print(f"  VMAF available:    {'yes' if capabilities.supports_vmaf else 'no'}")
    print(f"  CPU cores:         {capabilities.cpu_cores}")


def print_projection(discovery: DiscoveryResult):
    """Scan report: candidates and their projected sizes at the base bitrate."""
    print_section_header("SCAN")
    print(f"  Files found:       {discovery.total_files_found}")
    print(f"  Files skipped:     {len(discovery.skipped_files)}")
    print(f"  Files to encode:   {len(discovery.candidates)}")

    projected = 0
    for video in discovery.candidates:
        base = bitrate_policy.base_bitrate_for(video.width, video.height)
        projected += bitrate_policy.estimate_output_size_kb(base, video.duration) * 1024

    current = discovery.total_current_size
    print_separator()
    print(f"  Current size:      {format_size(current)}")
    print(f"  Projected size:    {format_size(projected)}")
    print(f"  Projected savings: {format_size(current - projected)}")


def print_summary(stats: BatchStats):
    print_section_header("SUMMARY")
    print(f"  Files considered:  {stats.files_considered}")
    print(f"  Files skipped:     {stats.files_skipped}")
    print(f"  Files processed:   {stats.files_processed}")
    print(f"  Files errored:     {stats.files_errored}")
    print(f"  Original size:     {format_size(stats.total_original_size)}")
    print(f"  Final size:        {format_size(stats.total_final_size)}")
    print(f"  Savings:           {format_size(stats.total_savings)}")
    for path, message in stats.errors:
        print(f"  [ERROR] {path}: {message}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the `videos` command and return the process exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = get_config()
        settings = TranscodeSettings.from_config(
            config,
            overhead_factor=args.overhead_factor,
            spike_factor=args.spike_factor,
            min_vmaf_score=args.min_vmaf,
            check_quality=args.check_quality,
            replace_existing=args.replace_existing,
            overwrite=args.overwrite,
            verbose=args.verbose,
        )
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return EXIT_CONFIGURATION_ERROR

    debug = args.debug or config['debug']
    if debug:
        set_debug_mode(True)

    log_file = Path(args.log_file or config['log_file'])
    directories = [Path(d) for d in args.directories]

    install_cleanup_handlers()
    file_manager = FileManager(debug=debug)

    if args.cleanup:
        removed = file_manager.startup_scavenge(directories)
        if removed:
            logger.cleanup(f"Cleaned up {removed} stale scratch file(s)")
        else:
            logger.info("No stale scratch files found")

    print_settings(settings, log_file, args.dry_run)
    if settings.replace_existing and not settings.check_quality:
        logger.warn("--replace-existing without --check-quality replaces originals without a quality check")

    try:
        capabilities = detect_encoder_capabilities(use_cpu=args.use_cpu)
        print_capabilities(capabilities)
        controller = TranscodeController(settings, capabilities,
                                         outcome_log=OutcomeLog(log_file),
                                         file_manager=file_manager)
        discovery = file_manager.gather_candidates(directories, settings.overhead_factor,
                                                   overwrite=settings.overwrite)
    except ConfigurationError as e:
        logger.error(e.message)
        return EXIT_CONFIGURATION_ERROR
    except ValueError as e:
        logger.error(str(e))
        return EXIT_CONFIGURATION_ERROR

    print_projection(discovery)

    if args.dry_run:
        logger.info("Dry run, no files were encoded")
        return EXIT_OK

    if not discovery.candidates:
        logger.info("Nothing to encode")
        return EXIT_OK

    stats = BatchStats(files_skipped=len(discovery.skipped_files))
    runner = BatchRunner(controller, settings)
    try:
        runner.run(discovery.candidates, stats)
    except InvariantViolationError as e:
        logger.error(f"Aborting run: {e}")
        return EXIT_INVARIANT_VIOLATION
    finally:
        print_summary(stats)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
