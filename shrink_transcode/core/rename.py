"""
Entry point for the `rename` command.

Promotes every <name>.optimal.mp4 over its <name>.mp4 original and reports
the space saved.
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..utils.logging import get_logger, print_separator, set_debug_mode
from .modules.processing.file_manager import FileManager
from .modules.system.system_utils import format_size

logger = get_logger("rename")


@dataclass
class RenameSummary:
    renamed: List[Path]
    total_old_size: int = 0
    total_new_size: int = 0

    @property
    def savings(self) -> int:
        return self.total_old_size - self.total_new_size


def rename_optimal_files(directories: Iterable[Path], dry_run: bool = False,
                         file_manager: Optional[FileManager] = None) -> RenameSummary:
    """Replace originals with their .optimal.mp4 versions.

    Optimal files without an original next to them are reported and left alone.
    """
    file_manager = file_manager or FileManager()
    summary = RenameSummary(renamed=[])

    for optimal_file in file_manager.find_optimal_files(directories):
        original = file_manager.original_path_for(optimal_file)
        if not original.exists():
            logger.warn(f"{optimal_file}: original {original.name} not found, leaving as is")
            continue

        old_size = original.stat().st_size
        new_size = optimal_file.stat().st_size
        logger.info(f"File: {optimal_file} ({format_size(new_size)}) => {original} ({format_size(old_size)})")

        summary.total_old_size += old_size
        summary.total_new_size += new_size
        if not dry_run:
            file_manager.promote_optimal_file(optimal_file)
        summary.renamed.append(original)

    return summary


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shrink-transcode rename",
        description="Rename <name>.optimal.mp4 files to replace their originals")
    parser.add_argument("directories", nargs="+", metavar="DIR", help="Directories to scan recursively")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would be renamed")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    if args.debug:
        set_debug_mode(True)

    logger.info(f"Dry run: {'Yes' if args.dry_run else 'No'}")
    try:
        summary = rename_optimal_files([Path(d) for d in args.directories], dry_run=args.dry_run)
    except ValueError as e:
        logger.error(str(e))
        return 1

    print_separator()
    logger.result(f"Total: {format_size(summary.total_old_size)} - {format_size(summary.total_new_size)} "
                  f"= {format_size(summary.savings)} savings ({len(summary.renamed)} file(s))")
    return 0


if __name__ == "__main__":
    sys.exit(main())
