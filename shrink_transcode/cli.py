"""CLI entry points for shrink-transcode package."""

import sys
from typing import List, Optional

USAGE = """usage: shrink-transcode {videos,rename} ...

commands:
  videos   Re-encode .mp4 files to HEVC at resolution-based bitrates
  rename   Replace originals with their .optimal.mp4 versions
"""


def main_videos(argv: Optional[List[str]] = None) -> int:
    """Entry point for shrink-transcode-videos command."""
    from shrink_transcode.core.main import main
    return main(argv)


def main_rename(argv: Optional[List[str]] = None) -> int:
    """Entry point for shrink-transcode-rename command."""
    from shrink_transcode.core.rename import main
    return main(argv)


COMMANDS = {
    'videos': main_videos,
    'rename': main_rename,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for shrink-transcode command; dispatches to a subcommand."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ('-h', '--help'):
        print(USAGE)
        return 0 if argv else 1

    command = COMMANDS.get(argv[0])
    if command is None:
        print(f"Unknown command: {argv[0]}\n", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 1
    return command(argv[1:])


if __name__ == "__main__":
    sys.exit(main())
