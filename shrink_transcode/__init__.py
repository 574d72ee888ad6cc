"""
Shrink Transcode - batch HEVC re-encoding with bitrate policy and VMAF-verified quality.
"""

__version__ = "1.0.0"
__author__ = "Rallade"
__email__ = "rallade@hotmail.com"

from .config import get_config, load_env_file, TranscodeSettings


def get_videos_functions():
    """Get the functions behind the `videos` command (imported on-demand)."""
    from .core.main import main, create_parser
    from .core.modules.processing.file_manager import FileManager
    from .core.modules.processing.job_processor import BatchRunner
    from .core.modules.processing.transcode_controller import TranscodeController
    return {
        'main': main,
        'create_parser': create_parser,
        'FileManager': FileManager,
        'BatchRunner': BatchRunner,
        'TranscodeController': TranscodeController,
    }


def get_rename_functions():
    """Get the functions behind the `rename` command (imported on-demand)."""
    from .core.rename import main, rename_optimal_files
    return {
        'main': main,
        'rename_optimal_files': rename_optimal_files,
    }


__all__ = [
    "get_config",
    "load_env_file",
    "TranscodeSettings",
    "get_videos_functions",
    "get_rename_functions",
]
