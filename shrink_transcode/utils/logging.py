"""
Centralized logging utilities for shrink_transcode

Provides consistent logging patterns with configurable debug levels:
- [INFO] for general information
- [WARN] for warnings
- [ERROR] for errors
- [RESULT] for final results
- [DEBUG] for debug information
- [ENCODER] for encoder detection and encode runs
- [VMAF] for quality scoring messages
- [DISCOVERY] for file scanning
- [CLEANUP] for scratch file cleanup

Usage:
    from shrink_transcode.utils.logging import get_logger, set_debug_mode

    set_debug_mode(True)  # Enable debug messages

    logger = get_logger("transcode_controller")
    logger.info("This is an info message")
    logger.debug("This is a debug message")  # Only shows if debug enabled
    logger.vmaf("VMAF score 93.12")
"""

import os
from enum import Enum
from typing import Optional

from tqdm import tqdm

# Global logging configuration
_DEBUG_ENABLED = os.getenv('DEBUG', '').lower() in ('1', 'true', 'yes')
_QUIET_MODE = False
_LOG_LEVEL = "INFO"


class LogLevel(Enum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


def set_debug_mode(enabled: bool):
    """Enable or disable debug mode globally"""
    global _DEBUG_ENABLED
    _DEBUG_ENABLED = enabled


def set_quiet_mode(enabled: bool):
    """Enable or disable quiet mode (suppress INFO and DEBUG messages)"""
    global _QUIET_MODE
    _QUIET_MODE = enabled


def set_log_level(level: str):
    """Set the global log level: DEBUG, INFO, WARN, ERROR"""
    global _LOG_LEVEL
    _LOG_LEVEL = level.upper()


class Logger:
    """Centralized logger with consistent formatting and configurable output"""

    def __init__(self, module_name: str = ""):
        self.module_name = module_name

    def _should_log(self, level: LogLevel) -> bool:
        """Check if message should be logged based on current settings"""
        if _QUIET_MODE and level in (LogLevel.DEBUG, LogLevel.INFO):
            return False
        if level is LogLevel.DEBUG:
            return _DEBUG_ENABLED

        level_hierarchy = {
            "DEBUG": LogLevel.DEBUG,
            "INFO": LogLevel.INFO,
            "WARN": LogLevel.WARN,
            "ERROR": LogLevel.ERROR
        }

        current_level = level_hierarchy.get(_LOG_LEVEL, LogLevel.INFO)
        return level.value >= current_level.value

    def _emit(self, tag: str, message: str, level: LogLevel = LogLevel.INFO):
        if self._should_log(level):
            # Module name prefix in debug mode only
            prefix = f"[{self.module_name}] " if self.module_name and _DEBUG_ENABLED else ""
            tqdm.write(f"[{tag}] {prefix}{message}")

    def debug(self, message: str):
        """Log debug message (only if debug mode enabled)"""
        if _DEBUG_ENABLED:
            self._emit("DEBUG", message, LogLevel.DEBUG)

    def info(self, message: str):
        """Log informational message"""
        self._emit("INFO", message)

    def warn(self, message: str):
        """Log warning message"""
        self._emit("WARN", message, LogLevel.WARN)

    def error(self, message: str):
        """Log error message"""
        self._emit("ERROR", message, LogLevel.ERROR)

    def result(self, message: str):
        """Log result message"""
        self._emit("RESULT", message)

    # Domain-specific logging methods
    def encoder(self, message: str):
        """Log encoder setup or encode run message"""
        self._emit("ENCODER", message)

    def vmaf(self, message: str):
        """Log VMAF scoring message"""
        self._emit("VMAF", message)

    def discovery(self, message: str):
        """Log file discovery message"""
        self._emit("DISCOVERY", message)

    def skip(self, message: str):
        """Log a skipped file"""
        self._emit("SKIP", message)

    def cleanup(self, message: str):
        """Log cleanup operation"""
        self._emit("CLEANUP", message)

    def cmd(self, message: str):
        """Log command execution message"""
        if _DEBUG_ENABLED:
            self._emit("CMD", message, LogLevel.DEBUG)


def get_logger(module_name: str = "") -> Logger:
    """Get a logger instance for a module"""
    return Logger(module_name)


def create_progress_bar(total: Optional[int] = None, desc: str = "", unit: str = "it",
                        position: Optional[int] = None, leave: bool = True) -> tqdm:
    """Create a progress bar with consistent styling"""
    return tqdm(total=total, desc=desc, unit=unit, position=position, leave=leave,
                disable=_QUIET_MODE)


def print_section_header(title: str, width: int = 70):
    """Print a section header with consistent formatting"""
    print("=" * width)
    print(title)
    print("=" * width)


def print_separator(width: int = 70):
    """Print a separator line"""
    print("-" * width)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to a human-readable string"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
