"""Configuration management for shrink-transcode."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Dict, Any


DEFAULT_OVERHEAD_FACTOR = 1.10
DEFAULT_SPIKE_FACTOR = 1.25
DEFAULT_MIN_VMAF = 90.0
DEFAULT_LOG_FILE = "var/app.log"


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from .env file."""
    if env_path is None:
        # Look for .env in current directory, then in package directory
        candidates = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for candidate in candidates:
            if candidate.exists():
                env_path = candidate
                break

    env_vars = {}

    if env_path and env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    if '=' in line:
                        key, value = line.split('=', 1)
                        env_vars[key.strip()] = value.strip()

    return env_vars


def get_config(env_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get configuration from environment variables and .env file."""
    env_vars = load_env_file(env_path)

    config = {
        'min_vmaf': float(env_vars.get('min_vmaf', os.getenv('MIN_VMAF', str(DEFAULT_MIN_VMAF)))),
        'overhead_factor': float(env_vars.get('overhead_factor', os.getenv('OVERHEAD_FACTOR', str(DEFAULT_OVERHEAD_FACTOR)))),
        'spike_factor': float(env_vars.get('spike_factor', os.getenv('SPIKE_FACTOR', str(DEFAULT_SPIKE_FACTOR)))),
        'vmaf_threads': int(env_vars.get('vmaf_threads', os.getenv('VMAF_THREADS', '0'))),
        'log_file': env_vars.get('log_file', os.getenv('LOG_FILE', DEFAULT_LOG_FILE)),
        'debug': env_vars.get('debug', os.getenv('DEBUG', 'false')).lower() in ('true', '1', 'yes'),
    }

    return config


@dataclass(frozen=True)
class TranscodeSettings:
    """Run-scoped settings shared by the controller and the batch runner.

    Built once at startup and passed explicitly; never mutated afterwards.
    """
    overhead_factor: float = DEFAULT_OVERHEAD_FACTOR
    spike_factor: float = DEFAULT_SPIKE_FACTOR
    min_vmaf_score: float = DEFAULT_MIN_VMAF
    check_quality: bool = False
    replace_existing: bool = False
    overwrite: bool = False
    vmaf_threads: int = 0
    verbose: bool = False

    def __post_init__(self):
        if self.overhead_factor < 1.0:
            raise ValueError(f"overhead_factor must be >= 1.0, got {self.overhead_factor}")
        if self.spike_factor < 1.0:
            raise ValueError(f"spike_factor must be >= 1.0, got {self.spike_factor}")
        if not 0.0 <= self.min_vmaf_score <= 100.0:
            raise ValueError(f"min_vmaf_score must be within 0-100, got {self.min_vmaf_score}")

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None, **overrides) -> 'TranscodeSettings':
        """Build settings from get_config() values; keyword overrides win when not None."""
        config = config if config is not None else get_config()
        settings = cls(
            overhead_factor=config.get('overhead_factor', DEFAULT_OVERHEAD_FACTOR),
            spike_factor=config.get('spike_factor', DEFAULT_SPIKE_FACTOR),
            min_vmaf_score=config.get('min_vmaf', DEFAULT_MIN_VMAF),
            vmaf_threads=config.get('vmaf_threads', 0),
        )
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(settings, **changes) if changes else settings
