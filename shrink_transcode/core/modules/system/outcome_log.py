"""
Durable outcome log for shrink_transcode.

Appends one JSON object per finalized file so a run's results survive the
console session:

    {"timestamp": "...", "original_file": "...", "original_size_kb": 1234,
     "processed_file": "...", "processed_size_kb": 456,
     "base_bitrate_kbps": 8000, "vmaf_score": 93.1, "attempts": 1}
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from ....utils.logging import get_logger

logger = get_logger("outcome_log")


class OutcomeLog:
    """Append-only JSON lines log of transcode outcomes."""

    def __init__(self, log_file: Union[str, Path]):
        self.log_file = Path(log_file)
        self._lock = threading.Lock()

    def record(self, outcome) -> Dict[str, Any]:
        """Append a TranscodeOutcome and return the written entry."""
        entry = {
            'timestamp': datetime.now().isoformat(timespec='seconds'),
            'original_file': str(outcome.original_path),
            'original_size_kb': outcome.original_size_bytes // 1024,
            'processed_file': str(outcome.final_path),
            'processed_size_kb': -(-outcome.final_size_bytes // 1024),
            'base_bitrate_kbps': outcome.bitrate_kbps,
            'vmaf_score': round(outcome.vmaf_score, 2) if outcome.vmaf_score is not None else None,
            'attempts': outcome.attempts,
        }
        with self._lock:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(entry) + "\n")
        logger.debug(f"Recorded outcome for {outcome.original_path} in {self.log_file}")
        return entry

    def read_entries(self) -> List[Dict[str, Any]]:
        """Read back every entry; unreadable lines are reported and skipped."""
        if not self.log_file.exists():
            return []
        entries = []
        with open(self.log_file, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warn(f"{self.log_file}:{line_no}: unreadable entry ({e})")
        return entries
