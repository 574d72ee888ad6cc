"""
Fake ffprobe/ffmpeg for end-to-end tests.

Patched in for subprocess.run inside system_utils, so every external call
made through run_command (probe, encode, libvmaf) lands here.
"""

import json
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

SUBPROCESS_RUN = 'shrink_transcode.core.modules.system.system_utils.subprocess.run'


class FakeFFmpeg:

    def __init__(self, streams: Optional[Dict[str, dict]] = None, vmaf_scores: Optional[List[float]] = None,
                 encode_size: int = 1000, failing_sources=()):
        self.streams = streams or {}
        self.vmaf_scores = list(vmaf_scores or [])
        self.encode_size = encode_size
        self.failing_sources = set(failing_sources)
        self.encodes: List[List[str]] = []
        self.probes: List[str] = []

    @staticmethod
    def stream(width=1920, height=1080, kbps=10000, duration=60.0, pix_fmt="yuv420p"):
        return {
            "codec_name": "h264", "width": width, "height": height, "pix_fmt": pix_fmt,
            "duration": str(duration), "bit_rate": str(kbps * 1024),
        }

    def encoded_bitrates(self, name=None):
        return [int(cmd[cmd.index('-b:v') + 1].rstrip('k')) for cmd in self.encodes
                if name is None or Path(cmd[cmd.index('-i') + 1]).name == name]

    def __call__(self, cmd, **kwargs):
        if cmd[0] == 'ffprobe':
            return self._probe(cmd)
        if '-lavfi' in cmd:
            return self._vmaf(cmd)
        return self._encode(cmd)

    def _probe(self, cmd):
        name = Path(cmd[-1]).name
        self.probes.append(name)
        stream = self.streams.get(name)
        if stream is None:
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="Invalid data found when processing input")
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps({"streams": [stream]}), stderr="")

    def _encode(self, cmd):
        self.encodes.append(cmd)
        source = Path(cmd[cmd.index('-i') + 1]).name
        output = Path(cmd[-1])
        output.write_bytes(b"\0" * self.encode_size)
        if source in self.failing_sources:
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="Conversion failed!")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def _vmaf(self, cmd):
        lavfi = cmd[cmd.index('-lavfi') + 1]
        log_path = lavfi.split('log_path=', 1)[1].split(':log_fmt', 1)[0].replace('\\:', ':')
        score = self.vmaf_scores.pop(0)
        Path(log_path).write_text(json.dumps({"pooled_metrics": {"vmaf": {"harmonic_mean": score}}}),
                                  encoding='utf-8')
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
