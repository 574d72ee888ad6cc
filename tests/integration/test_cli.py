"""
Integration tests for the command line entry points.

ffmpeg/ffprobe are replaced with FakeFFmpeg and encoder detection is
patched, so these run the real discovery, controller and batch code.
"""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

import shrink_transcode
from shrink_transcode import cli
from shrink_transcode.config import get_config
from shrink_transcode.core import main as videos_main
from shrink_transcode.core.modules.config.encoder_config import EncoderChoice
from shrink_transcode.core.modules.errors import EncoderUnavailableError, InvariantViolationError
from shrink_transcode.core.modules.system.system_utils import TEMP_FILES
from shrink_transcode.core.rename import rename_optimal_files
from shrink_transcode.utils.logging import set_quiet_mode

from tests.fake_ffmpeg import SUBPROCESS_RUN, FakeFFmpeg
from tests.helpers import make_capabilities

MAIN = 'shrink_transcode.core.main'


class CliTestCase(unittest.TestCase):

    def setUp(self):
        set_quiet_mode(True)
        TEMP_FILES.clear()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.videos = self.root / "videos"
        self.videos.mkdir()
        self.log_file = self.root / "var" / "app.log"

        for target in (f'{MAIN}.install_cleanup_handlers', f'{MAIN}.get_config'):
            patcher = patch(target)
            mock = patcher.start()
            self.addCleanup(patcher.stop)
            if target.endswith('get_config'):
                self.config = mock.return_value = {
                    'min_vmaf': 90.0, 'overhead_factor': 1.10, 'spike_factor': 1.25,
                    'vmaf_threads': 1, 'log_file': str(self.log_file), 'debug': False,
                }

    def tearDown(self):
        set_quiet_mode(False)
        TEMP_FILES.clear()
        self.temp_dir.cleanup()

    def add_video(self, name, size=100_000):
        path = self.videos / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\0" * size)
        return path

    def run_videos(self, fake, *args, capabilities=None):
        capabilities = capabilities or make_capabilities()
        output = io.StringIO()
        with patch(SUBPROCESS_RUN, side_effect=fake), \
                patch(f'{MAIN}.detect_encoder_capabilities', return_value=capabilities) as detect, \
                redirect_stdout(output):
            code = videos_main.main([*args, str(self.videos)])
        self.detect = detect
        return code, output.getvalue()


class TestVideosCommand(CliTestCase):

    def test_full_run_with_quality_check(self):
        self.add_video("movie.mp4")
        self.add_video("small.mp4")
        self.add_video("season/ep1.mp4")
        fake = FakeFFmpeg({
            "movie.mp4": FakeFFmpeg.stream(kbps=20000),
            "small.mp4": FakeFFmpeg.stream(kbps=8500),
            "ep1.mp4": FakeFFmpeg.stream(width=1280, height=720, kbps=6000),
        }, vmaf_scores=[85.0, 92.0, 95.0], encode_size=30_000)

        code, output = self.run_videos(fake, "--check-quality")

        self.assertEqual(code, 0)
        self.assertEqual(fake.encoded_bitrates("movie.mp4"), [8000, 10000])
        self.assertEqual(fake.encoded_bitrates("ep1.mp4"), [4000])
        self.assertEqual(fake.encoded_bitrates("small.mp4"), [])
        self.assertTrue((self.videos / "movie.optimal.mp4").exists())
        self.assertTrue((self.videos / "season" / "ep1.optimal.mp4").exists())
        self.assertEqual(list(self.videos.rglob("*.tmp.mp4")), [])
        self.assertIn("SUMMARY", output)
        self.assertIn("Files processed:   2", output)
        self.assertIn("Files skipped:     1", output)

        entries = [json.loads(line) for line in self.log_file.read_text(encoding='utf-8').splitlines()]
        self.assertEqual([Path(e['original_file']).name for e in entries], ["movie.mp4", "ep1.mp4"])
        self.assertEqual(entries[0]['base_bitrate_kbps'], 10000)
        self.assertEqual(entries[0]['vmaf_score'], 92.0)
        self.assertEqual(entries[0]['attempts'], 2)

    def test_dry_run_encodes_nothing(self):
        self.add_video("movie.mp4")
        fake = FakeFFmpeg({"movie.mp4": FakeFFmpeg.stream(kbps=10000, duration=60.0)})

        code, output = self.run_videos(fake, "--dry-run")

        self.assertEqual(code, 0)
        self.assertEqual(fake.encodes, [])
        self.assertIn("Files to encode:   1", output)
        # 8000 Kbps for 60 s -> 60000 KB
        self.assertIn("Projected size:    58.59 MB", output)
        self.assertNotIn("SUMMARY", output)

    def test_encode_failure_is_counted_and_run_continues(self):
        self.add_video("a.mp4")
        self.add_video("b.mp4")
        fake = FakeFFmpeg({name: FakeFFmpeg.stream(kbps=10000) for name in ("a.mp4", "b.mp4")},
                          failing_sources={"a.mp4"})

        code, output = self.run_videos(fake)

        self.assertEqual(code, 0)
        self.assertIn("Files errored:     1", output)
        self.assertTrue((self.videos / "b.optimal.mp4").exists())
        self.assertEqual(list(self.videos.glob("*.tmp.mp4")), [])

    def test_replace_existing(self):
        original = self.add_video("movie.mp4", size=100_000)
        fake = FakeFFmpeg({"movie.mp4": FakeFFmpeg.stream(kbps=10000)}, encode_size=40_000)

        code, _ = self.run_videos(fake, "--replace-existing")

        self.assertEqual(code, 0)
        self.assertEqual(original.stat().st_size, 40_000)
        self.assertFalse((self.videos / "movie.optimal.mp4").exists())

    def test_use_cpu_is_passed_to_detection(self):
        self.run_videos(FakeFFmpeg(), "--use-cpu", "--dry-run",
                        capabilities=make_capabilities(EncoderChoice.CPU))
        self.detect.assert_called_once_with(use_cpu=True)

    def test_debug_from_environment(self):
        self.config['debug'] = True
        with patch(f'{MAIN}.set_debug_mode') as set_debug:
            code, _ = self.run_videos(FakeFFmpeg(), "--dry-run")
        self.assertEqual(code, 0)
        set_debug.assert_called_once_with(True)

    def test_debug_off_by_default(self):
        with patch(f'{MAIN}.set_debug_mode') as set_debug:
            self.run_videos(FakeFFmpeg(), "--dry-run")
        set_debug.assert_not_called()

    def test_cleanup_removes_stale_scratch(self):
        self.add_video("old.tmp.mp4")
        code, _ = self.run_videos(FakeFFmpeg(), "--cleanup", "--dry-run")
        self.assertEqual(code, 0)
        self.assertFalse((self.videos / "old.tmp.mp4").exists())


class TestExitCodes(CliTestCase):

    def test_missing_encoder_exits_1(self):
        with patch(f'{MAIN}.detect_encoder_capabilities',
                   side_effect=EncoderUnavailableError("No hardware HEVC encoder found")), \
                redirect_stdout(io.StringIO()):
            code = videos_main.main([str(self.videos)])
        self.assertEqual(code, 1)

    def test_quality_check_without_vmaf_exits_1(self):
        code, _ = self.run_videos(FakeFFmpeg(), "--check-quality",
                                  capabilities=make_capabilities(supports_vmaf=False))
        self.assertEqual(code, 1)

    def test_invalid_factor_exits_1(self):
        code, _ = self.run_videos(FakeFFmpeg(), "--overhead-factor", "0.5")
        self.assertEqual(code, 1)

    def test_malformed_environment_value_exits_1(self):
        with patch.dict(os.environ, {'MIN_VMAF': 'abc'}), \
                patch(f'{MAIN}.get_config', side_effect=lambda: get_config(self.root / "missing.env")):
            code, output = self.run_videos(FakeFFmpeg(), "--dry-run")
        self.assertEqual(code, 1)
        self.assertNotIn("SCAN", output)

    def test_missing_directory_exits_1(self):
        with patch(f'{MAIN}.detect_encoder_capabilities', return_value=make_capabilities()), \
                redirect_stdout(io.StringIO()):
            code = videos_main.main([str(self.root / "missing")])
        self.assertEqual(code, 1)

    def test_invariant_violation_exits_2_with_summary(self):
        self.add_video("movie.mp4")
        fake = FakeFFmpeg({"movie.mp4": FakeFFmpeg.stream(kbps=10000)})
        with patch('shrink_transcode.core.modules.processing.transcode_controller.TranscodeController.process',
                   side_effect=InvariantViolationError("no step")):
            code, output = self.run_videos(fake)
        self.assertEqual(code, 2)
        self.assertIn("SUMMARY", output)


class TestRenameCommand(CliTestCase):

    def test_promotes_optimal_files(self):
        self.add_video("a.mp4", size=100)
        self.add_video("a.optimal.mp4", size=40)
        self.add_video("sub/b.mp4", size=200)
        self.add_video("sub/b.optimal.mp4", size=50)

        summary = rename_optimal_files([self.videos])

        self.assertEqual(summary.savings, 210)
        self.assertEqual((self.videos / "a.mp4").stat().st_size, 40)
        self.assertEqual((self.videos / "sub" / "b.mp4").stat().st_size, 50)
        self.assertEqual(list(self.videos.rglob("*.optimal.mp4")), [])

    def test_dry_run_changes_nothing(self):
        self.add_video("a.mp4", size=100)
        self.add_video("a.optimal.mp4", size=40)

        summary = rename_optimal_files([self.videos], dry_run=True)

        self.assertEqual(summary.savings, 60)
        self.assertTrue((self.videos / "a.optimal.mp4").exists())
        self.assertEqual((self.videos / "a.mp4").stat().st_size, 100)

    def test_orphan_optimal_file_is_left_alone(self):
        self.add_video("lonely.optimal.mp4", size=40)
        summary = rename_optimal_files([self.videos])
        self.assertEqual(summary.renamed, [])
        self.assertTrue((self.videos / "lonely.optimal.mp4").exists())


class TestDispatcher(unittest.TestCase):

    def test_dispatches_subcommands(self):
        with patch.object(cli, 'COMMANDS', {'videos': lambda argv: ('videos', argv),
                                            'rename': lambda argv: ('rename', argv)}):
            self.assertEqual(cli.main(['rename', '--dry-run', 'x']), ('rename', ['--dry-run', 'x']))
            self.assertEqual(cli.main(['videos', 'x']), ('videos', ['x']))

    def test_unknown_command(self):
        with redirect_stdout(io.StringIO()), patch('sys.stderr', new_callable=io.StringIO):
            self.assertEqual(cli.main(['encode']), 1)

    def test_no_arguments_prints_usage(self):
        output = io.StringIO()
        with redirect_stdout(output):
            self.assertEqual(cli.main([]), 1)
        self.assertIn("videos", output.getvalue())

    def test_lazy_function_accessors(self):
        videos = shrink_transcode.get_videos_functions()
        self.assertIs(videos['main'], videos_main.main)
        self.assertIs(shrink_transcode.get_rename_functions()['rename_optimal_files'], rename_optimal_files)


if __name__ == '__main__':
    unittest.main()
