"""Test configuration loading."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from shrink_transcode.config import (
    DEFAULT_LOG_FILE, TranscodeSettings, get_config, load_env_file
)


class TestConfig(unittest.TestCase):

    def write_env(self, content):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.env', delete=False) as f:
            f.write(content)
        path = Path(f.name)
        self.addCleanup(path.unlink)
        return path

    def test_load_env_file(self):
        """Test loading environment variables from .env file."""
        env_path = self.write_env('min_vmaf=92.5\n# This is a comment\n\ndebug=true\n')

        env_vars = load_env_file(env_path)

        self.assertEqual(env_vars['min_vmaf'], '92.5')
        self.assertEqual(env_vars['debug'], 'true')
        self.assertNotIn('# This is a comment', env_vars)

    @patch.dict(os.environ, {}, clear=True)
    def test_get_config_defaults(self):
        config = get_config(self.write_env(''))

        self.assertEqual(config['min_vmaf'], 90.0)
        self.assertEqual(config['overhead_factor'], 1.10)
        self.assertEqual(config['spike_factor'], 1.25)
        self.assertEqual(config['vmaf_threads'], 0)
        self.assertEqual(config['log_file'], DEFAULT_LOG_FILE)
        self.assertFalse(config['debug'])

    @patch.dict(os.environ, {'OVERHEAD_FACTOR': '1.2', 'MIN_VMAF': '91'}, clear=True)
    def test_env_file_wins_over_environment(self):
        config = get_config(self.write_env('min_vmaf=93\n'))
        self.assertEqual(config['min_vmaf'], 93.0)
        self.assertEqual(config['overhead_factor'], 1.2)


class TestTranscodeSettings(unittest.TestCase):

    def test_defaults(self):
        settings = TranscodeSettings()
        self.assertEqual(settings.overhead_factor, 1.10)
        self.assertEqual(settings.spike_factor, 1.25)
        self.assertEqual(settings.min_vmaf_score, 90.0)
        self.assertFalse(settings.check_quality)
        self.assertFalse(settings.replace_existing)

    def test_from_config_with_overrides(self):
        config = {'overhead_factor': 1.2, 'spike_factor': 1.5, 'min_vmaf': 93.0, 'vmaf_threads': 4}
        settings = TranscodeSettings.from_config(config, min_vmaf_score=95.0, spike_factor=None,
                                                 check_quality=True)

        self.assertEqual(settings.overhead_factor, 1.2)
        self.assertEqual(settings.spike_factor, 1.5)
        self.assertEqual(settings.min_vmaf_score, 95.0)
        self.assertEqual(settings.vmaf_threads, 4)
        self.assertTrue(settings.check_quality)

    def test_validation(self):
        for kwargs in ({'overhead_factor': 0.9}, {'spike_factor': 0.5},
                       {'min_vmaf_score': 101.0}, {'min_vmaf_score': -1.0}):
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    TranscodeSettings(**kwargs)

    def test_settings_are_immutable(self):
        settings = TranscodeSettings()
        with self.assertRaises(Exception):
            settings.overhead_factor = 2.0


if __name__ == '__main__':
    unittest.main()
