#!/usr/bin/env python3
"""
Unit tests for configuration_manager.py
"""

import argparse
import os
import tempfile
import unittest
from unittest.mock import patch

import yaml

# Import the module to test
import configuration_manager
from media_types import QualityConfig


def make_args(**overrides):
    values = {
        'crf': None, 'qp': None, 'preset': None, 'acodec': None, 'abitrate': None,
        'rate_control': None, 'hardware': None, 'save': None, 'dry_run': None,
        'directory': None, 'log_file': None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def write_config(config_data):
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        return f.name


class TestFileSizeParsing(unittest.TestCase):
    """Test file size parsing functionality."""

    def test_parse_file_size_bytes(self):
        self.assertEqual(configuration_manager.parse_file_size("100"), 100)
        self.assertEqual(configuration_manager.parse_file_size("100B"), 100)
        self.assertEqual(configuration_manager.parse_file_size("100 B"), 100)

    def test_parse_file_size_units(self):
        self.assertEqual(configuration_manager.parse_file_size("1.5KB"), 1536)
        self.assertEqual(configuration_manager.parse_file_size("2 MB"), 2 * 1024 ** 2)
        self.assertEqual(configuration_manager.parse_file_size("0.5GB"), int(0.5 * 1024 ** 3))

    def test_parse_file_size_case_insensitive(self):
        self.assertEqual(configuration_manager.parse_file_size("1gb"), 1024 ** 3)
        self.assertEqual(configuration_manager.parse_file_size("1Mb"), 1024 ** 2)

    def test_parse_file_size_integer_input(self):
        self.assertEqual(configuration_manager.parse_file_size(1024), 1024)
        self.assertEqual(configuration_manager.parse_file_size(0), 0)

    def test_parse_file_size_invalid(self):
        for value in ("invalid", "1 2 GB", "-1GB"):
            with self.assertRaises(ValueError):
                configuration_manager.parse_file_size(value)
        with self.assertRaises(ValueError):
            configuration_manager.parse_file_size(-5)


class TestValidationFunctions(unittest.TestCase):
    """Test validation functions."""

    def test_validate_quality_crf(self):
        self.assertTrue(configuration_manager.validate_quality(0))
        self.assertTrue(configuration_manager.validate_quality(24))
        self.assertTrue(configuration_manager.validate_quality(18.5))
        self.assertTrue(configuration_manager.validate_quality('51'))
        self.assertFalse(configuration_manager.validate_quality(-1))
        self.assertFalse(configuration_manager.validate_quality(52))
        self.assertFalse(configuration_manager.validate_quality('high'))
        self.assertFalse(configuration_manager.validate_quality(None))
        self.assertFalse(configuration_manager.validate_quality(True))

    def test_validate_quality_qp(self):
        self.assertTrue(configuration_manager.validate_quality(22, 'qp'))
        self.assertFalse(configuration_manager.validate_quality(22.5, 'qp'))

    def test_validate_rate_control(self):
        self.assertTrue(configuration_manager.validate_rate_control('quality'))
        self.assertTrue(configuration_manager.validate_rate_control('bitrate'))
        self.assertFalse(configuration_manager.validate_rate_control('abr'))

    def test_validate_hardware(self):
        for value in ('auto', 'none', 'nvidia', 'AMD', 'intel'):
            self.assertTrue(configuration_manager.validate_hardware(value))
        self.assertFalse(configuration_manager.validate_hardware('apple'))
        self.assertFalse(configuration_manager.validate_hardware(None))

    def test_validate_timeout(self):
        self.assertTrue(configuration_manager.validate_timeout(None))
        self.assertTrue(configuration_manager.validate_timeout(30))
        self.assertFalse(configuration_manager.validate_timeout(0))
        self.assertFalse(configuration_manager.validate_timeout('soon'))
        self.assertFalse(configuration_manager.validate_timeout(False))


class TestMergeConfig(unittest.TestCase):

    def test_partial_section_merges_with_defaults(self):
        defaults = configuration_manager.prepare_default_config()
        config = configuration_manager.merge_config(defaults, {'quality': {'value': 20}})
        self.assertEqual(config['quality']['value'], 20)
        self.assertEqual(config['quality']['preset'], 'medium')

    def test_null_or_invalid_section_restores_defaults(self):
        defaults = configuration_manager.prepare_default_config()
        config = configuration_manager.merge_config(defaults, {'dependencies': None, 'timeouts': 'never'})
        self.assertEqual(config['dependencies'], defaults['dependencies'])
        self.assertEqual(config['timeouts'], defaults['timeouts'])


class TestCliOverrides(unittest.TestCase):

    def test_crf_override(self):
        config = configuration_manager.prepare_default_config()
        configuration_manager.apply_cli_overrides(config, make_args(crf=19.5, preset='slow'))
        self.assertEqual(config['quality']['quality_kind'], 'crf')
        self.assertEqual(config['quality']['value'], 19.5)
        self.assertEqual(config['quality']['preset'], 'slow')

    def test_qp_override(self):
        config = configuration_manager.prepare_default_config()
        configuration_manager.apply_cli_overrides(config, make_args(qp=22))
        self.assertEqual(config['quality']['quality_kind'], 'qp')
        self.assertEqual(config['quality']['value'], 22)

    def test_flags(self):
        config = configuration_manager.prepare_default_config()
        configuration_manager.apply_cli_overrides(
            config, make_args(save=True, dry_run=True, hardware='intel', acodec='aac',
                              abitrate='128k', rate_control='bitrate'))
        self.assertTrue(config['save_originals'])
        self.assertTrue(config['dry_run'])
        self.assertEqual(config['hardware'], 'intel')
        self.assertEqual(config['quality']['audio_codec'], 'aac')
        self.assertEqual(config['quality']['audio_bitrate'], '128k')
        self.assertEqual(config['quality']['rate_control'], 'bitrate')

    def test_no_args_changes_nothing(self):
        config = configuration_manager.prepare_default_config()
        configuration_manager.apply_cli_overrides(config, None)
        self.assertEqual(config, configuration_manager.prepare_default_config())


class TestLogFileResolution(unittest.TestCase):

    def test_cli_beats_env_and_config(self):
        config = configuration_manager.prepare_default_config()
        config['logging']['log_file'] = '/from/config.log'
        with patch.dict(os.environ, {configuration_manager.LOG_FILE_ENV_VAR: '/from/env.log'}):
            self.assertEqual(
                configuration_manager.resolve_log_file(config, make_args(log_file='/from/cli.log')),
                '/from/cli.log')
            self.assertEqual(configuration_manager.resolve_log_file(config, make_args()), '/from/env.log')

    def test_config_value_used_last(self):
        config = configuration_manager.prepare_default_config()
        config['logging']['log_file'] = '/from/config.log'
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(configuration_manager.resolve_log_file(config, None), '/from/config.log')


class TestConfigLoading(unittest.TestCase):
    """Test configuration file loading."""

    def test_load_config_file_not_found(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config, errors = configuration_manager.load_config(os.path.join(temp_dir, 'nonexistent.yaml'))

        self.assertEqual(errors, [])
        self.assertEqual(config['quality']['value'], 24)
        self.assertEqual(config['hardware'], 'auto')
        self.assertEqual(config['min_file_size'], 0)
        self.assertIn('.srt', config['excluded_extensions'])
        self.assertIsInstance(config['excluded_extensions'], frozenset)

    def test_load_config_valid_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = write_config({
                'directory': temp_dir,
                'min_file_size': '2GB',
                'hardware': 'NVIDIA',
                'excluded_extensions': ['SRT', '.nfo'],
                'quality': {'value': 20, 'preset': 'slow', 'audio_codec': 'aac'},
            })
            try:
                config, errors = configuration_manager.load_config(config_path)
            finally:
                os.unlink(config_path)

        self.assertEqual(errors, [])
        self.assertEqual(config['directory'], temp_dir)
        self.assertEqual(config['min_file_size'], 2 * 1024 ** 3)
        self.assertEqual(config['hardware'], 'nvidia')
        self.assertEqual(config['excluded_extensions'], frozenset({'.srt', '.nfo'}))
        self.assertEqual(config['quality']['value'], 20)
        self.assertEqual(config['quality']['rate_control'], 'quality')

    def test_load_config_reports_every_problem(self):
        config_path = write_config({
            'directory': '/definitely/not/here',
            'min_file_size': 'huge',
            'hardware': 'apple',
            'quality': {'value': 80, 'preset': 'warp', 'rate_control': 'abr'},
            'timeouts': {'probe_seconds': -1},
        })
        try:
            _, errors = configuration_manager.load_config(config_path)
        finally:
            os.unlink(config_path)

        self.assertEqual(len(errors), 7)

    def test_load_config_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("invalid: yaml: content: [\n")
            config_path = f.name

        try:
            config, errors = configuration_manager.load_config(config_path)
        finally:
            os.unlink(config_path)

        self.assertEqual(config['quality']['value'], 24)
        self.assertEqual(errors, [])

    def test_load_config_with_dependencies(self):
        config_path = write_config({'dependencies': {'ffprobe': '/custom/ffprobe'}})
        try:
            config, _ = configuration_manager.load_config(config_path)
        finally:
            os.unlink(config_path)

        self.assertEqual(config['dependencies']['ffprobe'], '/custom/ffprobe')
        self.assertEqual(config['dependencies']['ffmpeg'], 'ffmpeg')

    def test_cli_args_override_file(self):
        config_path = write_config({'quality': {'value': 30}})
        try:
            config, errors = configuration_manager.load_config(config_path, make_args(qp=18, save=True))
        finally:
            os.unlink(config_path)

        self.assertEqual(errors, [])
        self.assertEqual(config['quality']['quality_kind'], 'qp')
        self.assertEqual(config['quality']['value'], 18)
        self.assertTrue(config['save_originals'])


class TestBuildQualityConfig(unittest.TestCase):

    def test_defaults(self):
        config = configuration_manager.prepare_default_config()
        self.assertEqual(configuration_manager.build_quality_config(config), QualityConfig())

    def test_qp_is_integer(self):
        config = configuration_manager.prepare_default_config()
        config['quality'].update({'quality_kind': 'qp', 'value': 22.0})
        quality_config = configuration_manager.build_quality_config(config)
        self.assertEqual(quality_config.quality_value, 22)
        self.assertIsInstance(quality_config.quality_value, int)


if __name__ == '__main__':
    unittest.main()
