#!/usr/bin/env python3
"""
Configuration manager

Loads config.yaml, merges it over the defaults, applies command line
overrides, and validates the result. Validation problems are collected and
returned instead of raised so the CLI can print all of them at once.
"""

import logging
import os
import re
from pathlib import Path

import yaml

import dependencies_utils
from eligibility_filter import DEFAULT_EXCLUDED_EXTENSIONS, normalize_extensions
from encoder_policy import (QUALITY_KINDS, SUPPORTED_PRESETS, SUPPORTED_RATE_CONTROLS,
                            validate_preset)
from hardware_detection import HARDWARE_SETTINGS
from media_types import QualityConfig

LOG_FILE_ENV_VAR = 'HEVC_SHRINK_LOG_FILE'
NESTED_SECTIONS = ('quality', 'dependencies', 'logging', 'timeouts')
SIZE_MULTIPLIERS = {
    'B': 1,
    'KB': 1024,
    'MB': 1024 ** 2,
    'GB': 1024 ** 3
}
FILE_SIZE_PATTERN = re.compile(
    r'^(\d+(?:\.\d+)?)\s*(GB|MB|KB|B)?$', re.IGNORECASE)

logger = logging.getLogger(__name__)


def validate_rate_control(rate_control):
    return rate_control in SUPPORTED_RATE_CONTROLS


def validate_hardware(hardware):
    return isinstance(hardware, str) and hardware.lower() in HARDWARE_SETTINGS


def validate_quality(quality, quality_kind='crf'):
    """Validate a quality value: CRF is a float in 0-51, QP an integer in 0-51."""
    if isinstance(quality, bool):
        return False
    try:
        value = float(quality)
    except (TypeError, ValueError):
        return False
    if quality_kind == 'qp' and not value.is_integer():
        return False
    return 0 <= value <= 51


def validate_timeout(timeout):
    if timeout is None:
        return True
    if isinstance(timeout, bool):
        return False
    try:
        return float(timeout) > 0
    except (TypeError, ValueError):
        return False


def parse_file_size(size_str):
    """Parse file size string (e.g., '1GB', '500MB') to bytes."""
    if isinstance(size_str, int):
        if size_str < 0:
            raise ValueError(f"File size must be non-negative: {size_str}")
        return size_str

    size_str = str(size_str).strip().upper()

    match = FILE_SIZE_PATTERN.match(size_str)
    if not match:
        raise ValueError(f"Invalid file size format: {size_str}")

    number = float(match.group(1))
    unit = match.group(2) or 'B'

    return int(number * SIZE_MULTIPLIERS[unit])


def prepare_default_config():
    return {
        'directory': None,  # None means the current working directory
        'min_file_size': '0B',
        'excluded_extensions': list(DEFAULT_EXCLUDED_EXTENSIONS),
        'quality': {
            'rate_control': 'quality',
            'quality_kind': 'crf',
            'value': 24,
            'preset': 'medium',
            'audio_codec': 'copy',
            'audio_bitrate': '192k',
            'pixel_format': None
        },
        'hardware': 'auto',
        'save_originals': False,
        'require_smaller_output': False,
        'dry_run': False,
        'dependencies': {
            'ffprobe': 'ffprobe',
            'ffmpeg': 'ffmpeg'
        },
        'logging': {
            'log_file': None  # None means default to temp directory
        },
        'timeouts': {
            'probe_seconds': 60,
            'encode_seconds': None  # None means no limit
        }
    }


def merge_config(default_config, user_config):
    """Merge a user config over the defaults, one level deep for nested sections.

    A nested section set to null or to a non-dict value restores its defaults.
    """
    config = {**default_config, **user_config}
    for section in NESTED_SECTIONS:
        if section not in user_config:
            continue
        user_section = user_config[section]
        if isinstance(user_section, dict):
            config[section] = {**default_config[section], **user_section}
        else:
            if user_section is not None:
                logger.warning(f"Ignoring invalid '{section}' section in config: {user_section!r}")
            config[section] = default_config[section]
    return config


def _arg(args, name):
    return getattr(args, name, None) if args is not None else None


def apply_cli_overrides(config, args):
    """Command line arguments override config file settings."""
    quality = config['quality']
    if _arg(args, 'crf') is not None:
        quality['quality_kind'] = 'crf'
        quality['value'] = _arg(args, 'crf')
    if _arg(args, 'qp') is not None:
        quality['quality_kind'] = 'qp'
        quality['value'] = _arg(args, 'qp')
    for arg_name, key in (('preset', 'preset'), ('acodec', 'audio_codec'),
                          ('abitrate', 'audio_bitrate'), ('rate_control', 'rate_control')):
        if _arg(args, arg_name) is not None:
            quality[key] = _arg(args, arg_name)

    if _arg(args, 'hardware') is not None:
        config['hardware'] = _arg(args, 'hardware')
    if _arg(args, 'save'):
        config['save_originals'] = True
    if _arg(args, 'dry_run'):
        config['dry_run'] = True
    if _arg(args, 'directory'):
        config['directory'] = _arg(args, 'directory')
    return config


def resolve_log_file(config, args):
    """Priority: CLI arg > env var > config file > default."""
    log_file_path = _arg(args, 'log_file')
    if not log_file_path:
        log_file_path = os.environ.get(LOG_FILE_ENV_VAR)
    if not log_file_path:
        log_file_path = config['logging'].get('log_file')
    return log_file_path


def validate_config(config):
    """Return a list of human readable validation problems (empty when valid)."""
    issues = []
    quality = config['quality']

    if quality.get('quality_kind') not in QUALITY_KINDS:
        issues.append(
            f"Unsupported quality kind: {quality.get('quality_kind')}. Supported: {', '.join(QUALITY_KINDS)}")
    elif not validate_quality(quality.get('value'), quality.get('quality_kind')):
        kind = quality.get('quality_kind')
        expected = 'an integer' if kind == 'qp' else 'a number'
        issues.append(
            f"Invalid {kind} value: {quality.get('value')!r}. Must be {expected} between 0 and 51.")

    if not validate_preset(quality.get('preset')):
        issues.append(
            f"Unsupported encoder preset: {quality.get('preset')}. Supported: {', '.join(SUPPORTED_PRESETS)}")

    if not validate_rate_control(quality.get('rate_control')):
        issues.append(
            f"Unsupported rate control: {quality.get('rate_control')}. "
            f"Supported: {', '.join(SUPPORTED_RATE_CONTROLS)}")

    if not quality.get('audio_codec'):
        issues.append("Audio codec must not be empty (use 'copy' for passthrough).")

    if not validate_hardware(config.get('hardware')):
        issues.append(
            f"Unsupported hardware setting: {config.get('hardware')}. Supported: {', '.join(HARDWARE_SETTINGS)}")

    directory = config.get('directory')
    if directory and not os.path.isdir(directory):
        issues.append(f"Error: '{directory}' is not a valid directory.")

    try:
        config['min_file_size'] = parse_file_size(config.get('min_file_size', '0B'))
    except ValueError as e:
        issues.append(f"Invalid min_file_size in config: {e}")

    for key, value in config['timeouts'].items():
        if not validate_timeout(value):
            issues.append(f"Invalid timeout {key}: {value!r}. Must be a positive number or null.")

    if not isinstance(config.get('excluded_extensions'), (list, tuple)):
        issues.append("excluded_extensions must be a list of file extensions.")

    return issues


def post_process_configuration(config, args):
    # Resolve dependency paths after loading configuration
    # This checks for bundled executables in PyInstaller bundles and resolves paths
    for name in dependencies_utils.REQUIRED_DEPENDENCIES:
        config['dependencies'][name] = dependencies_utils.find_dependency_path(
            name, config['dependencies'].get(name))

    config['logging']['log_file'] = resolve_log_file(config, args)

    apply_cli_overrides(config, args)
    if isinstance(config['hardware'], str):
        config['hardware'] = config['hardware'].lower()

    validation_issues = validate_config(config)
    if isinstance(config.get('excluded_extensions'), (list, tuple)):
        config['excluded_extensions'] = normalize_extensions(config['excluded_extensions'])

    return config, validation_issues


def load_config(config_path=None, args=None):
    """Load configuration from YAML file.

    Args:
        config_path: Path to the YAML file; defaults to ./config.yaml
        args: argparse namespace whose values override the file

    Returns:
        tuple: (config dict, list of validation error messages)
    """
    default_config = prepare_default_config()

    if config_path is None:
        config_path = Path('config.yaml')
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}, using defaults")
        config = default_config
    else:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)
            # Handle None, False, or other falsy/invalid values
            if not isinstance(user_config, dict):
                user_config = {}
            config = merge_config(default_config, user_config)
            logger.info(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            config = prepare_default_config()

    return post_process_configuration(config, args)


def build_quality_config(config):
    """Freeze the validated 'quality' section into a QualityConfig."""
    quality = config['quality']
    value = float(quality['value'])
    if quality['quality_kind'] == 'qp':
        value = int(value)
    return QualityConfig(
        quality_value=value,
        quality_kind=quality['quality_kind'],
        preset=quality['preset'],
        audio_codec=quality['audio_codec'],
        audio_bitrate=str(quality['audio_bitrate']),
        save_originals=bool(config['save_originals']),
        rate_control=quality['rate_control'],
        pixel_format=quality.get('pixel_format'),
    )
