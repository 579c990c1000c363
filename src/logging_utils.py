#!/usr/bin/env python3
"""
Root logger setup: console on stdout plus a rotating log file.

setup_logging is called twice by the CLI: once at startup with the default
temp-directory file, and again once the configured log path is known.
"""

import logging
import logging.handlers
import os
import sys
import tempfile
from pathlib import Path

DEFAULT_LOG_FILE_NAME = 'hevc_shrink.log'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def _default_log_path():
    return os.path.join(tempfile.gettempdir(), DEFAULT_LOG_FILE_NAME)


def _usable_log_path(log_file_path):
    """Return log_file_path, or the temp default, once its directory exists.

    None means neither directory could be created. Logging is not configured
    yet at this point, so problems go to stderr.
    """
    for candidate in (log_file_path, _default_log_path()):
        try:
            Path(candidate).parent.mkdir(parents=True, exist_ok=True)
            return candidate
        except OSError as e:
            print(f"Warning: cannot create log directory for {candidate}: {e}", file=sys.stderr)
    print("Warning: file logging disabled, logging to console only", file=sys.stderr)
    return None


def _file_handler(log_file_path, formatter, level):
    handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_file_path=None, level=logging.INFO):
    """Configure the root logger.

    Args:
        log_file_path: Log file to write. None means <tempdir>/hevc_shrink.log.
                       Which path to pass (CLI, HEVC_SHRINK_LOG_FILE, config file)
                       is decided by configuration_manager.resolve_log_file.
        level: Level for the root logger and both handlers.

    Returns:
        str: The log file in use, or None when logging to the console only
    """
    log_file_path = _usable_log_path(log_file_path or _default_log_path())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Replace, never stack, handlers from an earlier call
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file_path is None:
        return None

    try:
        root_logger.addHandler(_file_handler(log_file_path, formatter, level))
    except OSError as e:
        root_logger.warning(f"Cannot open log file {log_file_path}: {e}; logging to console only")
        return None

    root_logger.info(f"Logging to file: {log_file_path}")
    return str(log_file_path)
