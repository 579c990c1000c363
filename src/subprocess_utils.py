#!/usr/bin/env python3
"""
Subprocess utilities for running ffprobe/ffmpeg with logging and timeouts.

Every external call made by the pipeline goes through run_command so that the
command line, its output and its exit code end up in the log file. On Windows,
when running as a PyInstaller bundle, the CREATE_NO_WINDOW flag is added so no
console window flashes up for each probe.
"""

import logging
import subprocess
import sys

logger = logging.getLogger(__name__)

# Maximum length for logged output to prevent huge log files
MAX_OUTPUT_LENGTH = 2000


def _log_stream(label, text, level):
    stripped = text.strip()
    if not stripped:
        return
    if len(stripped) > MAX_OUTPUT_LENGTH:
        logger.log(
            level,
            f"Command {label} (truncated to {MAX_OUTPUT_LENGTH} chars): {stripped[:MAX_OUTPUT_LENGTH]}... "
            f"[output truncated, total length: {len(stripped)} chars]")
    else:
        logger.log(level, f"Command {label}: {stripped}")


def run_command(command_args, **kwargs):
    """Run a subprocess command and log all details.

    Args:
        command_args: List of command arguments
        **kwargs: Additional arguments to pass to subprocess.run (check, timeout, ...)
                 Note: stdout and stderr are captured as text unless the caller
                       explicitly passes its own values

    Returns:
        subprocess.CompletedProcess: Result of the command execution

    Raises:
        subprocess.CalledProcessError: if check=True and the command failed
        subprocess.TimeoutExpired: if the timeout elapsed (the child is killed)
        FileNotFoundError: if the executable does not exist
    """
    logger.info(
        f"Running command: {' '.join(str(arg) for arg in command_args)}")

    kwargs.setdefault('stdout', subprocess.PIPE)
    kwargs.setdefault('stderr', subprocess.PIPE)
    kwargs.setdefault('text', True)
    if kwargs.get('text'):
        kwargs.setdefault('errors', 'replace')

    if sys.platform == 'win32' and getattr(sys, 'frozen', False):
        CREATE_NO_WINDOW = 0x08000000
        kwargs['creationflags'] = kwargs.get(
            'creationflags', 0) | CREATE_NO_WINDOW

    try:
        result = subprocess.run(command_args, **kwargs)
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed with exit code {e.returncode}")
        if isinstance(e.stdout, str):
            _log_stream('stdout', e.stdout, logging.ERROR)
        if isinstance(e.stderr, str):
            _log_stream('stderr', e.stderr, logging.ERROR)
        raise
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {e.timeout} seconds")
        raise
    except Exception as e:
        logger.error(f"Command execution error: {type(e).__name__}: {e}")
        raise

    if isinstance(result.stdout, str):
        _log_stream('stdout', result.stdout, logging.INFO)
    if isinstance(result.stderr, str):
        # Some tools (ffmpeg) write normal progress output to stderr
        level = logging.INFO if result.returncode == 0 else logging.ERROR
        _log_stream('stderr', result.stderr, level)

    logger.info(f"Command exit code: {result.returncode}")
    return result
