#!/usr/bin/env python3
"""
Run ffmpeg for one file according to an EncodingPlan.
"""

import logging
import subprocess
import sys
from pathlib import Path

import subprocess_utils
from exceptions import DependencyMissingError, ExecutionError, StagingExistsError

logger = logging.getLogger(__name__)

STAGING_SUFFIX = '_HEVC'

# Windows: BELOW_NORMAL_PRIORITY_CLASS
BELOW_NORMAL_PRIORITY_CLASS = 0x00004000

# Exit status of nice when the command it should run does not exist
NICE_COMMAND_NOT_FOUND = 127


def staging_path_for(input_path):
    """<dir>/<stem>_HEVC<ext> next to the input file."""
    input_path = Path(input_path)
    return input_path.with_name(f"{input_path.stem}{STAGING_SUFFIX}{input_path.suffix}")


def is_staging_artifact(path):
    return Path(path).stem.endswith(STAGING_SUFFIX)


def build_command(input_path, staging_path, plan, ffmpeg_path='ffmpeg'):
    """Full ffmpeg command line. Every input stream is mapped; only video is re-encoded."""
    return [
        ffmpeg_path,
        '-hide_banner',
        '-nostdin',
        '-n',  # never overwrite an existing output file
        '-i', str(input_path),
        '-map', '0',
        '-map_metadata', '0',
        '-map_chapters', '0',
        *plan.parameters,
        *plan.audio_parameters,
        '-c:s', 'copy',
        '-c:d', 'copy',
        str(staging_path),
    ]


def _run_low_priority(command_args, timeout):
    if sys.platform == 'win32':
        return subprocess_utils.run_command(
            command_args, check=True, timeout=timeout,
            creationflags=BELOW_NORMAL_PRIORITY_CLASS)
    try:
        return subprocess_utils.run_command(
            ['nice', '-n', '10'] + command_args, check=True, timeout=timeout)
    except FileNotFoundError:
        # nice not available, run without it
        return subprocess_utils.run_command(command_args, check=True, timeout=timeout)
    except subprocess.CalledProcessError as e:
        if e.returncode == NICE_COMMAND_NOT_FOUND:
            raise FileNotFoundError(f"nice could not run {command_args[0]}")
        raise


def execute(media_file, plan, ffmpeg_path='ffmpeg', timeout=None):
    """Encode media_file into its staging path.

    Args:
        media_file: MediaFile to encode
        plan: EncodingPlan from encoder_policy.select_plan
        ffmpeg_path: resolved ffmpeg executable
        timeout: seconds before the encoder is killed, or None for no limit

    Returns:
        Path: the staging artifact

    Raises:
        ExecutionError: encoder failed, timed out, or wrote nothing usable.
                        A partial staging file may be left for the caller to remove.
        DependencyMissingError: ffmpeg could not be executed at all
        StagingExistsError: the staging name is already taken; nothing was run
    """
    staging_path = staging_path_for(media_file.path)
    if staging_path.exists():
        raise StagingExistsError(staging_path)
    command_args = build_command(media_file.path, staging_path, plan, ffmpeg_path)

    logger.info(f"Starting conversion: {media_file.path} -> {staging_path.name}")
    logger.info(f"Encoder: {plan.encoder}, target bitrate: {plan.target_bitrate or 'n/a'}")

    try:
        _run_low_priority(command_args, timeout)
    except FileNotFoundError:
        raise DependencyMissingError('ffmpeg', ffmpeg_path)
    except subprocess.CalledProcessError as e:
        raise ExecutionError(f"encoder exited with code {e.returncode}")
    except subprocess.TimeoutExpired:
        raise ExecutionError(f"encoder timed out after {timeout} seconds")
    except OSError as e:
        raise ExecutionError(f"encoder could not be run: {e}")

    try:
        output_size = staging_path.stat().st_size
    except FileNotFoundError:
        raise ExecutionError("encoder reported success but produced no output file")
    except OSError as e:
        raise ExecutionError(f"cannot read output file: {e}")
    if output_size == 0:
        raise ExecutionError("encoder produced an empty output file")

    return staging_path
