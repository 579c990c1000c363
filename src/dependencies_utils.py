#!/usr/bin/env python3
"""
Locate and validate the external ffprobe/ffmpeg executables.
"""
import logging
import platform
import subprocess
import sys
from pathlib import Path

import subprocess_utils

logger = logging.getLogger(__name__)

REQUIRED_DEPENDENCIES = ('ffprobe', 'ffmpeg')


def get_bundled_path():
    """Directory holding bundled executables in a PyInstaller build, else None."""
    bundle_dir = getattr(sys, '_MEIPASS', None)
    if not getattr(sys, 'frozen', False) or bundle_dir is None:
        return None
    return Path(bundle_dir)


def _executable_name(dependency_name):
    if platform.system() == 'Windows' and not dependency_name.endswith('.exe'):
        return f'{dependency_name}.exe'
    return dependency_name


def find_dependency_path(dependency_name, config_path=None):
    """Resolve the executable to run for ffprobe or ffmpeg.

    An absolute configured path that exists wins, then a copy shipped inside
    a PyInstaller bundle, then the configured value (or the bare name) for
    lookup on PATH.
    """
    if config_path and Path(config_path).is_absolute() and Path(config_path).exists():
        logger.info(f"{dependency_name}: using configured path {config_path}")
        return str(config_path)

    bundle_dir = get_bundled_path()
    if bundle_dir is not None:
        candidate = bundle_dir / _executable_name(dependency_name)
        if candidate.exists():
            logger.info(f"{dependency_name}: using bundled copy {candidate}")
            return str(candidate)
        logger.warning(f"{dependency_name}: no bundled copy at {candidate}")

    resolved = config_path or dependency_name
    logger.debug(f"{dependency_name}: resolving '{resolved}' via PATH")
    return resolved


def check_single_dependency(command):
    """Try to run a dependency with a version flag.

    Returns (True, None) when it runs, otherwise (False, reason) where reason
    is "not_found", "invalid" or "timeout".
    """
    # ffmpeg/ffprobe take -version; keep --version as a fallback for wrappers
    for version_flag in ['-version', '--version']:
        try:
            subprocess_utils.run_command([command, version_flag], check=True, timeout=5)
            return True, None
        except FileNotFoundError:
            return False, "not_found"
        except PermissionError:
            return False, "invalid"
        except subprocess.CalledProcessError:
            continue
        except subprocess.TimeoutExpired:
            return False, "timeout"

    return False, "invalid"


def find_missing_dependencies(dependency_paths=None):
    """Return a list of (name, path, reason) for each dependency that cannot run."""
    dependency_paths = dependency_paths or {}
    missing = []
    for name in REQUIRED_DEPENDENCIES:
        path = dependency_paths.get(name, name)
        is_valid, reason = check_single_dependency(path)
        if not is_valid:
            missing.append((name, path, reason))
    return missing


def validate_dependencies(dependency_paths=None):
    """Log every dependency that cannot run and return True only if none are missing.

    dependency_paths maps "ffprobe"/"ffmpeg" to the executable to try; missing
    keys fall back to the bare command name.
    """
    missing = find_missing_dependencies(dependency_paths)
    if missing:
        descriptions = [f"{name} (path: {path}, {reason})" for name, path, reason in missing]
        logger.error(f"Missing dependencies: {', '.join(descriptions)}")
        logger.error(
            "Please install ffmpeg (which ships ffprobe) or set dependencies.ffmpeg/ffprobe in config.yaml.")
    return not missing

