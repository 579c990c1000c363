#!/usr/bin/env python3
"""
Decide whether a probed file should be transcoded.
"""

from pathlib import Path

from media_types import EligibilityVerdict

# Images, audio, text and subtitle containers are never transcoded
DEFAULT_EXCLUDED_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.tif', '.tiff', '.webp', '.heic',
    '.mp3', '.wav', '.flac', '.aac', '.m4a', '.ogg', '.opus', '.wma', '.ac3', '.dts',
    '.txt', '.nfo', '.log', '.md', '.json', '.xml', '.yaml', '.yml',
    '.srt', '.ass', '.ssa', '.sub', '.idx', '.vtt', '.sup',
)


def normalize_extensions(extensions):
    """Lower-case extensions and make sure each starts with a dot."""
    normalized = set()
    for ext in extensions or ():
        ext = str(ext).strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith('.') else f'.{ext}')
    return frozenset(normalized)


def is_excluded_extension(path, excluded_extensions):
    return Path(path).suffix.lower() in excluded_extensions


def is_eligible(media_file, probe_result, excluded_extensions=None):
    """Return the EligibilityVerdict for a file. First matching rule wins.

    Args:
        media_file: MediaFile being considered
        probe_result: ProbeResult for the same file
        excluded_extensions: set of lower-case extensions with leading dot;
                             defaults to DEFAULT_EXCLUDED_EXTENSIONS
    """
    if excluded_extensions is None:
        excluded_extensions = normalize_extensions(DEFAULT_EXCLUDED_EXTENSIONS)

    if media_file.extension.lower() in excluded_extensions:
        return EligibilityVerdict.SKIPPED_EXCLUDED_EXTENSION
    if not probe_result.has_video_stream:
        return EligibilityVerdict.SKIPPED_NOT_VIDEO
    if not probe_result.video_stream_count:
        return EligibilityVerdict.SKIPPED_NO_VIDEO_STREAM
    if probe_result.video_stream_count > 1:
        # No policy for picking one of several video tracks
        return EligibilityVerdict.SKIPPED_MULTIPLE_VIDEO_STREAMS
    if probe_result.codec_family.is_modern:
        return EligibilityVerdict.SKIPPED_ALREADY_MODERN_CODEC
    return EligibilityVerdict.ELIGIBLE
