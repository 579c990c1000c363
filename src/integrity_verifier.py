#!/usr/bin/env python3
"""
Post-encode checks on a staging artifact.

Nothing here touches the filesystem: on rejection the caller is expected to
remove the staging artifact.
"""

import logging
from pathlib import Path

from media_types import VerificationVerdict

logger = logging.getLogger(__name__)

# Maximum accepted difference between source and output duration, in seconds
MAX_DURATION_DIFF_SECONDS = 1.0


def durations_match(source_duration, output_duration, tolerance=MAX_DURATION_DIFF_SECONDS):
    if source_duration is None or output_duration is None:
        return False
    return abs(source_duration - output_duration) <= tolerance


def verify(source_probe, staging_path, prober, check_bitrate=False,
           source_size=None, require_smaller=False):
    """Decide whether a staging artifact may replace its source.

    Args:
        source_probe: ProbeResult of the original file
        staging_path: Path of the encoded artifact
        prober: MediaProbe used to re-probe the artifact
        check_bitrate: also require a positive output bitrate
        source_size: byte size of the original, used with require_smaller
        require_smaller: reject outputs that are not strictly smaller

    Returns:
        VerificationVerdict
    """
    staging_path = Path(staging_path)
    if not staging_path.is_file() or staging_path.stat().st_size == 0:
        logger.error(f"❌ Output missing or empty: {staging_path}")
        return VerificationVerdict.REJECTED_MISSING_OUTPUT

    src_duration = source_probe.duration_seconds
    out_duration = prober.get_duration(staging_path)
    if not durations_match(src_duration, out_duration):
        logger.error(
            f"❌ Duration mismatch: src={src_duration} vs out={out_duration} for file {staging_path}")
        return VerificationVerdict.REJECTED_DURATION_MISMATCH

    if check_bitrate:
        out_bitrate = prober.get_bitrate(staging_path)
        if not out_bitrate:
            logger.error(f"❌ Invalid output bitrate ({out_bitrate}) for file {staging_path}")
            return VerificationVerdict.REJECTED_INVALID_OUTPUT_BITRATE

    if require_smaller and source_size is not None:
        out_size = staging_path.stat().st_size
        if out_size >= source_size:
            logger.error(
                f"❌ Output is not smaller: src={source_size} bytes vs out={out_size} bytes")
            return VerificationVerdict.REJECTED_NOT_SMALLER

    logger.info(f"Verified {staging_path.name}: src={src_duration}s out={out_duration}s")
    return VerificationVerdict.APPROVED
