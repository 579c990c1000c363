#!/usr/bin/env python3
"""
Accept or discard a staging artifact.

This is the only module that deletes or renames media files and the only one
that updates RunStatistics.
"""

import logging
from pathlib import Path

from media_types import ConversionOutcome, VerificationVerdict

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 ** 2


def size_mb(size_bytes):
    return size_bytes / BYTES_PER_MB


def remove_staging(staging_path):
    """Delete a staging artifact if it exists. Returns False if removal failed."""
    if staging_path is None:
        return True
    staging_path = Path(staging_path)
    if not staging_path.exists():
        return True
    try:
        staging_path.unlink()
        logger.info(f"Removed staging file {staging_path}")
        return True
    except OSError as cleanup_error:
        logger.error(f"Failed to cleanup staging file {staging_path}: {cleanup_error}")
        return False


def rollback(media_file, staging_path, reason):
    """Discard the staging artifact and leave the original untouched."""
    remove_staging(staging_path)
    logger.error(f"↩️  Rolled back {media_file.path.name}: {reason}")
    return ConversionOutcome.rolled_back(reason)


def commit(media_file, staging_path, verdict, save_originals, stats):
    """Apply a verification verdict to the filesystem and to the run statistics.

    Args:
        media_file: MediaFile that was encoded
        staging_path: Path of the encoded artifact
        verdict: VerificationVerdict from integrity_verifier.verify
        save_originals: keep the original and leave the artifact under its staging name
        stats: RunStatistics, updated only after a successful commit

    Returns:
        ConversionOutcome
    """
    if verdict is not VerificationVerdict.APPROVED:
        return rollback(media_file, staging_path, verdict.value)

    staging_path = Path(staging_path)
    original_path = media_file.path
    try:
        output_size = staging_path.stat().st_size
    except OSError as e:
        return rollback(media_file, staging_path, f"cannot read output size: {e}")

    space_saved_mb = round(size_mb(media_file.size_bytes) - size_mb(output_size), 2)

    if save_originals:
        logger.info(f"✅ Successfully converted (original kept): {staging_path}")
    else:
        try:
            # Atomic on the same filesystem: the original name never points at an unverified file
            staging_path.replace(original_path)
        except OSError as e:
            logger.error(f"Failed to replace {original_path} with {staging_path}: {e!r}")
            return rollback(media_file, staging_path, f"could not replace original: {e}")
        logger.info(f"✅ Successfully converted: {original_path}")

    stats.record_commit(space_saved_mb)
    logger.info(f"Space saved: {space_saved_mb:.2f} MB")
    return ConversionOutcome.committed(space_saved_mb)
