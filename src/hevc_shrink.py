#!/usr/bin/env python3
"""
Batch conversion of media files to HEVC.

For every file: probe it, decide whether it is worth converting, pick an
encoder plan, encode into a staging file next to the original, verify the
result, and only then replace the original. Files are processed one at a
time; a failure on one file never stops the run.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional

import commit_manager
import configuration_manager
import eligibility_filter
import encoder_policy
import hardware_detection
import integrity_verifier
import transcode_executor
from exceptions import (DependencyMissingError, ExecutionError, FileAccessError,
                        HevcShrinkError, InvalidBitrateError, StagingExistsError)
from media_probe import MediaProbe
from media_types import (ConversionOutcome, EligibilityVerdict, HardwareTag, MediaFile,
                         QualityConfig, RunStatistics)

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    prober: MediaProbe
    hardware_tag: HardwareTag
    quality_config: QualityConfig
    ffmpeg_path: str = 'ffmpeg'
    encode_timeout: Optional[float] = None
    excluded_extensions: FrozenSet[str] = frozenset()
    require_smaller: bool = False
    dry_run: bool = False


def build_context(config, hardware_provider=None):
    """Create the RunContext for a validated configuration."""
    dependencies = config['dependencies']
    timeouts = config['timeouts']
    if hardware_provider is None:
        hardware_provider = hardware_detection.provider_for(config['hardware'], dependencies['ffmpeg'])
    return RunContext(
        prober=MediaProbe(dependencies['ffprobe'], timeout=timeouts.get('probe_seconds')),
        hardware_tag=hardware_provider.detect(),
        quality_config=configuration_manager.build_quality_config(config),
        ffmpeg_path=dependencies['ffmpeg'],
        encode_timeout=timeouts.get('encode_seconds'),
        excluded_extensions=frozenset(config['excluded_extensions']),
        require_smaller=bool(config.get('require_smaller_output', False)),
        dry_run=bool(config.get('dry_run', False)),
    )


def _media_file_for(path):
    path = Path(path)
    if not path.exists():
        raise FileAccessError(path, "no such file")
    if not path.is_file():
        raise FileAccessError(path, "not a regular file")
    try:
        return MediaFile.from_path(path)
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e))


def discover_files(directory=None, explicit_paths=None, excluded_extensions=frozenset(),
                   min_size_bytes=0):
    """Build the list of files to process.

    Explicit paths are used as given (missing ones are reported and dropped).
    Without explicit paths, the directory (default: current working directory)
    is listed non-recursively, skipping excluded extensions, files below
    min_size_bytes and leftover staging files.

    Returns:
        list of MediaFile
    """
    files = []
    if explicit_paths:
        for raw_path in explicit_paths:
            try:
                files.append(_media_file_for(raw_path))
            except FileAccessError as e:
                logger.error(f"❌ {e}")
        return files

    target_path = Path(directory) if directory else Path.cwd()
    logger.info(f"Scanning directory: {target_path}")
    for path in sorted(target_path.iterdir()):
        try:
            if not path.is_file():
                continue
            if eligibility_filter.is_excluded_extension(path, excluded_extensions):
                continue
            if transcode_executor.is_staging_artifact(path):
                logger.warning(f"Ignoring leftover staging file: {path.name}")
                continue
            media_file = MediaFile.from_path(path)
        except OSError:
            logger.exception(f"Error processing {path}")
            continue
        if media_file.size_bytes < min_size_bytes:
            continue
        files.append(media_file)
    return files


def process_file(media_file, context, stats):
    """Run the whole pipeline for one file and return its ConversionOutcome.

    Only DependencyMissingError escapes; everything else becomes a skip or rollback.
    """
    name = media_file.path.name
    if eligibility_filter.is_excluded_extension(media_file.path, context.excluded_extensions):
        return ConversionOutcome.skipped(EligibilityVerdict.SKIPPED_EXCLUDED_EXTENSION.value)

    probe_result = context.prober.probe(media_file.path)
    verdict = eligibility_filter.is_eligible(media_file, probe_result, context.excluded_extensions)
    if verdict is not EligibilityVerdict.ELIGIBLE:
        return ConversionOutcome.skipped(verdict.value)

    try:
        plan = encoder_policy.select_plan(context.hardware_tag, context.quality_config, probe_result)
    except InvalidBitrateError as e:
        return ConversionOutcome.skipped(f"invalid bitrate: {e}")

    if context.dry_run:
        staging_path = transcode_executor.staging_path_for(media_file.path)
        logger.info(f"[Dry Run] Would convert: {name} -> {staging_path.name} with {' '.join(plan.parameters)}")
        return ConversionOutcome.skipped("dry run")

    staging_path = transcode_executor.staging_path_for(media_file.path)
    try:
        staging_path = transcode_executor.execute(
            media_file, plan, context.ffmpeg_path, timeout=context.encode_timeout)
    except StagingExistsError as e:
        # Not ours (often the kept output of an earlier -S run): leave it alone
        logger.warning(str(e))
        return ConversionOutcome.skipped("staging file already exists")
    except ExecutionError as e:
        return commit_manager.rollback(media_file, staging_path, f"execution failure: {e}")

    # From here on the staging file was created by this run and is removed on any failure
    try:
        verification = integrity_verifier.verify(
            probe_result,
            staging_path,
            context.prober,
            check_bitrate=plan.verify_bitrate,
            source_size=media_file.size_bytes,
            require_smaller=context.require_smaller,
        )
        return commit_manager.commit(
            media_file, staging_path, verification, context.quality_config.save_originals, stats)
    except DependencyMissingError:
        commit_manager.remove_staging(staging_path)
        raise
    except (OSError, HevcShrinkError) as e:
        return commit_manager.rollback(media_file, staging_path, f"verification failure: {e}")


def format_summary(stats):
    return (f"Total space saved: {stats.total_space_saved_mb:.2f} MB, "
            f"files converted: {stats.processed_files_count}")


def run(files, context, stats=None):
    """Process files sequentially and return the RunStatistics for the run.

    Raises:
        DependencyMissingError: ffprobe/ffmpeg disappeared mid-run
    """
    if stats is None:
        stats = RunStatistics()
    outcome_counts = Counter()

    logger.info(f"Files to process ({len(files)}):")
    for media_file in files:
        logger.info(f"  {media_file.path}")

    for media_file in files:
        try:
            outcome = process_file(media_file, context, stats)
        except DependencyMissingError:
            raise
        except (OSError, HevcShrinkError) as e:
            # Raised before encoding started: there is no staging file of ours to remove
            logger.exception(f"Unexpected error while processing {media_file.path}")
            outcome = ConversionOutcome.rolled_back(str(e))

        outcome_counts[outcome.kind] += 1
        if outcome.reason:
            logger.info(f"{outcome.kind.value.capitalize()}: {media_file.path.name} ({outcome.reason})")
        else:
            logger.info(f"{outcome.kind.value.capitalize()}: {media_file.path.name} "
                        f"({outcome.space_saved_mb:.2f} MB saved)")

    logger.info(", ".join(f"{kind.value}: {count}" for kind, count in sorted(
        outcome_counts.items(), key=lambda item: item[0].value)) or "No files processed.")
    logger.info(format_summary(stats))
    return stats
