#!/usr/bin/env python3
"""
Value types shared by the conversion pipeline.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class HardwareTag(Enum):
    NONE = 'none'
    NVIDIA = 'nvidia'
    AMD = 'amd'
    INTEL = 'intel'


class CodecFamily(Enum):
    HEVC = 'hevc'
    VP9 = 'vp9'
    AV1 = 'av1'
    OTHER = 'other'
    UNKNOWN = 'unknown'

    @classmethod
    def from_codec_name(cls, codec_name):
        """Map an ffprobe codec_name (or fourcc-style alias) to a family."""
        if not codec_name:
            return cls.UNKNOWN
        return _CODEC_ALIASES.get(codec_name.strip().lower(), cls.OTHER)

    @property
    def is_modern(self):
        return self in (CodecFamily.HEVC, CodecFamily.VP9, CodecFamily.AV1)


_CODEC_ALIASES = {
    'hevc': CodecFamily.HEVC,
    'h265': CodecFamily.HEVC,
    'x265': CodecFamily.HEVC,
    'hev1': CodecFamily.HEVC,
    'hvc1': CodecFamily.HEVC,
    'vp9': CodecFamily.VP9,
    'vp09': CodecFamily.VP9,
    'av1': CodecFamily.AV1,
    'av01': CodecFamily.AV1,
    'libaom-av1': CodecFamily.AV1,
    'libdav1d': CodecFamily.AV1,
}


class EligibilityVerdict(Enum):
    ELIGIBLE = 'eligible'
    SKIPPED_EXCLUDED_EXTENSION = 'excluded extension'
    SKIPPED_NOT_VIDEO = 'not a video file'
    SKIPPED_NO_VIDEO_STREAM = 'no video stream'
    SKIPPED_MULTIPLE_VIDEO_STREAMS = 'multiple video streams'
    SKIPPED_ALREADY_MODERN_CODEC = 'already encoded with a modern codec'


class VerificationVerdict(Enum):
    APPROVED = 'approved'
    REJECTED_MISSING_OUTPUT = 'output file missing or empty'
    REJECTED_DURATION_MISMATCH = 'duration mismatch'
    REJECTED_INVALID_OUTPUT_BITRATE = 'output bitrate missing or zero'
    REJECTED_NOT_SMALLER = 'output is not smaller than the original'


class OutcomeKind(Enum):
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled back'
    SKIPPED = 'skipped'


@dataclass(frozen=True)
class MediaFile:
    path: Path
    size_bytes: int
    extension: str

    @classmethod
    def from_path(cls, path):
        path = Path(path)
        return cls(path=path, size_bytes=path.stat().st_size, extension=path.suffix.lower())


@dataclass(frozen=True)
class ProbeResult:
    """Result of probing one file. ``None`` means the field could not be read."""
    has_video_stream: bool
    video_stream_count: int
    primary_codec: Optional[str] = None
    video_bitrate: Optional[int] = None
    container_bitrate: Optional[int] = None
    duration_seconds: Optional[float] = None

    @property
    def codec_family(self):
        return CodecFamily.from_codec_name(self.primary_codec)


@dataclass(frozen=True)
class QualityConfig:
    quality_value: float = 24
    quality_kind: str = 'crf'
    preset: str = 'medium'
    audio_codec: str = 'copy'
    audio_bitrate: str = '192k'
    save_originals: bool = False
    rate_control: str = 'quality'
    pixel_format: Optional[str] = None


@dataclass(frozen=True)
class EncodingPlan:
    encoder: str
    parameters: Tuple[str, ...]
    audio_parameters: Tuple[str, ...] = ('-c:a', 'copy')
    target_bitrate: Optional[int] = None
    verify_bitrate: bool = False


@dataclass(frozen=True)
class ConversionOutcome:
    kind: OutcomeKind
    reason: str = ''
    space_saved_mb: float = 0.0

    @classmethod
    def committed(cls, space_saved_mb):
        return cls(OutcomeKind.COMMITTED, space_saved_mb=space_saved_mb)

    @classmethod
    def rolled_back(cls, reason):
        return cls(OutcomeKind.ROLLED_BACK, reason=reason)

    @classmethod
    def skipped(cls, reason):
        return cls(OutcomeKind.SKIPPED, reason=reason)


@dataclass
class RunStatistics:
    total_space_saved_mb: float = 0.0
    processed_files_count: int = 0

    def record_commit(self, space_saved_mb):
        self.total_space_saved_mb = round(self.total_space_saved_mb + space_saved_mb, 2)
        self.processed_files_count += 1
