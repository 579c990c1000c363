#!/usr/bin/env python3
"""
Encoder and parameter selection.

The hardware tag picks the encoder; the quality configuration picks the rate
control family. Parameter names are never shared between encoders: each
encoder has its own builder producing an opaque, ordered argument list.
"""

import logging
import math

from exceptions import InvalidBitrateError
from media_probe import source_bitrate
from media_types import EncodingPlan, HardwareTag

logger = logging.getLogger(__name__)

RATE_CONTROL_QUALITY = 'quality'
RATE_CONTROL_BITRATE = 'bitrate'
SUPPORTED_RATE_CONTROLS = [RATE_CONTROL_QUALITY, RATE_CONTROL_BITRATE]
QUALITY_KINDS = ['crf', 'qp']

# Target bitrate as a fraction of the source bitrate in bitrate-relative mode
BITRATE_FRACTION = 0.6

ENCODER_IDS = {
    HardwareTag.NONE: 'libx265',
    HardwareTag.NVIDIA: 'hevc_nvenc',
    HardwareTag.AMD: 'hevc_amf',
    HardwareTag.INTEL: 'hevc_qsv',
}

DEFAULT_PIXEL_FORMATS = {
    'libx265': 'yuv420p10le',
    'hevc_nvenc': 'p010le',
    'hevc_amf': 'yuv420p',
    'hevc_qsv': 'p010le',
}

# x265 CPU encoder presets
X265_PRESETS = ['ultrafast', 'superfast', 'veryfast',
                'faster', 'fast', 'medium', 'slow', 'slower', 'veryslow']
NVENC_PRESETS = ['p1', 'p2', 'p3', 'p4', 'p5', 'p6', 'p7']
QSV_PRESETS = ['veryfast', 'faster', 'fast', 'medium', 'slow', 'slower', 'veryslow']
AMF_PRESETS = ['speed', 'balanced', 'quality']
SUPPORTED_PRESETS = sorted(set(X265_PRESETS + NVENC_PRESETS + QSV_PRESETS + AMF_PRESETS))

# Every known preset name on a shared 1 (fastest) .. 7 (slowest) scale
PRESET_RANK = {
    'ultrafast': 1, 'superfast': 1, 'veryfast': 2, 'faster': 3, 'fast': 3,
    'medium': 4, 'slow': 5, 'slower': 6, 'veryslow': 7,
    'p1': 1, 'p2': 2, 'p3': 3, 'p4': 4, 'p5': 5, 'p6': 6, 'p7': 7,
    'speed': 2, 'balanced': 4, 'quality': 6,
}

# Preset used by each encoder for ranks 1..7
PRESETS_BY_RANK = {
    'libx265': ['ultrafast', 'veryfast', 'faster', 'medium', 'slow', 'slower', 'veryslow'],
    'hevc_nvenc': NVENC_PRESETS,
    'hevc_qsv': ['veryfast', 'veryfast', 'faster', 'medium', 'slow', 'slower', 'veryslow'],
    'hevc_amf': ['speed', 'speed', 'speed', 'balanced', 'quality', 'quality', 'quality'],
}

NATIVE_PRESETS = {
    'libx265': X265_PRESETS,
    'hevc_nvenc': NVENC_PRESETS,
    'hevc_qsv': QSV_PRESETS,
    'hevc_amf': AMF_PRESETS,
}


def validate_preset(preset):
    """Validate that the encoder preset is known to at least one encoder."""
    return preset in PRESET_RANK


def map_preset_for_encoder(preset, encoder):
    """Translate a preset name into the dialect of the given encoder.

    Native names pass through unchanged; anything else is mapped by its speed
    rank, and unknown names fall back to the encoder's medium preset.
    """
    if preset in NATIVE_PRESETS[encoder]:
        return preset
    rank = PRESET_RANK.get(preset, 4)
    return PRESETS_BY_RANK[encoder][rank - 1]


def sao_params(quality_value):
    """x265 SAO setting for a quality value. Step function, not interpolated."""
    if quality_value <= 16:
        return 'no-sao=1'
    if quality_value <= 20:
        return 'limit-sao=1'
    return 'sao=1'


def compute_target_bitrate(probe_result):
    """floor(0.6 * source bitrate), raising InvalidBitrateError for unusable sources."""
    bitrate = source_bitrate(probe_result)
    if bitrate is None:
        raise InvalidBitrateError("source bitrate could not be determined")
    target = math.floor(BITRATE_FRACTION * bitrate)
    if bitrate <= 0 or target <= 0:
        raise InvalidBitrateError(f"source bitrate {bitrate} gives non-positive target {target}")
    return target


def _format_quality(value):
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def _integer_quality(value):
    return str(int(round(float(value))))


def _libx265_quality(quality_config, preset, pixel_format):
    flag = '-qp' if quality_config.quality_kind == 'qp' else '-crf'
    return [
        '-c:v', 'libx265',
        '-preset', preset,
        flag, _format_quality(quality_config.quality_value),
        '-pix_fmt', pixel_format,
        '-x265-params', sao_params(float(quality_config.quality_value)),
    ]


def _nvenc_quality(quality_config, preset, pixel_format):
    if quality_config.quality_kind == 'qp':
        rate = ['-rc', 'constqp', '-qp', _integer_quality(quality_config.quality_value)]
    else:
        rate = ['-rc', 'vbr', '-cq', _format_quality(quality_config.quality_value), '-b:v', '0']
    return ['-c:v', 'hevc_nvenc', '-preset', preset, *rate, '-pix_fmt', pixel_format]


def _amf_quality(quality_config, preset, pixel_format):
    qp = _integer_quality(quality_config.quality_value)
    return [
        '-c:v', 'hevc_amf',
        '-quality', preset,
        '-rc', 'cqp',
        '-qp_i', qp,
        '-qp_p', qp,
        '-pix_fmt', pixel_format,
    ]


def _qsv_quality(quality_config, preset, pixel_format):
    return [
        '-c:v', 'hevc_qsv',
        '-preset', preset,
        '-global_quality', _integer_quality(quality_config.quality_value),
        '-pix_fmt', pixel_format,
    ]


def _libx265_bitrate(target, preset, pixel_format):
    return ['-c:v', 'libx265', '-preset', preset, '-b:v', str(target), '-pix_fmt', pixel_format]


def _nvenc_bitrate(target, preset, pixel_format):
    return ['-c:v', 'hevc_nvenc', '-preset', preset, '-rc', 'vbr', '-b:v', str(target),
            '-pix_fmt', pixel_format]


def _amf_bitrate(target, preset, pixel_format):
    return ['-c:v', 'hevc_amf', '-quality', preset, '-rc', 'vbr_peak', '-b:v', str(target),
            '-pix_fmt', pixel_format]


def _qsv_bitrate(target, preset, pixel_format):
    return ['-c:v', 'hevc_qsv', '-preset', preset, '-b:v', str(target), '-pix_fmt', pixel_format]


QUALITY_BUILDERS = {
    'libx265': _libx265_quality,
    'hevc_nvenc': _nvenc_quality,
    'hevc_amf': _amf_quality,
    'hevc_qsv': _qsv_quality,
}

BITRATE_BUILDERS = {
    'libx265': _libx265_bitrate,
    'hevc_nvenc': _nvenc_bitrate,
    'hevc_amf': _amf_bitrate,
    'hevc_qsv': _qsv_bitrate,
}


def audio_parameters(quality_config):
    codec = (quality_config.audio_codec or 'copy').strip()
    if codec.lower() == 'copy':
        return ('-c:a', 'copy')
    return ('-c:a', codec, '-b:a', quality_config.audio_bitrate)


def select_plan(hardware_tag, quality_config, probe_result):
    """Build the EncodingPlan for one file.

    Args:
        hardware_tag: HardwareTag resolved for this run
        quality_config: QualityConfig from startup
        probe_result: ProbeResult of the source file

    Returns:
        EncodingPlan

    Raises:
        InvalidBitrateError: bitrate-relative mode with an unusable source bitrate
        ValueError: unknown rate control family
    """
    encoder = ENCODER_IDS[hardware_tag]
    preset = map_preset_for_encoder(quality_config.preset, encoder)
    if preset != quality_config.preset:
        logger.info(f"Mapped preset '{quality_config.preset}' to '{preset}' for encoder '{encoder}'")
    pixel_format = quality_config.pixel_format or DEFAULT_PIXEL_FORMATS[encoder]

    if quality_config.rate_control == RATE_CONTROL_QUALITY:
        parameters = QUALITY_BUILDERS[encoder](quality_config, preset, pixel_format)
        return EncodingPlan(
            encoder=encoder,
            parameters=tuple(parameters),
            audio_parameters=audio_parameters(quality_config),
        )

    if quality_config.rate_control == RATE_CONTROL_BITRATE:
        target = compute_target_bitrate(probe_result)
        parameters = BITRATE_BUILDERS[encoder](target, preset, pixel_format)
        return EncodingPlan(
            encoder=encoder,
            parameters=tuple(parameters),
            audio_parameters=audio_parameters(quality_config),
            target_bitrate=target,
            verify_bitrate=True,
        )

    raise ValueError(f"Unsupported rate control: {quality_config.rate_control}")
