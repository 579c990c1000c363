#!/usr/bin/env python3
"""
Hardware encoder detection.

The rest of the pipeline only ever sees a HardwareTag. Detection lists the
display adapters through the OS, picks a vendor, and then checks that the
local ffmpeg build actually exposes the matching HEVC encoder.
"""

import logging
import platform
import subprocess

import subprocess_utils
from encoder_policy import ENCODER_IDS
from media_types import HardwareTag

logger = logging.getLogger(__name__)

DETECTION_TIMEOUT = 15
HARDWARE_SETTINGS = ['auto'] + [tag.value for tag in HardwareTag]

# Checked in this order: a discrete card wins over integrated graphics
VENDOR_KEYWORDS = [
    (HardwareTag.NVIDIA, ('nvidia', 'geforce', 'quadro', 'tesla')),
    (HardwareTag.AMD, ('amd', 'radeon', 'advanced micro devices', 'ati technologies')),
    (HardwareTag.INTEL, ('intel',)),
]


def get_platform():
    """Detect the current platform."""
    system = platform.system().lower()
    if system == 'darwin':
        return 'macos'
    if system in ('windows', 'linux'):
        return system
    raise RuntimeError(f"Unsupported platform: {system}")


def adapter_query_command(platform_name):
    if platform_name == 'linux':
        return ['lspci']
    if platform_name == 'windows':
        return ['powershell', '-NoProfile', '-Command',
                'Get-CimInstance Win32_VideoController | Select-Object -ExpandProperty Name']
    return ['system_profiler', 'SPDisplaysDataType']


def classify_adapters(adapter_text, platform_name=None):
    """Return the HardwareTag for a blob of adapter descriptions."""
    if not adapter_text:
        return HardwareTag.NONE
    lines = adapter_text.lower().splitlines()
    if platform_name == 'linux':
        # lspci lists every PCI device; only display controllers matter
        lines = [line for line in lines if 'vga' in line or '3d controller' in line or 'display' in line]
    text = '\n'.join(lines)
    for tag, keywords in VENDOR_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return tag
    return HardwareTag.NONE


class HardwareCapabilityProvider:
    """Resolves the HardwareTag once per run."""

    def __init__(self):
        self._tag = None

    def detect(self):
        if self._tag is None:
            self._tag = self._detect()
            logger.info(f"Hardware capability: {self._tag.value}")
        return self._tag

    def _detect(self):
        raise NotImplementedError


class StaticHardwareProvider(HardwareCapabilityProvider):
    """Returns a tag chosen in the configuration."""

    def __init__(self, tag):
        super().__init__()
        self.tag = tag

    def _detect(self):
        return self.tag


class SystemHardwareProvider(HardwareCapabilityProvider):
    """Detects the adapter vendor through the OS and checks ffmpeg encoder support."""

    def __init__(self, ffmpeg_path='ffmpeg'):
        super().__init__()
        self.ffmpeg_path = ffmpeg_path

    def _run(self, command_args):
        try:
            result = subprocess_utils.run_command(command_args, check=True, timeout=DETECTION_TIMEOUT)
        except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Hardware query failed ({command_args[0]}): {e}")
            return None
        return result.stdout

    def query_adapters(self, platform_name):
        return self._run(adapter_query_command(platform_name))

    def encoder_available(self, encoder):
        output = self._run([self.ffmpeg_path, '-hide_banner', '-encoders'])
        if not output:
            return False
        return any(encoder in line.split() for line in output.splitlines())

    def _detect(self):
        try:
            platform_name = get_platform()
        except RuntimeError as e:
            logger.warning(str(e))
            return HardwareTag.NONE
        tag = classify_adapters(self.query_adapters(platform_name), platform_name)
        if tag is HardwareTag.NONE:
            return tag
        encoder = ENCODER_IDS[tag]
        if not self.encoder_available(encoder):
            logger.warning(f"{tag.value} adapter found but ffmpeg has no {encoder} encoder; using software")
            return HardwareTag.NONE
        return tag


def provider_for(setting, ffmpeg_path='ffmpeg'):
    """Build the provider for a 'hardware' config value (auto, none, nvidia, amd, intel)."""
    setting = (setting or 'auto').lower()
    if setting == 'auto':
        return SystemHardwareProvider(ffmpeg_path)
    return StaticHardwareProvider(HardwareTag(setting))
