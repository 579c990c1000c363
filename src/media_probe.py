#!/usr/bin/env python3
"""
Read-only media queries backed by ffprobe.

Each field is fetched with its own small ffprobe call using the
``default=noprint_wrappers=1:nokey=1`` writer so that the output is just the
value (one line per stream). Values that cannot be parsed are reported as
None, never as 0: a real zero is a different condition from "not found".
"""

import logging
import subprocess

import subprocess_utils
from exceptions import DependencyMissingError
from media_types import ProbeResult

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 60
PLAIN_OUTPUT = ['-of', 'default=noprint_wrappers=1:nokey=1']


def parse_int(text):
    """Parse the first line of ffprobe output as a non-negative integer, or None."""
    if text is None:
        return None
    lines = text.strip().splitlines()
    if not lines:
        return None
    value = lines[0].strip()
    if not value.isdigit():
        return None
    return int(value)


def parse_float(text):
    """Parse the first line of ffprobe output as a float, or None for N/A and garbage."""
    if text is None:
        return None
    lines = text.strip().splitlines()
    if not lines:
        return None
    try:
        value = float(lines[0].strip())
    except ValueError:
        return None
    if value != value or value < 0:  # NaN or negative
        return None
    return value


def source_bitrate(probe_result):
    """Preferred bitrate for a probed file: video stream first, then container."""
    if probe_result.video_bitrate:
        return probe_result.video_bitrate
    return probe_result.container_bitrate


class MediaProbe:
    """Queries ffprobe for the stream layout, codec, bitrate and duration of a file."""

    def __init__(self, ffprobe_path='ffprobe', timeout=DEFAULT_PROBE_TIMEOUT):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def _query(self, file_path, *args):
        """Run one ffprobe query and return its stdout, or None on failure."""
        command_args = [self.ffprobe_path, '-v', 'error', *args, *PLAIN_OUTPUT, str(file_path)]
        try:
            result = subprocess_utils.run_command(command_args, check=True, timeout=self.timeout)
        except FileNotFoundError:
            raise DependencyMissingError('ffprobe', self.ffprobe_path)
        except subprocess.CalledProcessError as e:
            logger.warning(f"ffprobe failed for {file_path}: exit code {e.returncode}")
            return None
        except subprocess.TimeoutExpired:
            logger.warning(f"ffprobe timed out after {self.timeout}s for {file_path}")
            return None
        except OSError as e:
            logger.warning(f"ffprobe could not be run for {file_path}: {e}")
            return None
        return result.stdout or ''

    def has_video_stream(self, file_path):
        output = self._query(file_path, '-show_entries', 'stream=codec_type')
        if output is None:
            return False
        return any(line.strip() == 'video' for line in output.splitlines())

    def get_video_codecs(self, file_path):
        """Codec names of the real video streams (attached cover pictures excluded)."""
        output = self._query(file_path, '-select_streams', 'V', '-show_entries', 'stream=codec_name')
        if output is None:
            return []
        return [line.strip().lower() for line in output.splitlines() if line.strip()]

    def get_video_bitrate(self, file_path):
        output = self._query(file_path, '-select_streams', 'V:0', '-show_entries', 'stream=bit_rate')
        return parse_int(output)

    def get_container_bitrate(self, file_path):
        output = self._query(file_path, '-show_entries', 'format=bit_rate')
        return parse_int(output)

    def get_bitrate(self, file_path):
        """Video stream bitrate, falling back to the container bitrate when absent or zero."""
        bitrate = self.get_video_bitrate(file_path)
        if bitrate:
            return bitrate
        return self.get_container_bitrate(file_path)

    def get_duration(self, file_path):
        """Get the duration of a media file in seconds (float), or None."""
        output = self._query(file_path, '-show_entries', 'format=duration')
        return parse_float(output)

    def probe(self, file_path):
        """Collect a ProbeResult for file_path. Never touches the filesystem."""
        if not self.has_video_stream(file_path):
            return ProbeResult(has_video_stream=False, video_stream_count=0)

        codecs = self.get_video_codecs(file_path)
        if not codecs:
            return ProbeResult(has_video_stream=True, video_stream_count=0)

        video_bitrate = self.get_video_bitrate(file_path)
        container_bitrate = None
        if not video_bitrate:
            # Stream bitrate is often missing for MKV; ask the container instead
            container_bitrate = self.get_container_bitrate(file_path)

        result = ProbeResult(
            has_video_stream=True,
            video_stream_count=len(codecs),
            primary_codec=codecs[0],
            video_bitrate=video_bitrate,
            container_bitrate=container_bitrate,
            duration_seconds=self.get_duration(file_path),
        )
        logger.debug(f"Probe result for {file_path}: {result}")
        return result
