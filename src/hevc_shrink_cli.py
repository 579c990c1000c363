#!/usr/bin/env python3
"""
Command line entry point for hevc_shrink.
"""

import argparse
import logging
import sys

import configuration_manager
import dependencies_utils
import hevc_shrink
import logging_utils
from encoder_policy import SUPPORTED_RATE_CONTROLS
from exceptions import DependencyMissingError
from hardware_detection import HARDWARE_SETTINGS

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Convert media files to H.265 (HEVC), replacing each original only after '
                    'the converted file has been verified',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
  hevc-shrink                               # Convert every eligible file in the current directory
  hevc-shrink movie.mkv clip.mp4            # Convert only the listed files
  hevc-shrink -crf=20 -preset=slow -S       # Higher quality, keep the originals
  hevc-shrink -qp=24 --hardware nvidia      # Fixed QP on an NVIDIA GPU
  hevc-shrink --rate-control bitrate        # Target 60% of the source bitrate
  hevc-shrink --config config.yaml --dry-run
        """
    )
    parser.add_argument('-h', '-help', '--help',
                        action='help',
                        help='Show this help message and exit')
    parser.add_argument('files',
                        nargs='*',
                        help='Files to convert (default: all non-excluded files in the directory)')
    parser.add_argument('-S', '--save',
                        action='store_true',
                        default=None,
                        help='Keep the original files after a successful conversion')
    quality_group = parser.add_mutually_exclusive_group()
    quality_group.add_argument('-crf',
                               type=float,
                               help='Constant rate factor (0-51, lower is better quality)')
    quality_group.add_argument('-qp',
                               type=int,
                               help='Constant quantization parameter (0-51)')
    parser.add_argument('-preset',
                        help='Encoder speed/quality preset (e.g. medium, slow, p5)')
    parser.add_argument('-acodec',
                        help="Audio codec to re-encode with (default: copy)")
    parser.add_argument('-abitrate',
                        help='Audio bitrate when re-encoding audio (default: 192k)')
    parser.add_argument('--rate-control',
                        choices=SUPPORTED_RATE_CONTROLS,
                        help='quality: fixed CRF/QP; bitrate: 60%% of the source bitrate')
    parser.add_argument('--hardware',
                        choices=HARDWARE_SETTINGS,
                        help='Encoder hardware (default: auto-detect)')
    parser.add_argument('--directory',
                        help='Directory to scan when no files are given (default: current directory)')
    parser.add_argument('--config',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--dry-run',
                        action='store_true',
                        default=None,
                        help='Show what would be converted without actually converting')
    parser.add_argument('--log-file',
                        help='Path to log file (default: temp directory, can be set via '
                             'HEVC_SHRINK_LOG_FILE env var)')
    return parser


def main(argv=None):
    """Main entry point for the script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # First we init logging - first log of init will go to temp location
    logging_utils.setup_logging()

    config, validation_errors = configuration_manager.load_config(args.config, args)

    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        parser.print_help()
        sys.exit(1)

    logging_utils.setup_logging(config['logging']['log_file'])

    # Both external tools must be runnable before any file is touched
    if not dependencies_utils.validate_dependencies(config['dependencies']):
        sys.exit(1)

    files = hevc_shrink.discover_files(
        config['directory'], args.files, config['excluded_extensions'], config['min_file_size'])

    if not files:
        logger.info("No eligible files found.")
        return 0

    try:
        context = hevc_shrink.build_context(config)
        hevc_shrink.run(files, context)
    except DependencyMissingError as e:
        logger.error(f"Fatal: {e}")
        sys.exit(1)
    return 0


if __name__ == '__main__':
    sys.exit(main())
