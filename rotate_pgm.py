# rotate_pgm.py
"""
Command-line entry point for rotating binary PGM images by quarter turns.

Usage:
    rotate_pgm.py <input> <output> <parallelism> <right_rotations> <left_rotations>

The output is always square: side = max(width, height) of the input.
"""

import argparse
import logging
import sys
from typing import List, Optional

from src.config import DEBUG_DIR, DEFAULT_HEADER_SIZE, HeaderMode, RotationConfig, RotationRequest
from src.errors import FormatError
from src.instrumentation import log_pass_timing
from src.pipeline import rotate_file

logger = logging.getLogger(__name__)


# ARGUMENT TYPES


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgm-rotate",
        description="Rotate a binary PGM image by 90° steps into a square output",
    )
    parser.add_argument("input", help="Input PGM file")
    parser.add_argument("output", help="Output PGM file (created or truncated)")
    parser.add_argument("parallelism", type=_positive_int, help="Number of worker threads")
    parser.add_argument("right_rotations", type=_non_negative_int, help="Clockwise 90° turns")
    parser.add_argument("left_rotations", type=_non_negative_int, help="Counter-clockwise 90° turns")

    parser.add_argument(
        "--header-mode",
        choices=[m.value for m in HeaderMode],
        default=HeaderMode.LEGACY.value,
        help="legacy: fixed-size header, digits patched in place; "
             "structured: header parsed, digits may change width",
    )
    parser.add_argument(
        "--header-size",
        type=_positive_int,
        default=DEFAULT_HEADER_SIZE,
        help=f"Header block size in legacy mode (default: {DEFAULT_HEADER_SIZE})",
    )
    parser.add_argument(
        "--no-reduce",
        action="store_true",
        help="Run every requested turn instead of reducing counts mod 4",
    )
    parser.add_argument("--debug-save", action="store_true", help="Save the buffer after every pass as PNG")
    parser.add_argument("--debug-dir", default=DEBUG_DIR, help=f"Debug image directory (default: {DEBUG_DIR})")
    parser.add_argument("--verify", action="store_true", help="Cross-check the result against OpenCV")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = RotationConfig(
        parallelism=args.parallelism,
        header_mode=HeaderMode(args.header_mode),
        header_size=args.header_size,
        reduce_turns=not args.no_reduce,
        debug_save=args.debug_save,
        debug_dir=args.debug_dir,
        verify=args.verify,
    )
    request = RotationRequest(clockwise=args.right_rotations, counterclockwise=args.left_rotations)

    try:
        report = rotate_file(args.input, args.output, request, config, on_pass=log_pass_timing)
    except FormatError as e:
        logger.error(f"Invalid PGM data: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1

    if report.verified is False:
        return 1

    logger.info(f"Done in {report.elapsed:.6f} seconds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
