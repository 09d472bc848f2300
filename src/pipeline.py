# src/pipeline.py
"""
End-to-end file rotation: load -> patch header -> open output -> rotate -> store.

I/O is sequential and single-threaded on both sides of the parallel
rotation phase. Format and I/O errors propagate to the caller.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import logging
import time

from .config import RotationConfig, RotationRequest
from .instrumentation import DebugImageWriter, PassHook, chain_hooks
from .raster_io import PathLike, load_file, open_output, patch_dimensions, write_to
from .rotation import RotationDirection, RotationEngine, net_quarter_turns, plan_passes
from .utils import get_buffer_stats, images_are_equal, rotate_reference

logger = logging.getLogger(__name__)


@dataclass
class RotationReport:
    """Summary of one rotate_file run."""
    input_width: int
    input_height: int
    side: int
    passes: List[RotationDirection] = field(default_factory=list)
    elapsed: float = 0.0
    verified: Optional[bool] = None


def rotate_file(
    input_path: PathLike,
    output_path: PathLike,
    request: RotationRequest,
    config: Optional[RotationConfig] = None,
    on_pass: Optional[PassHook] = None,
) -> RotationReport:
    """
    Rotate a PGM file and write the square result.

    Args:
        input_path: Source PGM
        output_path: Destination PGM (created or truncated)
        request: Turn counts
        config: Run settings (defaults to RotationConfig())
        on_pass: Optional hook called after every pass

    Returns:
        RotationReport

    Raises:
        FormatError: If the source is malformed or truncated, or the new
            dimensions don't fit a legacy header
        OSError: On open/read/write failure
    """
    config = config or RotationConfig()

    header, buffer = load_file(input_path, config.header_mode, config.header_size)
    logger.info(
        f"Loaded {input_path}: {header.width}x{header.height} into {header.side}x{header.side} buffer"
    )
    logger.debug(f"Buffer stats: {get_buffer_stats(buffer)}")

    # Fail before rotating if the new dimensions cannot be written back
    out_header = patch_dimensions(header, header.side, config.header_mode)

    original = buffer.copy() if config.verify else None

    if config.debug_save:
        on_pass = chain_hooks(on_pass, DebugImageWriter(config.debug_dir))

    engine = RotationEngine.from_config(config, on_pass=on_pass)

    # An unwritable output fails before any rotation work
    with open_output(output_path) as destination:
        start = time.perf_counter()
        engine.rotate(buffer, request)
        elapsed = time.perf_counter() - start

        report = _finish(header, buffer, original, request, config, elapsed)
        write_to(destination, output_path, out_header, buffer)

    logger.info(f"Wrote {output_path}: {header.side}x{header.side}, {len(report.passes)} passes")
    return report


def _finish(header, buffer, original, request, config, elapsed) -> RotationReport:
    """Build the report, cross-checking against the reference rotation if asked."""
    report = RotationReport(
        input_width=header.width,
        input_height=header.height,
        side=header.side,
        passes=plan_passes(request, config.reduce_turns),
        elapsed=elapsed,
    )

    if original is not None:
        expected = rotate_reference(original, net_quarter_turns(request))
        report.verified = images_are_equal(buffer, expected)
        if report.verified:
            logger.info("Rotation matches OpenCV reference")
        else:
            logger.error("Rotation does not match OpenCV reference")

    return report
