# src/instrumentation.py
"""
Per-pass observability hooks for the rotation engine.

The engine itself only measures; anything that reports (log lines,
debug snapshots) is a hook called after each pass.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional
import logging
import os

import cv2
import numpy as np

if TYPE_CHECKING:
    from .rotation import RotationDirection

logger = logging.getLogger(__name__)


@dataclass
class PassEvent:
    """
    One finished rotation pass.

    Attributes:
        direction: RotationDirection of the pass
        ordinal:   1-based index of the pass within the request
        total:     number of passes in the request
        elapsed:   wall-clock seconds for the pass
        workers:   configured degree of parallelism
        buffer:    the live buffer after the pass (read it, don't write it)
    """
    direction: "RotationDirection"
    ordinal: int
    total: int
    elapsed: float
    workers: int
    buffer: np.ndarray


PassHook = Callable[[PassEvent], Any]


def log_pass_timing(event: PassEvent) -> None:
    """Log how long a pass took."""
    logger.info(
        f"{event.direction.value.capitalize()} rotation took {event.elapsed:.6f} seconds "
        f"with {event.workers} threads."
    )


class DebugImageWriter:
    """
    Hook that saves the buffer after each pass for inspection.
    Files go into <debug_dir>/<timestamp>_<ordinal>_<direction>.png
    """

    def __init__(self, debug_dir: str) -> None:
        self.debug_dir = debug_dir
        self.saved = 0

    def _ensure_dir(self) -> bool:
        if os.path.isdir(self.debug_dir):
            return True
        try:
            os.makedirs(self.debug_dir, exist_ok=True)
            logger.debug(f"Created debug directory: {self.debug_dir}")
            return True
        except OSError as e:
            logger.error(f"Failed to create debug directory: {e}")
            return False

    def __call__(self, event: PassEvent) -> None:
        if not self._ensure_dir():
            return

        ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        name = f"{ts}_{event.ordinal:03d}_{event.direction.value}.png"
        path = os.path.join(self.debug_dir, name)

        # Debug output must never break a run
        try:
            if cv2.imwrite(path, event.buffer):
                self.saved += 1
                logger.debug(f"Saved debug image: {path}")
            else:
                logger.warning(f"Failed to write debug image: {path}")
        except cv2.error as e:
            logger.error(f"Error saving debug image '{path}': {e}")


def chain_hooks(*hooks: Optional[PassHook]) -> Optional[PassHook]:
    """Combine hooks into one, skipping None. Returns None if nothing is left."""
    active = [hook for hook in hooks if hook is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    def chained(event: PassEvent) -> None:
        for hook in active:
            hook(event)

    return chained
