# src/utils.py
"""
Utility functions for pixel buffers.
Provides validation, statistics, comparison and an OpenCV reference rotation.
"""

from __future__ import annotations
from typing import Optional
import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


# VALIDATION & STATS


def validate_buffer(buffer: np.ndarray, operation: str = "processing") -> bool:
    """
    Validate a pixel buffer for operations.

    Args:
        buffer: Buffer to validate
        operation: Name of operation (for logging)

    Returns:
        True if it is a non-empty square 2D uint8 array, False otherwise
    """
    if buffer is None:
        logger.warning(f"Buffer is None for {operation}")
        return False

    if not isinstance(buffer, np.ndarray):
        logger.warning(f"Buffer is not ndarray for {operation}")
        return False

    if buffer.ndim != 2 or buffer.size == 0:
        logger.warning(f"Buffer has invalid shape for {operation}: {buffer.shape}")
        return False

    if buffer.shape[0] != buffer.shape[1]:
        logger.warning(f"Buffer is not square for {operation}: {buffer.shape}")
        return False

    if buffer.dtype != np.uint8:
        logger.warning(f"Buffer dtype is {buffer.dtype}, expected uint8 for {operation}")
        return False

    return True


def get_buffer_stats(buffer: Optional[np.ndarray]) -> dict:
    """
    Get statistics about a buffer for debugging.

    Args:
        buffer: Buffer to analyze

    Returns:
        Dictionary with buffer statistics
    """
    if buffer is None or buffer.size == 0:
        return {
            "shape": None,
            "dtype": None,
            "mean": None,
            "std": None,
            "min": None,
            "max": None,
            "nonzero": None,
        }

    return {
        "shape": buffer.shape,
        "dtype": str(buffer.dtype),
        "mean": float(np.mean(buffer)),
        "std": float(np.std(buffer)),
        "min": float(np.min(buffer)),
        "max": float(np.max(buffer)),
        "nonzero": int(np.count_nonzero(buffer)),
    }


# COMPARISON


def images_are_equal(img1: Optional[np.ndarray], img2: Optional[np.ndarray]) -> bool:
    """
    Check if two buffers are pixel-identical.

    Args:
        img1, img2: Buffers to compare

    Returns:
        True if shape, dtype and every sample match
    """
    if img1 is None or img2 is None:
        return img1 is img2

    if img1.shape != img2.shape or img1.dtype != img2.dtype:
        return False

    return bool(np.array_equal(img1, img2))


# REFERENCE ROTATION


def rotate_reference(img: np.ndarray, quarter_turns: int) -> np.ndarray:
    """
    Rotate by net clockwise quarter turns with OpenCV.

    Used to cross-check the in-place engine; always returns a new array.

    Args:
        img: Input image
        quarter_turns: Clockwise quarter turns (any int, taken mod 4)

    Returns:
        Rotated copy

    Raises:
        ValueError: If image is None or empty
    """
    if img is None or not isinstance(img, np.ndarray) or img.size == 0:
        raise ValueError("rotate_reference: invalid image array")

    turns = quarter_turns % 4

    if turns == 0:
        logger.debug("Reference rotation 0°: returning copy")
        return img.copy()

    elif turns == 1:
        return cv2.rotate(img, cv2.ROTATE_90_CLOCKWISE)

    elif turns == 2:
        return cv2.rotate(img, cv2.ROTATE_180)

    return cv2.rotate(img, cv2.ROTATE_90_COUNTERCLOCKWISE)
