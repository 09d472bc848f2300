# src/errors.py
"""
Error types shared by the raster adapter and the pipeline.

Device failures are reported with the built-in OSError; only
malformed or truncated raster data gets its own type.
"""


class FormatError(ValueError):
    """Raised when raster data is malformed or shorter than the format requires."""
