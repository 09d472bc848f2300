# src/config.py
"""
Run configuration for the PGM rotator.

Everything a run needs is passed explicitly:
  - RotationRequest: how many quarter turns in each direction
  - RotationConfig:  worker count, header handling, debug output
"""

from dataclasses import dataclass
from enum import Enum


# DEFAULTS


# Fixed header block of the legacy card-image files (P5, comment, dims, maxval)
DEFAULT_HEADER_SIZE = 38

# Where debug snapshots go when debug_save is enabled
DEBUG_DIR = "intermediate"


# HEADER MODES


class HeaderMode(Enum):
    """
    How the raster header is read and rewritten.

    LEGACY:     constant-size block, dimension digits overwritten in place
                (new digits must be as wide as the old ones)
    STRUCTURED: header scanned token by token, dimension digits spliced
                (header may grow or shrink)
    """

    LEGACY = "legacy"
    STRUCTURED = "structured"


# REQUEST / CONFIG


@dataclass(frozen=True)
class RotationRequest:
    """
    Number of 90° turns to apply.

    Attributes:
        clockwise (int): right turns
        counterclockwise (int): left turns
    """
    clockwise: int = 0
    counterclockwise: int = 0

    def __post_init__(self) -> None:
        """Validate counts after initialization."""
        for name in ("clockwise", "counterclockwise"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be int, got {type(value)}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def is_noop(self) -> bool:
        return self.clockwise == 0 and self.counterclockwise == 0


@dataclass(frozen=True)
class RotationConfig:
    """
    Engine and adapter settings for one run.

    Attributes:
        parallelism:  number of workers processing layers concurrently
        header_mode:  see HeaderMode
        header_size:  header block length in LEGACY mode
        reduce_turns: reduce each direction's count mod 4 before rotating
        debug_save:   dump the buffer after every pass as PNG
        debug_dir:    directory for debug dumps
        verify:       compare the result against the OpenCV reference
    """
    parallelism: int = 1
    header_mode: HeaderMode = HeaderMode.LEGACY
    header_size: int = DEFAULT_HEADER_SIZE
    reduce_turns: bool = True
    debug_save: bool = False
    debug_dir: str = DEBUG_DIR
    verify: bool = False

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not isinstance(self.parallelism, int) or self.parallelism < 1:
            raise ValueError(f"parallelism must be a positive int, got {self.parallelism!r}")

        if not isinstance(self.header_mode, HeaderMode):
            raise ValueError(f"header_mode must be HeaderMode, got {type(self.header_mode)}")

        if not isinstance(self.header_size, int) or self.header_size < 1:
            raise ValueError(f"header_size must be a positive int, got {self.header_size!r}")
