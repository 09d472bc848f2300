# src/raster_io.py
"""
Binary PGM (P5) reader/writer for the rotation pipeline.

Loads a grayscale image into the top-left corner of a zero-filled square
buffer (side = max(width, height)) and writes a square buffer back out
behind the original header, with only the dimension digits rewritten.

Two header modes (see HeaderMode):
  - LEGACY:     header is a constant-size block read in one go
  - STRUCTURED: header is scanned byte by byte up to the end of maxval
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import BinaryIO, Callable, List, Optional, Tuple, Union
import logging
import os

import numpy as np

from .config import DEFAULT_HEADER_SIZE, HeaderMode
from .errors import FormatError
from .utils import validate_buffer

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

# FORMAT CONSTANTS


PGM_MAGIC = "P5"
MAX_SAMPLE_VALUE = 255          # single-byte samples only
WHITESPACE = b" \t\n\v\f\r"
HEADER_FIELDS = 4               # magic, width, height, maxval


# HEADER MODEL


@dataclass(frozen=True)
class RasterHeader:
    """
    Parsed PGM header that still carries its exact bytes.

    Attributes:
        raw (bytes): header bytes as read, including the whitespace after maxval
        magic (str): format tag, always 'P5'
        width (int): image width in samples
        height (int): image height in rows
        maxval (int): maximum sample value (1-255)
        width_span (Tuple[int, int]): [start, end) of the width digits in raw
        height_span (Tuple[int, int]): [start, end) of the height digits in raw
    """
    raw: bytes
    magic: str
    width: int
    height: int
    maxval: int
    width_span: Tuple[int, int]
    height_span: Tuple[int, int]

    @property
    def side(self) -> int:
        """Side of the square working buffer."""
        return max(self.width, self.height)

    def with_dimensions(self, width: int, height: int, fixed_width: bool = True) -> RasterHeader:
        """
        Return a copy with the width/height digits overwritten.

        Only the two digit fields change; comments, whitespace and maxval
        pass through byte for byte.

        Args:
            width: New width
            height: New height
            fixed_width: Require the new digits to be exactly as wide as
                the old ones, so the header keeps its length

        Returns:
            New RasterHeader

        Raises:
            ValueError: If a dimension is not a positive int
            FormatError: If fixed_width is set and the digit counts differ
        """
        for name, value in (("width", width), ("height", height)):
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive int, got {value!r}")

        new_w = str(width).encode("ascii")
        new_h = str(height).encode("ascii")
        w0, w1 = self.width_span
        h0, h1 = self.height_span

        if fixed_width and (len(new_w) != w1 - w0 or len(new_h) != h1 - h0):
            raise FormatError(
                f"Cannot patch {self.width}x{self.height} to {width}x{height} "
                f"in a fixed-size header: digit counts differ"
            )

        raw = self.raw[:w0] + new_w + self.raw[w1:h0] + new_h + self.raw[h1:]
        shift = len(new_w) - (w1 - w0)

        return replace(
            self,
            raw=raw,
            width=width,
            height=height,
            width_span=(w0, w0 + len(new_w)),
            height_span=(h0 + shift, h0 + shift + len(new_h)),
        )


# HEADER PARSING


def _scan_header(next_byte: Callable[[], Optional[int]]) -> Tuple[bytes, List[Tuple[int, int]]]:
    """
    Consume header bytes until the whitespace that terminates maxval.

    Args:
        next_byte: Returns the next byte value, or None at end of input

    Returns:
        (raw header bytes, [start, end) spans of the four tokens)
    """
    raw = bytearray()
    spans: List[Tuple[int, int]] = []
    start: Optional[int] = None
    in_comment = False

    while len(spans) < HEADER_FIELDS:
        byte = next_byte()
        if byte is None:
            raise FormatError(f"Truncated PGM header after {len(raw)} bytes")

        pos = len(raw)
        raw.append(byte)

        if in_comment:
            if byte in b"\r\n":
                in_comment = False
            continue

        if byte in WHITESPACE:
            if start is not None:
                spans.append((start, pos))
                start = None
            continue

        # A comment also ends a token, except maxval which needs one whitespace byte
        if byte == ord("#") and (start is None or len(spans) < HEADER_FIELDS - 1):
            if start is not None:
                spans.append((start, pos))
                start = None
            in_comment = True
            continue

        if start is None:
            start = pos

    return bytes(raw), spans


def _parse_number(token: bytes, name: str) -> int:
    if not token.isdigit():
        raise FormatError(f"Invalid {name} in PGM header: {token!r}")
    return int(token)


def _build_header(raw: bytes, spans: List[Tuple[int, int]]) -> RasterHeader:
    """Validate the scanned tokens and build the header model."""
    tokens = [raw[s:e] for s, e in spans]

    magic = tokens[0].decode("ascii", errors="replace")
    if magic != PGM_MAGIC:
        raise FormatError(f"Unsupported raster format {magic!r}, expected {PGM_MAGIC!r}")

    width = _parse_number(tokens[1], "width")
    height = _parse_number(tokens[2], "height")
    maxval = _parse_number(tokens[3], "maxval")

    if width < 1 or height < 1:
        raise FormatError(f"Invalid PGM dimensions: {width}x{height}")

    if not 1 <= maxval <= MAX_SAMPLE_VALUE:
        raise FormatError(f"Unsupported maxval {maxval}: only 8-bit samples are supported")

    return RasterHeader(
        raw=raw,
        magic=magic,
        width=width,
        height=height,
        maxval=maxval,
        width_span=spans[1],
        height_span=spans[2],
    )


def parse_header(block: bytes) -> RasterHeader:
    """
    Parse a complete header block.

    The header fields must end exactly at the end of the block, otherwise
    sample bytes would be mistaken for header bytes (or vice versa).

    Raises:
        FormatError: If the block is malformed or does not match its fields
    """
    it = iter(block)
    raw, spans = _scan_header(lambda: next(it, None))

    if len(raw) != len(block):
        raise FormatError(
            f"Header fields end at byte {len(raw)} but the header block is {len(block)} bytes"
        )

    return _build_header(raw, spans)


# STREAM HELPERS


def _read_exact(source: BinaryIO, count: int, what: str) -> bytes:
    """Read exactly count bytes or raise FormatError."""
    chunks = []
    remaining = count

    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)

    data = b"".join(chunks)
    if len(data) != count:
        raise FormatError(f"Expected {count} bytes of {what}, got {len(data)}")
    return data


def _write_all(destination: BinaryIO, data: bytes, what: str) -> None:
    """Write data in one call; a short write is fatal, there is no resume."""
    written = destination.write(data)
    if written is None or written != len(data):
        raise OSError(f"Short write of {what}: {written} of {len(data)} bytes")


# BUFFER


def allocate_buffer(side: int) -> np.ndarray:
    """
    Create a zero-filled square uint8 buffer.

    Raises:
        ValueError: If side is not a positive int
    """
    if not isinstance(side, int) or side < 1:
        raise ValueError(f"Buffer side must be a positive int, got {side!r}")
    return np.zeros((side, side), dtype=np.uint8)


def _check_buffer(buffer: np.ndarray, header: RasterHeader) -> None:
    if not validate_buffer(buffer, "store"):
        raise ValueError("Pixel buffer must be a non-empty square 2D uint8 array")

    if buffer.shape != (header.height, header.width):
        raise ValueError(
            f"Buffer shape {buffer.shape} does not match header "
            f"{header.width}x{header.height}"
        )


# LOAD / STORE


def read_header(
    source: BinaryIO,
    mode: HeaderMode = HeaderMode.LEGACY,
    header_size: int = DEFAULT_HEADER_SIZE,
) -> RasterHeader:
    """
    Read the PGM header from a binary stream.

    Args:
        source: Binary stream positioned at the start of the file
        mode: LEGACY reads a header_size block; STRUCTURED scans to the end of maxval
        header_size: Block length for LEGACY mode

    Returns:
        Parsed RasterHeader

    Raises:
        FormatError: If the header is short or malformed
    """
    if mode is HeaderMode.LEGACY:
        block = _read_exact(source, header_size, "header")
        return parse_header(block)

    def next_byte() -> Optional[int]:
        b = source.read(1)
        return b[0] if b else None

    raw, spans = _scan_header(next_byte)
    return _build_header(raw, spans)


def load(
    source: BinaryIO,
    mode: HeaderMode = HeaderMode.LEGACY,
    header_size: int = DEFAULT_HEADER_SIZE,
) -> Tuple[RasterHeader, np.ndarray]:
    """
    Load a PGM image into a zero-padded square buffer.

    The image lands in the top-left height x width region of an S x S
    buffer, S = max(width, height); everything else stays zero.

    Args:
        source: Binary stream positioned at the start of the file
        mode: Header mode
        header_size: Block length for LEGACY mode

    Returns:
        (header, buffer)

    Raises:
        FormatError: If fewer bytes are available than the header promises
        OSError: On underlying stream failure
    """
    header = read_header(source, mode, header_size)
    logger.debug(
        f"PGM header: {header.width}x{header.height}, maxval={header.maxval}, "
        f"{len(header.raw)} bytes"
    )

    samples = _read_exact(source, header.width * header.height, "sample data")

    buffer = allocate_buffer(header.side)
    buffer[: header.height, : header.width] = np.frombuffer(samples, dtype=np.uint8).reshape(
        header.height, header.width
    )

    if source.read(1):
        logger.debug("Ignoring trailing bytes after sample data")

    return header, buffer


def store(destination: BinaryIO, header: RasterHeader, buffer: np.ndarray) -> None:
    """
    Write header and buffer row-major.

    The header is written as-is; the caller patches the dimensions first
    (see patch_dimensions).

    Raises:
        ValueError: If the buffer does not match the header dimensions
        OSError: If the destination does not accept every byte
    """
    _check_buffer(buffer, header)

    _write_all(destination, header.raw, "header")
    _write_all(destination, np.ascontiguousarray(buffer).tobytes(), "sample data")

    logger.debug(f"Wrote {len(header.raw)} header bytes and {buffer.size} samples")


def patch_dimensions(header: RasterHeader, side: int, mode: HeaderMode = HeaderMode.LEGACY) -> RasterHeader:
    """Rewrite the header for an S x S output, in place for LEGACY, spliced for STRUCTURED."""
    return header.with_dimensions(side, side, fixed_width=mode is HeaderMode.LEGACY)


# FILE WRAPPERS


def load_file(
    path: PathLike,
    mode: HeaderMode = HeaderMode.LEGACY,
    header_size: int = DEFAULT_HEADER_SIZE,
) -> Tuple[RasterHeader, np.ndarray]:
    """Open path and load it (see load)."""
    try:
        with open(path, "rb") as f:
            return load(f, mode, header_size)
    except FormatError as e:
        logger.error(f"Malformed PGM file '{path}': {e}")
        raise
    except OSError as e:
        logger.error(f"Error reading PGM file '{path}': {e}")
        raise


def open_output(path: PathLike) -> BinaryIO:
    """Create/truncate path for writing; open failures are logged and re-raised."""
    try:
        return open(path, "wb")
    except OSError as e:
        logger.error(f"Error opening PGM file '{path}' for writing: {e}")
        raise


def write_to(destination: BinaryIO, path: PathLike, header: RasterHeader, buffer: np.ndarray) -> None:
    """Store into an already opened destination, logging write failures."""
    try:
        store(destination, header, buffer)
    except OSError as e:
        logger.error(f"Error writing PGM file '{path}': {e}")
        raise


def store_file(path: PathLike, header: RasterHeader, buffer: np.ndarray) -> None:
    """Create/truncate path and store the image (see store)."""
    with open_output(path) as f:
        write_to(f, path, header, buffer)
