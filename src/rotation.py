# src/rotation.py
"""
In-place quarter-turn rotation of a square pixel buffer.

Layer peeling:
  - layer i is the square ring i cells in from the border
  - one 90° turn is a 4-cycle top -> right -> bottom -> left within each ring
  - rings never share cells, so they are handed to workers independently

Every requested turn is a full pass over the buffer; passes run strictly
one after another (all counter-clockwise first, then all clockwise).
"""

from __future__ import annotations
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import time

import numpy as np

from .config import RotationConfig, RotationRequest
from .instrumentation import PassEvent, PassHook
from .utils import validate_buffer

logger = logging.getLogger(__name__)


class RotationDirection(Enum):
    CLOCKWISE = "clockwise"
    COUNTERCLOCKWISE = "counterclockwise"


LayerKernel = Callable[[np.ndarray, int], None]


# LAYER KERNELS


def _ring(side: int, layer: int):
    """Edge indices j of one ring plus their mirrors and the far edge index."""
    j = np.arange(layer, side - layer - 1)
    return j, side - 1 - j, side - 1 - layer


def rotate_layer_clockwise(buffer: np.ndarray, layer: int) -> None:
    """
    Turn one ring 90° clockwise.

    For every j on the leading edge, each cell takes the value of its
    counter-clockwise neighbour in the cycle
    (i, j) <- (S-1-j, i) <- (S-1-i, S-1-j) <- (j, S-1-i) <- (i, j).
    The four index sets are disjoint, so the whole edge moves at once.
    """
    j, mirror, last = _ring(buffer.shape[0], layer)
    if j.size == 0:
        return

    temp = buffer[layer, j].copy()
    buffer[layer, j] = buffer[mirror, layer]
    buffer[mirror, layer] = buffer[last, mirror]
    buffer[last, mirror] = buffer[j, last]
    buffer[j, last] = temp


def rotate_layer_counterclockwise(buffer: np.ndarray, layer: int) -> None:
    """Turn one ring 90° counter-clockwise (mirror of rotate_layer_clockwise)."""
    j, mirror, last = _ring(buffer.shape[0], layer)
    if j.size == 0:
        return

    temp = buffer[layer, j].copy()
    buffer[layer, j] = buffer[j, last]
    buffer[j, last] = buffer[last, mirror]
    buffer[last, mirror] = buffer[mirror, layer]
    buffer[mirror, layer] = temp


_KERNELS: Dict[RotationDirection, LayerKernel] = {
    RotationDirection.CLOCKWISE: rotate_layer_clockwise,
    RotationDirection.COUNTERCLOCKWISE: rotate_layer_counterclockwise,
}


# WORK PARTITIONING


def partition_layers(side: int, workers: int) -> List[range]:
    """
    Split the rings of an S x S buffer into contiguous chunks, one per task.

    Static schedule: at most `workers` chunks of ceil(layers / workers)
    rings each. For odd S the centre cell belongs to no ring.

    Args:
        side: Buffer side S
        workers: Number of workers

    Returns:
        Disjoint, non-empty ranges covering 0 .. S//2 - 1
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    layers = side // 2
    if layers == 0:
        return []

    chunk = -(-layers // workers)
    return [range(start, min(start + chunk, layers)) for start in range(0, layers, chunk)]


def _check_square(buffer: np.ndarray) -> None:
    if not validate_buffer(buffer, "rotation"):
        shape = getattr(buffer, "shape", None)
        raise ValueError(f"Rotation needs a square 2D uint8 buffer, got shape {shape}")


def _run_pass(
    buffer: np.ndarray,
    kernel: LayerKernel,
    executor: Optional[Executor],
    workers: int,
) -> None:
    """One full pass; returns only after every chunk is done."""

    def work(layers: range) -> None:
        for layer in layers:
            kernel(buffer, layer)

    if executor is None:
        for layers in partition_layers(buffer.shape[0], 1):
            work(layers)
        return

    futures = [executor.submit(work, layers) for layers in partition_layers(buffer.shape[0], workers)]
    wait(futures)
    for future in futures:
        future.result()


def _pass_workers(executor: Optional[Executor], workers: Optional[int]) -> int:
    if executor is None:
        return 1
    if workers is None:
        raise ValueError("workers is required when an executor is given")
    return workers


def rotate_clockwise(
    buffer: np.ndarray,
    executor: Optional[Executor] = None,
    workers: Optional[int] = None,
) -> None:
    """
    Rotate the whole buffer 90° clockwise in place.

    With an executor, the rings are split into `workers` chunks; workers
    must then be given (usually the executor's max_workers).
    """
    _check_square(buffer)
    _run_pass(buffer, rotate_layer_clockwise, executor, _pass_workers(executor, workers))


def rotate_counterclockwise(
    buffer: np.ndarray,
    executor: Optional[Executor] = None,
    workers: Optional[int] = None,
) -> None:
    """Rotate the whole buffer 90° counter-clockwise in place (see rotate_clockwise)."""
    _check_square(buffer)
    _run_pass(buffer, rotate_layer_counterclockwise, executor, _pass_workers(executor, workers))


# SEQUENCING


def plan_passes(request: RotationRequest, reduce_turns: bool = True) -> List[RotationDirection]:
    """
    Order of passes for a request: all counter-clockwise, then all clockwise.

    With reduce_turns each count is taken mod 4 first; four turns in one
    direction are the identity, so the final image is the same.
    """
    ccw = request.counterclockwise
    cw = request.clockwise
    if reduce_turns:
        ccw %= 4
        cw %= 4

    return [RotationDirection.COUNTERCLOCKWISE] * ccw + [RotationDirection.CLOCKWISE] * cw


def net_quarter_turns(request: RotationRequest) -> int:
    """Net clockwise quarter turns (0-3) of a request."""
    return (request.clockwise - request.counterclockwise) % 4


# ENGINE


class RotationEngine:
    """
    Applies rotation requests to square buffers.

    Attributes:
        parallelism:  workers per pass (1 = run inline, no pool)
        reduce_turns: reduce counts mod 4 before rotating
        on_pass:      hook called with a PassEvent after every pass
    """

    def __init__(
        self,
        parallelism: int = 1,
        reduce_turns: bool = True,
        on_pass: Optional[PassHook] = None,
    ) -> None:
        if not isinstance(parallelism, int) or parallelism < 1:
            raise ValueError(f"parallelism must be a positive int, got {parallelism!r}")

        self.parallelism = parallelism
        self.reduce_turns = reduce_turns
        self.on_pass = on_pass

    @classmethod
    def from_config(cls, config: RotationConfig, on_pass: Optional[PassHook] = None) -> RotationEngine:
        return cls(
            parallelism=config.parallelism,
            reduce_turns=config.reduce_turns,
            on_pass=on_pass,
        )

    def rotate(self, buffer: np.ndarray, request: RotationRequest) -> None:
        """
        Apply a request to the buffer in place.

        Args:
            buffer: Square 2D array, mutated in place
            request: Turn counts

        Raises:
            ValueError: If the buffer is not square
        """
        _check_square(buffer)

        if request.is_noop:
            logger.debug("No rotations requested")
            return

        passes = plan_passes(request, self.reduce_turns)
        if not passes:
            logger.debug("Requested turns reduce to the identity")
            return

        logger.debug(
            f"Rotating {buffer.shape[0]}x{buffer.shape[0]} buffer: {len(passes)} passes, "
            f"{self.parallelism} workers"
        )

        if self.parallelism == 1:
            self._run(buffer, passes, None)
            return

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="rotate") as executor:
            self._run(buffer, passes, executor)

    def _run(
        self,
        buffer: np.ndarray,
        passes: List[RotationDirection],
        executor: Optional[Executor],
    ) -> None:
        total = len(passes)

        for ordinal, direction in enumerate(passes, start=1):
            start = time.perf_counter()
            _run_pass(buffer, _KERNELS[direction], executor, self.parallelism)
            elapsed = time.perf_counter() - start

            logger.debug(f"Pass {ordinal}/{total} ({direction.value}) done in {elapsed:.6f}s")

            if self.on_pass is not None:
                self.on_pass(
                    PassEvent(
                        direction=direction,
                        ordinal=ordinal,
                        total=total,
                        elapsed=elapsed,
                        workers=self.parallelism,
                        buffer=buffer,
                    )
                )


def rotate(buffer: np.ndarray, request: RotationRequest, parallelism: int = 1) -> None:
    """Rotate buffer in place with a one-off engine."""
    RotationEngine(parallelism=parallelism).rotate(buffer, request)
