"""Edge mismatch metric and the pairwise cost table."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor
from enum import IntEnum
from typing import Optional

import numpy as np

from .fingerprint import EdgeFingerprinter
from .fragments import FragmentStore, Side

logger = logging.getLogger(__name__)


class Direction(IntEnum):
    """Stored adjacency directions; LEFT/UP lookups are answered by swapping pieces."""

    RIGHT = 0
    DOWN = 1


class CostTable:
    """Read-only cost of every (a, rot_a, b, rot_b, direction) adjacency.

    `values[a, ra, b, rb, RIGHT]` is the mismatch when b (turned rb) sits to the
    right of a (turned ra); `DOWN` is the same with b directly below a. A
    fragment is never adjacent to itself, so those entries are +inf.
    """

    def __init__(self, values: np.ndarray) -> None:
        if values.ndim != 5 or values.shape[1] != 4 or values.shape[3] != 4 or values.shape[4] != 2:
            raise ValueError(f"cost table must have shape (n, 4, n, 4, 2), got {values.shape}")
        values.setflags(write=False)
        self.values = values

    @property
    def n(self) -> int:
        return int(self.values.shape[0])

    def lookup(self, a: int, side: Side, ra: int, b: int, rb: int) -> float:
        """Cost of placing b (turned rb) on `side` of a (turned ra)."""
        if side == Side.RIGHT:
            return float(self.values[a, ra, b, rb, Direction.RIGHT])
        if side == Side.BOTTOM:
            return float(self.values[a, ra, b, rb, Direction.DOWN])
        if side == Side.LEFT:
            return float(self.values[b, rb, a, ra, Direction.RIGHT])
        if side == Side.TOP:
            return float(self.values[b, rb, a, ra, Direction.DOWN])
        raise ValueError(f"Unsupported side: {side}")

    def mean_finite(self) -> float:
        finite = self.values[np.isfinite(self.values)]
        return float(np.mean(finite)) if finite.size else 0.0


class CostModel:
    """Compute edge compatibility between fragment descriptors."""

    def __init__(self, downsample_factor: int = 1, metric: str = "squared") -> None:
        if metric not in {"squared", "euclidean"}:
            raise ValueError(f"Unsupported metric: {metric}")
        self.downsample_factor = int(downsample_factor)
        self.metric = metric

    def _reduce(self, diff: np.ndarray) -> np.ndarray:
        """Collapse the trailing (sample, channel) axes of a difference tensor."""
        if self.metric == "squared":
            return np.mean(diff * diff, axis=(-2, -1))
        return np.mean(np.sqrt(np.sum(diff * diff, axis=-1)), axis=-1)

    def cost(self, desc_a: np.ndarray, desc_b: np.ndarray) -> float:
        """Mismatch between two facing edge descriptors; 0 means identical."""
        if desc_a.shape != desc_b.shape:
            raise ValueError(f"descriptor shapes differ: {desc_a.shape} vs {desc_b.shape}")
        if desc_a.size == 0:
            return 0.0
        diff = np.asarray(desc_a, dtype=np.float64) - np.asarray(desc_b, dtype=np.float64)
        return float(self._reduce(diff))

    def build_table(self, store: FragmentStore, executor: Optional[Executor] = None) -> CostTable:
        """Evaluate every fragment pair, rotation pair and direction exactly once.

        Rows of the table (one per fragment `a`) are independent, so they are
        handed to `executor` when one is given; each task writes only its own row.
        """
        t0 = time.perf_counter()
        fingerprinter = EdgeFingerprinter(store.size, self.downsample_factor)
        desc = fingerprinter.fingerprint_all(store)
        n = len(store)

        right = desc[:, :, Side.RIGHT]
        left = desc[:, :, Side.LEFT]
        bottom = desc[:, :, Side.BOTTOM]
        top = desc[:, :, Side.TOP]
        values = np.empty((n, 4, n, 4, 2), dtype=np.float64)

        def _fill_row(a: int) -> None:
            values[a, :, :, :, Direction.RIGHT] = self._reduce(right[a][:, None, None] - left[None])
            values[a, :, :, :, Direction.DOWN] = self._reduce(bottom[a][:, None, None] - top[None])
            values[a, :, a, :, :] = np.inf

        if executor is None:
            for a in range(n):
                _fill_row(a)
        else:
            # Consume the iterator so worker exceptions surface here.
            list(executor.map(_fill_row, range(n)))

        logger.info(
            "Cost table built | fragments=%d  samples=%d  metric=%s  (%.3f s)",
            n, fingerprinter.samples, self.metric, time.perf_counter() - t0,
        )
        return CostTable(values)
