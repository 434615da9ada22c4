"""Rotation-aware edge descriptors for square fragments."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InputShapeError
from .fragments import Fragment, FragmentStore, Rotation, Side

EdgeSet = Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]


def _turn_clockwise(edges: EdgeSet) -> EdgeSet:
    """Reindex (top, right, bottom, left) edges for one clockwise quarter turn.

    Horizontal edges are read left to right and vertical edges top to bottom,
    so the edges that wrap around a corner onto the opposite axis flip order.
    """
    top, right, bottom, left = edges
    return left[::-1], top, right[::-1], bottom


class EdgeFingerprinter:
    """Extract the four edge descriptors of a fragment under any rotation."""

    def __init__(self, fragment_size: int, downsample_factor: int = 1) -> None:
        if fragment_size <= 0:
            raise ValueError(f"fragment_size must be positive, got {fragment_size}")
        if not 1 <= downsample_factor <= fragment_size:
            raise ValueError(
                f"downsample_factor must lie in [1, {fragment_size}], got {downsample_factor}"
            )
        self.fragment_size = int(fragment_size)
        self.downsample_factor = int(downsample_factor)

    @property
    def samples(self) -> int:
        """Number of samples L in every descriptor."""
        return self.fragment_size // self.downsample_factor

    def base_edges(self, fragment: Fragment) -> EdgeSet:
        """Full-resolution edges of the unrotated fragment."""
        size = self.fragment_size
        if fragment.image.shape != (size, size, 3):
            raise InputShapeError(
                f"fragment {fragment.id}: expected ({size}, {size}, 3) buffer, "
                f"got {fragment.image.shape}"
            )
        img = fragment.image.astype(np.float64)
        return img[0, :, :], img[:, -1, :], img[-1, :, :], img[:, 0, :]

    def _reduce(self, edge: np.ndarray) -> np.ndarray:
        k = self.downsample_factor
        if k == 1:
            return np.ascontiguousarray(edge)
        n = self.samples
        return edge[: n * k].reshape(n, k, edge.shape[-1]).mean(axis=1)

    def fingerprint(self, fragment: Fragment, rotation: int = Rotation.R0) -> EdgeSet:
        """Return (top, right, bottom, left) descriptors of the rotated fragment."""
        edges = self.base_edges(fragment)
        for _ in range(int(rotation) % 4):
            edges = _turn_clockwise(edges)
        top, right, bottom, left = (self._reduce(e) for e in edges)
        return top, right, bottom, left

    def fingerprint_all(self, store: FragmentStore) -> np.ndarray:
        """Descriptor tensor indexed [fragment, rotation, side, sample, channel]."""
        out = np.empty((len(store), 4, 4, self.samples, 3), dtype=np.float64)
        for fragment in store:
            edges = self.base_edges(fragment)
            for rotation in Rotation:
                for side in Side:
                    out[fragment.id, rotation, side] = self._reduce(edges[side])
                edges = _turn_clockwise(edges)
        out.setflags(write=False)
        return out
