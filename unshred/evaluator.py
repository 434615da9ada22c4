"""Evaluation metrics for reconstruction quality against a known scramble."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .assembler import Arrangement
from .board import BoardState
from .matcher import CostTable
from .utils import Scramble


@dataclass
class EvaluationResult:
    """Container for reconstruction metrics."""

    position_accuracy: float
    rotation_accuracy: float
    neighbor_accuracy: float
    total_cost: float


class PuzzleEvaluator:
    """Compare an arrangement with the ground truth recorded by `scramble_fragments`."""

    @staticmethod
    def _restored(arrangement: Arrangement, scramble: Scramble) -> np.ndarray:
        """Original row-major index of each cell's fragment, -1 where misrotated."""
        out = np.full((arrangement.rows, arrangement.cols), -1, dtype=np.int64)
        for p in arrangement.placements:
            upright = (int(p.rotation) + int(scramble.applied_rotation[p.fragment_id])) % 4 == 0
            if upright:
                out[p.cell] = int(scramble.original_index[p.fragment_id])
        return out

    def compute_position_accuracy(self, arrangement: Arrangement, scramble: Scramble) -> float:
        """Fraction of fragments restored to their original cell and orientation."""
        restored = self._restored(arrangement, scramble)
        expected = np.arange(restored.size).reshape(restored.shape)
        return float(np.mean(restored == expected)) if restored.size else 0.0

    def compute_rotation_accuracy(self, arrangement: Arrangement, scramble: Scramble) -> float:
        """Fraction of fragments turned back upright, wherever they were placed."""
        restored = self._restored(arrangement, scramble)
        return float(np.mean(restored >= 0)) if restored.size else 0.0

    def compute_neighbor_accuracy(self, arrangement: Arrangement, scramble: Scramble) -> float:
        """Fraction of right/down neighbors matching original adjacency."""
        restored = self._restored(arrangement, scramble)
        rows, cols = restored.shape
        correct = 0
        total = 0
        for r in range(rows):
            for c in range(cols):
                cur = int(restored[r, c])
                if c + 1 < cols:
                    total += 1
                    right = int(restored[r, c + 1])
                    if cur >= 0 and right >= 0 and cur % cols + 1 < cols and right == cur + 1:
                        correct += 1
                if r + 1 < rows:
                    total += 1
                    down = int(restored[r + 1, c])
                    if cur >= 0 and down >= 0 and down == cur + cols:
                        correct += 1
        return correct / total if total else 0.0

    def evaluate(
        self, arrangement: Arrangement, scramble: Scramble, table: CostTable
    ) -> EvaluationResult:
        """Calculate all metrics for a reconstructed puzzle."""
        board: BoardState = arrangement.to_board()
        return EvaluationResult(
            position_accuracy=self.compute_position_accuracy(arrangement, scramble),
            rotation_accuracy=self.compute_rotation_accuracy(arrangement, scramble),
            neighbor_accuracy=self.compute_neighbor_accuracy(arrangement, scramble),
            total_cost=board.total_cost(table),
        )
