"""Accuracy smoke tests on multiple image types."""

from __future__ import annotations

import time

import numpy as np

from unshred.config import SolverConfig
from unshred.evaluator import PuzzleEvaluator
from unshred.fragments import FragmentStore
from unshred.matcher import CostModel
from unshred.solver import ArrangementSearcher
from unshred.utils import (
    generate_gradient_image,
    generate_natural_like_image,
    generate_random_image,
    scramble_fragments,
)


def _evaluate_case(image_type: str, image: np.ndarray, grid_size: int = 4) -> None:
    scramble = scramble_fragments(FragmentStore.from_image(image, grid_size, grid_size), seed=42)
    table = CostModel().build_table(scramble.store)
    config = SolverConfig(time_budget=None, max_rounds=150, random_seed=42)

    t0 = time.perf_counter()
    result = ArrangementSearcher(config).solve(
        scramble.store, cols=grid_size, rows=grid_size, table=table
    )
    elapsed = time.perf_counter() - t0

    metrics = PuzzleEvaluator().evaluate(result.arrangement, scramble, table)
    print(
        f"{image_type}: accuracy={metrics.position_accuracy:.4f}, "
        f"rotation_accuracy={metrics.rotation_accuracy:.4f}, "
        f"neighbor_accuracy={metrics.neighbor_accuracy:.4f}, "
        f"runtime={elapsed:.4f}s, total_cost={metrics.total_cost:.2f}"
    )
    assert 0.0 <= metrics.position_accuracy <= 1.0
    assert 0.0 <= metrics.rotation_accuracy <= 1.0
    assert 0.0 <= metrics.neighbor_accuracy <= 1.0
    assert metrics.total_cost >= 0.0
    assert metrics.total_cost == result.total_cost


def test_random_image_metrics() -> None:
    """Report metrics for random image case."""
    _evaluate_case("random", generate_random_image(size=4 * 24, seed=42))


def test_gradient_image_metrics() -> None:
    """Report metrics for gradient image case."""
    _evaluate_case("gradient", generate_gradient_image(size=4 * 24))


def test_natural_image_metrics() -> None:
    """Report metrics for natural-like image case."""
    _evaluate_case("natural", generate_natural_like_image(size=4 * 24, seed=42))
