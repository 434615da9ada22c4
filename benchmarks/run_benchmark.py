"""Benchmark reconstruction quality across puzzle sizes."""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

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

IMAGE_TYPES = ("natural", "gradient", "random")


@dataclass
class BenchmarkRow:
    grid: str
    image_type: str
    seeds: int
    pos_acc_mean: float
    pos_acc_min: float
    nbr_acc_mean: float
    nbr_acc_min: float
    total_cost_mean: float
    runtime_mean_sec: float


def make_image(image_type: str, size: int, seed: int) -> np.ndarray:
    if image_type == "gradient":
        return generate_gradient_image(size=size)
    if image_type == "random":
        return generate_random_image(size=size, seed=seed)
    return generate_natural_like_image(size=size, seed=seed)


def run_case(
    grid_size: int, seed: int, time_budget: float, downsample: int, image_type: str = "natural"
) -> dict:
    image = make_image(image_type, grid_size * 48, seed)
    scramble = scramble_fragments(FragmentStore.from_image(image, grid_size, grid_size), seed=seed)

    config = SolverConfig(time_budget=time_budget, random_seed=seed, downsample_factor=downsample)
    table = CostModel(downsample_factor=downsample).build_table(scramble.store)

    t0 = time.perf_counter()
    result = ArrangementSearcher(config).solve(
        scramble.store, cols=grid_size, rows=grid_size, table=table
    )
    runtime_sec = time.perf_counter() - t0

    metrics = PuzzleEvaluator().evaluate(result.arrangement, scramble, table)
    return {
        "pos": metrics.position_accuracy,
        "nbr": metrics.neighbor_accuracy,
        "cost": metrics.total_cost,
        "runtime": runtime_sec,
    }


def run_case_multi_seed(
    grid_size: int, seeds: List[int], time_budget: float, downsample: int, image_type: str
) -> BenchmarkRow:
    rows = [run_case(grid_size, seed, time_budget, downsample, image_type) for seed in seeds]
    pos = np.array([r["pos"] for r in rows], dtype=np.float64)
    nbr = np.array([r["nbr"] for r in rows], dtype=np.float64)
    cst = np.array([r["cost"] for r in rows], dtype=np.float64)
    rt = np.array([r["runtime"] for r in rows], dtype=np.float64)
    return BenchmarkRow(
        grid=f"{grid_size}x{grid_size}",
        image_type=image_type,
        seeds=len(seeds),
        pos_acc_mean=float(np.mean(pos)),
        pos_acc_min=float(np.min(pos)),
        nbr_acc_mean=float(np.mean(nbr)),
        nbr_acc_min=float(np.min(nbr)),
        total_cost_mean=float(np.mean(cst)),
        runtime_mean_sec=float(np.mean(rt)),
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run reconstruction benchmark on multiple grid sizes.")
    parser.add_argument(
        "--sizes",
        type=int,
        nargs="+",
        default=[4, 6, 8],
        help="Grid sizes to benchmark (default: 4 6 8)",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--num-seeds",
        type=int,
        default=1,
        help="Number of seeds to evaluate per grid (default: 1)",
    )
    parser.add_argument("--time-budget", type=float, default=2.0, help="Local search seconds")
    parser.add_argument("--downsample", type=int, default=1, help="Descriptor downsample factor")
    parser.add_argument(
        "--image-type",
        choices=IMAGE_TYPES,
        nargs="+",
        default=["natural"],
        help="Synthetic image kinds to benchmark (default: natural)",
    )
    return parser.parse_args()


def print_table(rows: List[BenchmarkRow]) -> None:
    header = (
        f"{'Grid':<8}{'Image':<10}{'Seeds':>7}{'PosMean':>10}{'PosMin':>10}"
        f"{'NbrMean':>10}{'NbrMin':>10}{'CostMean':>12}{'RtMean(s)':>11}"
    )
    print(header)
    print("-" * len(header))
    for row in rows:
        print(
            f"{row.grid:<8}"
            f"{row.image_type:<10}"
            f"{row.seeds:>7d}"
            f"{row.pos_acc_mean:>10.4f}"
            f"{row.pos_acc_min:>10.4f}"
            f"{row.nbr_acc_mean:>10.4f}"
            f"{row.nbr_acc_min:>10.4f}"
            f"{row.total_cost_mean:>12.2f}"
            f"{row.runtime_mean_sec:>11.4f}"
        )


def main() -> None:
    args = parse_args()
    seeds = [args.seed + i for i in range(args.num_seeds)]
    rows = [
        run_case_multi_seed(size, seeds, args.time_budget, args.downsample, image_type)
        for image_type in args.image_type
        for size in args.sizes
    ]
    print_table(rows)


if __name__ == "__main__":
    main()
