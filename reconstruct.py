"""Reconstruct a shredded image: solve fragment placement and rotation."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Tuple

from unshred.config import SolverConfig
from unshred.solver import ArrangementSearcher
from unshred.utils import Problem, compose_image, load_image, read_problem, save_image


def parse_grid(value: str) -> Tuple[int, int]:
    """Parse grid value in format ROWSxCOLS, e.g. 4x6."""
    text = value.strip().lower()
    if "x" not in text:
        raise argparse.ArgumentTypeError("grid must be in format ROWSxCOLS, e.g. 5x5")
    rows_text, cols_text = text.split("x", maxsplit=1)
    try:
        rows = int(rows_text)
        cols = int(cols_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("grid rows/cols must be integers") from exc
    if rows <= 0 or cols <= 0:
        raise argparse.ArgumentTypeError("grid rows/cols must be positive")
    return rows, cols


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Reconstruct a shredded image.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--problem", help="Path to a P6 PPM problem file with grid comments")
    source.add_argument("--image", help="Path to a composed scrambled image (needs --grid)")
    parser.add_argument("--grid", type=parse_grid, default=None, help="Grid format: ROWSxCOLS")
    parser.add_argument(
        "--output",
        default=None,
        help="Optional output path for reconstructed image (default: do not save)",
    )
    parser.add_argument("--answer", default=None, help="Optional path for the answer records")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--time-budget", type=float, default=5.0, help="Local search seconds (default: 5.0)"
    )
    parser.add_argument(
        "--max-rounds", type=int, default=None, help="Cap on local search rounds (default: none)"
    )
    parser.add_argument(
        "--plateau-rounds", type=int, default=200, help="Stop after N stale rounds (default: 200)"
    )
    parser.add_argument(
        "--downsample", type=int, default=1, help="Edge pixels per descriptor sample (default: 1)"
    )
    parser.add_argument("--workers", type=int, default=None, help="Worker pool size")
    parser.add_argument(
        "--metric", choices=["squared", "euclidean"], default="squared", help="Edge mismatch metric"
    )
    parser.add_argument("--show", action="store_true", help="Display input and reconstruction")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.image and args.grid is None:
        parser.error("--image requires --grid")
    return args


def _load_problem(args: argparse.Namespace) -> Problem:
    if args.problem:
        return read_problem(Path(args.problem))
    rows, cols = args.grid
    return Problem(image=load_image(Path(args.image)), cols=cols, rows=rows)


def main(argv: Optional[list] = None) -> None:
    """Run reconstruction from problem image to arrangement and composed output."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    problem = _load_problem(args)
    store = problem.fragments()
    config = SolverConfig(
        time_budget=args.time_budget,
        downsample_factor=args.downsample,
        random_seed=args.seed,
        plateau_rounds=args.plateau_rounds,
        max_rounds=args.max_rounds,
        workers=args.workers,
        metric=args.metric,
    )
    result = ArrangementSearcher(config).solve(store, cols=problem.cols, rows=problem.rows)
    arrangement = result.arrangement

    print(f"Grid: {problem.rows}x{problem.cols} ({len(store)} fragments of {store.size}px)")
    print(f"Total adjacency cost: {result.total_cost:.4f} (construction {result.construction_cost:.4f})")
    print(f"Rounds: {result.rounds}, stopped by: {result.termination.value}")
    print(f"Rotations: {arrangement.rotation_line()}")
    print("Solved grid indices:")
    print(arrangement.fragment_grid())

    if args.answer:
        lines = [f"{r} {c} {fid} {deg}" for r, c, fid, deg in arrangement.records()]
        answer_path = Path(args.answer)
        answer_path.parent.mkdir(parents=True, exist_ok=True)
        answer_path.write_text("\n".join(lines) + "\n", encoding="ascii")
        print(f"Answer records: {answer_path.resolve()}")

    reconstructed = compose_image(arrangement, store)
    if args.output:
        save_image(Path(args.output), reconstructed)
        print(f"Output image: {Path(args.output).resolve()}")

    if args.show:
        import matplotlib.pyplot as plt

        fig, axes = plt.subplots(1, 2, figsize=(10, 5))
        axes[0].imshow(problem.image)
        axes[0].set_title("Shredded Input")
        axes[1].imshow(reconstructed)
        axes[1].set_title("Reconstructed")
        for ax in axes:
            ax.axis("off")
        plt.tight_layout()
        plt.show()


if __name__ == "__main__":
    main()
