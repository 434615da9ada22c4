"""Centralised solver configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

METRICS = frozenset({"squared", "euclidean"})


@dataclass(frozen=True)
class SolverConfig:
    """All tuneable parameters for one solve call.

    Attributes:
        time_budget:           Wall-clock seconds for local search (None = unbounded,
                               rely on max_rounds / plateau_rounds instead).
        fragment_size:         Expected side length S; None infers it from the input.
        downsample_factor:     Edge pixels averaged into one descriptor sample.
        random_seed:           Seed for move proposals and annealing draws.
        plateau_rounds:        Stop after this many rounds without an improving move.
        max_rounds:            Hard cap on local-search rounds (None = no cap).
        batch_size:            Candidate moves evaluated concurrently per round.
        workers:               Worker pool size (None = os.cpu_count()).
        metric:                "squared" (mean squared difference) or "euclidean".
        sa_initial_temp_ratio: Starting temperature relative to mean finite pair cost.
        rotate_move_ratio:     Share of proposals that re-rotate a single cell.
        seed_fragment:         Fragment placed first, at rotation 0.
    """

    time_budget: Optional[float] = 5.0
    fragment_size: Optional[int] = None
    downsample_factor: int = 1
    random_seed: int = 42
    plateau_rounds: int = 200
    max_rounds: Optional[int] = None
    batch_size: int = 16
    workers: Optional[int] = None
    metric: str = "squared"
    sa_initial_temp_ratio: float = 0.08
    rotate_move_ratio: float = 0.3
    seed_fragment: int = 0

    def __post_init__(self) -> None:
        if self.time_budget is not None and self.time_budget < 0:
            raise ValueError(f"time_budget must be >= 0, got {self.time_budget}")
        if self.fragment_size is not None and self.fragment_size <= 0:
            raise ValueError(f"fragment_size must be positive, got {self.fragment_size}")
        if self.downsample_factor < 1:
            raise ValueError(f"downsample_factor must be >= 1, got {self.downsample_factor}")
        if self.plateau_rounds < 1:
            raise ValueError(f"plateau_rounds must be >= 1, got {self.plateau_rounds}")
        if self.max_rounds is not None and self.max_rounds < 0:
            raise ValueError(f"max_rounds must be >= 0, got {self.max_rounds}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.metric not in METRICS:
            raise ValueError(f"metric must be one of {sorted(METRICS)}, got {self.metric!r}")
        if self.sa_initial_temp_ratio < 0:
            raise ValueError("sa_initial_temp_ratio must be >= 0")
        if not 0.0 <= self.rotate_move_ratio <= 1.0:
            raise ValueError("rotate_move_ratio must lie in [0, 1]")
        if self.seed_fragment < 0:
            raise ValueError(f"seed_fragment must be >= 0, got {self.seed_fragment}")
