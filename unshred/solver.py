"""Arrangement search: greedy seam growing followed by annealed local search."""

from __future__ import annotations

import logging
import math
import os
import time
import warnings
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .assembler import Arrangement, ResultAssembler
from .board import BoardState, Move, RotateMove, SwapMove
from .config import SolverConfig
from .errors import DegenerateInputWarning, InputShapeError
from .fragments import FragmentStore, Rotation
from .matcher import CostModel, CostTable, Direction

logger = logging.getLogger(__name__)

# Deltas within this band of zero count as neither improving nor worsening.
IMPROVEMENT_EPS = 1e-9

FramePos = Tuple[int, int]  # (y, x) relative to the seed fragment
# (direction, neighbor fragment, neighbor rotation, candidate is first in the pair)
NeighborRef = Tuple[Direction, int, int, bool]
# (score, fragment id, rotation, y, x)
ConstructionKey = Tuple[float, int, int, int, int]


class Termination(str, Enum):
    """Why the search stopped."""

    TRIVIAL = "trivial"
    CONSTRUCTION_ONLY = "construction_only"
    DEADLINE = "deadline"
    MAX_ROUNDS = "max_rounds"
    PLATEAU = "plateau"


@dataclass
class RefineStats:
    rounds: int = 0
    improving_moves: int = 0
    uphill_moves: int = 0
    termination: Termination = Termination.CONSTRUCTION_ONLY
    elapsed: float = 0.0
    # running cost after every committed move, starting from the input board
    cost_trace: List[float] = field(default_factory=list)


@dataclass
class SolveResult:
    """Frozen board plus everything reported about the run."""

    board: BoardState
    arrangement: Arrangement
    total_cost: float
    construction_cost: float
    termination: Termination
    rounds: int = 0
    improving_moves: int = 0
    uphill_moves: int = 0
    construction_trace: List[float] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class ArrangementSearcher:
    """Place every fragment on a `cols x rows` board minimizing adjacency cost."""

    def __init__(self, config: Optional[SolverConfig] = None) -> None:
        self.config = config if config is not None else SolverConfig()
        self.cost_model = CostModel(
            downsample_factor=self.config.downsample_factor, metric=self.config.metric
        )
        self.assembler = ResultAssembler()

    def _pool_size(self) -> int:
        return self.config.workers or os.cpu_count() or 1

    def _validate(self, store: FragmentStore, cols: int, rows: int) -> None:
        store.check_grid(cols, rows)
        expected = self.config.fragment_size
        if expected is not None and store.size != expected:
            raise InputShapeError(
                f"fragments are {store.size}x{store.size}, configured size is {expected}"
            )
        if self.config.seed_fragment >= len(store):
            raise ValueError(
                f"seed_fragment {self.config.seed_fragment} out of range for {len(store)} fragments"
            )

    def solve(
        self,
        store: FragmentStore,
        cols: int,
        rows: int,
        table: Optional[CostTable] = None,
    ) -> SolveResult:
        """Run construction, refinement and termination; return the frozen result."""
        self._validate(store, cols, rows)
        if table is not None and table.n != len(store):
            raise InputShapeError(f"cost table covers {table.n} fragments, store has {len(store)}")

        if len(store) == 1:
            return self._solve_trivial()

        with ThreadPoolExecutor(max_workers=self._pool_size()) as pool:
            if table is None:
                table = self.cost_model.build_table(store, executor=pool)
            board, trace = self.construct(table, cols, rows, executor=pool)
            board.check_bijection()
            construction_cost = board.total_cost(table)
            best, stats = self.refine(board, table, executor=pool)

        best = self._normalize_orientation(best)
        best.check_bijection()
        best.freeze()
        total = best.total_cost(table)
        logger.info(
            "Solve done | cost=%.4f  construction=%.4f  rounds=%d  stop=%s",
            total, construction_cost, stats.rounds, stats.termination.value,
        )
        return SolveResult(
            board=best,
            arrangement=self.assembler.assemble(best),
            total_cost=total,
            construction_cost=construction_cost,
            termination=stats.termination,
            rounds=stats.rounds,
            improving_moves=stats.improving_moves,
            uphill_moves=stats.uphill_moves,
            construction_trace=trace,
        )

    def _solve_trivial(self) -> SolveResult:
        message = "single-fragment puzzle; returning fragment 0 at rotation 0"
        logger.warning(message)
        warnings.warn(message, DegenerateInputWarning, stacklevel=3)
        board = BoardState(np.zeros((1, 1), dtype=np.int64), np.zeros((1, 1), dtype=np.int64))
        board.freeze()
        return SolveResult(
            board=board,
            arrangement=self.assembler.assemble(board),
            total_cost=0.0,
            construction_cost=0.0,
            termination=Termination.TRIVIAL,
            construction_trace=[0.0],
            warnings=[message],
        )

    # -- construction ----------------------------------------------------

    def construct(
        self,
        table: CostTable,
        cols: int,
        rows: int,
        executor: Optional[Executor] = None,
    ) -> Tuple[BoardState, List[float]]:
        """Grow the placed region from the seed one lowest-cost seam at a time.

        Placement happens in a frame centred on the seed, so the seed's final
        cell is decided by growth. The seed is placed at R0, so on a
        rectangular board the picture may only fit sideways: growth is then
        also run in a `cols x rows` frame and that board is turned a quarter
        onto the grid. The cheaper of the two wins, the upright frame on a tie.
        Returns the board and the partial cost after each step.
        """
        board, trace = self._grow(table, cols, rows, executor)
        if rows == cols:
            return board, trace

        sideways, sideways_trace = self._grow(table, rows, cols, executor)
        if sideways_trace[-1] < trace[-1]:
            logger.info(
                "Construction | sideways frame wins  cost=%.4f < %.4f",
                sideways_trace[-1], trace[-1],
            )
            return sideways.rotated(1), sideways_trace
        return board, trace

    def _grow(
        self,
        table: CostTable,
        cols: int,
        rows: int,
        executor: Optional[Executor],
    ) -> Tuple[BoardState, List[float]]:
        """Greedy growth inside a frame of at most `rows x cols`."""
        n = table.n
        seed = self.config.seed_fragment
        frame: Dict[FramePos, Tuple[int, int]] = {(0, 0): (seed, int(Rotation.R0))}
        unplaced = [i for i in range(n) if i != seed]
        bbox = [0, 0, 0, 0]  # min_y, max_y, min_x, max_x
        partial_cost = 0.0
        trace = [partial_cost]
        chunks = max(1, self._pool_size())

        while unplaced:
            frontier = self._frontier(frame, bbox, cols, rows)
            ids = np.asarray(unplaced, dtype=np.int64)
            parts = [p for p in np.array_split(ids, min(chunks, len(ids))) if p.size]
            if executor is None or len(parts) == 1:
                keys = [_best_in_chunk(table.values, frontier, p) for p in parts]
            else:
                keys = list(
                    executor.map(lambda p: _best_in_chunk(table.values, frontier, p), parts)
                )
            score, fragment_id, rotation, y, x = min(keys)

            added = sum(
                _pair_cost(table.values, ref, fragment_id, rotation)
                for ref in _neighbors(frame, (y, x))
            )
            frame[(y, x)] = (fragment_id, rotation)
            unplaced.remove(fragment_id)
            bbox = [min(bbox[0], y), max(bbox[1], y), min(bbox[2], x), max(bbox[3], x)]
            partial_cost += added
            trace.append(partial_cost)
            logger.debug(
                "placed fragment=%d rot=%d at frame(%d, %d) score=%.4f", fragment_id, rotation, y, x, score
            )

        board = BoardState.empty(rows, cols)
        for (y, x), (fragment_id, rotation) in frame.items():
            board.place((y - bbox[0], x - bbox[2]), fragment_id, rotation)
        logger.info("Construction done | cost=%.4f  steps=%d", partial_cost, len(trace) - 1)
        return board, trace

    @staticmethod
    def _frontier(
        frame: Dict[FramePos, Tuple[int, int]], bbox: Sequence[int], cols: int, rows: int
    ) -> List[Tuple[FramePos, List[NeighborRef]]]:
        min_y, max_y, min_x, max_x = bbox
        seen = set()
        frontier: List[Tuple[FramePos, List[NeighborRef]]] = []
        for (y, x) in sorted(frame):
            for pos in ((y - 1, x), (y, x + 1), (y + 1, x), (y, x - 1)):
                if pos in frame or pos in seen:
                    continue
                py, px = pos
                height = max(max_y, py) - min(min_y, py) + 1
                width = max(max_x, px) - min(min_x, px) + 1
                if height > rows or width > cols:
                    continue
                seen.add(pos)
                frontier.append((pos, _neighbors(frame, pos)))
        return frontier

    # -- local search ----------------------------------------------------

    def _progress(self, rounds: int, elapsed: float) -> float:
        """Fraction of the budget consumed, in [0, 1]; drives the temperature."""
        cfg = self.config
        fractions = []
        if cfg.max_rounds:
            fractions.append(rounds / cfg.max_rounds)
        if cfg.time_budget:
            fractions.append(elapsed / cfg.time_budget)
        if not fractions:
            # Plateau is the only stop condition: run as a pure descent.
            return 1.0
        return min(1.0, max(fractions))

    def _temperature(self, initial_temp: float, rounds: int, elapsed: float) -> float:
        """Linear cooling from `initial_temp` to zero as the budget is used up."""
        return initial_temp * (1.0 - self._progress(rounds, elapsed))

    def _propose(self, board: BoardState, rng: np.random.Generator) -> List[Move]:
        n = board.rows * board.cols
        moves: List[Move] = []
        for _ in range(self.config.batch_size):
            if float(rng.random()) < self.config.rotate_move_ratio:
                r, c = divmod(int(rng.integers(n)), board.cols)
                turn = int(rng.integers(1, 4))
                moves.append(RotateMove((r, c), Rotation((int(board.rotations[r, c]) + turn) % 4)))
            else:
                i, j = sorted(int(k) for k in rng.choice(n, size=2, replace=False))
                moves.append(SwapMove(divmod(i, board.cols), divmod(j, board.cols)))
        return moves

    def _select(self, board: BoardState, moves: List[Move], deltas: List[float]) -> Tuple[float, Move]:
        """Lowest delta; ties go to the lowest touched cell, then the lowest fragment id."""

        def key(item: Tuple[float, Move]) -> Tuple[float, int, int]:
            delta, move = item
            cell_index = min(board.cell_index(cell) for cell in move.cells)
            fragment_id = min(board.get(cell)[0] for cell in move.cells)
            return (delta, cell_index, fragment_id)

        return min(zip(deltas, moves), key=key)

    def refine(
        self,
        board: BoardState,
        table: CostTable,
        executor: Optional[Executor] = None,
    ) -> Tuple[BoardState, RefineStats]:
        """Improve `board` with batched swap/rotate moves until a stop condition fires.

        Candidate deltas are computed concurrently against the current board,
        which only this thread mutates, one committed move per round.
        """
        cfg = self.config
        stats = RefineStats()
        if board.rows * board.cols < 2 or cfg.max_rounds == 0 or cfg.time_budget == 0:
            return board.copy(), stats

        rng = np.random.default_rng(cfg.random_seed)
        current = board.copy()
        current_cost = current.total_cost(table)
        best = current.copy()
        stats.cost_trace.append(current_cost)
        best_cost = current_cost
        initial_temp = max(0.0, cfg.sa_initial_temp_ratio * table.mean_finite())
        stale = 0

        start = time.perf_counter()
        deadline = start + cfg.time_budget if cfg.time_budget is not None else None
        logger.info(
            "Refine start | cost=%.4f  temp=%.4f  batch=%d  budget=%s",
            current_cost, initial_temp, cfg.batch_size, cfg.time_budget,
        )

        while True:
            now = time.perf_counter()
            if deadline is not None and now >= deadline:
                stats.termination = Termination.DEADLINE
                break
            if cfg.max_rounds is not None and stats.rounds >= cfg.max_rounds:
                stats.termination = Termination.MAX_ROUNDS
                break
            if stale >= cfg.plateau_rounds:
                stats.termination = Termination.PLATEAU
                break

            temp = self._temperature(initial_temp, stats.rounds, now - start)
            moves = self._propose(current, rng)
            if executor is None:
                deltas = [current.delta(m, table) for m in moves]
            else:
                deltas = list(executor.map(lambda m: current.delta(m, table), moves))
            delta, move = self._select(current, moves, deltas)
            stats.rounds += 1

            if delta < -IMPROVEMENT_EPS:
                current.apply(move)
                current_cost += delta
                stats.improving_moves += 1
                stats.cost_trace.append(current_cost)
                stale = 0
                if current_cost < best_cost - IMPROVEMENT_EPS:
                    best = current.copy()
                    best_cost = current_cost
                continue

            stale += 1
            if temp > 0.0 and float(rng.random()) < math.exp(-max(delta, 0.0) / temp):
                current.apply(move)
                current_cost += delta
                stats.uphill_moves += 1
                stats.cost_trace.append(current_cost)

        stats.elapsed = time.perf_counter() - start
        logger.info(
            "Refine done | best=%.4f  rounds=%d  improving=%d  uphill=%d  stop=%s  (%.3f s)",
            best_cost, stats.rounds, stats.improving_moves, stats.uphill_moves,
            stats.termination.value, stats.elapsed,
        )
        return best, stats

    def _normalize_orientation(self, board: BoardState) -> BoardState:
        """Turn the board so the seed fragment ends up unrotated, when the shape allows."""
        seed = self.config.seed_fragment
        r, c = (int(v[0]) for v in np.nonzero(board.fragments == seed))
        turns = (4 - int(board.rotations[r, c])) % 4
        if turns == 0 or (turns % 2 and board.rows != board.cols):
            return board
        return board.rotated(turns)


def _neighbors(frame: Dict[FramePos, Tuple[int, int]], pos: FramePos) -> List[NeighborRef]:
    """Placed neighbors of `pos`, described from the candidate's point of view."""
    y, x = pos
    refs: List[NeighborRef] = []
    for (ny, nx), direction, candidate_first in (
        ((y, x - 1), Direction.RIGHT, False),
        ((y, x + 1), Direction.RIGHT, True),
        ((y - 1, x), Direction.DOWN, False),
        ((y + 1, x), Direction.DOWN, True),
    ):
        placed = frame.get((ny, nx))
        if placed is not None:
            refs.append((direction, placed[0], placed[1], candidate_first))
    return refs


def _pair_cost(values: np.ndarray, ref: NeighborRef, fragment_id: int, rotation: int) -> float:
    direction, nf, nr, candidate_first = ref
    if candidate_first:
        return float(values[fragment_id, rotation, nf, nr, direction])
    return float(values[nf, nr, fragment_id, rotation, direction])


def _best_in_chunk(
    values: np.ndarray,
    frontier: List[Tuple[FramePos, List[NeighborRef]]],
    ids: np.ndarray,
) -> ConstructionKey:
    """Cheapest (score, fragment, rotation, y, x) for candidates drawn from `ids`."""
    best: Optional[ConstructionKey] = None
    for (y, x), refs in frontier:
        scores = np.zeros((ids.size, 4), dtype=np.float64)
        for direction, nf, nr, candidate_first in refs:
            if candidate_first:
                scores += values[ids, :, nf, nr, direction]
            else:
                scores += values[nf, nr][ids, :, direction]
        scores /= len(refs)
        flat = int(np.argmin(scores))  # first minimum = lowest id, then lowest rotation
        i, rotation = divmod(flat, 4)
        key = (float(scores[i, rotation]), int(ids[i]), rotation, y, x)
        if best is None or key < best:
            best = key
    assert best is not None, "frontier is never empty while fragments remain"
    return best
