"""Mutable board state: cell -> (fragment, rotation) with adjacency costs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union

import numpy as np

from .fragments import Rotation
from .matcher import CostTable, Direction

Cell = Tuple[int, int]
Assignment = Tuple[int, int]
Edge = Tuple[Cell, Cell, Direction]

EMPTY = -1


@dataclass(frozen=True)
class SwapMove:
    """Exchange the contents of two cells; rotations travel with fragments."""

    a: Cell
    b: Cell

    @property
    def cells(self) -> Tuple[Cell, ...]:
        return (self.a, self.b)


@dataclass(frozen=True)
class RotateMove:
    """Give the fragment in `cell` a new rotation."""

    cell: Cell
    rotation: Rotation

    @property
    def cells(self) -> Tuple[Cell, ...]:
        return (self.cell,)


Move = Union[SwapMove, RotateMove]


class BoardState:
    """Grid of fragment ids and rotations; EMPTY marks unfilled cells."""

    def __init__(self, fragments: np.ndarray, rotations: np.ndarray) -> None:
        fragments = np.array(fragments, dtype=np.int64, copy=True)
        rotations = np.array(rotations, dtype=np.int64, copy=True)
        if fragments.ndim != 2 or fragments.shape != rotations.shape:
            raise ValueError(
                f"fragment and rotation grids must share a 2-D shape, "
                f"got {fragments.shape} and {rotations.shape}"
            )
        self.fragments = fragments
        self.rotations = rotations

    @classmethod
    def empty(cls, rows: int, cols: int) -> "BoardState":
        grid = np.full((rows, cols), EMPTY, dtype=np.int64)
        return cls(grid, np.zeros((rows, cols), dtype=np.int64))

    @property
    def rows(self) -> int:
        return int(self.fragments.shape[0])

    @property
    def cols(self) -> int:
        return int(self.fragments.shape[1])

    @property
    def frozen(self) -> bool:
        return not self.fragments.flags.writeable

    def get(self, cell: Cell) -> Assignment:
        r, c = cell
        return int(self.fragments[r, c]), int(self.rotations[r, c])

    def place(self, cell: Cell, fragment_id: int, rotation: int) -> None:
        r, c = cell
        self.fragments[r, c] = fragment_id
        self.rotations[r, c] = int(rotation) % 4

    def is_complete(self) -> bool:
        return bool(np.all(self.fragments != EMPTY))

    def check_bijection(self) -> None:
        """Raise ValueError unless every id 0..n-1 sits in exactly one cell."""
        n = self.rows * self.cols
        ids = np.sort(self.fragments.ravel())
        if not np.array_equal(ids, np.arange(n)):
            raise ValueError(f"board is not a bijection onto fragment ids 0..{n - 1}")

    def copy(self) -> "BoardState":
        return BoardState(self.fragments, self.rotations)

    def freeze(self) -> "BoardState":
        self.fragments.setflags(write=False)
        self.rotations.setflags(write=False)
        return self

    def rotated(self, quarter_turns: int) -> "BoardState":
        """Turn the whole board clockwise; every adjacency keeps its cost.

        Odd turns of a rectangular board swap its row and column counts.
        """
        k = int(quarter_turns) % 4
        fragments = np.rot90(self.fragments, k=-k)
        rotations = np.where(fragments == EMPTY, 0, (np.rot90(self.rotations, k=-k) + k) % 4)
        return BoardState(fragments, rotations)

    def total_cost(self, table: CostTable) -> float:
        """Sum of pair costs over every interior adjacency with both cells filled."""
        f, r, v = self.fragments, self.rotations, table.values
        total = 0.0
        for a_sl, b_sl, direction in (
            ((slice(None), slice(None, -1)), (slice(None), slice(1, None)), Direction.RIGHT),
            ((slice(None, -1), slice(None)), (slice(1, None), slice(None)), Direction.DOWN),
        ):
            fa, fb = f[a_sl], f[b_sl]
            mask = (fa != EMPTY) & (fb != EMPTY)
            if np.any(mask):
                total += float(np.sum(v[fa[mask], r[a_sl][mask], fb[mask], r[b_sl][mask], direction]))
        return total

    def _touching_edges(self, cells: Iterable[Cell]) -> List[Edge]:
        edges = set()
        for r, c in cells:
            if c > 0:
                edges.add(((r, c - 1), (r, c), Direction.RIGHT))
            if c + 1 < self.cols:
                edges.add(((r, c), (r, c + 1), Direction.RIGHT))
            if r > 0:
                edges.add(((r - 1, c), (r, c), Direction.DOWN))
            if r + 1 < self.rows:
                edges.add(((r, c), (r + 1, c), Direction.DOWN))
        return sorted(edges)

    def _edges_cost(self, edges: List[Edge], table: CostTable, override: Dict[Cell, Assignment]) -> float:
        total = 0.0
        for cell_a, cell_b, direction in edges:
            fa, ra = override.get(cell_a) or self.get(cell_a)
            fb, rb = override.get(cell_b) or self.get(cell_b)
            if fa == EMPTY or fb == EMPTY:
                continue
            total += float(table.values[fa, ra, fb, rb, direction])
        return total

    def changes(self, move: Move) -> Dict[Cell, Assignment]:
        """Cell contents after `move`, for the cells it touches."""
        if isinstance(move, SwapMove):
            return {move.a: self.get(move.b), move.b: self.get(move.a)}
        if isinstance(move, RotateMove):
            fragment_id, _ = self.get(move.cell)
            return {move.cell: (fragment_id, int(move.rotation))}
        raise TypeError(f"Unsupported move: {move!r}")

    def delta(self, move: Move, table: CostTable) -> float:
        """Change in total cost if `move` were applied; the board is not modified."""
        override = self.changes(move)
        edges = self._touching_edges(override)
        return self._edges_cost(edges, table, override) - self._edges_cost(edges, table, {})

    def apply(self, move: Move) -> None:
        if self.frozen:
            raise ValueError("cannot modify a frozen board")
        for cell, (fragment_id, rotation) in self.changes(move).items():
            self.place(cell, fragment_id, rotation)

    def cell_index(self, cell: Cell) -> int:
        return cell[0] * self.cols + cell[1]
