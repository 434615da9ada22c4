"""Conversion of a finished board into the external answer format."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .board import BoardState, Cell
from .fragments import Rotation


@dataclass(frozen=True)
class Placement:
    """Content of one cell of the answer."""

    cell: Cell
    fragment_id: int
    rotation: Rotation


@dataclass(frozen=True)
class Arrangement:
    """Row-major cell -> (fragment, rotation) answer for a `rows x cols` grid."""

    rows: int
    cols: int
    placements: Tuple[Placement, ...]

    def records(self) -> List[Tuple[int, int, int, int]]:
        """(row, col, fragment id, rotation in degrees) per cell, row-major."""
        return [
            (p.cell[0], p.cell[1], p.fragment_id, p.rotation.degrees) for p in self.placements
        ]

    def fragment_grid(self) -> np.ndarray:
        grid = np.empty((self.rows, self.cols), dtype=np.int64)
        for p in self.placements:
            grid[p.cell] = p.fragment_id
        return grid

    def rotations_by_fragment(self) -> Dict[int, Rotation]:
        return {p.fragment_id: p.rotation for p in self.placements}

    def rotation_line(self) -> str:
        """One digit (clockwise quarter turns) per fragment, ordered by fragment id."""
        by_id = self.rotations_by_fragment()
        return "".join(str(int(by_id[i])) for i in range(len(by_id)))

    def to_board(self) -> BoardState:
        board = BoardState.empty(self.rows, self.cols)
        for p in self.placements:
            board.place(p.cell, p.fragment_id, p.rotation)
        return board


class ResultAssembler:
    """Read a complete board into an immutable Arrangement."""

    def assemble(self, board: BoardState) -> Arrangement:
        if not board.is_complete():
            raise ValueError("cannot assemble an incomplete board")
        board.check_bijection()
        placements = tuple(
            Placement(
                cell=(r, c),
                fragment_id=int(board.fragments[r, c]),
                rotation=Rotation(int(board.rotations[r, c])),
            )
            for r in range(board.rows)
            for c in range(board.cols)
        )
        return Arrangement(rows=board.rows, cols=board.cols, placements=placements)
