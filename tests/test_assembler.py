"""Tests for answer assembly and rendering."""

from __future__ import annotations

import numpy as np
import pytest

from unshred.assembler import ResultAssembler
from unshred.board import BoardState
from unshred.fragments import FragmentStore, Rotation
from unshred.utils import compose_image, generate_seamless_circle_image, scramble_fragments


def _board() -> BoardState:
    fragments = np.array([[2, 0, 5], [1, 4, 3]])
    rotations = np.array([[0, 1, 2], [3, 0, 1]])
    return BoardState(fragments, rotations).freeze()


def test_assemble_is_row_major() -> None:
    """Placements follow cells row by row."""
    arrangement = ResultAssembler().assemble(_board())
    assert [p.cell for p in arrangement.placements] == [
        (0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)
    ]
    assert arrangement.records()[2] == (0, 2, 5, 180)
    np.testing.assert_array_equal(arrangement.fragment_grid(), [[2, 0, 5], [1, 4, 3]])


def test_assemble_is_idempotent() -> None:
    """Assembling the same frozen board twice yields equal answers."""
    board = _board()
    assembler = ResultAssembler()
    assert assembler.assemble(board) == assembler.assemble(board)


def test_rotation_line_is_ordered_by_fragment() -> None:
    """The answer line lists quarter turns for fragment 0, 1, 2, ..."""
    arrangement = ResultAssembler().assemble(_board())
    assert arrangement.rotation_line() == "130102"


def test_incomplete_board_is_rejected() -> None:
    """Empty cells are a contract violation."""
    board = BoardState.empty(1, 2)
    board.place((0, 0), 0, Rotation.R0)
    with pytest.raises(ValueError, match="incomplete"):
        ResultAssembler().assemble(board)


def test_to_board_round_trip() -> None:
    """An arrangement converts back into the board it came from."""
    board = _board()
    restored = ResultAssembler().assemble(board).to_board()
    np.testing.assert_array_equal(restored.fragments, board.fragments)
    np.testing.assert_array_equal(restored.rotations, board.rotations)


def test_compose_image_undoes_scramble() -> None:
    """Placing each fragment at its origin with the inverse turn rebuilds the image."""
    image = generate_seamless_circle_image(fragment_size=8, rows=2, cols=3)
    scramble = scramble_fragments(FragmentStore.from_image(image, rows=2, cols=3), seed=4)

    board = BoardState.empty(2, 3)
    for fragment_id, (origin, turns) in enumerate(
        zip(scramble.original_index, scramble.applied_rotation)
    ):
        board.place(divmod(int(origin), 3), fragment_id, Rotation(int(turns)).inverse())
    arrangement = ResultAssembler().assemble(board)
    np.testing.assert_array_equal(compose_image(arrangement, scramble.store), image)
