"""Tests for problem files, scrambling and synthetic images."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from unshred.fragments import FragmentStore
from unshred.utils import (
    generate_gradient_image,
    generate_seamless_circle_image,
    load_image,
    read_problem,
    save_image,
    scramble_fragments,
    write_problem,
)


def test_problem_round_trip(tmp_path: Path) -> None:
    """write_problem output is parsed back with its grid and cost metadata."""
    image = generate_seamless_circle_image(fragment_size=8, rows=2, cols=3)
    path = tmp_path / "problem.ppm"
    write_problem(path, image, cols=3, rows=2, selection_limit=4, select_cost=5, swap_cost=2)

    problem = read_problem(path)
    assert (problem.cols, problem.rows) == (3, 2)
    assert (problem.selection_limit, problem.select_cost, problem.swap_cost) == (4, 5, 2)
    np.testing.assert_array_equal(problem.image, image)
    assert len(problem.fragments()) == 6


def test_read_contest_style_header(tmp_path: Path) -> None:
    """Comment lines before the dimensions carry the puzzle metadata."""
    raster = np.arange(4 * 2 * 3, dtype=np.uint8).tobytes()
    path = tmp_path / "01_q.ppm"
    path.write_bytes(b"P6\n# 2 1\n# 1\n# 3 1\n4 2\n255\n" + raster)

    problem = read_problem(path)
    assert (problem.cols, problem.rows) == (2, 1)
    assert problem.image.shape == (2, 4, 3)
    assert problem.image[1, 3].tolist() == [21, 22, 23]


def test_read_problem_rejects_bad_magic(tmp_path: Path) -> None:
    """Only binary P6 files are accepted."""
    path = tmp_path / "bad.ppm"
    path.write_bytes(b"P3\n# 1 1\n2 2\n255\n")
    with pytest.raises(ValueError, match="P6"):
        read_problem(path)


def test_read_problem_rejects_truncated_raster(tmp_path: Path) -> None:
    """A short pixel payload is reported."""
    path = tmp_path / "short.ppm"
    path.write_bytes(b"P6\n# 1 1\n2 2\n255\n" + bytes(5))
    with pytest.raises(ValueError, match="raster"):
        read_problem(path)


def test_read_problem_requires_grid_comment(tmp_path: Path) -> None:
    """Plain PPM images without metadata are not problems."""
    path = tmp_path / "plain.ppm"
    path.write_bytes(b"P6\n1 1\n255\n" + bytes(3))
    with pytest.raises(ValueError, match="cols rows"):
        read_problem(path)


def test_image_round_trip(tmp_path: Path) -> None:
    """Lossless PNG save/load keeps RGB order."""
    image = generate_seamless_circle_image(fragment_size=6, rows=1, cols=1)
    path = tmp_path / "out" / "img.png"
    save_image(path, image)
    np.testing.assert_array_equal(load_image(path), image)


def test_seamless_image_duplicates_seams() -> None:
    """Pixels on both sides of every interior seam are identical."""
    image = generate_seamless_circle_image(fragment_size=8, rows=2, cols=2)
    assert image.shape == (16, 16, 3)
    np.testing.assert_array_equal(image[7], image[8])
    np.testing.assert_array_equal(image[:, 7], image[:, 8])
    assert not np.array_equal(image[6], image[7])


def test_scramble_keeps_first_fragment_upright() -> None:
    """Ground truth is recorded and fragment 0 is never rotated."""
    image = generate_seamless_circle_image(fragment_size=6, rows=3, cols=3)
    store = FragmentStore.from_image(image, rows=3, cols=3)
    scramble = scramble_fragments(store, seed=11)

    assert scramble.applied_rotation[0] == 0
    assert sorted(scramble.original_index.tolist()) == list(range(9))
    for i, (src, turns) in enumerate(zip(scramble.original_index, scramble.applied_rotation)):
        np.testing.assert_array_equal(
            scramble.store[i].image, np.rot90(store[int(src)].image, k=-int(turns))
        )


def test_gradient_image_ramps_along_both_axes() -> None:
    """Red grows downwards and green rightwards, so every fragment edge differs."""
    image = generate_gradient_image(size=16)
    assert image.shape == (16, 16, 3) and image.dtype == np.uint8
    assert image[0, 0].tolist() == [0, 0, 0]
    assert image[-1, -1].tolist() == [255, 255, 255]
    assert np.all(np.diff(image[:, 0, 0].astype(int)) >= 0)
    assert np.all(np.diff(image[0, :, 1].astype(int)) >= 0)
