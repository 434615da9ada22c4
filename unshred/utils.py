"""Helpers for image I/O, problem files, scrambling and synthetic test images."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

import cv2
import numpy as np

from .assembler import Arrangement
from .fragments import Fragment, FragmentStore

PathLike = Union[str, Path]


def set_random_seed(seed: int = 42) -> np.random.Generator:
    """Create a deterministic numpy random generator."""
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class Scramble:
    """Shuffled-and-rotated fragments plus the ground truth to undo it.

    `original_index[i]` is the row-major cell fragment `i` was cut from and
    `applied_rotation[i]` the clockwise quarter turns it was given.
    """

    store: FragmentStore
    original_index: np.ndarray
    applied_rotation: np.ndarray


def scramble_fragments(
    store: FragmentStore, seed: int = 42, rotate: bool = True, keep_first_upright: bool = True
) -> Scramble:
    """Shuffle fragment ids and rotate each buffer by a random quarter turn.

    With `keep_first_upright` the fragment that receives id 0 is left
    unrotated, fixing the orientation of the whole picture.
    """
    rng = set_random_seed(seed)
    n = len(store)
    order = rng.permutation(n)
    turns = rng.integers(0, 4, size=n) if rotate else np.zeros(n, dtype=np.int64)
    if keep_first_upright:
        turns[0] = 0
    fragments = [
        Fragment(id=i, image=np.ascontiguousarray(store[int(src)].rotated(int(turns[i]))))
        for i, src in enumerate(order)
    ]
    return Scramble(
        store=FragmentStore(fragments, fragment_size=store.size),
        original_index=order.astype(np.int64),
        applied_rotation=turns.astype(np.int64),
    )


def compose_image(arrangement: Arrangement, store: FragmentStore) -> np.ndarray:
    """Paste every placed fragment, turned by its rotation, into one image."""
    size = store.size
    channels = store[0].image.shape[2]
    canvas = np.zeros(
        (arrangement.rows * size, arrangement.cols * size, channels), dtype=store[0].image.dtype
    )
    for placement in arrangement.placements:
        r, c = placement.cell
        y0 = r * size
        x0 = c * size
        canvas[y0 : y0 + size, x0 : x0 + size, :] = store[placement.fragment_id].rotated(
            placement.rotation
        )
    return canvas


def generate_random_image(size: int = 300, seed: int = 42) -> np.ndarray:
    """Generate a purely random RGB image."""
    rng = set_random_seed(seed)
    return rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)


def generate_gradient_image(size: int = 300) -> np.ndarray:
    """Smooth RGB ramps: red grows down, green grows right, blue along the diagonal.

    No two edges of a fragment look alike, but seams carry little texture, so
    this is the hard case for seam matching.
    """
    yv, xv = np.mgrid[0:size, 0:size].astype(np.float32) * (255.0 / max(size - 1, 1))
    img = np.stack([yv, xv, 0.5 * (xv + yv)], axis=2)
    return np.clip(img, 0, 255).astype(np.uint8)


def generate_natural_like_image(size: int = 300, seed: int = 42) -> np.ndarray:
    """Generate a deterministic texture-rich image resembling a natural scene."""
    rng = set_random_seed(seed)
    base = rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)
    smooth = cv2.GaussianBlur(base, (0, 0), sigmaX=6, sigmaY=6)
    detail = cv2.Canny(smooth, 60, 120)
    detail_rgb = cv2.cvtColor(detail, cv2.COLOR_GRAY2BGR)
    return cv2.addWeighted(smooth, 0.85, detail_rgb, 0.15, 0)


def generate_seamless_circle_image(
    fragment_size: int = 16, rows: int = 2, cols: int = 2, seed: int = 7
) -> np.ndarray:
    """Image whose fragments meet with identical pixels on every interior seam.

    An off-centre circle over gradients and noise is drawn on a base canvas one
    pixel short per seam, then the seam rows/columns are duplicated, so the
    correct layout has an adjacency cost of exactly zero while every other
    layout pays for mismatched noise.
    """
    rng = set_random_seed(seed)
    s = fragment_size
    base_h = rows * (s - 1) + 1
    base_w = cols * (s - 1) + 1

    yv, xv = np.mgrid[0:base_h, 0:base_w].astype(np.float32)
    cy, cx = 0.45 * base_h, 0.55 * base_w
    radius = 0.35 * min(base_h, base_w)
    circle = ((yv - cy) ** 2 + (xv - cx) ** 2 < radius * radius).astype(np.float32)

    base = np.empty((base_h, base_w, 3), dtype=np.float32)
    base[:, :, 0] = 180.0 * circle + 60.0 * yv / max(base_h - 1, 1)
    base[:, :, 1] = 200.0 * xv / max(base_w - 1, 1)
    base[:, :, 2] = rng.integers(0, 256, size=(base_h, base_w)).astype(np.float32)
    base = np.clip(base, 0, 255).astype(np.uint8)

    ymap = np.array([(y // s) * (s - 1) + y % s for y in range(rows * s)])
    xmap = np.array([(x // s) * (s - 1) + x % s for x in range(cols * s)])
    return base[np.ix_(ymap, xmap)]


def load_image(path: PathLike) -> np.ndarray:
    """Load image as RGB uint8 array."""
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError(f"failed to load image from path: {path}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def save_image(path: PathLike, image: np.ndarray) -> None:
    """Save RGB image to disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if not cv2.imwrite(str(path), bgr):
        raise ValueError(f"failed to write image to path: {path}")


@dataclass(frozen=True)
class Problem:
    """A shredded-image problem: composed scrambled image plus grid metadata."""

    image: np.ndarray
    cols: int
    rows: int
    selection_limit: int = 0
    select_cost: int = 0
    swap_cost: int = 0

    def fragments(self) -> FragmentStore:
        return FragmentStore.from_image(self.image, rows=self.rows, cols=self.cols)


def _header_tokens(data: bytes, count: int) -> Tuple[List[str], List[str], int]:
    """Read `count` whitespace separated tokens, collecting `#` comments on the way."""
    tokens: List[str] = []
    comments: List[str] = []
    pos = 0
    while len(tokens) < count:
        while pos < len(data) and data[pos : pos + 1].isspace():
            pos += 1
        if pos >= len(data):
            raise ValueError(f"PPM header truncated after {tokens}")
        if data[pos : pos + 1] == b"#":
            end = data.find(b"\n", pos)
            end = len(data) if end < 0 else end
            comments.append(data[pos + 1 : end].decode("ascii").strip())
            pos = end + 1
            continue
        start = pos
        while pos < len(data) and not data[pos : pos + 1].isspace():
            pos += 1
        tokens.append(data[start:pos].decode("ascii"))
    # Exactly one whitespace byte separates the header from the raster.
    return tokens, comments, pos + 1


def _ints(text: str, name: str) -> List[int]:
    try:
        return [int(v) for v in text.split()]
    except ValueError as exc:
        raise ValueError(f"malformed {name} comment: {text!r}") from exc


def read_problem(path: PathLike) -> Problem:
    """Parse a binary PPM (P6) problem file.

    The header comments carry `cols rows`, the selection limit and
    `select_cost swap_cost`, in that order.
    """
    data = Path(path).read_bytes()
    tokens, comments, offset = _header_tokens(data, 4)
    magic, width_text, height_text, maxval_text = tokens
    if magic != "P6":
        raise ValueError(f'expected magic number "P6", but found {magic!r}')
    try:
        width, height, maxval = int(width_text), int(height_text), int(maxval_text)
    except ValueError as exc:
        raise ValueError(f"malformed PPM dimensions: {tokens[1:]}") from exc
    if maxval > 255:
        raise ValueError(f"only 8-bit PPM is supported, max value is {maxval}")
    if len(comments) < 1:
        raise ValueError("PPM problem is missing the '# cols rows' comment")

    grid = _ints(comments[0], "grid")
    if len(grid) != 2:
        raise ValueError(f"malformed grid comment: {comments[0]!r}")
    selection = _ints(comments[1], "selection limit") if len(comments) > 1 else [0]
    costs = _ints(comments[2], "cost") if len(comments) > 2 else [0, 0]
    if len(selection) != 1 or len(costs) != 2:
        raise ValueError(f"malformed problem comments: {comments[1:3]}")

    expected = width * height * 3
    raster = data[offset : offset + expected]
    if len(raster) != expected:
        raise ValueError(f"PPM raster has {len(raster)} bytes, expected {expected}")
    image = np.frombuffer(raster, dtype=np.uint8).reshape(height, width, 3).copy()
    return Problem(
        image=image,
        cols=grid[0],
        rows=grid[1],
        selection_limit=selection[0],
        select_cost=costs[0],
        swap_cost=costs[1],
    )


def write_problem(
    path: PathLike,
    image: np.ndarray,
    cols: int,
    rows: int,
    selection_limit: int = 3,
    select_cost: int = 2,
    swap_cost: int = 1,
) -> None:
    """Write a composed image as a P6 problem file readable by `read_problem`."""
    height, width, _ = image.shape
    if width % cols or height % rows or width // cols != height // rows:
        raise ValueError("image must split into square fragments on a cols x rows grid")
    header = (
        f"P6\n# {cols} {rows}\n# {selection_limit}\n# {select_cost} {swap_cost}\n"
        f"{width} {height}\n255\n"
    )
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(header.encode("ascii") + np.ascontiguousarray(image, dtype=np.uint8).tobytes())
