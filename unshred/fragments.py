"""Fragment buffers, rotations and the validated fragment store."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np

from .errors import InputShapeError


class Rotation(IntEnum):
    """Clockwise quarter turns applied to a fragment."""

    R0 = 0
    R90 = 1
    R180 = 2
    R270 = 3

    @property
    def degrees(self) -> int:
        return 90 * int(self)

    def then(self, other: int) -> "Rotation":
        """Rotation obtained by applying `other` quarter turns after this one."""
        return Rotation((int(self) + int(other)) % 4)

    def inverse(self) -> "Rotation":
        return Rotation((4 - int(self)) % 4)


class Side(IntEnum):
    """Sides of a placed (already rotated) fragment, clockwise from the top."""

    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3

    @property
    def opposite(self) -> "Side":
        return Side((int(self) + 2) % 4)


@dataclass(frozen=True)
class Fragment:
    """One square tile of the shredded image."""

    id: int
    image: np.ndarray

    @property
    def size(self) -> int:
        return int(self.image.shape[0])

    def rotated(self, rotation: int) -> np.ndarray:
        """Materialize the pixel buffer turned clockwise by `rotation` quarter turns."""
        return np.rot90(self.image, k=-int(rotation))


class FragmentStore:
    """Immutable, validated collection of equally sized square fragments."""

    def __init__(self, fragments: Sequence[Fragment], fragment_size: Optional[int] = None) -> None:
        if not fragments:
            raise InputShapeError("at least one fragment is required")
        self._check_ids([f.id for f in fragments])

        size = fragment_size if fragment_size is not None else _side_of(fragments[0])
        frozen: List[Fragment] = []
        for fragment in sorted(fragments, key=lambda f: f.id):
            _check_buffer(fragment, size)
            image = np.array(fragment.image, copy=True)
            image.setflags(write=False)
            frozen.append(Fragment(id=fragment.id, image=image))

        self._fragments = tuple(frozen)
        self._size = int(size)

    @staticmethod
    def _check_ids(ids: List[int]) -> None:
        n = len(ids)
        counts = Counter(ids)
        duplicated = sorted(i for i, c in counts.items() if c > 1)
        missing = sorted(set(range(n)) - set(counts))
        if duplicated or missing:
            raise InputShapeError(
                f"fragment ids must be exactly 0..{n - 1}; "
                f"duplicated={duplicated}, missing={missing}"
            )

    @classmethod
    def from_fragments(
        cls, fragments: Iterable[Fragment], fragment_size: Optional[int] = None
    ) -> "FragmentStore":
        return cls(list(fragments), fragment_size=fragment_size)

    @classmethod
    def from_arrays(
        cls, images: Sequence[np.ndarray], fragment_size: Optional[int] = None
    ) -> "FragmentStore":
        """Wrap decoded buffers, assigning ids in list order."""
        return cls(
            [Fragment(id=i, image=np.asarray(img)) for i, img in enumerate(images)],
            fragment_size=fragment_size,
        )

    @classmethod
    def from_image(cls, image: np.ndarray, rows: int, cols: int) -> "FragmentStore":
        """Split a composed image into `rows x cols` fragments in row-major order."""
        if rows <= 0 or cols <= 0:
            raise InputShapeError("rows and cols must be positive integers")
        if image.ndim != 3 or image.shape[2] != 3:
            raise InputShapeError("image must be an HxWx3 numpy array")

        height, width, _ = image.shape
        if height % rows != 0 or width % cols != 0:
            raise InputShapeError("image size must be divisible by rows and cols")

        patch_h = height // rows
        patch_w = width // cols
        if patch_h != patch_w:
            raise InputShapeError("fragments must be square; choose rows/cols accordingly")

        fragments: List[Fragment] = []
        for r in range(rows):
            for c in range(cols):
                y0 = r * patch_h
                x0 = c * patch_w
                fragments.append(
                    Fragment(id=len(fragments), image=image[y0 : y0 + patch_h, x0 : x0 + patch_w, :])
                )
        return cls(fragments, fragment_size=patch_h)

    @property
    def size(self) -> int:
        """Side length S shared by every fragment."""
        return self._size

    def check_grid(self, cols: int, rows: int) -> None:
        """Fail unless the fragments exactly fill a `cols x rows` grid."""
        if cols <= 0 or rows <= 0:
            raise InputShapeError(f"grid dimensions must be positive, got {cols}x{rows}")
        if len(self) != cols * rows:
            raise InputShapeError(
                f"expected {cols * rows} fragments for a {cols}x{rows} grid, got {len(self)}"
            )

    def __len__(self) -> int:
        return len(self._fragments)

    def __getitem__(self, fragment_id: int) -> Fragment:
        return self._fragments[fragment_id]

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self._fragments)


def _side_of(fragment: Fragment) -> int:
    image = np.asarray(fragment.image)
    if image.ndim < 1:
        raise InputShapeError(f"fragment {fragment.id}: pixel buffer has no dimensions")
    return int(image.shape[0])


def _check_buffer(fragment: Fragment, size: int) -> None:
    shape = np.asarray(fragment.image).shape
    if len(shape) != 3 or shape[2] != 3:
        raise InputShapeError(f"fragment {fragment.id}: expected SxSx3 buffer, got {shape}")
    if shape[0] != shape[1]:
        raise InputShapeError(f"fragment {fragment.id}: buffer is not square {shape[:2]}")
    if shape[0] != size:
        raise InputShapeError(
            f"fragment {fragment.id}: size {shape[0]} differs from expected {size}"
        )
