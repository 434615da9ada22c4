"""Tests for rotation-aware edge descriptors."""

from __future__ import annotations

import numpy as np
import pytest

from unshred.errors import InputShapeError
from unshred.fingerprint import EdgeFingerprinter, _turn_clockwise
from unshred.fragments import Fragment, FragmentStore, Rotation, Side


def _fragment(size: int = 8, seed: int = 3) -> Fragment:
    rng = np.random.default_rng(seed)
    return Fragment(id=0, image=rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8))


def _direct_edges(image: np.ndarray) -> tuple:
    img = image.astype(np.float64)
    return img[0, :, :], img[:, -1, :], img[-1, :, :], img[:, 0, :]


@pytest.mark.parametrize("rotation", list(Rotation))
def test_fingerprint_matches_materialized_rotation(rotation: Rotation) -> None:
    """Lazy reindexing agrees with edges read off np.rot90 of the buffer."""
    frag = _fragment()
    fp = EdgeFingerprinter(fragment_size=8)
    expected = _direct_edges(frag.rotated(rotation))
    for got, want in zip(fp.fingerprint(frag, rotation), expected):
        np.testing.assert_array_equal(got, want)


def test_quarter_turn_top_is_reversed_left() -> None:
    """After 90 degrees the top edge is the former left edge read bottom to top."""
    frag = _fragment()
    fp = EdgeFingerprinter(fragment_size=8)
    left = fp.fingerprint(frag, Rotation.R0)[Side.LEFT]
    top = fp.fingerprint(frag, Rotation.R90)[Side.TOP]
    np.testing.assert_array_equal(top, left[::-1])


def test_four_turns_reproduce_descriptors() -> None:
    """Four successive quarter turns are the identity."""
    fp = EdgeFingerprinter(fragment_size=8)
    original = fp.base_edges(_fragment())
    edges = original
    for _ in range(4):
        edges = _turn_clockwise(edges)
    for got, want in zip(edges, original):
        np.testing.assert_array_equal(got, want)


def test_fingerprint_is_deterministic() -> None:
    """Same fragment and rotation give identical descriptors."""
    frag = _fragment()
    fp = EdgeFingerprinter(fragment_size=8, downsample_factor=2)
    for a, b in zip(fp.fingerprint(frag, Rotation.R270), fp.fingerprint(frag, Rotation.R270)):
        np.testing.assert_array_equal(a, b)


def test_downsampling_averages_blocks() -> None:
    """Each sample is the mean of downsample_factor consecutive edge pixels."""
    frag = _fragment()
    fp = EdgeFingerprinter(fragment_size=8, downsample_factor=2)
    assert fp.samples == 4
    top = fp.fingerprint(frag)[Side.TOP]
    assert top.shape == (4, 3)
    row = frag.image[0].astype(np.float64)
    np.testing.assert_allclose(top[1], (row[2] + row[3]) / 2.0)


def test_wrong_fragment_size_raises() -> None:
    """Buffers that do not match the configured size fail fast."""
    fp = EdgeFingerprinter(fragment_size=8)
    with pytest.raises(InputShapeError):
        fp.fingerprint(_fragment(size=6))


def test_invalid_downsample_factor_raises() -> None:
    """The reduction cannot exceed the edge length."""
    with pytest.raises(ValueError):
        EdgeFingerprinter(fragment_size=8, downsample_factor=9)


def test_fingerprint_all_layout() -> None:
    """The descriptor tensor is indexed [fragment, rotation, side, sample, channel]."""
    rng = np.random.default_rng(5)
    store = FragmentStore.from_arrays(
        [rng.integers(0, 256, size=(6, 6, 3), dtype=np.uint8) for _ in range(3)]
    )
    fp = EdgeFingerprinter(fragment_size=6, downsample_factor=3)
    desc = fp.fingerprint_all(store)
    assert desc.shape == (3, 4, 4, 2, 3)
    assert not desc.flags.writeable
    np.testing.assert_array_equal(
        desc[2, Rotation.R180, Side.BOTTOM], fp.fingerprint(store[2], Rotation.R180)[Side.BOTTOM]
    )


def test_fingerprint_all_reads_each_fragment_once(monkeypatch) -> None:
    """All four rotations come from one edge read per fragment and match `fingerprint`."""
    rng = np.random.default_rng(8)
    store = FragmentStore.from_arrays(
        [rng.integers(0, 256, size=(4, 4, 3), dtype=np.uint8) for _ in range(3)]
    )
    fp = EdgeFingerprinter(fragment_size=4, downsample_factor=2)
    expected = {
        (f.id, rotation): fp.fingerprint(f, rotation) for f in store for rotation in Rotation
    }

    reads = []
    original = EdgeFingerprinter.base_edges

    def _counting(self, fragment):
        reads.append(fragment.id)
        return original(self, fragment)

    monkeypatch.setattr(EdgeFingerprinter, "base_edges", _counting)
    desc = fp.fingerprint_all(store)

    assert reads == [0, 1, 2]
    for (fid, rotation), edges in expected.items():
        for side in Side:
            np.testing.assert_array_equal(desc[fid, rotation, side], edges[side])
