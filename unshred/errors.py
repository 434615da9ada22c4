"""Error and warning types raised by the reconstruction engine."""

from __future__ import annotations


class InputShapeError(ValueError):
    """Fragment set does not describe a well-formed W x H puzzle."""


class DegenerateInputWarning(UserWarning):
    """Puzzle is solvable but trivial (a single fragment)."""
