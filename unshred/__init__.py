"""Shredded-image reconstruction: edge matching and arrangement search."""

from .assembler import Arrangement, Placement, ResultAssembler
from .board import BoardState, RotateMove, SwapMove
from .config import SolverConfig
from .errors import DegenerateInputWarning, InputShapeError
from .evaluator import EvaluationResult, PuzzleEvaluator
from .fingerprint import EdgeFingerprinter
from .fragments import Fragment, FragmentStore, Rotation, Side
from .matcher import CostModel, CostTable, Direction
from .solver import ArrangementSearcher, SolveResult, Termination

__version__ = "0.1.0"

__all__ = [
    "Fragment",
    "FragmentStore",
    "Rotation",
    "Side",
    "EdgeFingerprinter",
    "Direction",
    "CostModel",
    "CostTable",
    "BoardState",
    "SwapMove",
    "RotateMove",
    "SolverConfig",
    "ArrangementSearcher",
    "SolveResult",
    "Termination",
    "Arrangement",
    "Placement",
    "ResultAssembler",
    "EvaluationResult",
    "PuzzleEvaluator",
    "InputShapeError",
    "DegenerateInputWarning",
]
