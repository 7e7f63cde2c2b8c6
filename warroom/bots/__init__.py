"""
Bots module - Computer players for PvE matches.

Provides:
- MovePolicy: Interface for move selection
- RandomMovePolicy / FirstLegalPolicy: Baseline policies
- GreedyMovePolicy: One-ply heuristic policy
"""

from .policy import MovePolicy, MoveDecision, RandomMovePolicy, FirstLegalPolicy
from .evaluator import MoveEvaluator, EvaluationWeights, GreedyMovePolicy

__all__ = [
    "MovePolicy",
    "MoveDecision",
    "RandomMovePolicy",
    "FirstLegalPolicy",
    "MoveEvaluator",
    "EvaluationWeights",
    "GreedyMovePolicy",
]
