"""
Move Policy - How the computer player picks its move.

A MovePolicy receives the current state and the legal moves (already
computed by the engine's single legality function) and returns a decision.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
import random

if TYPE_CHECKING:
    from ..engine_core.state import MatchState
    from ..engine_core.rules import Move


@dataclass
class MoveDecision:
    """
    A move chosen by a policy.

    Contains the move plus an explanation for logs and debugging.
    """
    move: Move
    explanation: str = ""
    confidence: float = 1.0

    evaluated_moves: int = 0
    best_score: float = 0.0
    evaluation_details: dict[str, Any] = field(default_factory=dict)


class MovePolicy(ABC):
    """
    Abstract base class for move policies.

    Implementations range from uniform random to heuristic scoring.
    """

    @abstractmethod
    def select_move(self, state: MatchState, legal_moves: list[Move]) -> MoveDecision:
        """
        Select a move from the legal moves.

        Args:
            state: Current match state (read-only)
            legal_moves: Non-empty list of legal moves for the player to act

        Returns:
            MoveDecision with the selected move
        """
        pass

    def get_name(self) -> str:
        """Get the policy's name/identifier."""
        return self.__class__.__name__


class RandomMovePolicy(MovePolicy):
    """
    Random policy - selects moves uniformly at random.

    The default computer player.
    """

    def __init__(self, seed: int | None = None):
        self.rng = random.Random(seed)

    def select_move(self, state: MatchState, legal_moves: list[Move]) -> MoveDecision:
        if not legal_moves:
            raise ValueError("No legal moves available")

        move = self.rng.choice(legal_moves)
        return MoveDecision(
            move=move,
            explanation=f"random {move.from_cell} -> {move.to_cell}",
            confidence=1.0 / len(legal_moves),
            evaluated_moves=len(legal_moves),
        )


class FirstLegalPolicy(MovePolicy):
    """
    First-legal policy - always plays the first legal move.

    Used for deterministic tests and simulations.
    """

    def select_move(self, state: MatchState, legal_moves: list[Move]) -> MoveDecision:
        if not legal_moves:
            raise ValueError("No legal moves available")

        move = legal_moves[0]
        return MoveDecision(
            move=move,
            explanation=f"first legal {move.from_cell} -> {move.to_cell}",
            evaluated_moves=1,
        )
