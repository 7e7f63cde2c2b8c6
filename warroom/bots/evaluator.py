"""
Move Evaluator - One-ply heuristic scoring of candidate moves.

Each legal move is scored on:
- Combat (what the attack would win or lose, by the army table)
- Progress (rows gained toward the opponent's side)

Weights can be adjusted to create different play styles.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
import random

from ..engine_core.army import ArmyConfig, CLASSIC_ARMY
from ..engine_core.board import parse_cell_key
from ..engine_core.rules import resolve_combat
from ..engine_core.state import CombatOutcome, CombatSpecial
from .policy import MovePolicy, MoveDecision

if TYPE_CHECKING:
    from ..engine_core.state import MatchState
    from ..engine_core.rules import Move


@dataclass
class EvaluationWeights:
    """
    Weights for the move evaluator.

    Higher values = more importance.
    """
    flag_capture: float = 1000.0
    capture_per_value: float = 10.0
    bomb_defused: float = 40.0
    spy_assassination: float = 120.0
    loss_per_value: float = -8.0
    tie_per_value: float = -1.0
    forward_step: float = 1.0


@dataclass
class MoveEvaluation:
    total_score: float
    feature_breakdown: dict[str, float] = field(default_factory=dict)


class MoveEvaluator:
    """
    Scores a single move against the current board.

    The engine sees every rank, so the evaluator plays with full
    information; it is a convenience opponent, not a fair one.
    """

    def __init__(self, army: ArmyConfig = CLASSIC_ARMY, weights: EvaluationWeights | None = None):
        self.army = army
        self.weights = weights or EvaluationWeights()

    def evaluate(self, state: MatchState, move: Move) -> MoveEvaluation:
        w = self.weights
        board = state.battle.board
        breakdown: dict[str, float] = {}

        attacker = board.get(move.from_cell)
        defender = board.get(move.to_cell)
        if attacker and defender:
            breakdown["combat"] = self._score_combat(attacker.rank, defender.rank)

        origin = parse_cell_key(move.from_cell)
        dest = parse_cell_key(move.to_cell)
        if origin and dest:
            # Seat 0 deploys on top and advances downwards
            direction = 1 if state.seat_of(move.player_id) == 0 else -1
            breakdown["progress"] = (dest[0] - origin[0]) * direction * w.forward_step

        return MoveEvaluation(total_score=sum(breakdown.values()), feature_breakdown=breakdown)

    def _score_combat(self, attacker_rank: str, defender_rank: str) -> float:
        w = self.weights
        result = resolve_combat(attacker_rank, defender_rank, self.army)
        attacker_value = self.army.get(attacker_rank).value
        defender_value = self.army.get(defender_rank).value

        if result.special == CombatSpecial.FLAG_CAPTURED:
            return w.flag_capture
        if result.special == CombatSpecial.BOMB_DEFUSED:
            return w.bomb_defused
        if result.special == CombatSpecial.SPY_ASSASSINATES:
            return w.spy_assassination
        if result.outcome == CombatOutcome.ATTACKER_WINS:
            return defender_value * w.capture_per_value
        if result.outcome == CombatOutcome.TIE:
            return attacker_value * w.tie_per_value
        return max(attacker_value, 1) * w.loss_per_value


class GreedyMovePolicy(MovePolicy):
    """
    Greedy policy - plays the best-scoring move, ties broken at random.
    """

    def __init__(
        self,
        army: ArmyConfig = CLASSIC_ARMY,
        weights: EvaluationWeights | None = None,
        seed: int | None = None,
    ):
        self.evaluator = MoveEvaluator(army, weights)
        self.rng = random.Random(seed)

    def select_move(self, state: MatchState, legal_moves: list[Move]) -> MoveDecision:
        if not legal_moves:
            raise ValueError("No legal moves available")

        scored = [(self.evaluator.evaluate(state, m), m) for m in legal_moves]
        best_score = max(ev.total_score for ev, _ in scored)
        best = [(ev, m) for ev, m in scored if ev.total_score == best_score]
        evaluation, move = self.rng.choice(best)

        return MoveDecision(
            move=move,
            explanation=f"greedy {move.from_cell} -> {move.to_cell} (score {best_score:.1f})",
            confidence=1.0 / len(best),
            evaluated_moves=len(legal_moves),
            best_score=best_score,
            evaluation_details=evaluation.feature_breakdown,
        )
