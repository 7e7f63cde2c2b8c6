"""
Tests for the computer-player policies.
"""

import pytest

from ..bots import (
    EvaluationWeights,
    FirstLegalPolicy,
    GreedyMovePolicy,
    MoveEvaluator,
    RandomMovePolicy,
)
from ..engine_core.rules import Move


@pytest.fixture
def skirmish(battle_engine):
    """Player 1 to move with a capture, a flag grab and a quiet step available."""
    return battle_engine({
        "cell-3-0": (1, "6"),
        "cell-4-0": (2, "5"),
        "cell-3-5": (1, "4"),
        "cell-4-5": (2, "F"),
        "cell-0-9": (1, "3"),
        "cell-9-9": (2, "5"),
    })


class TestSimplePolicies:
    """Tests for the random and first-legal policies."""

    def test_first_legal(self, skirmish):
        moves = skirmish.legal_moves(1)
        decision = FirstLegalPolicy().select_move(skirmish.get_state(), moves)
        assert decision.move == moves[0]

    def test_random_is_seeded(self, skirmish):
        moves = skirmish.legal_moves(1)
        state = skirmish.get_state()
        picks_a = [RandomMovePolicy(seed=5).select_move(state, moves).move for _ in range(3)]
        picks_b = [RandomMovePolicy(seed=5).select_move(state, moves).move for _ in range(3)]
        assert picks_a == picks_b
        assert all(m in moves for m in picks_a)

    @pytest.mark.parametrize("policy", [RandomMovePolicy(), FirstLegalPolicy(), GreedyMovePolicy()])
    def test_no_moves_raises(self, skirmish, policy):
        with pytest.raises(ValueError):
            policy.select_move(skirmish.get_state(), [])

    def test_names(self):
        assert FirstLegalPolicy().get_name() == "FirstLegalPolicy"


class TestGreedyPolicy:
    """Tests for the one-ply evaluator."""

    def test_prefers_flag_capture(self, skirmish):
        policy = GreedyMovePolicy(seed=1)
        decision = policy.select_move(skirmish.get_state(), skirmish.legal_moves(1))

        assert decision.move.from_cell == "cell-3-5"
        assert decision.move.to_cell == "cell-4-5"
        assert decision.best_score >= 1000
        assert decision.evaluation_details["combat"] == 1000

    def test_scores(self, skirmish):
        evaluator = MoveEvaluator()
        state = skirmish.get_state()

        capture = evaluator.evaluate(state, Move(1, "cell-3-0", "cell-4-0"))
        assert capture.feature_breakdown == {"combat": 50.0, "progress": 1.0}

        retreat = evaluator.evaluate(state, Move(1, "cell-3-0", "cell-2-0"))
        assert retreat.total_score == -1.0

    def test_second_seat_advances_upwards(self, skirmish):
        evaluator = MoveEvaluator()
        step = evaluator.evaluate(skirmish.get_state(), Move(2, "cell-9-9", "cell-8-9"))
        assert step.feature_breakdown == {"progress": 1.0}

    def test_losing_attack_is_penalized(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "3"), "cell-4-0": (2, "B"), "cell-9-9": (2, "5")})
        evaluation = MoveEvaluator().evaluate(engine.get_state(), Move(1, "cell-3-0", "cell-4-0"))
        assert evaluation.feature_breakdown["combat"] == -24.0

    def test_custom_weights(self, skirmish):
        weights = EvaluationWeights(flag_capture=0.0, forward_step=0.0)
        policy = GreedyMovePolicy(weights=weights, seed=1)
        decision = policy.select_move(skirmish.get_state(), skirmish.legal_moves(1))
        assert (decision.move.from_cell, decision.move.to_cell) == ("cell-3-0", "cell-4-0")
