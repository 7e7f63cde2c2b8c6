"""
Tests for the battle state machine.

Tests:
- Turn and phase gating
- Moves, combat outcomes and board updates
- Flag capture and stalemate
- Selection and legal-target queries
- The PvE computer player on the virtual clock
"""

import pytest

from ..bots.policy import FirstLegalPolicy
from ..engine_core.action import FailureCode
from ..engine_core.engine import MatchEngine
from ..engine_core.state import BattlePhase, CombatOutcome, CombatSpecial


# A movable enemy far away keeps the defender out of stalemate
RESERVE = {"cell-9-9": (2, "5")}


class TestTurnGating:
    """Tests for phase and turn checks."""

    def test_move_in_deployment_fails(self, engine):
        result = engine.move(1, "cell-3-0", "cell-4-0")
        assert result.error_code == FailureCode.WRONG_PHASE

    def test_move_out_of_turn_fails(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        result = engine.move(2, "cell-9-9", "cell-8-9")
        assert result.error_code == FailureCode.WRONG_TURN

    def test_unknown_player_fails(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        assert engine.move(5, "cell-3-0", "cell-2-0").error_code == FailureCode.INVALID_PLAYER

    def test_invalid_cell_fails(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        assert engine.move(1, "cell-3-0", "cell-99-0").error_code == FailureCode.INVALID_INPUT

    def test_illegal_move_leaves_state_unchanged(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        before = engine.snapshot()
        turn = engine.get_state().turn

        result = engine.move(1, "cell-3-0", "cell-4-1")

        assert result.error_code == FailureCode.RULE_VIOLATION
        assert engine.snapshot() == before
        assert engine.get_state().turn == turn

    def test_move_after_game_over_fails(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "F"), **RESERVE})
        engine.move(1, "cell-3-0", "cell-4-0")

        assert engine.move(1, "cell-4-0", "cell-5-0").error_code == FailureCode.ALREADY_DECIDED
        assert engine.move(2, "cell-9-9", "cell-8-9").error_code == FailureCode.ALREADY_DECIDED


class TestMoves:
    """Tests for plain moves and combat."""

    def test_step_passes_turn(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        turn = engine.get_state().turn

        result = engine.move(1, "cell-3-0", "cell-4-0")

        assert result.success
        battle = engine.get_state().battle
        assert "cell-3-0" not in battle.board
        assert battle.board["cell-4-0"].rank == "6"
        assert battle.turn_owner_id == 2
        assert engine.get_state().turn == turn + 1
        assert result.data["turn_owner_id"] == 2
        assert "combat" not in result.data

    def test_turns_alternate(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        assert engine.move(1, "cell-3-0", "cell-4-0")
        assert engine.move(2, "cell-9-9", "cell-8-9")
        assert engine.get_state().battle.turn_owner_id == 1

    def test_attacker_wins(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "5"), **RESERVE})

        result = engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert battle.board["cell-4-0"].owner_id == 1
        assert "cell-3-0" not in battle.board
        assert battle.last_combat.outcome == CombatOutcome.ATTACKER_WINS
        assert result.data["combat"]["outcome"] == "ATTACKER_WINS"
        assert battle.turn_owner_id == 2

    def test_bomb_explodes(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-0-0": (1, "5"),
                                "cell-4-0": (2, "B"), **RESERVE})

        engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert "cell-3-0" not in battle.board
        assert battle.board["cell-4-0"].rank == "B"
        assert battle.last_combat.special == CombatSpecial.BOMB_EXPLODES

    def test_miner_defuses_bomb(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "4"), "cell-4-0": (2, "B"), **RESERVE})

        engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert battle.board["cell-4-0"] == battle.last_combat.attacker
        assert battle.last_combat.special == CombatSpecial.BOMB_DEFUSED

    def test_spy_assassinates_marshal(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "S"), "cell-4-0": (2, "10"), **RESERVE})

        engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert battle.board["cell-4-0"].rank == "S"
        assert battle.last_combat.special == CombatSpecial.SPY_ASSASSINATES

    def test_tie_removes_both(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "5"), "cell-0-0": (1, "6"),
                                "cell-4-0": (2, "5"), **RESERVE})

        engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert "cell-3-0" not in battle.board
        assert "cell-4-0" not in battle.board
        assert battle.last_combat.outcome == CombatOutcome.TIE

    def test_scout_attacks_at_range(self, battle_engine):
        engine = battle_engine({"cell-0-0": (1, "2"), "cell-7-0": (2, "3"), **RESERVE})

        engine.move(1, "cell-0-0", "cell-7-0")

        battle = engine.get_state().battle
        assert "cell-0-0" not in battle.board
        assert battle.board["cell-7-0"].rank == "3"
        assert battle.last_combat.outcome == CombatOutcome.DEFENDER_WINS

    def test_combat_is_logged(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "5"), **RESERVE})
        engine.move(1, "cell-3-0", "cell-4-0")

        entry = engine.get_state().history[-1]
        assert entry.message == "Combat"
        assert entry.meta["from_cell"] == "cell-3-0"
        assert entry.meta["defender"] == {"owner_id": 2, "rank": "5"}


class TestGameOver:
    """Tests for flag capture and stalemate."""

    def test_flag_capture_wins(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "F"), **RESERVE})
        turn = engine.get_state().turn

        result = engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert battle.phase == BattlePhase.GAME_OVER
        assert battle.winner_id == 1
        assert battle.game_over_reason == "flag_captured"
        assert battle.turn_owner_id == 1
        assert engine.get_state().turn == turn
        assert result.data["winner_id"] == 1

    def test_stalemate_after_step(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-9-9": (2, "F"), "cell-9-8": (2, "B")})

        result = engine.move(1, "cell-3-0", "cell-2-0")

        battle = engine.get_state().battle
        assert battle.phase == BattlePhase.GAME_OVER
        assert battle.winner_id == 1
        assert battle.game_over_reason == "stalemate"
        assert result.data["winner_id"] == 1

    def test_capturing_last_movable_piece_wins(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "5"), "cell-9-9": (2, "F")})

        engine.move(1, "cell-3-0", "cell-4-0")

        battle = engine.get_state().battle
        assert battle.winner_id == 1
        assert battle.game_over_reason == "stalemate"

    def test_boxed_in_opponent_loses(self, battle_engine):
        # Player 2's only mobile piece is walled in by its own bombs
        engine = battle_engine({
            "cell-3-0": (1, "6"),
            "cell-9-9": (2, "5"),
            "cell-8-9": (2, "B"),
            "cell-9-8": (2, "B"),
            "cell-0-9": (2, "F"),
        })

        engine.move(1, "cell-3-0", "cell-3-1")

        assert engine.get_state().battle.winner_id == 1


class TestSelection:
    """Tests for select_cell and legal_targets."""

    def test_select_own_piece(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        result = engine.select_cell(1, "cell-3-0")

        assert result.success
        assert engine.get_state().battle.selected_cell == "cell-3-0"

    def test_select_does_not_touch_board(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        before = engine.snapshot()
        engine.select_cell(1, "cell-3-0")
        assert engine.snapshot() == before

    def test_clear_selection(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        engine.select_cell(1, "cell-3-0")
        assert engine.select_cell(1, None).success
        assert engine.get_state().battle.selected_cell is None

    @pytest.mark.parametrize("cell,code", [
        ("cell-5-5", FailureCode.RULE_VIOLATION),
        ("cell-9-9", FailureCode.RULE_VIOLATION),
        ("cell-0-0", FailureCode.RULE_VIOLATION),
        ("nowhere", FailureCode.INVALID_INPUT),
    ])
    def test_select_rejections(self, battle_engine, cell, code):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-0-0": (1, "B"), **RESERVE})
        assert engine.select_cell(1, cell).error_code == code
        assert engine.get_state().battle.selected_cell is None

    def test_select_out_of_turn(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        assert engine.select_cell(2, "cell-9-9").error_code == FailureCode.WRONG_TURN

    def test_move_clears_selection(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        engine.select_cell(1, "cell-3-0")
        engine.move(1, "cell-3-0", "cell-2-0")
        assert engine.get_state().battle.selected_cell is None

    def test_targets_only_on_own_turn(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), **RESERVE})
        assert sorted(engine.legal_targets(1, "cell-3-0")) == ["cell-2-0", "cell-3-1", "cell-4-0"]
        assert engine.legal_targets(2, "cell-9-9") == []

    def test_targets_empty_outside_battle(self, engine):
        engine.randomize_deployment(1)
        cell = next(iter(engine.export_deployment(1)))
        assert engine.legal_targets(1, cell) == []


class TestNotifications:
    """Battle entry points notify once per accepted mutation."""

    def test_move_notifies_once(self, battle_engine):
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "5"), **RESERVE})
        calls = []
        engine.subscribe(lambda state: calls.append(state.turn))
        calls.clear()

        engine.move(1, "cell-3-0", "cell-4-0")
        assert len(calls) == 1

        engine.move(1, "cell-4-0", "cell-5-0")
        assert len(calls) == 1


@pytest.fixture
def pve_engine(config, scheduler):
    """Classic match where player 2 is the computer."""
    engine = MatchEngine.create(
        [("Human", "challenger"), ("Computer", "defender")],
        config=config,
        seed=11,
        scheduler=scheduler,
        policy=FirstLegalPolicy(),
    )
    engine.randomize_deployment(1)
    engine.set_ready(1, auto_fill_opponent=True)
    scheduler.advance(3.0)
    assert engine.get_state().battle.phase == BattlePhase.BATTLE
    return engine


class TestComputerPlayer:
    """Tests for the PvE auto-turn."""

    def test_human_opens(self, pve_engine, scheduler):
        assert pve_engine.get_state().battle.turn_owner_id == 1
        assert pve_engine.pending_timers == 0

    def test_computer_replies_after_delay(self, pve_engine, scheduler):
        move = pve_engine.legal_moves(1)[0]
        assert pve_engine.move(1, move.from_cell, move.to_cell)
        battle = pve_engine.get_state().battle
        assert battle.turn_owner_id == 2
        assert pve_engine.pending_timers == 1

        scheduler.advance(0.2)
        assert battle.turn_owner_id == 2

        scheduler.advance(0.2)
        assert battle.turn_owner_id == 1
        assert pve_engine.get_state().turn == 3
        assert pve_engine.pending_timers == 0

    def test_computer_opens_when_it_is_the_challenger(self, config, scheduler):
        engine = MatchEngine.create(
            [("Computer", "challenger"), ("Human", "defender")],
            config=config,
            seed=3,
            scheduler=scheduler,
            policy=FirstLegalPolicy(),
        )
        engine.randomize_deployment(2)
        engine.set_ready(2, auto_fill_opponent=True)
        scheduler.advance(3.0)

        battle = engine.get_state().battle
        assert battle.computer_player_id == 1
        assert battle.turn_owner_id == 1

        scheduler.advance(0.4)
        assert battle.turn_owner_id == 2

    def test_reset_cancels_pending_auto_turn(self, pve_engine, scheduler):
        move = pve_engine.legal_moves(1)[0]
        pve_engine.move(1, move.from_cell, move.to_cell)
        assert pve_engine.pending_timers == 1

        pve_engine.reset_battle()
        assert pve_engine.pending_timers == 0
        assert scheduler.advance(1.0) == 0
        assert pve_engine.get_state().battle.phase == BattlePhase.DEPLOYMENT

    def test_remote_match_disables_auto_turn(self, pve_engine, scheduler):
        move = pve_engine.legal_moves(1)[0]
        pve_engine.move(1, move.from_cell, move.to_cell)

        pve_engine.attach_network("srv-1", 1)

        battle = pve_engine.get_state().battle
        assert not battle.pve_auto
        assert battle.computer_player_id is None
        scheduler.advance(1.0)
        assert battle.turn_owner_id == 2

    def test_no_policy_means_no_auto_turn(self, engine, scheduler):
        engine.randomize_deployment(1)
        engine.set_ready(1, auto_fill_opponent=True)
        scheduler.advance(3.0)

        move = engine.legal_moves(1)[0]
        engine.move(1, move.from_cell, move.to_cell)
        assert engine.pending_timers == 0
        scheduler.advance(1.0)
        assert engine.get_state().battle.turn_owner_id == 2
