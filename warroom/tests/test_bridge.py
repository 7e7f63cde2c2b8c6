"""
Tests for the remote event bridge.
"""

import pytest

from ..engine_core.action import FailureCode
from ..engine_core.state import BattlePhase, LogKind
from ..session.bridge import RemoteEventBridge, normalize_keys, snake_case


@pytest.fixture
def bridge(engine):
    engine.attach_network("srv-7", local_player_id=1)
    return RemoteEventBridge(engine)


def started(bridge):
    """Drive the bridged engine into BATTLE with player 2 to move."""
    result = bridge.handle({
        "event": "match_started",
        "payload": {
            "turnOwnerId": 2,
            "state": {
                "phase": "BATTLE",
                "board": {
                    "cell-3-0": {"ownerId": 1, "rank": "5"},
                    "cell-4-0": {"ownerId": 2, "rank": "6"},
                    "cell-0-9": {"ownerId": 1, "rank": "S"},
                    "cell-9-9": {"ownerId": 2, "rank": "5"},
                },
                "turnOwnerId": 2,
            },
        },
    })
    assert result.success, result.error
    return bridge.engine


class TestKeyNormalization:
    """Tests for camelCase -> snake_case."""

    @pytest.mark.parametrize("key,expected", [
        ("turnOwnerId", "turn_owner_id"),
        ("playerId", "player_id"),
        ("from", "from"),
        ("S", "S"),
        ("10", "10"),
        ("cell-3-0", "cell-3-0"),
        ("already_snake", "already_snake"),
    ])
    def test_snake_case(self, key, expected):
        assert snake_case(key) == expected

    def test_nested(self):
        data = {"lastCombat": {"fromCell": "cell-1-1", "attacker": {"ownerId": 1}}, "list": [{"eventId": "x"}]}
        assert normalize_keys(data) == {
            "last_combat": {"from_cell": "cell-1-1", "attacker": {"owner_id": 1}},
            "list": [{"event_id": "x"}],
        }


class TestDispatch:
    """Tests for event dispatch."""

    def test_match_started(self, bridge):
        engine = started(bridge)
        battle = engine.get_state().battle
        assert battle.phase == BattlePhase.BATTLE
        assert battle.turn_owner_id == 2
        assert battle.board["cell-0-9"].rank == "S"

    def test_match_started_without_state(self, bridge):
        result = bridge.handle({"type": "match_started", "payload": {"turnOwnerId": 1}})
        assert result.success
        assert bridge.engine.get_state().battle.phase == BattlePhase.BATTLE

    def test_match_state(self, bridge):
        result = bridge.handle({
            "event": "match_state",
            "payload": {"state": {"phase": "DEPLOYMENT", "board": {"cell-0-0": {"ownerId": 1, "rank": "F"}}}},
        })
        assert result.success
        assert bridge.engine.get_state().battle.inventory[1]["F"] == 0

    def test_opponent_moved(self, bridge):
        engine = started(bridge)
        envelope = {
            "event": "opponent_moved",
            "payload": {"playerId": 2, "from": "cell-9-9", "to": "cell-8-9", "eventId": "m1"},
        }

        assert bridge.handle(envelope).success
        assert engine.get_state().battle.board["cell-8-9"].owner_id == 2

        replay = bridge.handle(envelope)
        assert replay.data["duplicate"] is True

    def test_opponent_moved_with_cell_keys(self, bridge):
        engine = started(bridge)
        result = bridge.handle({
            "event": "opponent_moved",
            "payload": {"playerId": "2", "fromCell": "cell-9-9", "toCell": "cell-9-8"},
        })
        assert result.success
        assert "cell-9-8" in engine.get_state().battle.board

    def test_combat_result(self, bridge):
        engine = started(bridge)
        result = bridge.handle({
            "event": "combat_result",
            "payload": {
                "from": "cell-4-0",
                "to": "cell-3-0",
                "attacker": {"ownerId": 2, "rank": "6"},
                "defender": {"ownerId": 1, "rank": "5"},
                "outcome": "ATTACKER_WINS",
                "eventId": "c1",
            },
        })
        assert result.success
        battle = engine.get_state().battle
        assert battle.board["cell-3-0"].owner_id == 2
        assert battle.turn_owner_id == 1

    def test_illegal_move_detected(self, bridge):
        engine = started(bridge)
        result = bridge.handle({
            "event": "illegal_move_detected",
            "payload": {"playerId": 2, "reason": "scout jumped the lake"},
        })
        assert result.success
        assert engine.get_state().history[-1].kind == LogKind.ERROR

    def test_game_over(self, bridge):
        engine = started(bridge)
        result = bridge.handle({"event": "game_over", "payload": {"winnerId": 1, "reason": "resign"}})
        assert result.success
        battle = engine.get_state().battle
        assert battle.winner_id == 1
        assert battle.game_over_reason == "resign"

    def test_game_over_default_reason(self, bridge):
        engine = started(bridge)
        bridge.handle({"event": "game_over", "payload": {"winnerId": 2}})
        assert engine.get_state().battle.game_over_reason == "server"

    def test_match_cancelled(self, bridge):
        engine = started(bridge)
        assert bridge.handle({"event": "match_cancelled", "payload": {}}).success
        battle = engine.get_state().battle
        assert battle.phase == BattlePhase.GAME_OVER
        assert battle.winner_id is None
        assert battle.game_over_reason == "cancelled"

    def test_rematch_started(self, bridge):
        engine = started(bridge)
        bridge.handle({"event": "game_over", "payload": {"winnerId": 1}})
        assert bridge.handle({"event": "rematch_started"}).success
        battle = engine.get_state().battle
        assert battle.phase == BattlePhase.DEPLOYMENT
        assert battle.net.active

    def test_rematch_replay_keeps_deployment(self, bridge):
        engine = started(bridge)
        envelope = {"event": "rematch_started", "payload": {"eventId": "rm-1"}}
        assert bridge.handle(envelope).success
        engine.randomize_deployment(1)
        history = len(engine.get_state().history)

        result = bridge.handle(envelope)

        assert result.data["duplicate"] is True
        assert engine.count_inventory_left(1) == 0
        assert len(engine.get_state().history) == history

    def test_illegal_move_replay(self, bridge):
        engine = started(bridge)
        envelope = {
            "event": "illegal_move_detected",
            "payload": {"playerId": 2, "reason": "bomb moved", "eventId": "im-1"},
        }
        bridge.handle(envelope)
        history = len(engine.get_state().history)

        result = bridge.handle(envelope)

        assert result.data["duplicate"] is True
        assert len(engine.get_state().history) == history

    def test_bare_payload(self, bridge):
        engine = started(bridge)
        result = bridge.handle({"type": "game_over", "winnerId": 2, "reason": "timeout"})
        assert result.success
        assert engine.get_state().battle.winner_id == 2


class TestRejections:
    """Unknown and malformed events are dropped with INVALID_INPUT."""

    @pytest.mark.parametrize("envelope", [
        "hello",
        {"event": "teleport", "payload": {}},
        {"payload": {}},
        {"event": "game_over", "payload": ["x"]},
        {"event": "opponent_moved", "payload": {"from": "cell-9-9"}},
        {"event": "opponent_moved", "payload": {"playerId": "two", "from": "a", "to": "b"}},
        {"event": "match_started", "payload": {}},
    ])
    def test_dropped(self, bridge, envelope, caplog):
        before = bridge.engine.snapshot()

        result = bridge.handle(envelope)

        assert result.error_code == FailureCode.INVALID_INPUT
        assert bridge.engine.snapshot() == before
        assert "Dropped remote event" in caplog.text

    def test_engine_rejection_is_passed_through(self, bridge):
        started(bridge)
        result = bridge.handle({
            "event": "opponent_moved",
            "payload": {"playerId": 1, "from": "cell-3-0", "to": "cell-2-0"},
        })
        assert result.error_code == FailureCode.WRONG_TURN

    def test_event_names(self, bridge):
        assert "combat_result" in bridge.event_names
        assert len(bridge.event_names) == 8
