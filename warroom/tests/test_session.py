"""
Tests for the session manager.
"""

import time

import pytest

from ..bots import FirstLegalPolicy, GreedyMovePolicy, RandomMovePolicy
from ..engine_core.army import DEMO_ARMY
from ..engine_core.config import MatchConfig
from ..session import MatchMode, SessionManager, create_policy

PLAYERS = [("Alice", "challenger"), ("Bob", "defender")]


@pytest.fixture
def manager():
    return SessionManager()


class TestCreatePolicy:
    """Tests for policy lookup by name."""

    def test_known_names(self):
        config = MatchConfig()
        assert isinstance(create_policy("random", config, seed=1), RandomMovePolicy)
        assert isinstance(create_policy("first", config), FirstLegalPolicy)
        greedy = create_policy("greedy", MatchConfig(army=DEMO_ARMY))
        assert isinstance(greedy, GreedyMovePolicy)
        assert greedy.evaluator.army is DEMO_ARMY

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown policy"):
            create_policy("minimax", MatchConfig())


class TestSessionManager:
    """Tests for the session lifecycle."""

    def test_pve_session(self, manager):
        session = manager.create_session(PLAYERS, mode=MatchMode.PVE, seed=1, policy="first")

        assert session.mode == MatchMode.PVE
        assert isinstance(session.engine.policy, FirstLegalPolicy)
        assert session.bridge is None
        assert session.is_active()
        assert manager.get_session(session.session_id) is session

    def test_local_session_has_no_policy(self, manager):
        session = manager.create_session(PLAYERS, mode=MatchMode.LOCAL)
        assert session.engine.policy is None

    def test_remote_session(self, manager):
        session = manager.create_session(
            PLAYERS,
            mode=MatchMode.REMOTE,
            network={"match_id": "srv-9", "local_player_id": 2, "team": "red"},
        )

        net = session.engine.get_state().battle.net
        assert session.bridge is not None
        assert session.engine.policy is None
        assert net.active
        assert net.match_id == "srv-9"
        assert net.local_player_id == 2

    def test_remote_session_bad_player(self, manager):
        with pytest.raises(ValueError):
            manager.create_session(PLAYERS, mode=MatchMode.REMOTE, network={"local_player_id": 5})
        assert manager.list_sessions() == []

    def test_config_from_environment(self, manager, monkeypatch):
        monkeypatch.setenv("WARROOM_ARMY", "demo")
        monkeypatch.setenv("WARROOM_HANDSHAKE_DELAY", "0.5")
        session = manager.create_session(PLAYERS)
        assert session.engine.config.army is DEMO_ARMY
        assert session.engine.config.handshake_delay == 0.5

    def test_unknown_session(self, manager):
        assert manager.get_session("missing") is None
        assert not manager.end_session("missing")

    def test_end_session_cancels_timers(self, manager):
        session = manager.create_session(PLAYERS, seed=2)
        engine = session.engine
        engine.randomize_deployment(1)
        engine.set_ready(1, auto_fill_opponent=True)
        assert engine.pending_timers == 1

        assert manager.end_session(session.session_id)
        assert engine.pending_timers == 0
        assert manager.get_session(session.session_id) is None

    def test_active_sessions(self, manager):
        playing = manager.create_session(PLAYERS)
        finished = manager.create_session(PLAYERS)
        finished.engine.force_game_over(1, "test")

        assert manager.list_active_sessions() == [playing.session_id]
        assert len(manager.list_sessions()) == 2

    def test_cleanup_stale_sessions(self, manager):
        old = manager.create_session(PLAYERS)
        fresh = manager.create_session(PLAYERS)
        old.last_activity = time.time() - 7200

        assert manager.cleanup_stale_sessions(max_age_seconds=3600) == 1
        assert [s.session_id for s in manager.list_sessions()] == [fresh.session_id]

    def test_get_session_refreshes_activity(self, manager):
        session = manager.create_session(PLAYERS)
        session.last_activity = 0.0
        manager.get_session(session.session_id)
        assert manager.cleanup_stale_sessions(max_age_seconds=3600) == 0

    def test_scheduler_factory(self):
        made = []

        def factory():
            from ..engine_core.scheduler import VirtualScheduler
            scheduler = VirtualScheduler()
            made.append(scheduler)
            return scheduler

        session = SessionManager(scheduler_factory=factory).create_session(PLAYERS)
        assert session.engine.scheduler is made[0]
