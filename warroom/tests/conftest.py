"""
Pytest fixtures for War Room tests.
"""

import pytest

from ..engine_core.army import CLASSIC_ARMY, DEMO_ARMY
from ..engine_core.config import MatchConfig
from ..engine_core.engine import MatchEngine
from ..engine_core.scheduler import VirtualScheduler


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """Virtual clock; nothing fires until the test advances it."""
    return VirtualScheduler()


@pytest.fixture
def config() -> MatchConfig:
    """Classic rules with the default delays."""
    return MatchConfig(army=CLASSIC_ARMY, handshake_delay=3.0, auto_turn_delay=0.35)


@pytest.fixture
def demo_config() -> MatchConfig:
    """Reduced 12-piece army."""
    return MatchConfig(army=DEMO_ARMY, handshake_delay=3.0, auto_turn_delay=0.35)


@pytest.fixture
def engine(config: MatchConfig, scheduler: VirtualScheduler) -> MatchEngine:
    """Two-player match with no computer player."""
    return MatchEngine.create(
        [("Alice", "challenger"), ("Bob", "defender")],
        config=config,
        seed=7,
        scheduler=scheduler,
        policy=None,
        match_id="test-match",
    )


@pytest.fixture
def battle_engine(engine: MatchEngine):
    """
    Put `engine` into BATTLE with a hand-built board.

    Usage:
        engine = battle_engine({"cell-3-0": (1, "6"), "cell-4-0": (2, "5")})
    """

    def _setup(pieces: dict, turn_owner_id: int = 1) -> MatchEngine:
        result = engine.hydrate({
            "phase": "BATTLE",
            "board": {
                cell: {"owner_id": owner, "rank": rank}
                for cell, (owner, rank) in pieces.items()
            },
            "turn_owner_id": turn_owner_id,
        })
        assert result.success, result.error
        return engine

    return _setup


def assert_inventory_conserved(engine: MatchEngine):
    """inventory[rank] + pieces on board == army count, for every player and rank."""
    state = engine.get_state()
    army = engine.config.army
    for player_id in state.player_ids:
        on_board = state.battle.pieces_of(player_id).values()
        for rank in army.ranks:
            placed = sum(1 for p in on_board if p.rank == rank.code)
            assert state.battle.inventory[player_id][rank.code] + placed == rank.count
