"""
Meta-game events and saturating mutation helpers.

Events are queued during a turn and applied at resolution. The random
draw depends only on global tension.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
import random

from .state import MatchState, Player

MORALE_MAX = 100
TENSION_MAX = 100

RAID_TENSION = 60
RUMOR_TENSION = 35
RUMOR_EFFECT_TENSION = 50


# =============================================================================
# Saturating helpers: bounded values clamp, they never raise
# =============================================================================

def add_resources(player: Player, delta: int):
    player.resources = max(0, player.resources + delta)


def add_morale(player: Player, delta: int):
    player.morale = max(0, min(MORALE_MAX, player.morale + delta))


def add_intel(player: Player, delta: int):
    player.intel = max(0, player.intel + delta)


def add_global_tension(state: MatchState, delta: int):
    state.tension = max(0, min(TENSION_MAX, state.tension + delta))


def add_global_intel(state: MatchState, delta: int):
    state.intel = max(0, state.intel + delta)


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class MatchEvent:
    """
    A queued meta-game event.

    `apply` mutates the state and returns human-readable changes.
    """
    event_id: str
    name: str
    description: str
    apply: Callable[[MatchState], list[str]]
    target_id: int | None = None


def rumor() -> MatchEvent:
    """Morale drops for everyone, but only if tension is high at resolution."""

    def _apply(state: MatchState) -> list[str]:
        if state.tension < RUMOR_EFFECT_TENSION:
            return []
        for player in state.players:
            add_morale(player, -5)
        return ["Rumors at the front: every player lost 5 morale"]

    return MatchEvent(
        event_id="RUMOR",
        name="Rumor at the front",
        description="Lowers everyone's morale when tension is high.",
        apply=_apply,
    )


def raid(target_id: int) -> MatchEvent:
    """Hits one player unless they are fortified; the shield is consumed."""

    def _apply(state: MatchState) -> list[str]:
        target = state.get_player(target_id)
        if not target:
            return []
        if target.status.shielded:
            target.status.shielded = False
            return [f"{target.name}'s fortifications absorbed a raid"]
        add_morale(target, -10)
        add_resources(target, -1)
        return [f"{target.name} was raided: -10 morale, -1 resources"]

    return MatchEvent(
        event_id="RAID",
        name="Raid",
        description="Hits one player unless fortified.",
        apply=_apply,
        target_id=target_id,
    )


def pick_random_event(state: MatchState, rng: random.Random) -> MatchEvent | None:
    """Draw at most one event based on current global tension."""
    if state.tension >= RAID_TENSION:
        alive = [p for p in state.players if p.alive]
        if not alive:
            return None
        return raid(rng.choice(alive).player_id)

    if state.tension >= RUMOR_TENSION:
        return rumor()

    return None
