"""
Match configuration.

Defaults mirror the classic rules; every knob can be overridden per match
or from the environment.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os

from .army import ArmyConfig, ARMIES, CLASSIC_ARMY
from .board import BoardGeometry, DEFAULT_GEOMETRY


@dataclass(frozen=True)
class MatchConfig:
    """Tunable parameters for one match."""
    army: ArmyConfig = CLASSIC_ARMY
    geometry: BoardGeometry = field(default_factory=lambda: DEFAULT_GEOMETRY)

    # Timers (seconds)
    handshake_delay: float = 3.0
    auto_turn_delay: float = 0.35

    # Meta-game starting values
    starting_resources: int = 5
    starting_morale: int = 50
    starting_tension: int = 10
    resource_regen: int = 2

    @classmethod
    def from_env(cls, **overrides) -> MatchConfig:
        """
        Build a config from WARROOM_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict = {}

        army_name = os.getenv("WARROOM_ARMY")
        if army_name:
            if army_name not in ARMIES:
                raise ValueError(
                    f"Unknown WARROOM_ARMY '{army_name}', expected one of {sorted(ARMIES)}"
                )
            values["army"] = ARMIES[army_name]

        handshake = os.getenv("WARROOM_HANDSHAKE_DELAY")
        if handshake:
            values["handshake_delay"] = float(handshake)

        auto_turn = os.getenv("WARROOM_AUTO_TURN_DELAY")
        if auto_turn:
            values["auto_turn_delay"] = float(auto_turn)

        values.update(overrides)
        return cls(**values)
