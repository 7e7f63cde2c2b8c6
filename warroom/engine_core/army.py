"""
Army composition - The rank table a match is played with.

The table is configuration, not a constant: the engine never compares
rank codes directly. Everything it needs to know about a rank
(kind, fight value, special roles) is looked up here.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class RankKind(Enum):
    """Closed set of rank behaviours."""
    STRENGTH = "strength"
    BOMB = "bomb"
    SPY = "spy"
    FLAG = "flag"


@dataclass(frozen=True)
class RankDef:
    """
    One row of the army table.

    `value` only matters for STRENGTH ranks; specials carry 0.
    """
    code: str
    name: str
    kind: RankKind
    count: int
    value: int = 0
    glyph: str = ""
    scout: bool = False
    defuses_bombs: bool = False

    @property
    def movable(self) -> bool:
        return self.kind not in (RankKind.BOMB, RankKind.FLAG)


@dataclass(frozen=True)
class ArmyConfig:
    """Ordered army composition with lookup helpers."""
    name: str
    ranks: tuple[RankDef, ...]
    _by_code: dict[str, RankDef] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        by_code = {}
        for rank in self.ranks:
            if rank.code in by_code:
                raise ValueError(f"Duplicate rank code in army table: {rank.code}")
            by_code[rank.code] = rank
        object.__setattr__(self, "_by_code", by_code)

    def get(self, code: str) -> RankDef | None:
        return self._by_code.get(code)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    @property
    def codes(self) -> list[str]:
        return [r.code for r in self.ranks]

    @property
    def total_pieces(self) -> int:
        return sum(r.count for r in self.ranks)

    @property
    def top_value(self) -> int:
        """Highest fight value among STRENGTH ranks."""
        values = [r.value for r in self.ranks if r.kind == RankKind.STRENGTH]
        return max(values) if values else 0

    def is_movable(self, code: str) -> bool:
        rank = self.get(code)
        return bool(rank and rank.movable)

    def is_scout(self, code: str) -> bool:
        rank = self.get(code)
        return bool(rank and rank.scout)

    def fresh_inventory(self) -> dict[str, int]:
        """Full inventory for one player, keyed by rank code."""
        return {r.code: r.count for r in self.ranks}


CLASSIC_ARMY = ArmyConfig(
    name="classic",
    ranks=(
        RankDef("10", "Marshal", RankKind.STRENGTH, count=1, value=10, glyph="👑"),
        RankDef("9", "General", RankKind.STRENGTH, count=1, value=9, glyph="🎖️"),
        RankDef("8", "Colonel", RankKind.STRENGTH, count=2, value=8, glyph="🎖️"),
        RankDef("7", "Major", RankKind.STRENGTH, count=3, value=7, glyph="🎖️"),
        RankDef("6", "Captain", RankKind.STRENGTH, count=4, value=6, glyph="🎖️"),
        RankDef("5", "Lieutenant", RankKind.STRENGTH, count=4, value=5, glyph="🎖️"),
        RankDef("4", "Miner", RankKind.STRENGTH, count=5, value=4, glyph="⛏️",
                defuses_bombs=True),
        RankDef("3", "Sergeant", RankKind.STRENGTH, count=4, value=3, glyph="🎖️"),
        RankDef("2", "Scout", RankKind.STRENGTH, count=8, value=2, glyph="🏃", scout=True),
        RankDef("S", "Spy", RankKind.SPY, count=1, glyph="🕵️"),
        RankDef("B", "Bomb", RankKind.BOMB, count=6, glyph="💣"),
        RankDef("F", "Flag", RankKind.FLAG, count=1, glyph="🚩"),
    ),
)

# Reduced set for quick matches and tests
DEMO_ARMY = ArmyConfig(
    name="demo",
    ranks=(
        RankDef("10", "Marshal", RankKind.STRENGTH, count=1, value=10, glyph="👑"),
        RankDef("6", "Captain", RankKind.STRENGTH, count=2, value=6, glyph="🎖️"),
        RankDef("4", "Miner", RankKind.STRENGTH, count=2, value=4, glyph="⛏️",
                defuses_bombs=True),
        RankDef("2", "Scout", RankKind.STRENGTH, count=3, value=2, glyph="🏃", scout=True),
        RankDef("S", "Spy", RankKind.SPY, count=1, glyph="🕵️"),
        RankDef("B", "Bomb", RankKind.BOMB, count=2, glyph="💣"),
        RankDef("F", "Flag", RankKind.FLAG, count=1, glyph="🚩"),
    ),
)

ARMIES: dict[str, ArmyConfig] = {
    CLASSIC_ARMY.name: CLASSIC_ARMY,
    DEMO_ARMY.name: DEMO_ARMY,
}
