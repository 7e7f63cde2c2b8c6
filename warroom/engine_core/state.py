"""
Match State - The single mutable source of truth for one match.

Design principles:
- One store per engine instance (no module-level globals)
- Plain data: validation belongs to the callers
- Serializable: the battle sub-state round-trips through snapshot()
- Observable: every mutation is followed by a bus notification
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from copy import deepcopy
from enum import Enum


class MetaPhase(Enum):
    """Meta-game turn phases."""
    PLANNING = "planning"
    ACTION = "action"
    RESOLUTION = "resolution"


class BattlePhase(Enum):
    """Board game phases."""
    DEPLOYMENT = "DEPLOYMENT"
    HANDSHAKE = "HANDSHAKE"
    BATTLE = "BATTLE"
    GAME_OVER = "GAME_OVER"


class CombatOutcome(Enum):
    ATTACKER_WINS = "ATTACKER_WINS"
    DEFENDER_WINS = "DEFENDER_WINS"
    TIE = "TIE"


class CombatSpecial(Enum):
    FLAG_CAPTURED = "FLAG_CAPTURED"
    BOMB_DEFUSED = "BOMB_DEFUSED"
    BOMB_EXPLODES = "BOMB_EXPLODES"
    SPY_ASSASSINATES = "SPY_ASSASSINATES"
    SPY_LOSES = "SPY_LOSES"
    EQUAL_RANKS = "EQUAL_RANKS"


class LogKind(Enum):
    SYSTEM = "system"
    ACTION = "action"
    EVENT = "event"
    ERROR = "error"


@dataclass
class PlayerStatus:
    shielded: bool = False
    penalty_turns: int = 0


@dataclass
class Player:
    """
    A seat at the table.

    Players are never removed mid-match; `alive` is cleared instead.
    """
    player_id: int
    name: str
    role: str = ""
    alive: bool = True

    resources: int = 5
    morale: int = 50
    intel: int = 0

    status: PlayerStatus = field(default_factory=PlayerStatus)


@dataclass(frozen=True)
class Piece:
    """A piece on the board. Pieces are removed, never mutated."""
    owner_id: int
    rank: str

    def to_dict(self) -> dict[str, Any]:
        return {"owner_id": self.owner_id, "rank": self.rank}


@dataclass(frozen=True)
class CombatRecord:
    """Outcome of one attack, as logged and exposed to observers."""
    from_cell: str
    to_cell: str
    attacker: Piece
    defender: Piece
    outcome: CombatOutcome
    special: CombatSpecial | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_cell": self.from_cell,
            "to_cell": self.to_cell,
            "attacker": self.attacker.to_dict(),
            "defender": self.defender.to_dict(),
            "outcome": self.outcome.value,
            "special": self.special.value if self.special else None,
        }


@dataclass
class LogEntry:
    timestamp: str
    turn: int
    phase: MetaPhase
    kind: LogKind
    message: str
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class NetContext:
    """Server-driven match context (inactive for local/PvE play)."""
    active: bool = False
    match_id: str | None = None
    local_player_id: int | None = None
    team: str | None = None
    applied_event_ids: set[str] = field(default_factory=set)


@dataclass
class BattleState:
    """Board sub-state: deployment, handshake, battle, game over."""
    phase: BattlePhase = BattlePhase.DEPLOYMENT
    board: dict[str, Piece] = field(default_factory=dict)
    inventory: dict[int, dict[str, int]] = field(default_factory=dict)
    ready: dict[int, bool] = field(default_factory=dict)

    turn_owner_id: int | None = None
    winner_id: int | None = None
    game_over_reason: str | None = None
    last_combat: CombatRecord | None = None

    # UI-only, meaningful during BATTLE
    selected_cell: str | None = None

    pve_auto: bool = False
    computer_player_id: int | None = None

    net: NetContext = field(default_factory=NetContext)

    def pieces_of(self, player_id: int) -> dict[str, Piece]:
        return {cell: p for cell, p in self.board.items() if p.owner_id == player_id}


@dataclass
class MatchState:
    """
    Complete match state at a point in time.

    Renderers must treat this as read-only.
    """
    match_id: str
    players: list[Player] = field(default_factory=list)

    turn: int = 1
    phase: MetaPhase = MetaPhase.PLANNING
    tension: int = 10
    intel: int = 0

    active_events: list[Any] = field(default_factory=list)
    history: list[LogEntry] = field(default_factory=list)

    battle: BattleState = field(default_factory=BattleState)

    @property
    def player_ids(self) -> list[int]:
        return [p.player_id for p in self.players]

    def get_player(self, player_id: int) -> Player | None:
        """Get player by ID."""
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def seat_of(self, player_id: int) -> int | None:
        """Roster index of a player, or None if unknown."""
        for idx, p in enumerate(self.players):
            if p.player_id == player_id:
                return idx
        return None

    def next_player_id(self, player_id: int) -> int:
        """The player seated after `player_id`, wrapping around the roster."""
        seat = self.seat_of(player_id)
        if seat is None:
            raise KeyError(f"Player {player_id} is not in the roster")
        return self.players[(seat + 1) % len(self.players)].player_id

    def opponents_of(self, player_id: int) -> list[Player]:
        return [p for p in self.players if p.player_id != player_id]

    def clone(self) -> MatchState:
        """Deep copy the state."""
        return deepcopy(self)


class MatchStore:
    """
    Holder for one MatchState.

    The store never validates and never notifies; that contract belongs to
    the components that mutate it.
    """

    def __init__(self, state: MatchState):
        self._state = state

    def get_state(self) -> MatchState:
        return self._state

    def replace(self, state: MatchState):
        self._state = state

    def push_log(
        self,
        kind: LogKind,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> LogEntry:
        """Append a history entry tagged with the current turn and phase."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            turn=self._state.turn,
            phase=self._state.phase,
            kind=kind,
            message=message,
            meta=meta or {},
        )
        self._state.history.append(entry)
        return entry

    def snapshot(self) -> dict[str, Any]:
        """
        Plain-dict read model of the battle sub-state.

        The shape is exactly what reconciliation's hydrate() accepts.
        """
        battle = self._state.battle
        return {
            "phase": battle.phase.value,
            "board": {cell: piece.to_dict() for cell, piece in sorted(battle.board.items())},
            "inventory": {
                str(pid): dict(inv) for pid, inv in sorted(battle.inventory.items())
            },
            "ready": {str(pid): flag for pid, flag in sorted(battle.ready.items())},
            "turn_owner_id": battle.turn_owner_id,
            "winner_id": battle.winner_id,
            "game_over_reason": battle.game_over_reason,
            "last_combat": battle.last_combat.to_dict() if battle.last_combat else None,
        }
