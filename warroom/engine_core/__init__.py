"""
Engine Core - Authoritative state management for one match.

The engine is the runtime that:
1. Holds the match state in a single store
2. Runs the planning/action/resolution meta-game
3. Manages deployment and the readiness handshake
4. Adjudicates moves and combat during the battle
5. Reconciles against a remote authority
6. Notifies observers after every mutation
"""

from .army import ArmyConfig, RankDef, RankKind, CLASSIC_ARMY, DEMO_ARMY, ARMIES
from .board import BoardGeometry, DEFAULT_GEOMETRY, cell_key, parse_cell_key
from .config import MatchConfig
from .state import (
    MatchState,
    BattleState,
    Player,
    Piece,
    CombatRecord,
    MetaPhase,
    BattlePhase,
    CombatOutcome,
    CombatSpecial,
    LogKind,
    MatchStore,
)
from .action import ActionResult, FailureCode, MetaAction
from .rules import Move, resolve_combat, check_move, legal_moves
from .bus import NotificationBus
from .scheduler import Scheduler, VirtualScheduler, AsyncioScheduler
from .engine import MatchEngine

__all__ = [
    "ArmyConfig",
    "RankDef",
    "RankKind",
    "CLASSIC_ARMY",
    "DEMO_ARMY",
    "ARMIES",
    "BoardGeometry",
    "DEFAULT_GEOMETRY",
    "cell_key",
    "parse_cell_key",
    "MatchConfig",
    "MatchState",
    "BattleState",
    "Player",
    "Piece",
    "CombatRecord",
    "MetaPhase",
    "BattlePhase",
    "CombatOutcome",
    "CombatSpecial",
    "LogKind",
    "MatchStore",
    "ActionResult",
    "FailureCode",
    "MetaAction",
    "Move",
    "resolve_combat",
    "check_move",
    "legal_moves",
    "NotificationBus",
    "Scheduler",
    "VirtualScheduler",
    "AsyncioScheduler",
    "MatchEngine",
]
