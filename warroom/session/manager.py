"""
Session Manager - Creates and manages match sessions.

LIFECYCLE:
1. A client creates a session: one MatchEngine per match
2. LOCAL: both seats are driven by clients (hot-seat)
   PVE: the second seat is the computer player (auto-filled on ready)
   REMOTE: a match server is the authority; its events arrive through
   the session's RemoteEventBridge
3. Match ends -> the session stays readable until it is ended or
   cleaned up as stale

PERSISTENCE RULES:
- No database; sessions are in-memory only
- The only artifact a client may keep is an exported deployment
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence
import logging
import time

from ..engine_core.config import MatchConfig
from ..engine_core.engine import MatchEngine
from ..engine_core.scheduler import Scheduler, VirtualScheduler
from ..engine_core.state import BattlePhase
from ..bots import MovePolicy, RandomMovePolicy, FirstLegalPolicy, GreedyMovePolicy
from .bridge import RemoteEventBridge

logger = logging.getLogger(__name__)


class MatchMode(Enum):
    """Who drives the seats of a match."""
    LOCAL = "local"
    PVE = "pve"
    REMOTE = "remote"


POLICY_NAMES = ("random", "first", "greedy")


def create_policy(name: str, config: MatchConfig, seed: int | None = None) -> MovePolicy:
    """Build a computer-player policy by name."""
    if name == "random":
        return RandomMovePolicy(seed=seed)
    if name == "first":
        return FirstLegalPolicy()
    if name == "greedy":
        return GreedyMovePolicy(army=config.army, seed=seed)
    raise ValueError(f"Unknown policy '{name}', expected one of {POLICY_NAMES}")


@dataclass
class Session:
    """
    An in-memory match session.

    Contains:
    - The match engine (the single source of truth)
    - The remote bridge, for REMOTE sessions
    - Session metadata
    """
    session_id: str
    engine: MatchEngine
    mode: MatchMode
    created_at: float
    last_activity: float = 0.0

    bridge: RemoteEventBridge | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def touch(self):
        self.last_activity = time.time()

    def is_active(self) -> bool:
        """Check if the match is still being played."""
        return self.engine.get_state().battle.phase != BattlePhase.GAME_OVER


class SessionManager:
    """
    Manages match sessions.

    Responsibilities:
    - Create sessions with the right engine wiring per mode
    - Track sessions by id
    - Clean up ended and stale sessions
    """

    def __init__(self, scheduler_factory: Callable[[], Scheduler] = VirtualScheduler):
        self._sessions: dict[str, Session] = {}
        self._scheduler_factory = scheduler_factory

    def create_session(
        self,
        players: Sequence[tuple[str, str]],
        mode: MatchMode = MatchMode.PVE,
        config: MatchConfig | None = None,
        seed: int | None = None,
        policy: str = "random",
        network: dict[str, Any] | None = None,
    ) -> Session:
        """
        Create a new match session.

        Args:
            players: Roster in seat order as (name, role) pairs
            mode: LOCAL, PVE or REMOTE
            config: Match configuration (defaults to MatchConfig.from_env())
            seed: Seed for deployment shuffles, events and the policy
            policy: Computer-player policy name (PVE only)
            network: REMOTE only: {"match_id", "local_player_id", "team"}

        Returns:
            New Session in the deployment phase
        """
        config = config or MatchConfig.from_env()
        move_policy = create_policy(policy, config, seed) if mode == MatchMode.PVE else None

        engine = MatchEngine.create(
            players,
            config=config,
            seed=seed,
            scheduler=self._scheduler_factory(),
            policy=move_policy,
        )

        session = Session(
            session_id=engine.match_id,
            engine=engine,
            mode=mode,
            created_at=time.time(),
        )
        session.touch()

        if mode == MatchMode.REMOTE:
            network = network or {}
            result = engine.attach_network(
                match_id=network.get("match_id") or engine.match_id,
                local_player_id=network.get("local_player_id", 1),
                team=network.get("team"),
            )
            if not result:
                raise ValueError(result.error)
            session.bridge = RemoteEventBridge(engine)

        self._sessions[session.session_id] = session
        logger.info("Session %s created (%s)", session.session_id, mode.value)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        session = self._sessions.get(session_id)
        if session:
            session.touch()
        return session

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """
        End a session and drop it from memory.

        Pending timers are cancelled so nothing fires for a dead match.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.engine.cancel_timers()
        logger.info("Session %s ended (%s)", session_id, reason)
        return True

    def list_sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def list_active_sessions(self) -> list[str]:
        """List IDs of sessions whose match is not over."""
        return [sid for sid, session in self._sessions.items() if session.is_active()]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """
        Drop sessions idle for longer than max_age.

        Returns the number of sessions removed.
        """
        current_time = time.time()
        stale = [
            sid for sid, session in self._sessions.items()
            if current_time - session.last_activity > max_age_seconds
        ]
        for session_id in stale:
            self.end_session(session_id, reason="stale")
        return len(stale)
