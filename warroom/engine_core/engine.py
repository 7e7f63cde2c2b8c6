"""
Match Engine - One object per match.

The engine owns the store, the notification bus, the scheduler, the move
policy and a re-entrant lock. Every public entry point runs under the
lock, mutates the store through a component and notifies the bus once.
Collaborators (renderers, the API, the remote bridge) only ever talk to
this facade.
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, Sequence
import logging
import random
import threading
import uuid

from .action import ActionResult, MetaAction
from .action_engine import ActionEngine
from .battle import BattleMachine
from .bus import NotificationBus, Subscriber
from .config import MatchConfig
from .deployment import DeploymentManager
from .events import MatchEvent
from .reconcile import Reconciler
from .rules import Move
from .scheduler import Scheduler, TimerHandle, VirtualScheduler
from .state import BattleState, LogKind, MatchState, MatchStore, Player

logger = logging.getLogger(__name__)

_DEFAULT_POLICY = object()


def _locked(method: Callable) -> Callable:
    """Run an engine method under the engine lock."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class MatchEngine:
    """
    Authoritative game-state engine for one match.

    Usage:
        engine = MatchEngine.create([("Alice", "challenger"), ("Bob", "defender")])
        engine.subscribe(render)
        engine.randomize_deployment(1)
        engine.set_ready(1, auto_fill_opponent=True)
    """

    def __init__(
        self,
        state: MatchState,
        config: MatchConfig | None = None,
        seed: int | None = None,
        scheduler: Scheduler | None = None,
        policy: Any = _DEFAULT_POLICY,
    ):
        self.config = config or MatchConfig()
        self.store = MatchStore(state)
        self.bus = NotificationBus(self.store.get_state)
        self.rng = random.Random(seed)
        self.scheduler = scheduler or VirtualScheduler()

        if policy is _DEFAULT_POLICY:
            from ..bots.policy import RandomMovePolicy
            policy = RandomMovePolicy(seed=seed)
        self.policy = policy

        self._lock = threading.RLock()
        self._handshake_timer: TimerHandle | None = None
        self._auto_turn_timer: TimerHandle | None = None

        self.action_engine = ActionEngine(self)
        self.deployment = DeploymentManager(self)
        self.battle_machine = BattleMachine(self)
        self.reconciler = Reconciler(self)

    @classmethod
    def create(
        cls,
        players: Sequence[tuple[str, str]],
        config: MatchConfig | None = None,
        seed: int | None = None,
        scheduler: Scheduler | None = None,
        policy: Any = _DEFAULT_POLICY,
        match_id: str | None = None,
    ) -> MatchEngine:
        """
        Create a fresh match.

        `players` is the roster in seat order as (name, role) pairs; ids are
        assigned 1..N. The first seat is the challenger and opens the battle.
        """
        if len(players) < 2:
            raise ValueError("A match needs at least two players")

        config = config or MatchConfig()
        if len(players) > len(config.geometry.deploy_rows):
            raise ValueError(
                f"Board geometry has {len(config.geometry.deploy_rows)} deploy zones, "
                f"got {len(players)} players"
            )

        roster = [
            Player(
                player_id=idx + 1,
                name=name,
                role=role,
                resources=config.starting_resources,
                morale=config.starting_morale,
            )
            for idx, (name, role) in enumerate(players)
        ]
        state = MatchState(
            match_id=match_id or str(uuid.uuid4())[:8],
            players=roster,
            tension=config.starting_tension,
            battle=_fresh_battle(roster, config),
        )

        engine = cls(state, config=config, seed=seed, scheduler=scheduler, policy=policy)
        engine.store.push_log(LogKind.SYSTEM, "Match started", {"players": [p.name for p in roster]})
        logger.info("Match %s created with %d players", state.match_id, len(roster))
        return engine

    # =========================================================================
    # Read model
    # =========================================================================

    @property
    def match_id(self) -> str:
        return self.store.get_state().match_id

    def get_state(self) -> MatchState:
        """Current state. Callers must treat it as read-only."""
        return self.store.get_state()

    @_locked
    def snapshot(self) -> dict[str, Any]:
        return self.store.snapshot()

    @_locked
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.bus.subscribe(callback)

    @_locked
    def legal_targets(self, player_id: int, from_cell: str) -> list[str]:
        return self.battle_machine.legal_targets(player_id, from_cell)

    @_locked
    def legal_moves(self, player_id: int) -> list[Move]:
        return self.battle_machine.legal_moves(player_id)

    @_locked
    def has_any_legal_move(self, player_id: int) -> bool:
        return self.battle_machine.has_any_legal_move(player_id)

    @_locked
    def count_inventory_left(self, player_id: int) -> int:
        return self.deployment.count_inventory_left(player_id)

    @_locked
    def export_deployment(self, player_id: int) -> dict[str, dict[str, str]]:
        return self.deployment.export_deployment(player_id)

    def list_actions(self) -> list[MetaAction]:
        return self.action_engine.list_actions()

    @_locked
    def can_act(self, player_id: int) -> ActionResult:
        return self.action_engine.can_act(player_id)

    # =========================================================================
    # Meta-game
    # =========================================================================

    @_locked
    def advance_phase(self) -> ActionResult:
        return self.action_engine.advance_phase()

    @_locked
    def execute_action(self, player_id: int, action_id: str, target_id: int | None = None) -> ActionResult:
        return self.action_engine.execute_action(player_id, action_id, target_id)

    @_locked
    def queue_event(self, event: MatchEvent) -> ActionResult:
        return self.action_engine.queue_event(event)

    # =========================================================================
    # Deployment
    # =========================================================================

    @_locked
    def place_from_inventory(self, player_id: int, rank: str, target_cell: str) -> ActionResult:
        return self.deployment.place_from_inventory(player_id, rank, target_cell)

    @_locked
    def move_or_swap_within_deployment(self, player_id: int, from_cell: str, to_cell: str) -> ActionResult:
        return self.deployment.move_or_swap(player_id, from_cell, to_cell)

    @_locked
    def clear_deployment(self, player_id: int) -> ActionResult:
        return self.deployment.clear_deployment(player_id)

    @_locked
    def randomize_deployment(self, player_id: int) -> ActionResult:
        return self.deployment.randomize_deployment(player_id)

    @_locked
    def import_deployment(self, player_id: int, data: dict[str, Any]) -> ActionResult:
        return self.deployment.import_deployment(player_id, data)

    @_locked
    def set_ready(self, player_id: int, auto_fill_opponent: bool = False) -> ActionResult:
        return self.deployment.set_ready(player_id, auto_fill_opponent)

    # =========================================================================
    # Battle
    # =========================================================================

    @_locked
    def select_cell(self, player_id: int, cell: str | None) -> ActionResult:
        return self.battle_machine.select_cell(player_id, cell)

    @_locked
    def move(self, player_id: int, from_cell: str, to_cell: str) -> ActionResult:
        return self.battle_machine.move(player_id, from_cell, to_cell)

    @_locked
    def reset_battle(self, clear_history: bool = False, event_id: str | None = None) -> ActionResult:
        """Re-initialize the battle sub-state for a rematch. A replayed event id is a no-op."""
        if self.reconciler.seen(event_id):
            return ActionResult.ok(["Duplicate event ignored"], duplicate=True)

        self.cancel_timers()
        state = self.store.get_state()
        previous = state.battle
        state.battle = _fresh_battle(state.players, self.config)
        state.battle.net = previous.net
        self.reconciler.mark(event_id)
        if clear_history:
            state.history = []

        self.store.push_log(LogKind.SYSTEM, "Battle reset")
        logger.info("Match %s battle reset", state.match_id)
        self.bus.notify()
        return ActionResult.ok(["Battle reset"], clear_history=clear_history)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @_locked
    def attach_network(self, match_id: str, local_player_id: int, team: str | None = None) -> ActionResult:
        return self.reconciler.attach_network(match_id, local_player_id, team)

    @_locked
    def hydrate(self, snapshot: dict[str, Any]) -> ActionResult:
        return self.reconciler.hydrate(snapshot)

    @_locked
    def apply_opponent_move(
        self,
        player_id: int,
        from_cell: str,
        to_cell: str,
        event_id: str | None = None,
    ) -> ActionResult:
        return self.reconciler.apply_opponent_move(player_id, from_cell, to_cell, event_id)

    @_locked
    def apply_combat_result(self, record: dict[str, Any], event_id: str | None = None) -> ActionResult:
        return self.reconciler.apply_combat_result(record, event_id)

    @_locked
    def force_game_over(self, winner_id: int | None, reason: str) -> ActionResult:
        return self.reconciler.force_game_over(winner_id, reason)

    @_locked
    def start_battle_from_server(self, turn_owner_id: int) -> ActionResult:
        return self.reconciler.start_battle_from_server(turn_owner_id)

    @_locked
    def note_illegal_move(
        self,
        player_id: int | None,
        reason: str,
        event_id: str | None = None,
    ) -> ActionResult:
        return self.reconciler.note_illegal_move(player_id, reason, event_id)

    # =========================================================================
    # Timers
    # =========================================================================

    def schedule_handshake(self):
        """Start the handshake countdown, replacing any pending one."""
        self.cancel_handshake()
        self._handshake_timer = self.scheduler.call_later(
            self.config.handshake_delay, self._on_handshake
        )

    def cancel_handshake(self):
        if self._handshake_timer is not None:
            self._handshake_timer.cancel()
            self._handshake_timer = None

    def schedule_auto_turn(self):
        self.cancel_auto_turn()
        self._auto_turn_timer = self.scheduler.call_later(
            self.config.auto_turn_delay, self._on_auto_turn
        )

    def cancel_auto_turn(self):
        if self._auto_turn_timer is not None:
            self._auto_turn_timer.cancel()
            self._auto_turn_timer = None

    def cancel_timers(self):
        self.cancel_handshake()
        self.cancel_auto_turn()

    @property
    def pending_timers(self) -> int:
        return sum(1 for t in (self._handshake_timer, self._auto_turn_timer) if t is not None)

    @_locked
    def _on_handshake(self):
        self._handshake_timer = None
        self.deployment.begin_battle()

    @_locked
    def _on_auto_turn(self):
        self._auto_turn_timer = None
        self.battle_machine.run_auto_turn()


def _fresh_battle(players: Sequence[Player], config: MatchConfig) -> BattleState:
    return BattleState(
        inventory={p.player_id: config.army.fresh_inventory() for p in players},
        ready={p.player_id: False for p in players},
        turn_owner_id=players[0].player_id,
    )
