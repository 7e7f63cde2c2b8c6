"""
Shared plumbing for the engine's components.

Each component (meta-game, deployment, battle, reconciliation) reaches the
store, bus, config and timers through the engine that owns it.
"""

from __future__ import annotations
from typing import TYPE_CHECKING
import logging

from .action import ActionResult, FailureCode
from .state import MatchState, BattleState, LogKind

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)


class EngineComponent:
    """Base class for engine components."""

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self) -> MatchState:
        return self.engine.store.get_state()

    @property
    def battle(self) -> BattleState:
        return self.state.battle

    @property
    def config(self):
        return self.engine.config

    def log(self, kind: LogKind, message: str, meta: dict | None = None):
        self.engine.store.push_log(kind, message, meta)

    def notify(self):
        self.engine.bus.notify()

    def reject(self, error: str, code: FailureCode) -> ActionResult:
        """Build a failure result; rejected operations are routine, so DEBUG only."""
        logger.debug("%s rejected (%s): %s", type(self).__name__, code.value, error)
        return ActionResult.failure(error, code)
