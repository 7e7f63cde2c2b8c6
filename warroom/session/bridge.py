"""
Remote Event Bridge - Maps match-server events onto the engine.

The match server pushes envelopes of the form

    {"event": "opponent_moved", "payload": {"playerId": 2, "from": ..., ...}}

("type" is accepted in place of "event", and a bare payload in place of
the envelope). Keys arrive in camelCase and are normalised to snake_case
before dispatch. The bridge never adjudicates anything itself.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Any, Callable
import logging
import re

from ..engine_core.action import ActionResult, FailureCode

if TYPE_CHECKING:
    from ..engine_core.engine import MatchEngine

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(key: str) -> str:
    """turnOwnerId -> turn_owner_id. Rank codes and cell keys pass through."""
    return _CAMEL_RE.sub(lambda m: "_" + m.group(1).lower(), key)


def normalize_keys(value: Any) -> Any:
    """Recursively convert dict keys to snake_case."""
    if isinstance(value, dict):
        return {
            snake_case(k) if isinstance(k, str) else k: normalize_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [normalize_keys(v) for v in value]
    return value


class RemoteEventBridge:
    """Dispatches server envelopes to reconciliation entry points."""

    def __init__(self, engine: MatchEngine):
        self.engine = engine
        self._handlers: dict[str, Callable[[dict[str, Any]], ActionResult]] = {
            "match_started": self._on_match_started,
            "match_state": self._on_match_state,
            "opponent_moved": self._on_opponent_moved,
            "combat_result": self._on_combat_result,
            "illegal_move_detected": self._on_illegal_move,
            "game_over": self._on_game_over,
            "match_cancelled": self._on_match_cancelled,
            "rematch_started": self._on_rematch_started,
        }

    @property
    def event_names(self) -> list[str]:
        return sorted(self._handlers)

    def handle(self, envelope: dict[str, Any]) -> ActionResult:
        """Dispatch one envelope. Unknown or malformed events are refused."""
        if not isinstance(envelope, dict):
            return self._drop("Envelope must be an object", envelope)

        name = envelope.get("event") or envelope.get("type")
        handler = self._handlers.get(name) if isinstance(name, str) else None
        if handler is None:
            return self._drop(f"Unknown event: {name}", envelope)

        payload = envelope.get("payload")
        if payload is None:
            payload = {k: v for k, v in envelope.items() if k not in ("event", "type")}
        if not isinstance(payload, dict):
            return self._drop(f"Payload of {name} must be an object", envelope)

        try:
            return handler(normalize_keys(payload))
        except (KeyError, TypeError, ValueError) as e:
            return self._drop(f"Malformed {name} payload: {e}", envelope)

    # =========================================================================
    # Handlers
    # =========================================================================

    def _on_match_started(self, payload: dict[str, Any]) -> ActionResult:
        snapshot = payload.get("state") or payload.get("snapshot")
        if snapshot:
            result = self.engine.hydrate(snapshot)
            if not result:
                return result
        return self.engine.start_battle_from_server(int(payload["turn_owner_id"]))

    def _on_match_state(self, payload: dict[str, Any]) -> ActionResult:
        return self.engine.hydrate(payload.get("state") or payload.get("snapshot") or payload)

    def _on_opponent_moved(self, payload: dict[str, Any]) -> ActionResult:
        return self.engine.apply_opponent_move(
            int(payload["player_id"]),
            payload.get("from") or payload["from_cell"],
            payload.get("to") or payload["to_cell"],
            event_id=payload.get("event_id"),
        )

    def _on_combat_result(self, payload: dict[str, Any]) -> ActionResult:
        record = {
            "from_cell": payload.get("from_cell") or payload.get("from"),
            "to_cell": payload.get("to_cell") or payload.get("to"),
            "attacker": payload.get("attacker"),
            "defender": payload.get("defender"),
            "outcome": payload.get("outcome"),
            "special": payload.get("special"),
        }
        return self.engine.apply_combat_result(record, event_id=payload.get("event_id"))

    def _on_illegal_move(self, payload: dict[str, Any]) -> ActionResult:
        player_id = payload.get("player_id")
        return self.engine.note_illegal_move(
            int(player_id) if player_id is not None else None,
            payload.get("reason") or "unspecified",
            event_id=payload.get("event_id"),
        )

    def _on_game_over(self, payload: dict[str, Any]) -> ActionResult:
        winner_id = payload.get("winner_id")
        return self.engine.force_game_over(
            int(winner_id) if winner_id is not None else None,
            payload.get("reason") or "server",
        )

    def _on_match_cancelled(self, payload: dict[str, Any]) -> ActionResult:
        return self.engine.force_game_over(None, "cancelled")

    def _on_rematch_started(self, payload: dict[str, Any]) -> ActionResult:
        return self.engine.reset_battle(event_id=payload.get("event_id"))

    def _drop(self, error: str, envelope: Any) -> ActionResult:
        logger.warning("Dropped remote event: %s (%r)", error, envelope)
        return ActionResult.failure(error, FailureCode.INVALID_INPUT)
