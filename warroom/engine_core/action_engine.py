"""
Action Engine - The planning/action/resolution meta-game.

Phases cycle PLANNING -> ACTION -> RESOLUTION -> PLANNING. Player actions
are only legal during ACTION and cost resources; resolution draws and
applies random events.
"""

from __future__ import annotations
import logging

from .action import ActionResult, FailureCode, MetaAction, get_action, list_actions
from .component import EngineComponent
from .events import (
    MatchEvent,
    pick_random_event,
    add_resources,
    add_morale,
    add_intel,
    add_global_tension,
    add_global_intel,
)
from .state import MetaPhase, LogKind

logger = logging.getLogger(__name__)


class ActionEngine(EngineComponent):
    """Meta-game state machine."""

    def list_actions(self) -> list[MetaAction]:
        return list_actions()

    def can_act(self, player_id: int) -> ActionResult:
        """Precheck shared by every player action."""
        player = self.state.get_player(player_id)
        if not player or not player.alive:
            return self.reject("Invalid or eliminated player", FailureCode.INVALID_PLAYER)
        if self.state.phase != MetaPhase.ACTION:
            return self.reject("Actions are only allowed in the action phase", FailureCode.WRONG_PHASE)
        if player.status.penalty_turns > 0:
            return self.reject(
                f"{player.name} is penalized for {player.status.penalty_turns} more turn(s)",
                FailureCode.RULE_VIOLATION,
            )
        return ActionResult.ok()

    def advance_phase(self) -> ActionResult:
        """Step the meta-game to its next phase."""
        state = self.state

        if state.phase == MetaPhase.PLANNING:
            state.phase = MetaPhase.ACTION
            self.log(LogKind.SYSTEM, "Phase changed: action")
            changes = ["Action phase started"]

        elif state.phase == MetaPhase.ACTION:
            state.phase = MetaPhase.RESOLUTION
            self.log(LogKind.SYSTEM, "Phase changed: resolution")
            changes = ["Resolution phase started"] + self._resolve_turn()

        else:
            state.phase = MetaPhase.PLANNING
            state.turn += 1
            for player in state.players:
                if player.status.penalty_turns > 0:
                    player.status.penalty_turns -= 1
            for player in state.players:
                if player.alive:
                    add_resources(player, self.config.resource_regen)
            self.log(LogKind.SYSTEM, f"New turn #{state.turn}")
            changes = [f"Turn {state.turn} started"]

        logger.info("Match %s meta phase -> %s (turn %d)", state.match_id, state.phase.value, state.turn)
        self.notify()
        return ActionResult.ok(changes, phase=state.phase.value, turn=state.turn)

    def execute_action(
        self,
        player_id: int,
        action_id: str,
        target_id: int | None = None,
    ) -> ActionResult:
        """Spend resources on a meta-game action."""
        action = get_action(action_id)
        if not action:
            self.log(LogKind.ERROR, "Unknown action", {"action_id": action_id})
            self.notify()
            return self.reject(f"Unknown action: {action_id}", FailureCode.INVALID_INPUT)

        player = self.state.get_player(player_id)
        if not player:
            return self.reject(f"Player {player_id} not found", FailureCode.INVALID_PLAYER)

        precheck = self.can_act(player_id)
        if not precheck.success:
            return precheck

        if player.resources < action.cost:
            return self.reject(
                f"Not enough resources for {action.name} (need {action.cost}, have {player.resources})",
                FailureCode.RULE_VIOLATION,
            )

        add_resources(player, -action.cost)
        changes = self._apply_effect(action, player, target_id)

        self.log(
            LogKind.ACTION,
            f"Action executed: {action.name}",
            {"player_id": player_id, "action_id": action_id, "target_id": target_id},
        )
        self.notify()
        return ActionResult.ok(changes, action_id=action_id)

    def queue_event(self, event: MatchEvent) -> ActionResult:
        self._enqueue(event)
        self.notify()
        return ActionResult.ok([f"Event queued: {event.name}"], event_id=event.event_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_effect(self, action: MetaAction, player, target_id: int | None) -> list[str]:
        state = self.state
        if action.action_id == "RECON":
            add_intel(player, 2)
            add_global_intel(state, 1)
            return [f"{player.name} gathered intel"]

        if action.action_id == "FORTIFY":
            player.status.shielded = True
            return [f"{player.name} fortified"]

        if action.action_id == "PROPAGANDA":
            add_morale(player, 8)
            add_global_tension(state, 5)
            return [f"{player.name} spread propaganda"]

        if action.action_id == "STRIKE":
            add_global_tension(state, 10)
            target = state.get_player(target_id) if target_id is not None else None
            if target and target.alive:
                add_morale(target, -12)
                return [f"{player.name} struck {target.name}"]
            return [f"{player.name} struck without a target"]

        raise ValueError(f"No effect defined for action {action.action_id}")

    def _enqueue(self, event: MatchEvent):
        self.state.active_events.append(event)
        self.log(LogKind.EVENT, f"Event queued: {event.name}", {"id": event.event_id})

    def _resolve_turn(self) -> list[str]:
        """Draw at most one random event, apply the queue, then clear it."""
        event = pick_random_event(self.state, self.engine.rng)
        if event:
            self._enqueue(event)

        changes = []
        for queued in self.state.active_events:
            changes.extend(queued.apply(self.state))
            self.log(LogKind.EVENT, f"Event resolved: {queued.name}", {"id": queued.event_id})

        self.state.active_events = []
        return changes
