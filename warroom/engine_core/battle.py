"""
Battle State Machine - Moves, combat, turn order and win detection.

BATTLE alternates turns along the roster after every completed move.
GAME_OVER is terminal: flag capture, stalemate (the next player has no
legal move) or a remote ruling.
"""

from __future__ import annotations
import logging

from . import rules
from .action import ActionResult, FailureCode
from .component import EngineComponent
from .state import BattlePhase, CombatOutcome, CombatRecord, CombatSpecial, LogKind

logger = logging.getLogger(__name__)


class BattleMachine(EngineComponent):
    """Battle-phase entry points."""

    # =========================================================================
    # Queries
    # =========================================================================

    def legal_moves(self, player_id: int) -> list[rules.Move]:
        return rules.legal_moves(
            self.battle.board, self.config.geometry, self.config.army, player_id
        )

    def has_any_legal_move(self, player_id: int) -> bool:
        return rules.has_any_legal_move(
            self.battle.board, self.config.geometry, self.config.army, player_id
        )

    def legal_targets(self, player_id: int, from_cell: str) -> list[str]:
        """Destinations to highlight; empty unless it is the player's turn."""
        battle = self.battle
        if battle.phase != BattlePhase.BATTLE or battle.winner_id is not None:
            return []
        if battle.turn_owner_id != player_id:
            return []
        return rules.legal_targets(
            battle.board, self.config.geometry, self.config.army, player_id, from_cell
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    def select_cell(self, player_id: int, cell: str | None) -> ActionResult:
        """Set or clear the UI selection. Never touches the board."""
        error = self._turn_precheck(player_id)
        if error:
            return error

        battle = self.battle
        if cell is None:
            battle.selected_cell = None
            self.notify()
            return ActionResult.ok(["Selection cleared"], selected_cell=None)

        if self.config.geometry.parse(cell) is None:
            return self.reject(f"Invalid cell: {cell}", FailureCode.INVALID_INPUT)
        piece = battle.board.get(cell)
        if piece is None:
            return self.reject("No piece there", FailureCode.RULE_VIOLATION)
        if piece.owner_id != player_id:
            return self.reject("You can only select your own pieces", FailureCode.RULE_VIOLATION)
        if not self.config.army.is_movable(piece.rank):
            return self.reject("That piece cannot move", FailureCode.RULE_VIOLATION)

        battle.selected_cell = cell
        self.notify()
        return ActionResult.ok([f"Selected {cell}"], selected_cell=cell)

    def move(self, player_id: int, from_cell: str, to_cell: str) -> ActionResult:
        """Move a piece, resolving combat if the destination holds an enemy."""
        error = self._turn_precheck(player_id)
        if error:
            return error

        geometry = self.config.geometry
        if geometry.parse(from_cell) is None or geometry.parse(to_cell) is None:
            return self.reject("Invalid cell", FailureCode.INVALID_INPUT)

        reason = rules.check_move(
            self.battle.board, geometry, self.config.army, player_id, from_cell, to_cell
        )
        if reason:
            return self.reject(reason, FailureCode.RULE_VIOLATION)

        result = self._apply_move(player_id, from_cell, to_cell)
        self.notify()
        return result

    # =========================================================================
    # Internals (no notification)
    # =========================================================================

    def _turn_precheck(self, player_id: int) -> ActionResult | None:
        battle = self.battle
        if self.state.get_player(player_id) is None:
            return self.reject(f"Player {player_id} not found", FailureCode.INVALID_PLAYER)
        if battle.phase == BattlePhase.GAME_OVER or battle.winner_id is not None:
            return self.reject("The match is already over", FailureCode.ALREADY_DECIDED)
        if battle.phase != BattlePhase.BATTLE:
            return self.reject("Not in the battle phase", FailureCode.WRONG_PHASE)
        if battle.turn_owner_id != player_id:
            return self.reject("It is not your turn", FailureCode.WRONG_TURN)
        return None

    def _apply_move(self, player_id: int, from_cell: str, to_cell: str) -> ActionResult:
        """Apply an already validated move."""
        battle = self.battle
        board = battle.board
        moving = board[from_cell]
        target = board.get(to_cell)

        if target is None:
            del board[from_cell]
            board[to_cell] = moving
            changes = [f"Moved {from_cell} -> {to_cell}"]
            record = None
        else:
            combat = rules.resolve_combat(moving.rank, target.rank, self.config.army)
            record = CombatRecord(
                from_cell=from_cell,
                to_cell=to_cell,
                attacker=moving,
                defender=target,
                outcome=combat.outcome,
                special=combat.special,
            )
            battle.last_combat = record
            self.log(LogKind.ACTION, "Combat", record.to_dict())
            self.apply_combat_to_board(record)
            changes = [f"Combat at {to_cell}: {combat.outcome.value}"]

            if combat.special == CombatSpecial.FLAG_CAPTURED:
                battle.selected_cell = None
                self.declare_winner(player_id, "flag_captured", "Flag captured! Match over.")
                return ActionResult.ok(changes, combat=record.to_dict(), winner_id=player_id)

        battle.selected_cell = None
        self.end_turn(player_id)
        changes.extend(self._post_turn_checks(player_id))

        data = {"turn_owner_id": battle.turn_owner_id, "winner_id": battle.winner_id}
        if record:
            data["combat"] = record.to_dict()
        return ActionResult.ok(changes, **data)

    def apply_combat_to_board(self, record: CombatRecord):
        """Remove losers and seat a winning attacker, per the record's outcome."""
        board = self.battle.board
        board.pop(record.from_cell, None)
        if record.outcome == CombatOutcome.ATTACKER_WINS:
            board[record.to_cell] = record.attacker
        elif record.outcome == CombatOutcome.DEFENDER_WINS:
            board[record.to_cell] = record.defender
        else:
            board.pop(record.to_cell, None)

    def end_turn(self, mover_id: int):
        """Hand the turn to the next seat and advance the turn counter."""
        self.battle.turn_owner_id = self.state.next_player_id(mover_id)
        self.state.turn += 1

    def declare_winner(self, winner_id: int | None, reason: str, message: str):
        battle = self.battle
        battle.winner_id = winner_id
        battle.game_over_reason = reason
        battle.phase = BattlePhase.GAME_OVER
        battle.selected_cell = None
        self.engine.cancel_auto_turn()
        self.log(LogKind.SYSTEM, message, {"winner_id": winner_id, "reason": reason})
        logger.info("Match %s over: winner=%s reason=%s", self.state.match_id, winner_id, reason)

    def _post_turn_checks(self, mover_id: int) -> list[str]:
        """Stalemate check for the incoming player, then the PvE hook."""
        next_id = self.battle.turn_owner_id
        if not self.has_any_legal_move(next_id):
            self.declare_winner(mover_id, "stalemate", "Victory: the opponent has no legal moves")
            return [f"Player {mover_id} wins by stalemate"]
        self.maybe_schedule_auto_turn()
        return []

    def maybe_schedule_auto_turn(self):
        """
        Arrange the computer player's move, if it is their turn.

        Does not notify; callers notify once after their own mutation.
        """
        battle = self.battle
        if not self._auto_turn_due():
            return

        computer_id = battle.computer_player_id
        if not self.has_any_legal_move(computer_id):
            self.declare_winner(
                self.state.next_player_id(computer_id),
                "stalemate",
                "Victory: the computer player has no legal moves",
            )
            return

        self.engine.schedule_auto_turn()

    def run_auto_turn(self) -> ActionResult | None:
        """Auto-turn timer target: pick a move with the policy and play it."""
        if not self._auto_turn_due():
            return None
        computer_id = self.battle.computer_player_id
        moves = self.legal_moves(computer_id)
        if not moves:
            self.declare_winner(
                self.state.next_player_id(computer_id),
                "stalemate",
                "Victory: the computer player has no legal moves",
            )
            self.notify()
            return None

        decision = self.engine.policy.select_move(self.state, moves)
        logger.debug("Computer player %d plays %s", computer_id, decision.explanation)
        return self.move(computer_id, decision.move.from_cell, decision.move.to_cell)

    def _auto_turn_due(self) -> bool:
        battle = self.battle
        return (
            self.engine.policy is not None
            and battle.pve_auto
            and battle.phase == BattlePhase.BATTLE
            and battle.winner_id is None
            and battle.computer_player_id is not None
            and battle.turn_owner_id == battle.computer_player_id
        )
