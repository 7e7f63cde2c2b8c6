"""
Reconciler - Mirrors a match whose authority is a remote server.

Every entry point here is idempotent under replay: duplicate event ids,
repeated snapshots and repeated rulings leave the state unchanged.
"""

from __future__ import annotations
from typing import Any
import logging

from .action import ActionResult, FailureCode
from .component import EngineComponent
from .state import (
    BattlePhase,
    CombatOutcome,
    CombatRecord,
    CombatSpecial,
    LogKind,
    Piece,
)

logger = logging.getLogger(__name__)

# Phases in which every piece is still in its zone or in inventory
_SETUP_PHASES = (BattlePhase.DEPLOYMENT, BattlePhase.HANDSHAKE)


class SnapshotError(ValueError):
    """A remote snapshot or record failed validation."""
    pass


class Reconciler(EngineComponent):
    """Remote-authority entry points."""

    def attach_network(
        self,
        match_id: str,
        local_player_id: int,
        team: str | None = None,
    ) -> ActionResult:
        """Mark the match as server-driven. Disables the PvE auto-turn."""
        if self.state.get_player(local_player_id) is None:
            return self.reject(f"Player {local_player_id} not found", FailureCode.INVALID_PLAYER)

        net = self.battle.net
        net.active = True
        net.match_id = match_id
        net.local_player_id = local_player_id
        net.team = team

        self.battle.pve_auto = False
        self.battle.computer_player_id = None
        self.engine.cancel_auto_turn()

        self.log(LogKind.SYSTEM, "Attached to match server", {"match_id": match_id, "team": team})
        self.notify()
        return ActionResult.ok([f"Attached to {match_id}"], match_id=match_id)

    def hydrate(self, snapshot: dict[str, Any]) -> ActionResult:
        """
        Replace the battle sub-state with a server snapshot.

        The snapshot is validated in full before anything is written; an
        invalid one leaves the state untouched.
        """
        try:
            parsed = self._parse_snapshot(snapshot)
        except SnapshotError as e:
            logger.warning("Rejected snapshot: %s", e)
            return self.reject(f"Invalid snapshot: {e}", FailureCode.INVALID_INPUT)

        self.engine.cancel_timers()

        battle = self.battle
        battle.phase = parsed["phase"]
        battle.board = parsed["board"]
        battle.inventory = parsed["inventory"]
        battle.ready = parsed["ready"]
        battle.turn_owner_id = parsed["turn_owner_id"]
        battle.winner_id = parsed["winner_id"]
        battle.game_over_reason = parsed["game_over_reason"]
        battle.last_combat = parsed["last_combat"]
        battle.selected_cell = None

        logger.info("Match %s hydrated (phase %s)", self.state.match_id, battle.phase.value)
        self.notify()
        return ActionResult.ok(["State hydrated"], phase=battle.phase.value)

    def apply_opponent_move(
        self,
        player_id: int,
        from_cell: str,
        to_cell: str,
        event_id: str | None = None,
    ) -> ActionResult:
        """Replay a remote player's move through the regular move path."""
        if self.seen(event_id):
            return ActionResult.ok(["Duplicate event ignored"], duplicate=True)

        result = self.engine.battle_machine.move(player_id, from_cell, to_cell)
        if result.success:
            self.mark(event_id)
        else:
            logger.warning("Opponent move %s -> %s rejected: %s", from_cell, to_cell, result.error)
        return result

    def apply_combat_result(
        self,
        record: dict[str, Any],
        event_id: str | None = None,
    ) -> ActionResult:
        """Apply a server-adjudicated combat as given, then flip the turn."""
        if self.seen(event_id):
            return ActionResult.ok(["Duplicate event ignored"], duplicate=True)

        try:
            combat = self._parse_combat(record)
        except SnapshotError as e:
            return self.reject(f"Invalid combat record: {e}", FailureCode.INVALID_INPUT)

        battle = self.battle
        if battle.last_combat == combat and battle.board.get(combat.from_cell) != combat.attacker:
            self.mark(event_id)
            return ActionResult.ok(["Combat already applied"], duplicate=True)

        if battle.phase == BattlePhase.GAME_OVER:
            return self.reject("The match is already over", FailureCode.ALREADY_DECIDED)
        if battle.phase != BattlePhase.BATTLE:
            return self.reject("Not in the battle phase", FailureCode.WRONG_PHASE)

        # The record must describe the board as it stands
        if battle.board.get(combat.from_cell) != combat.attacker:
            return self.reject(
                f"Combat attacker does not stand on {combat.from_cell}", FailureCode.RULE_VIOLATION
            )
        if battle.board.get(combat.to_cell) != combat.defender:
            return self.reject(
                f"Combat defender does not stand on {combat.to_cell}", FailureCode.RULE_VIOLATION
            )

        machine = self.engine.battle_machine
        battle.last_combat = combat
        self.log(LogKind.ACTION, "Combat (server)", combat.to_dict())
        machine.apply_combat_to_board(combat)
        battle.selected_cell = None

        attacker_id = combat.attacker.owner_id
        if combat.special == CombatSpecial.FLAG_CAPTURED:
            machine.declare_winner(attacker_id, "flag_captured", "Flag captured! Match over.")
        else:
            machine.end_turn(attacker_id)

        self.mark(event_id)
        self.notify()
        return ActionResult.ok(
            [f"Combat at {combat.to_cell}: {combat.outcome.value}"],
            combat=combat.to_dict(),
            turn_owner_id=battle.turn_owner_id,
            winner_id=battle.winner_id,
        )

    def force_game_over(self, winner_id: int | None, reason: str) -> ActionResult:
        """End the match on the server's ruling."""
        if winner_id is not None and self.state.get_player(winner_id) is None:
            return self.reject(f"Player {winner_id} not found", FailureCode.INVALID_PLAYER)

        battle = self.battle
        if (
            battle.phase == BattlePhase.GAME_OVER
            and battle.winner_id == winner_id
            and battle.game_over_reason == reason
        ):
            return ActionResult.ok(["Result already recorded"], duplicate=True)

        self.engine.cancel_timers()
        self.engine.battle_machine.declare_winner(winner_id, reason, f"Match over: {reason}")
        self.notify()
        return ActionResult.ok([f"Match over: {reason}"], winner_id=winner_id, reason=reason)

    def start_battle_from_server(self, turn_owner_id: int) -> ActionResult:
        """Enter BATTLE with the server's turn owner."""
        if self.state.get_player(turn_owner_id) is None:
            return self.reject(f"Player {turn_owner_id} not found", FailureCode.INVALID_PLAYER)

        battle = self.battle
        if battle.phase == BattlePhase.GAME_OVER:
            return self.reject("The match is already over", FailureCode.ALREADY_DECIDED)
        if battle.phase == BattlePhase.BATTLE and battle.turn_owner_id == turn_owner_id:
            return ActionResult.ok(["Battle already started"], duplicate=True)

        self.engine.cancel_handshake()
        if battle.phase != BattlePhase.BATTLE:
            battle.last_combat = None
        battle.phase = BattlePhase.BATTLE
        battle.turn_owner_id = turn_owner_id
        battle.selected_cell = None

        self.log(LogKind.SYSTEM, "Battle started by server", {"turn_owner_id": turn_owner_id})
        logger.info("Match %s battle started by server", self.state.match_id)
        self.notify()
        return ActionResult.ok(["Battle started"], turn_owner_id=turn_owner_id)

    def note_illegal_move(
        self,
        player_id: int | None,
        reason: str,
        event_id: str | None = None,
    ) -> ActionResult:
        """Record a rule violation the server detected. The board is untouched."""
        if self.seen(event_id):
            return ActionResult.ok(["Duplicate event ignored"], duplicate=True)

        self.mark(event_id)
        self.log(LogKind.ERROR, f"Illegal move detected: {reason}", {"player_id": player_id})
        logger.warning("Server flagged an illegal move by player %s: %s", player_id, reason)
        self.notify()
        return ActionResult.ok([f"Illegal move recorded: {reason}"], player_id=player_id)

    # =========================================================================
    # Replay tracking
    # =========================================================================

    def seen(self, event_id: str | None) -> bool:
        return event_id is not None and event_id in self.battle.net.applied_event_ids

    def mark(self, event_id: str | None):
        if event_id is not None:
            self.battle.net.applied_event_ids.add(event_id)

    # =========================================================================
    # Validation
    # =========================================================================

    def _player_id(self, value: Any, what: str, nullable: bool = True) -> int | None:
        if value is None:
            if nullable:
                return None
            raise SnapshotError(f"{what} is required")
        try:
            player_id = int(value)
        except (TypeError, ValueError):
            raise SnapshotError(f"{what} is not a player id: {value!r}")
        if self.state.get_player(player_id) is None:
            raise SnapshotError(f"{what} refers to unknown player {player_id}")
        return player_id

    def _piece(self, data: Any, what: str) -> Piece:
        if not isinstance(data, dict):
            raise SnapshotError(f"{what} must be an object")
        rank = data.get("rank")
        if not isinstance(rank, str) or rank not in self.config.army:
            raise SnapshotError(f"{what} has unknown rank {rank!r}")
        owner_id = self._player_id(data.get("owner_id"), f"{what} owner", nullable=False)
        return Piece(owner_id=owner_id, rank=rank)

    def _parse_combat(self, data: Any) -> CombatRecord:
        if not isinstance(data, dict):
            raise SnapshotError("combat record must be an object")

        geometry = self.config.geometry
        for key in ("from_cell", "to_cell"):
            coord = geometry.parse(data.get(key))
            if coord is None:
                raise SnapshotError(f"combat {key} is not a valid cell")
            if geometry.is_water(*coord):
                raise SnapshotError(f"combat {key} is a water cell")

        try:
            outcome = CombatOutcome(data.get("outcome"))
            special = CombatSpecial(data["special"]) if data.get("special") else None
        except ValueError as e:
            raise SnapshotError(str(e))

        return CombatRecord(
            from_cell=data["from_cell"],
            to_cell=data["to_cell"],
            attacker=self._piece(data.get("attacker"), "attacker"),
            defender=self._piece(data.get("defender"), "defender"),
            outcome=outcome,
            special=special,
        )

    def _parse_snapshot(self, snapshot: Any) -> dict[str, Any]:
        if not isinstance(snapshot, dict):
            raise SnapshotError("snapshot must be an object")

        try:
            phase = BattlePhase(snapshot.get("phase"))
        except ValueError:
            raise SnapshotError(f"unknown phase {snapshot.get('phase')!r}")

        geometry = self.config.geometry
        raw_board = snapshot.get("board") or {}
        if not isinstance(raw_board, dict):
            raise SnapshotError("board must be an object")
        board: dict[str, Piece] = {}
        for cell, data in raw_board.items():
            coord = geometry.parse(cell)
            if coord is None:
                raise SnapshotError(f"invalid cell {cell!r}")
            if geometry.is_water(*coord):
                raise SnapshotError(f"piece on water cell {cell}")
            piece = self._piece(data, f"piece at {cell}")
            seat = self.state.seat_of(piece.owner_id)
            if phase in _SETUP_PHASES and not geometry.in_zone(seat, coord[0]):
                raise SnapshotError(
                    f"piece at {cell} is outside player {piece.owner_id}'s deploy zone"
                )
            board[cell] = piece

        inventory = self._parse_inventory(snapshot.get("inventory"), board, phase)
        ready = self._parse_ready(snapshot.get("ready"), phase)

        turn_owner_id = self._player_id(snapshot.get("turn_owner_id"), "turn_owner_id")
        if phase == BattlePhase.BATTLE and turn_owner_id is None:
            raise SnapshotError("a battle snapshot needs a turn owner")

        winner_id = self._player_id(snapshot.get("winner_id"), "winner_id")
        if winner_id is not None and phase != BattlePhase.GAME_OVER:
            raise SnapshotError("winner set outside GAME_OVER")

        last_combat = snapshot.get("last_combat")
        return {
            "phase": phase,
            "board": board,
            "inventory": inventory,
            "ready": ready,
            "turn_owner_id": turn_owner_id,
            "winner_id": winner_id,
            "game_over_reason": snapshot.get("game_over_reason"),
            "last_combat": self._parse_combat(last_combat) if last_combat else None,
        }

    def _parse_inventory(
        self,
        raw: Any,
        board: dict[str, Piece],
        phase: BattlePhase,
    ) -> dict[int, dict[str, int]]:
        """
        Ranks the snapshot omits are derived from the board as army count
        minus pieces placed. Before the battle no piece has been captured,
        so every rank must add up to the army count exactly.
        """
        army = self.config.army
        if raw is not None and not isinstance(raw, dict):
            raise SnapshotError("inventory must be an object")

        given: dict[int, dict[str, int]] = {pid: {} for pid in self.state.player_ids}
        for key, counts in (raw or {}).items():
            pid = self._player_id(key, "inventory key", nullable=False)
            if not isinstance(counts, dict):
                raise SnapshotError(f"inventory of player {pid} must be an object")
            for code, count in counts.items():
                if not isinstance(code, str) or code not in army:
                    raise SnapshotError(f"inventory has unknown rank {code!r}")
                if not isinstance(count, int) or count < 0 or count > army.get(code).count:
                    raise SnapshotError(f"inventory count for {code} out of range: {count!r}")
                given[pid][code] = count

        inventory = {}
        for pid in self.state.player_ids:
            placed = {code: 0 for code in army.codes}
            for piece in board.values():
                if piece.owner_id == pid:
                    placed[piece.rank] += 1

            counts = {}
            for rank in army.ranks:
                if placed[rank.code] > rank.count:
                    raise SnapshotError(
                        f"player {pid} has {placed[rank.code]} pieces of rank {rank.code}, "
                        f"the army has {rank.count}"
                    )
                left = given[pid].get(rank.code, rank.count - placed[rank.code])
                if phase in _SETUP_PHASES and left + placed[rank.code] != rank.count:
                    raise SnapshotError(
                        f"player {pid} rank {rank.code}: {left} in inventory and "
                        f"{placed[rank.code]} on the board, the army has {rank.count}"
                    )
                counts[rank.code] = left
            inventory[pid] = counts
        return inventory

    def _parse_ready(self, raw: Any, phase: BattlePhase) -> dict[int, bool]:
        if raw is None:
            flag = phase != BattlePhase.DEPLOYMENT
            return {pid: flag for pid in self.state.player_ids}
        if not isinstance(raw, dict):
            raise SnapshotError("ready must be an object")
        ready = {pid: False for pid in self.state.player_ids}
        for key, flag in raw.items():
            ready[self._player_id(key, "ready key", nullable=False)] = bool(flag)
        return ready
