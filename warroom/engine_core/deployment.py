"""
Deployment Manager - Inventory-backed placement before the battle.

Invariant while in DEPLOYMENT, for every player and rank:
    inventory[rank] + pieces on board of that rank == army count
"""

from __future__ import annotations
from typing import Any
import logging

from .action import ActionResult, FailureCode
from .component import EngineComponent
from .state import BattlePhase, LogKind, Piece

logger = logging.getLogger(__name__)


class DeploymentManager(EngineComponent):
    """Placement, rearrangement and the readiness handshake."""

    def count_inventory_left(self, player_id: int) -> int:
        return sum(self.battle.inventory.get(player_id, {}).values())

    def place_from_inventory(self, player_id: int, rank: str, target_cell: str) -> ActionResult:
        """Take one piece of `rank` from the inventory and put it on `target_cell`."""
        error = self._precheck(player_id)
        if error:
            return error
        if rank not in self.config.army:
            return self.reject(f"Unknown rank: {rank}", FailureCode.INVALID_INPUT)

        error = self._check_zone_cell(player_id, target_cell)
        if error:
            return error
        if target_cell in self.battle.board:
            return self.reject("Cell is occupied", FailureCode.RULE_VIOLATION)

        inventory = self.battle.inventory[player_id]
        if inventory.get(rank, 0) <= 0:
            return self.reject("No pieces of that rank left", FailureCode.RULE_VIOLATION)

        inventory[rank] -= 1
        self.battle.board[target_cell] = Piece(owner_id=player_id, rank=rank)
        self.notify()
        return ActionResult.ok(
            [f"Player {player_id} placed {rank} on {target_cell}"],
            remaining=self.count_inventory_left(player_id),
        )

    def move_or_swap(self, player_id: int, from_cell: str, to_cell: str) -> ActionResult:
        """Relocate a deployed piece, swapping with a friendly piece if needed."""
        error = self._precheck(player_id)
        if error:
            return error

        geometry = self.config.geometry
        origin = geometry.parse(from_cell)
        dest = geometry.parse(to_cell)
        if origin is None or dest is None:
            return self.reject("Invalid cell", FailureCode.INVALID_INPUT)
        if geometry.is_water(*dest):
            return self.reject("Cannot move into the lake", FailureCode.RULE_VIOLATION)

        seat = self.state.seat_of(player_id)
        if not geometry.in_zone(seat, origin[0]):
            return self.reject("Origin is outside your deploy zone", FailureCode.RULE_VIOLATION)
        if not geometry.in_zone(seat, dest[0]):
            return self.reject("Destination is outside your deploy zone", FailureCode.RULE_VIOLATION)

        board = self.battle.board
        moving = board.get(from_cell)
        if moving is None:
            return self.reject("No piece on the origin cell", FailureCode.RULE_VIOLATION)
        if moving.owner_id != player_id:
            return self.reject("You can only move your own pieces", FailureCode.RULE_VIOLATION)

        target = board.get(to_cell)
        if target is None:
            del board[from_cell]
            board[to_cell] = moving
            change = f"Moved {moving.rank} from {from_cell} to {to_cell}"
        elif target.owner_id != player_id:
            return self.reject("Cannot swap with an enemy piece", FailureCode.RULE_VIOLATION)
        else:
            board[to_cell] = moving
            board[from_cell] = target
            change = f"Swapped {from_cell} and {to_cell}"

        self.notify()
        return ActionResult.ok([change])

    def clear_deployment(self, player_id: int) -> ActionResult:
        error = self._precheck(player_id)
        if error:
            return error
        self._clear(player_id)
        self.notify()
        return ActionResult.ok([f"Player {player_id} deployment cleared"])

    def randomize_deployment(self, player_id: int) -> ActionResult:
        """Replace the player's layout with a uniformly shuffled full army."""
        error = self._precheck(player_id)
        if error:
            return error
        placed = self._randomize(player_id)
        self.notify()
        return ActionResult.ok(
            [f"Player {player_id} deployment randomized"],
            placed=placed,
            remaining=self.count_inventory_left(player_id),
        )

    def export_deployment(self, player_id: int) -> dict[str, dict[str, str]]:
        """cell -> {"rank": code} for the player's own pieces."""
        return {
            cell: {"rank": piece.rank}
            for cell, piece in sorted(self.battle.pieces_of(player_id).items())
        }

    def import_deployment(self, player_id: int, data: dict[str, Any]) -> ActionResult:
        """
        Load a saved layout, best-effort.

        The player's current layout is cleared first. Entries that are not
        placeable (bad cell, water, outside the zone, occupied, unknown
        rank or exhausted inventory) are skipped, never fatal.
        """
        error = self._precheck(player_id)
        if error:
            return error
        if not isinstance(data, dict):
            return self.reject("Deployment data must be a mapping of cell to rank", FailureCode.INVALID_INPUT)

        self._clear(player_id)

        geometry = self.config.geometry
        seat = self.state.seat_of(player_id)
        board = self.battle.board
        inventory = self.battle.inventory[player_id]
        placed = skipped = 0

        for cell, entry in data.items():
            rank = entry.get("rank") if isinstance(entry, dict) else entry
            coord = geometry.parse(cell)
            if (
                not isinstance(rank, str)
                or coord is None
                or geometry.is_water(*coord)
                or not geometry.in_zone(seat, coord[0])
                or cell in board
                or inventory.get(rank, 0) <= 0
            ):
                skipped += 1
                continue
            inventory[rank] -= 1
            board[cell] = Piece(owner_id=player_id, rank=rank)
            placed += 1

        self.battle.ready[player_id] = False
        if skipped:
            logger.debug("Import for player %d skipped %d entries", player_id, skipped)
        self.notify()
        return ActionResult.ok(
            [f"Player {player_id} imported {placed} pieces"],
            placed=placed,
            skipped=skipped,
            remaining=self.count_inventory_left(player_id),
        )

    def set_ready(self, player_id: int, auto_fill_opponent: bool = False) -> ActionResult:
        """
        Declare a finished layout.

        With auto_fill_opponent, every opponent that is not ready yet gets a
        random layout and becomes the computer player (PvE).
        """
        error = self._precheck(player_id)
        if error:
            return error

        left = self.count_inventory_left(player_id)
        if left > 0:
            return self.reject(f"You still have {left} pieces to deploy", FailureCode.RULE_VIOLATION)

        battle = self.battle
        battle.ready[player_id] = True

        if auto_fill_opponent:
            for opponent in self.state.opponents_of(player_id):
                if not battle.ready.get(opponent.player_id):
                    self._randomize(opponent.player_id)
                    battle.ready[opponent.player_id] = True
                    battle.computer_player_id = opponent.player_id
                    battle.pve_auto = True

        if not all(battle.ready.get(pid, False) for pid in self.state.player_ids):
            self.log(LogKind.SYSTEM, "Ready received. Waiting for the opponent...", {"player_id": player_id})
            self.notify()
            return ActionResult.ok([f"Player {player_id} is ready"], handshake=False)

        battle.phase = BattlePhase.HANDSHAKE
        self.log(
            LogKind.SYSTEM,
            "Formations confirmed: handshake started",
            {"ready": {str(pid): flag for pid, flag in battle.ready.items()}},
        )
        logger.info("Match %s entered handshake", self.state.match_id)
        self.engine.schedule_handshake()
        self.notify()
        return ActionResult.ok([f"Player {player_id} is ready", "Handshake started"], handshake=True)

    def begin_battle(self):
        """Handshake timer target: HANDSHAKE -> BATTLE."""
        battle = self.battle
        if battle.phase != BattlePhase.HANDSHAKE:
            return

        battle.phase = BattlePhase.BATTLE
        # The challenger (first seat) opens
        battle.turn_owner_id = self.state.players[0].player_id
        battle.last_combat = None
        battle.selected_cell = None

        self.log(LogKind.SYSTEM, "Battle started!", {"turn_owner_id": battle.turn_owner_id})
        logger.info("Match %s battle started", self.state.match_id)
        self.engine.battle_machine.maybe_schedule_auto_turn()
        self.notify()

    # =========================================================================
    # Internals (no notification)
    # =========================================================================

    def _precheck(self, player_id: int) -> ActionResult | None:
        if self.state.get_player(player_id) is None:
            return self.reject(f"Player {player_id} not found", FailureCode.INVALID_PLAYER)
        if self.battle.phase != BattlePhase.DEPLOYMENT:
            return self.reject("Not in the deployment phase", FailureCode.WRONG_PHASE)
        return None

    def _check_zone_cell(self, player_id: int, cell: str) -> ActionResult | None:
        geometry = self.config.geometry
        coord = geometry.parse(cell)
        if coord is None:
            return self.reject(f"Invalid cell: {cell}", FailureCode.INVALID_INPUT)
        if geometry.is_water(*coord):
            return self.reject("Cannot place a piece in the lake", FailureCode.RULE_VIOLATION)
        if not geometry.in_zone(self.state.seat_of(player_id), coord[0]):
            return self.reject("Outside your deploy zone", FailureCode.RULE_VIOLATION)
        return None

    def _clear(self, player_id: int):
        board = self.battle.board
        for cell in list(board):
            if board[cell].owner_id == player_id:
                del board[cell]
        self.battle.inventory[player_id] = self.config.army.fresh_inventory()
        self.battle.ready[player_id] = False

    def _randomize(self, player_id: int) -> int:
        self._clear(player_id)
        seat = self.state.seat_of(player_id)
        pool = [c for c in self.config.geometry.zone_cells(seat) if c not in self.battle.board]
        self.engine.rng.shuffle(pool)

        inventory = self.battle.inventory[player_id]
        placed = 0
        for rank in self.config.army.ranks:
            while inventory[rank.code] > 0 and pool:
                inventory[rank.code] -= 1
                self.battle.board[pool.pop()] = Piece(owner_id=player_id, rank=rank.code)
                placed += 1
        return placed
