"""
Rules - Combat resolution and move legality.

Everything here is a pure function of its arguments. Move validation,
legal-target highlighting, stalemate detection and the PvE policy all go
through check_move()/legal_moves(), so there is one definition of a
legal move.
"""

from __future__ import annotations
from dataclasses import dataclass

from .army import ArmyConfig, RankKind
from .board import BoardGeometry, cell_key
from .state import Piece, CombatOutcome, CombatSpecial


@dataclass(frozen=True)
class CombatResult:
    outcome: CombatOutcome
    special: CombatSpecial | None
    attacker_dies: bool
    defender_dies: bool


@dataclass(frozen=True)
class Move:
    player_id: int
    from_cell: str
    to_cell: str


def _attacker_wins(special: CombatSpecial | None = None) -> CombatResult:
    return CombatResult(CombatOutcome.ATTACKER_WINS, special, attacker_dies=False, defender_dies=True)


def _defender_wins(special: CombatSpecial | None = None) -> CombatResult:
    return CombatResult(CombatOutcome.DEFENDER_WINS, special, attacker_dies=True, defender_dies=False)


def resolve_combat(attacker_rank: str, defender_rank: str, army: ArmyConfig) -> CombatResult:
    """
    Resolve an attack by rank alone.

    Priority: flag, bomb, spy, then plain value comparison.
    """
    attacker = army.get(attacker_rank)
    defender = army.get(defender_rank)
    if attacker is None or defender is None:
        raise ValueError(f"Unknown rank in combat: {attacker_rank!r} vs {defender_rank!r}")

    if defender.kind == RankKind.FLAG:
        return _attacker_wins(CombatSpecial.FLAG_CAPTURED)

    if defender.kind == RankKind.BOMB:
        if attacker.defuses_bombs:
            return _attacker_wins(CombatSpecial.BOMB_DEFUSED)
        return _defender_wins(CombatSpecial.BOMB_EXPLODES)

    if attacker.kind == RankKind.SPY:
        if defender.kind == RankKind.STRENGTH and defender.value == army.top_value:
            return _attacker_wins(CombatSpecial.SPY_ASSASSINATES)
        return _defender_wins(CombatSpecial.SPY_LOSES)

    if attacker.value > defender.value:
        return _attacker_wins()
    if attacker.value < defender.value:
        return _defender_wins()
    return CombatResult(CombatOutcome.TIE, CombatSpecial.EQUAL_RANKS, attacker_dies=True, defender_dies=True)


def check_move(
    board: dict[str, Piece],
    geometry: BoardGeometry,
    army: ArmyConfig,
    player_id: int,
    from_cell: str,
    to_cell: str,
) -> str | None:
    """
    Validate a battle move on the board.

    Returns an error message if illegal, None if legal. Turn and phase
    checks are the caller's job.
    """
    origin = geometry.parse(from_cell)
    dest = geometry.parse(to_cell)
    if origin is None or dest is None:
        return "Invalid cell"
    if geometry.is_water(*dest):
        return "Cannot move into the lake"

    moving = board.get(from_cell)
    if moving is None:
        return "No piece on the origin cell"
    if moving.owner_id != player_id:
        return "You can only move your own pieces"
    if not army.is_movable(moving.rank):
        return "That piece cannot move"

    target = board.get(to_cell)
    if target is not None and target.owner_id == player_id:
        return "Destination is occupied by your own piece"

    (r0, c0), (r1, c1) = origin, dest
    if army.is_scout(moving.rank):
        if not _clear_straight_path(board, geometry, origin, dest):
            return "Illegal move (a scout needs a clear straight path)"
    elif abs(r0 - r1) + abs(c0 - c1) != 1:
        return "Illegal move (one orthogonal step only)"

    return None


def _clear_straight_path(board, geometry: BoardGeometry, origin, dest) -> bool:
    (r0, c0), (r1, c1) = origin, dest
    if origin == dest or (r0 != r1 and c0 != c1):
        return False
    dr = (r1 > r0) - (r1 < r0)
    dc = (c1 > c0) - (c1 < c0)
    r, c = r0 + dr, c0 + dc
    while (r, c) != (r1, c1):
        if geometry.is_water(r, c) or cell_key(r, c) in board:
            return False
        r, c = r + dr, c + dc
    return True


def legal_targets(
    board: dict[str, Piece],
    geometry: BoardGeometry,
    army: ArmyConfig,
    player_id: int,
    from_cell: str,
) -> list[str]:
    """Every destination the piece on `from_cell` may legally move to."""
    origin = geometry.parse(from_cell)
    piece = board.get(from_cell)
    if origin is None or piece is None or piece.owner_id != player_id:
        return []
    if not army.is_movable(piece.rank):
        return []

    row, col = origin
    if army.is_scout(piece.rank):
        candidates = [cell_key(r, col) for r in range(geometry.rows) if r != row]
        candidates += [cell_key(row, c) for c in range(geometry.cols) if c != col]
    else:
        candidates = [cell_key(r, c) for r, c in geometry.neighbours(row, col)]

    return [
        to_cell for to_cell in candidates
        if check_move(board, geometry, army, player_id, from_cell, to_cell) is None
    ]


def legal_moves(
    board: dict[str, Piece],
    geometry: BoardGeometry,
    army: ArmyConfig,
    player_id: int,
) -> list[Move]:
    """All legal moves for a player, in board order."""
    moves = []
    for from_cell in sorted(board):
        if board[from_cell].owner_id != player_id:
            continue
        for to_cell in legal_targets(board, geometry, army, player_id, from_cell):
            moves.append(Move(player_id=player_id, from_cell=from_cell, to_cell=to_cell))
    return moves


def has_any_legal_move(
    board: dict[str, Piece],
    geometry: BoardGeometry,
    army: ArmyConfig,
    player_id: int,
) -> bool:
    return bool(legal_moves(board, geometry, army, player_id))
