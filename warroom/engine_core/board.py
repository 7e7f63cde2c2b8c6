"""
Board geometry - Cell keys, water and deploy zones.

Cells are addressed everywhere (storage, API, wire) by the canonical
"cell-{row}-{col}" key.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import re

_CELL_RE = re.compile(r"^cell-(\d+)-(\d+)$")

Coord = tuple[int, int]

ORTHOGONAL_STEPS: tuple[Coord, ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


def cell_key(row: int, col: int) -> str:
    """Encode a coordinate as a cell key."""
    return f"cell-{row}-{col}"


def parse_cell_key(key: object) -> Coord | None:
    """Decode a cell key. Returns None for anything malformed."""
    if not isinstance(key, str):
        return None
    match = _CELL_RE.match(key)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def _default_water() -> frozenset[Coord]:
    return frozenset(
        (r, c) for r in (4, 5) for c in (2, 3, 6, 7)
    )


def _default_zones() -> tuple[tuple[int, int], ...]:
    # Seat 0 (challenger) deploys on top, seat 1 on the bottom
    return ((0, 3), (6, 9))


@dataclass(frozen=True)
class BoardGeometry:
    """
    Static board layout.

    deploy_rows[seat] is an inclusive (first_row, last_row) band.
    """
    rows: int = 10
    cols: int = 10
    water: frozenset[Coord] = field(default_factory=_default_water)
    deploy_rows: tuple[tuple[int, int], ...] = field(default_factory=_default_zones)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def parse(self, key: object) -> Coord | None:
        """Parse a cell key and reject off-board coordinates."""
        coord = parse_cell_key(key)
        if coord is None or not self.in_bounds(*coord):
            return None
        return coord

    def is_water(self, row: int, col: int) -> bool:
        return (row, col) in self.water

    def in_zone(self, seat: int, row: int) -> bool:
        if seat < 0 or seat >= len(self.deploy_rows):
            return False
        first, last = self.deploy_rows[seat]
        return first <= row <= last

    def zone_cells(self, seat: int) -> list[str]:
        """All non-water cells of a seat's deploy zone, row-major."""
        return [
            cell_key(r, c)
            for r in range(self.rows)
            for c in range(self.cols)
            if self.in_zone(seat, r) and not self.is_water(r, c)
        ]

    def neighbours(self, row: int, col: int) -> list[Coord]:
        """Orthogonal on-board neighbours."""
        return [
            (row + dr, col + dc)
            for dr, dc in ORTHOGONAL_STEPS
            if self.in_bounds(row + dr, col + dc)
        ]


DEFAULT_GEOMETRY = BoardGeometry()
