"""Grid model: positions on the 8x8 board and the cells stored against them.

A position is a row-major index ``0..63``.  Cells are the unit stored in the
shared game document, both for fleets (``is_ship`` set) and hit lists (one
entry per attacked position).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from .config import BOARD_SIZE, CELL_COUNT


@dataclass(frozen=True)
class Cell:
    """One addressable square; ``position`` never changes once created."""

    position: int
    is_ship: bool = False
    is_hit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"isShip": self.is_ship, "isHit": self.is_hit, "position": self.position}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Cell":
        """Decode the remote document form; raises ``ValueError`` on bad data."""
        if not isinstance(raw, dict):
            raise ValueError(f"cell must be a mapping, got {type(raw).__name__}")
        try:
            position = raw["position"]
        except KeyError:
            raise ValueError("cell has no position") from None
        if isinstance(position, bool) or not isinstance(position, int) or not in_bounds(position):
            raise ValueError(f"cell position out of range: {position!r}")
        return cls(
            position=position,
            is_ship=bool(raw.get("isShip", False)),
            is_hit=bool(raw.get("isHit", False)),
        )


def to_row_col(pos: int) -> Tuple[int, int]:
    """Convert a position to a zero-based ``(row, col)`` tuple."""
    return pos // BOARD_SIZE, pos % BOARD_SIZE


def in_bounds(pos: int) -> bool:
    return 0 <= pos < CELL_COUNT


def would_cross_row_boundary(start: int, offset: int) -> bool:
    """True if a horizontal run from *start* leaves the row at *offset*."""
    return start % BOARD_SIZE + offset >= BOARD_SIZE


def lookup_by_position(cells: Iterable[Cell], pos: int) -> Optional[Cell]:
    for cell in cells:
        if cell.position == pos:
            return cell
    return None


def format_position(pos: int) -> str:
    """Position to a label like 'A1' (row letter, 1-based column)."""
    row, col = to_row_col(pos)
    return f"{chr(ord('A') + row)}{col + 1}"


def empty_board() -> list[Cell]:
    return [Cell(position=pos) for pos in range(CELL_COUNT)]
