"""Random fleet layout for one player.

Ships are placed by rejection sampling: draw a start position and an
orientation, keep the run if it fits.  Sampling is capped per ship; past the
cap a deterministic backtracking scan places whatever is left, and
``PlacementExhausted`` is raised if the roster cannot fit at all.
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, Optional, Sequence

from . import config as _cfg
from .config import BOARD_SIZE, CELL_COUNT, FLEET
from .grid import Cell, in_bounds, would_cross_row_boundary

logger = logging.getLogger(__name__)


class PlacementExhausted(Exception):
    """Raised when the fleet roster cannot be laid out on the board."""


def run_positions(start: int, size: int, horizontal: bool) -> Optional[list[int]]:
    """Positions covered by a ship run, or None if it leaves the board."""
    step = 1 if horizontal else BOARD_SIZE
    positions = []
    for i in range(size):
        pos = start + i * step
        if not in_bounds(pos) or (horizontal and would_cross_row_boundary(start, i)):
            return None
        positions.append(pos)
    return positions


def _fits(start: int, size: int, horizontal: bool, occupied: set[int]) -> Optional[list[int]]:
    positions = run_positions(start, size, horizontal)
    if positions is None or occupied.intersection(positions):
        return None
    return positions


def _scan(lengths: Sequence[int], occupied: set[int], budget: int) -> Optional[list[list[int]]]:
    """Depth-first over every (start, orientation) in position order.

    Raises ``PlacementExhausted`` once *budget* candidate runs have been tried.
    """
    tried = 0

    def search(index: int, taken: set[int]) -> Optional[list[list[int]]]:
        nonlocal tried
        if index == len(lengths):
            return []
        size = lengths[index]
        for start in range(CELL_COUNT):
            for horizontal in (True, False):
                tried += 1
                if tried > budget:
                    raise PlacementExhausted(f"no layout for ships {list(lengths)} within {budget} scan steps")
                positions = _fits(start, size, horizontal, taken)
                if positions is None:
                    continue
                rest = search(index + 1, taken | set(positions))
                if rest is not None:
                    return [positions] + rest
        return None

    return search(0, occupied)


def _check_capacity(lengths: Sequence[int], occupied: set[int]) -> None:
    free = CELL_COUNT - len(occupied)
    if sum(lengths) > free:
        raise PlacementExhausted(f"ships {list(lengths)} need {sum(lengths)} cells, only {free} free")
    too_long = [size for size in lengths if size > BOARD_SIZE or size < 1]
    if too_long:
        raise PlacementExhausted(f"ship sizes {too_long} cannot fit an {BOARD_SIZE}x{BOARD_SIZE} board")


def generate_fleet(
    rng: Optional[random.Random] = None,
    lengths: Sequence[int] = FLEET,
    *,
    board: Optional[Iterable[Cell]] = None,
    max_attempts: Optional[int] = None,
) -> list[Cell]:
    """Return ship cells for *lengths*, in placement order.

    *rng* needs ``randrange`` and ``choice``; with a seeded ``random.Random``
    the result is reproducible.  Ship cells already present on *board* are
    treated as taken.
    """
    rng = rng if rng is not None else random.Random()
    attempts = _cfg.PLACEMENT_MAX_ATTEMPTS if max_attempts is None else max_attempts
    occupied = {cell.position for cell in board or () if cell.is_ship}
    _check_capacity(lengths, occupied)
    fleet: list[Cell] = []

    for index, size in enumerate(lengths):
        positions = None
        for _ in range(attempts):
            start = rng.randrange(CELL_COUNT)
            horizontal = rng.choice((True, False))
            positions = _fits(start, size, horizontal, occupied)
            if positions is not None:
                break
        if positions is None:
            logger.warning(
                "Random placement gave up on ship %d (size %d) after %d attempts; scanning",
                index, size, attempts,
            )
            runs = _scan(list(lengths[index:]), occupied, _cfg.PLACEMENT_SCAN_BUDGET)
            if runs is None:
                raise PlacementExhausted(f"cannot fit ships {list(lengths[index:])} on the board")
            for run in runs:
                fleet.extend(Cell(position=pos, is_ship=True) for pos in run)
            return fleet
        occupied.update(positions)
        fleet.extend(Cell(position=pos, is_ship=True) for pos in positions)

    logger.debug("Placed fleet %s at %s", list(lengths), [c.position for c in fleet])
    return fleet


def validate_fleet(cells: Sequence[Cell], lengths: Sequence[int] = FLEET) -> bool:
    """Check a fleet in placement order against the roster *lengths*.

    Every cell must be a ship cell at a distinct position, and each
    consecutive chunk must form one straight in-bounds run.
    """
    if len(cells) != sum(lengths):
        return False
    if any(not c.is_ship for c in cells):
        return False
    if len({c.position for c in cells}) != len(cells):
        return False
    offset = 0
    for size in lengths:
        chunk = [c.position for c in cells[offset:offset + size]]
        offset += size
        start = chunk[0]
        if chunk != run_positions(start, size, True) and chunk != run_positions(start, size, False):
            return False
    return True
