"""Pure projection of a game snapshot onto the two local grids.

``derive_view`` is recomputed from scratch on every snapshot; nothing here
keeps state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from .config import CELL_COUNT
from .game_state import GameState
from .grid import Cell
from .win import has_won

PLAYER_GRID = "player"
ENEMY_GRID = "enemy"


@dataclass(frozen=True)
class ViewState:
    player_grid: Tuple[Cell, ...]  # my fleet plus the opponent's shots at it
    enemy_grid: Tuple[Cell, ...]  # my shots at the opponent
    is_my_turn: bool
    needs_fleet: bool
    won: bool

    def grid(self, view_id: str) -> Tuple[Cell, ...]:
        if view_id == PLAYER_GRID:
            return self.player_grid
        if view_id == ENEMY_GRID:
            return self.enemy_grid
        raise ValueError(f"unknown grid {view_id!r}")


def _overlay(*layers: Iterable[Cell]) -> Tuple[Cell, ...]:
    grid = [Cell(position=pos) for pos in range(CELL_COUNT)]
    for layer in layers:
        for cell in layer:
            grid[cell.position] = Cell(
                position=cell.position,
                is_ship=cell.is_ship or grid[cell.position].is_ship,
                is_hit=cell.is_hit or grid[cell.position].is_hit,
            )
    return tuple(grid)


def derive_view(game: GameState, local_player_id: str) -> ViewState:
    me = game.slot_of(local_player_id)
    opponent = me.other
    my_fleet = game.fleet(me)
    my_hits = game.hits(me)
    return ViewState(
        player_grid=_overlay(my_fleet, game.hits(opponent)),
        enemy_grid=_overlay(my_hits),
        is_my_turn=game.turn is me,
        needs_fleet=not my_fleet,
        won=has_won(game.fleet(opponent), my_hits),
    )
