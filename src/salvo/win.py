"""Win detection over a fleet and the attacker's hit list."""

from __future__ import annotations

from typing import Iterable, List

from .game_state import GameState
from .grid import Cell


def has_won(opponent_fleet: List[Cell], hits: Iterable[Cell]) -> bool:
    """True when every ship cell of *opponent_fleet* has a hit entry.

    Misses do not matter.  A fleet with no ship cells (not placed yet) is
    never beaten.
    """
    targets = {c.position for c in opponent_fleet if c.is_ship}
    if not targets:
        return False
    struck = {c.position for c in hits if c.is_hit}
    return targets <= struck


def evaluate(game: GameState, local_player_id: str) -> bool:
    """Has *local_player_id* sunk the whole opposing fleet?"""
    me = game.slot_of(local_player_id)
    return has_won(game.fleet(me.other), game.hits(me))
