"""Turn state machine: validate one attack and compute the resulting write.

There is no explicit state field.  "My turn" means ``game.turn`` names the
local player; the game ending is the document being deleted.  The decision
here is made purely against a snapshot; the caller performs the write.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .game_state import GameState, PlayerSlot, encode_cells
from .grid import Cell, in_bounds, lookup_by_position


class Rejection(enum.Enum):
    NOT_YOUR_TURN = "not_your_turn"
    ALREADY_ATTACKED = "already_attacked"


@dataclass(frozen=True)
class AttackMove:
    """An accepted attack and the combined mutation it produces."""

    attacker: PlayerSlot
    position: int
    is_hit: bool
    hits: List[Cell]
    next_turn: PlayerSlot
    fields: Dict[str, Any] = field(repr=False)
    expected: Dict[str, Any] = field(repr=False)


AttackResult = Union[AttackMove, Rejection]


def next_turn(turn: PlayerSlot) -> PlayerSlot:
    return turn.other


def already_attacked(hits: List[Cell], position: int) -> bool:
    cell = lookup_by_position(hits, position)
    return cell is not None and cell.is_hit


def attempt_attack(local_player_id: str, game: GameState, target: int) -> AttackResult:
    """Validate an attack by *local_player_id* on *target* against *game*.

    Returns a ``Rejection`` when the move is not allowed, otherwise an
    ``AttackMove`` whose ``fields`` are to be merged into the document only
    while ``expected`` still holds.  *game* is left untouched.
    """
    if not in_bounds(target):
        raise ValueError(f"target position out of range: {target!r}")
    if game.turn_holder != local_player_id:
        return Rejection.NOT_YOUR_TURN

    attacker = game.turn
    hits = game.hits(attacker)
    if already_attacked(hits, target):
        return Rejection.ALREADY_ATTACKED

    opponent_ship = lookup_by_position(
        (c for c in game.fleet(attacker.other) if c.is_ship), target
    )
    is_hit = opponent_ship is not None
    entry = Cell(position=target, is_ship=is_hit, is_hit=True)

    updated = [entry if c.position == target else c for c in hits]
    if lookup_by_position(hits, target) is None:
        updated.append(entry)

    following = next_turn(attacker)
    return AttackMove(
        attacker=attacker,
        position=target,
        is_hit=is_hit,
        hits=updated,
        next_turn=following,
        fields={
            attacker.hits_field: encode_cells(updated),
            "turn": game.player_id(following),
        },
        expected={"turn": local_player_id},
    )
