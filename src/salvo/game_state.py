"""Typed view of the shared game document.

The remote store holds one document per game:

    {
      "player1": <id>, "player2": <id>, "turn": <id>,
      "player1Ships": [cell, ...], "player2Ships": [cell, ...],
      "player1Hits":  [cell, ...], "player2Hits":  [cell, ...],
    }

``player1Hits`` are the attacks player 1 has made against player 2.  Inside
the package the turn is a ``PlayerSlot`` rather than a raw id, so a stored
turn that names neither player is rejected when the snapshot is decoded
instead of silently flipping to player 1.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .grid import Cell


class InvalidSnapshot(ValueError):
    """Raised when a remote document does not decode to a valid GameState."""


class PlayerSlot(enum.Enum):
    ONE = 1
    TWO = 2

    @property
    def other(self) -> "PlayerSlot":
        return PlayerSlot.TWO if self is PlayerSlot.ONE else PlayerSlot.ONE

    @property
    def ships_field(self) -> str:
        return f"player{self.value}Ships"

    @property
    def hits_field(self) -> str:
        return f"player{self.value}Hits"

    @property
    def id_field(self) -> str:
        return f"player{self.value}"


def _decode_cells(doc: Dict[str, Any], key: str) -> List[Cell]:
    raw = doc.get(key) or []
    if not isinstance(raw, list):
        raise InvalidSnapshot(f"{key} must be a list")
    try:
        return [Cell.from_dict(item) for item in raw]
    except ValueError as exc:
        raise InvalidSnapshot(f"{key}: {exc}") from exc


def _decode_hits(doc: Dict[str, Any], key: str) -> List[Cell]:
    cells = _decode_cells(doc, key)
    seen: set[int] = set()
    for cell in cells:
        if cell.position in seen:
            raise InvalidSnapshot(f"{key} lists position {cell.position} more than once")
        seen.add(cell.position)
    return cells


def encode_cells(cells: List[Cell]) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in cells]


@dataclass
class GameState:
    player1: str
    player2: str
    turn: PlayerSlot
    player1_ships: List[Cell] = field(default_factory=list)
    player2_ships: List[Cell] = field(default_factory=list)
    player1_hits: List[Cell] = field(default_factory=list)
    player2_hits: List[Cell] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Slot helpers
    # ------------------------------------------------------------------
    def player_id(self, slot: PlayerSlot) -> str:
        return self.player1 if slot is PlayerSlot.ONE else self.player2

    def slot_of(self, player_id: str) -> PlayerSlot:
        """Map a player id to its slot; ``ValueError`` for outsiders."""
        if player_id == self.player1:
            return PlayerSlot.ONE
        if player_id == self.player2:
            return PlayerSlot.TWO
        raise ValueError(f"{player_id!r} is not a player in this game")

    @property
    def turn_holder(self) -> str:
        return self.player_id(self.turn)

    def fleet(self, slot: PlayerSlot) -> List[Cell]:
        return self.player1_ships if slot is PlayerSlot.ONE else self.player2_ships

    def hits(self, slot: PlayerSlot) -> List[Cell]:
        return self.player1_hits if slot is PlayerSlot.ONE else self.player2_hits

    # ------------------------------------------------------------------
    # Document codec
    # ------------------------------------------------------------------
    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "GameState":
        if not isinstance(doc, dict):
            raise InvalidSnapshot("document must be a mapping")
        player1, player2, turn = doc.get("player1"), doc.get("player2"), doc.get("turn")
        if not isinstance(player1, str) or not isinstance(player2, str) or not player1 or not player2:
            raise InvalidSnapshot("document must name two players")
        if player1 == player2:
            raise InvalidSnapshot("player1 and player2 must differ")
        if turn == player1:
            slot = PlayerSlot.ONE
        elif turn == player2:
            slot = PlayerSlot.TWO
        else:
            raise InvalidSnapshot(f"turn {turn!r} is neither {player1!r} nor {player2!r}")
        return cls(
            player1=player1,
            player2=player2,
            turn=slot,
            player1_ships=_decode_cells(doc, "player1Ships"),
            player2_ships=_decode_cells(doc, "player2Ships"),
            player1_hits=_decode_hits(doc, "player1Hits"),
            player2_hits=_decode_hits(doc, "player2Hits"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "player1": self.player1,
            "player2": self.player2,
            "turn": self.turn_holder,
            "player1Ships": encode_cells(self.player1_ships),
            "player2Ships": encode_cells(self.player2_ships),
            "player1Hits": encode_cells(self.player1_hits),
            "player2Hits": encode_cells(self.player2_hits),
        }


def new_game_document(player1: str, player2: str, first_turn: str | None = None) -> Dict[str, Any]:
    """Initial document for a fresh game: no fleets, no hits."""
    state = GameState(player1=player1, player2=player2, turn=PlayerSlot.ONE)
    if first_turn is not None:
        state.turn = state.slot_of(first_turn)
    return state.to_document()
