"""Lightweight event model used by SyncEngine to decouple game logic from the view.

The engine emits typed events; the view router (or any other subscriber,
e.g. a logger) consumes them without reaching into engine state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict


class Category(Enum):
    """High-level event categories."""

    VIEW = auto()  # grid contents and turn indicator
    GAME = auto()  # won / ended
    ACTION = auto()  # rejected local input
    SYSTEM = auto()  # errors raised while processing remote snapshots


@dataclass(slots=True)
class Event:
    """Immutable event emitted by SyncEngine."""

    category: Category
    type: str  # finer-grained identifier, e.g. "grid", "turn", "won"
    payload: Dict[str, Any]
