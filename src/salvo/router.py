"""Translate SyncEngine events into view-listener callbacks.

The router lives *outside* SyncEngine so the mapping from events to UI calls
is declared in one place and can be unit-tested by feeding synthetic Event
objects.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .events import Event, Category
from .grid import Cell
from .turns import Rejection

logger = logging.getLogger(__name__)


class ViewListener:
    """Base class for the view layer; every callback defaults to a no-op."""

    def on_grid_changed(self, view_id: str, cells: Sequence[Cell]) -> None:
        pass

    def on_turn_changed(self, is_my_turn: bool) -> None:
        pass

    def on_game_won(self) -> None:
        pass

    def on_rejected_action(self, reason: Rejection) -> None:
        pass

    def on_game_ended(self) -> None:
        """The game document is gone and this player did not win."""

    def on_error(self, exc: Exception) -> None:
        pass


class ViewRouter:
    """Engine-scoped helper that converts `Event` → listener calls."""

    def __init__(self, listener: ViewListener) -> None:
        self._listener = listener

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, ev: Event) -> None:  # SyncEngine calls router(event)
        try:
            self.dispatch(ev)
        except Exception:  # noqa: BLE001
            logger.exception("Event routing failed for %s", ev)

    # ------------------------------------------------------------------
    # Internal dispatch
    # ------------------------------------------------------------------
    def dispatch(self, ev: Event) -> None:
        cat = ev.category
        if cat is Category.VIEW:
            self._handle_view(ev)
        elif cat is Category.GAME:
            self._handle_game(ev)
        elif cat is Category.ACTION:
            if ev.type == "rejected":
                self._listener.on_rejected_action(ev.payload["reason"])
        elif cat is Category.SYSTEM:
            if ev.type == "error":
                self._listener.on_error(ev.payload["error"])
        else:  # pragma: no cover – unknown category
            logger.debug("Ignoring event %s", ev)

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _handle_view(self, ev: Event) -> None:
        t = ev.type
        if t == "grid":
            self._listener.on_grid_changed(ev.payload["view_id"], ev.payload["cells"])
        elif t == "turn":
            self._listener.on_turn_changed(ev.payload["is_my_turn"])
        else:
            logger.debug("Unhandled VIEW event: %s", ev)

    def _handle_game(self, ev: Event) -> None:
        t = ev.type
        if t == "won":
            self._listener.on_game_won()
        elif t == "ended":
            self._listener.on_game_ended()
        else:
            logger.debug("Unhandled GAME event: %s", ev)
