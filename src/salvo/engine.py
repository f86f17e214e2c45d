"""Per-client synchronization engine for one game document.

Each client runs one ``SyncEngine``.  The engine never owns game state: it
subscribes to the shared document, rebuilds its local view from every
snapshot it receives, and turns local input into conditional writes that are
validated against a freshly read copy of the document.

Snapshot handling
-----------------
* derive the view and emit grid / turn events for whatever changed
* write my fleet once, the first time my fleet field is seen empty
* run the win check; on the first win emit ``won`` and delete the document
* a deleted document ends the game (``ended`` unless we won)

Errors from the store are translated, never swallowed: a lost turn race is
``TurnConflict``, a transient failure ``RemoteUnavailable`` and a missing
document ``DocumentGone``.  Failures while handling a pushed snapshot have no
caller, so they reach the view through ``on_error``.
"""

from __future__ import annotations

import contextlib
import logging
import random
import threading
from typing import Callable, Iterator, List, Optional

from .events import Event, Category
from .game_state import GameState, encode_cells
from .grid import in_bounds, format_position
from .placement import generate_fleet
from .router import ViewListener, ViewRouter
from .store import Document, DocumentStore, NotFound, PreconditionFailed, Subscription, Unavailable
from .turns import AttackResult, Rejection, attempt_attack
from .view import ENEMY_GRID, PLAYER_GRID, ViewState, derive_view

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Base for failures surfaced by SyncEngine."""


class TurnConflict(SyncError):
    """The turn changed between our read and our write; refresh and retry."""


class RemoteUnavailable(SyncError):
    """The store is temporarily unreachable; the caller decides whether to retry."""


class DocumentGone(SyncError):
    """The game document no longer exists; the game is over."""


class SyncEngine:
    """Keeps one player's view in step with the shared game document."""

    def __init__(
        self,
        store: DocumentStore,
        game_id: str,
        player_id: str,
        *,
        rng: Optional[random.Random] = None,
        listener: Optional[ViewListener] = None,
    ) -> None:
        self.store = store
        self.game_id = game_id
        self.player_id = player_id
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None
        self._stopped = False

        self._view: Optional[ViewState] = None
        self._fleet_requested = False
        self._won = False
        self._deleted = False
        self._ended = False
        # Positions with an attack write still in flight
        self._in_flight: set[int] = set()

        # Event subscribers
        self._subs: List[Callable[[Event], None]] = []
        if listener is not None:
            self.subscribe(ViewRouter(listener))

    # -------------------- lifecycle --------------------
    def start(self) -> None:
        """Attach to the live snapshot feed."""
        with self._lock:
            if self._subscription is not None:
                return
            self._stopped = False
        sub = self.store.subscribe(self.game_id, self._on_snapshot, self._on_error)
        with self._lock:
            stopped = self._stopped
            if not stopped:
                self._subscription = sub
        if stopped:
            # stop() ran from inside the first snapshot
            sub.cancel()
            return
        logger.debug("%s listening on game %s", self.player_id, self.game_id)

    def stop(self) -> None:
        """Cancel the feed; snapshots arriving afterwards are ignored."""
        with self._lock:
            self._stopped = True
            sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.cancel()

    # -------------------- state --------------------
    @property
    def view(self) -> Optional[ViewState]:
        return self._view

    @property
    def is_my_turn(self) -> bool:
        view = self._view
        return view is not None and view.is_my_turn and not self._ended

    @property
    def won(self) -> bool:
        return self._won

    @property
    def game_over(self) -> bool:
        return self._won or self._ended

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Allow external components (view router/logger) to receive engine events."""
        self._subs.append(cb)

    def _emit(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:  # noqa: BLE001
                logger.exception("Event subscriber failed for %s", ev)

    # -------------------- local input --------------------
    def cell_tapped(self, grid_id: str, position: int) -> Optional[AttackResult]:
        """UI entry point; only taps on the enemy grid are attacks."""
        if grid_id != ENEMY_GRID:
            logger.debug("Ignoring tap on %s grid at %s", grid_id, position)
            return None
        try:
            return self.attack(position)
        except DocumentGone:
            logger.info("Tap at %s after game %s ended", format_position(position), self.game_id)
            return None

    def attack(self, position: int) -> AttackResult:
        """Validate *position* against a fresh read and write the attack.

        Returns the accepted move or a ``Rejection``.  Raises
        ``TurnConflict``, ``RemoteUnavailable`` or ``DocumentGone``.
        """
        if not in_bounds(position):
            raise ValueError(f"target position out of range: {position!r}")
        with self._lock:
            if self._ended:
                raise DocumentGone(self.game_id)
            duplicate = position in self._in_flight
            if not duplicate:
                self._in_flight.add(position)
        if duplicate:
            return self._reject(Rejection.ALREADY_ATTACKED, position)

        try:
            with self._remote("read"):
                doc = self.store.read(self.game_id)
            state = GameState.from_document(doc)
            result = attempt_attack(self.player_id, state, position)
            if isinstance(result, Rejection):
                return self._reject(result, position)
            with self._remote("attack"):
                self.store.update(self.game_id, result.fields, expected=result.expected)
            logger.info(
                "%s fired at %s: %s",
                self.player_id, format_position(position), "hit" if result.is_hit else "miss",
            )
            return result
        finally:
            with self._lock:
                self._in_flight.discard(position)

    def refresh(self) -> Optional[ViewState]:
        """Re-read the document and process it like a pushed snapshot."""
        with self._remote("read"):
            doc = self.store.read(self.game_id)
        self._on_snapshot(doc)
        return self._view

    def _reject(self, reason: Rejection, position: int) -> Rejection:
        logger.info("%s attack at %s rejected: %s", self.player_id, format_position(position), reason.value)
        self._emit(Event(Category.ACTION, "rejected", {"reason": reason, "position": position}))
        return reason

    # -------------------- snapshot handling --------------------
    def _on_snapshot(self, doc: Optional[Document]) -> None:
        if self._stopped:
            return
        if doc is None:
            self._mark_ended()
            return
        try:
            state = GameState.from_document(doc)
            view = derive_view(state, self.player_id)
        except ValueError as exc:
            logger.error("Discarding snapshot of %s: %s", self.game_id, exc)
            self._emit(Event(Category.SYSTEM, "error", {"error": exc}))
            return

        with self._lock:
            if self._ended:
                return
            previous, self._view = self._view, view
            populate = view.needs_fleet and not self._fleet_requested
            if populate:
                self._fleet_requested = True
            first_win = view.won and not self._won
            if first_win:
                self._won = True

        self._emit_view_changes(previous, view)
        try:
            if populate:
                if self._halted():
                    with self._lock:
                        self._fleet_requested = False
                    return
                self._populate_fleet(state, doc)
            if view.won:
                if self._halted():
                    if first_win:
                        with self._lock:
                            self._won = False
                    return
                self._finish_win(first_win)
        except SyncError as exc:
            logger.warning("Snapshot handling for %s failed: %s", self.game_id, exc)
            self._emit(Event(Category.SYSTEM, "error", {"error": exc}))

    def _halted(self) -> bool:
        # a listener may have called stop() while the view events went out
        with self._lock:
            return self._stopped

    def _on_error(self, exc: Exception) -> None:
        logger.error("Snapshot feed for %s reported %r", self.game_id, exc)
        self._emit(Event(Category.SYSTEM, "error", {"error": exc}))

    def _emit_view_changes(self, previous: Optional[ViewState], view: ViewState) -> None:
        for view_id in (PLAYER_GRID, ENEMY_GRID):
            cells = view.grid(view_id)
            if self._halted():
                return
            if previous is None or previous.grid(view_id) != cells:
                self._emit(Event(Category.VIEW, "grid", {"view_id": view_id, "cells": cells}))
        if self._halted():
            return
        if previous is None or previous.is_my_turn != view.is_my_turn:
            self._emit(Event(Category.VIEW, "turn", {"is_my_turn": view.is_my_turn}))

    def _populate_fleet(self, state: GameState, doc: Document) -> None:
        field = state.slot_of(self.player_id).ships_field
        fleet = generate_fleet(self._rng)
        try:
            with self._remote("fleet"):
                self.store.update(
                    self.game_id,
                    {field: encode_cells(fleet)},
                    expected={field: doc.get(field)},
                )
        except TurnConflict:
            logger.info("%s already written for game %s", field, self.game_id)
        except RemoteUnavailable:
            with self._lock:
                self._fleet_requested = False
            raise
        else:
            logger.info("%s placed fleet for game %s", self.player_id, self.game_id)

    def _finish_win(self, first: bool) -> None:
        if first:
            logger.info("%s won game %s", self.player_id, self.game_id)
            self._emit(Event(Category.GAME, "won", {"player": self.player_id}))
        with self._lock:
            if self._deleted:
                return
        try:
            with self._remote("delete"):
                self.store.delete(self.game_id)
        except DocumentGone:
            pass
        with self._lock:
            self._deleted = True

    def _mark_ended(self) -> None:
        with self._lock:
            if self._ended:
                return
            self._ended = True
            won = self._won
        if not won:
            logger.info("Game %s ended for %s", self.game_id, self.player_id)
            self._emit(Event(Category.GAME, "ended", {"player": self.player_id}))

    @contextlib.contextmanager
    def _remote(self, action: str) -> Iterator[None]:
        """Translate store errors raised inside the block."""
        try:
            yield
        except PreconditionFailed as exc:
            raise TurnConflict(f"{action} on {self.game_id}: {exc}") from exc
        except Unavailable as exc:
            raise RemoteUnavailable(f"{action} on {self.game_id}: {exc}") from exc
        except NotFound as exc:
            self._mark_ended()
            raise DocumentGone(self.game_id) from exc
