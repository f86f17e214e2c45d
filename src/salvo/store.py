"""Remote document store boundary and an in-memory implementation.

The engine only ever talks to a ``DocumentStore``: one-shot ``read``, a
cancellable ``subscribe`` feed, merge-``update`` with an optional equality
precondition, and idempotent ``delete``.  ``InMemoryStore`` is the reference
implementation used by the tests and the demo driver.
"""

from __future__ import annotations

import abc
import copy
import logging
import threading
from collections import deque
from types import TracebackType
from typing import Any, Callable, Deque, Dict, Optional, Tuple, Type

from typing_extensions import Literal

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
SnapshotCallback = Callable[[Optional[Document]], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(Exception):
    """Base for remote store failures."""


class NotFound(StoreError):
    """The document does not exist (never created, or deleted)."""


class Unavailable(StoreError):
    """Transient failure; the caller may retry."""


class PreconditionFailed(StoreError):
    """A conditional update found different values than expected."""


class Subscription:
    """Handle for a live snapshot feed; nothing is delivered after cancel()."""

    def __init__(self, game_id: str, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback]):
        self.game_id = game_id
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self._cancelled = threading.Event()
        self._on_cancel: Optional[Callable[["Subscription"], None]] = None

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._on_cancel is not None:
            self._on_cancel(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> Literal[False]:
        self.cancel()
        return False


class DocumentStore(abc.ABC):
    @abc.abstractmethod
    def read(self, game_id: str) -> Document:
        """Return a copy of the document; ``NotFound`` if absent."""

    @abc.abstractmethod
    def subscribe(
        self,
        game_id: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Deliver every new version of the document (``None`` once deleted)."""

    @abc.abstractmethod
    def update(self, game_id: str, fields: Document, expected: Optional[Document] = None) -> None:
        """Merge *fields* into the document.

        With *expected*, apply only if each named field currently equals the
        given value, else raise ``PreconditionFailed``.
        """

    @abc.abstractmethod
    def delete(self, game_id: str) -> None:
        """Remove the document; deleting a missing document is not an error."""


class InMemoryStore(DocumentStore):
    """Thread-safe store keeping documents in a dict.

    Notifications go through one FIFO queue and are delivered outside the
    lock, so a callback may write back into the store and its own
    notification still arrives after the one being processed.
    """

    def __init__(self, write_log: int = 1000) -> None:
        self._lock = threading.Lock()
        self._docs: Dict[str, Document] = {}
        self._subs: Dict[str, list[Subscription]] = {}
        self._pending: Deque[Tuple[Subscription, Optional[Document]]] = deque()
        self._delivering = False
        self._faults: Dict[str, Deque[StoreError]] = {}
        # (op, game_id, fields), most recent *write_log* entries
        self.writes: Deque[Tuple[str, str, Optional[Document]]] = deque(maxlen=write_log)

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------
    def create(self, game_id: str, doc: Document) -> None:
        """Create or replace a document (game creation lives outside the core)."""
        with self._lock:
            self._docs[game_id] = copy.deepcopy(doc)
            self._enqueue(game_id)
        self._flush()

    def fail_next(self, op: str, error: StoreError) -> None:
        """Make the next call to *op* ("read", "update", "delete") raise *error*."""
        with self._lock:
            self._faults.setdefault(op, deque()).append(error)

    def exists(self, game_id: str) -> bool:
        with self._lock:
            return game_id in self._docs

    def subscriber_count(self, game_id: str) -> int:
        with self._lock:
            return len(self._subs.get(game_id, []))

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------
    def read(self, game_id: str) -> Document:
        with self._lock:
            self._raise_fault("read")
            if game_id not in self._docs:
                raise NotFound(game_id)
            return copy.deepcopy(self._docs[game_id])

    def subscribe(
        self,
        game_id: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        sub = Subscription(game_id, on_snapshot, on_error)
        sub._on_cancel = self._unsubscribe
        with self._lock:
            self._subs.setdefault(game_id, []).append(sub)
            doc = self._docs.get(game_id)
            self._pending.append((sub, copy.deepcopy(doc)))
        logger.debug("Subscribed to %s", game_id)
        self._flush()
        return sub

    def update(self, game_id: str, fields: Document, expected: Optional[Document] = None) -> None:
        with self._lock:
            self._raise_fault("update")
            doc = self._docs.get(game_id)
            if doc is None:
                raise NotFound(game_id)
            for key, value in (expected or {}).items():
                if doc.get(key) != value:
                    raise PreconditionFailed(f"{game_id}.{key} is {doc.get(key)!r}, expected {value!r}")
            doc.update(copy.deepcopy(fields))
            self.writes.append(("update", game_id, copy.deepcopy(fields)))
            self._enqueue(game_id)
        self._flush()

    def delete(self, game_id: str) -> None:
        with self._lock:
            self._raise_fault("delete")
            if self._docs.pop(game_id, None) is None:
                return
            self.writes.append(("delete", game_id, None))
            self._enqueue(game_id)
        self._flush()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _raise_fault(self, op: str) -> None:
        queue = self._faults.get(op)
        if queue:
            raise queue.popleft()

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.game_id, [])
            if sub in subs:
                subs.remove(sub)
        logger.debug("Unsubscribed from %s", sub.game_id)

    def _enqueue(self, game_id: str) -> None:
        # caller holds the lock
        doc = self._docs.get(game_id)
        for sub in self._subs.get(game_id, []):
            self._pending.append((sub, copy.deepcopy(doc)))

    def _flush(self) -> None:
        with self._lock:
            if self._delivering:
                return
            self._delivering = True
        try:
            while True:
                with self._lock:
                    if not self._pending:
                        self._delivering = False
                        return
                    sub, doc = self._pending.popleft()
                if sub.active:
                    self._deliver(sub, doc)
        except BaseException:
            with self._lock:
                self._delivering = False
            raise

    def _deliver(self, sub: Subscription, doc: Optional[Document]) -> None:
        try:
            sub.on_snapshot(doc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Snapshot callback failed for %s", sub.game_id)
            if sub.on_error is not None:
                try:
                    sub.on_error(exc)
                except Exception:  # noqa: BLE001
                    logger.exception("Error callback failed for %s", sub.game_id)
