import copy
import logging
import random

import pytest

from salvo.engine import SyncEngine
from salvo.game_state import new_game_document
from salvo.grid import Cell
from salvo.router import ViewListener
from salvo.store import InMemoryStore

# Suppress INFO & DEBUG logs from engines during tests
logging.basicConfig(level=logging.WARNING)

GAME_ID = "games/test"


class ScriptedRandom:
    """Random source that replays a fixed script, then falls back to a seeded RNG."""

    def __init__(self, script, seed: int = 0) -> None:
        self.script = list(script)
        self.fallback = random.Random(seed)

    def randrange(self, n):
        if self.script:
            return self.script.pop(0)
        return self.fallback.randrange(n)

    def choice(self, seq):
        if self.script:
            return self.script.pop(0)
        return self.fallback.choice(seq)


class RecordingListener(ViewListener):
    """View listener that remembers every callback for assertions."""

    def __init__(self) -> None:
        self.grids = {}
        self.grid_updates = 0
        self.turns = []
        self.won = 0
        self.ended = 0
        self.rejections = []
        self.errors = []

    def on_grid_changed(self, view_id, cells):
        self.grids[view_id] = cells
        self.grid_updates += 1

    def on_turn_changed(self, is_my_turn):
        self.turns.append(is_my_turn)

    def on_game_won(self):
        self.won += 1

    def on_game_ended(self):
        self.ended += 1

    def on_rejected_action(self, reason):
        self.rejections.append(reason)

    def on_error(self, exc):
        self.errors.append(exc)


def ship_cells(*positions):
    return [Cell(position=p, is_ship=True).to_dict() for p in positions]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def game_factory(store):
    """Factory that creates a game document plus one started engine per player.

    Extra keyword arguments are merged into the initial document, e.g.
    ``player2Ships=ship_cells(17, 18)`` to fix bob's fleet.
    """

    def _factory(first_turn: str = "alice", start: bool = True, **fields):
        doc = new_game_document("alice", "bob", first_turn=first_turn)
        doc.update(copy.deepcopy(fields))
        store.create(GAME_ID, doc)
        listeners = {"alice": RecordingListener(), "bob": RecordingListener()}
        engines = {
            name: SyncEngine(store, GAME_ID, name, rng=random.Random(seed), listener=listeners[name])
            for seed, name in enumerate(("alice", "bob"), start=1)
        }
        if start:
            for engine in engines.values():
                engine.start()
        return engines, listeners

    return _factory
