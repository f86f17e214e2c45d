"""SyncEngine against the in-memory store: two clients, one shared document."""

from __future__ import annotations

import copy
import random

import pytest

from conftest import GAME_ID, RecordingListener, ship_cells
from salvo.engine import DocumentGone, RemoteUnavailable, SyncEngine, TurnConflict
from salvo.game_state import InvalidSnapshot, new_game_document
from salvo.grid import Cell
from salvo.placement import validate_fleet
from salvo.store import InMemoryStore, Unavailable
from salvo.turns import AttackMove, Rejection

pytestmark = pytest.mark.timeout(10)


def fleet_writes(store: InMemoryStore) -> list:
    return [f for op, _, f in store.writes if op == "update" and any(k.endswith("Ships") for k in f)]


def test_each_player_places_fleet_once(game_factory, store) -> None:
    game_factory()
    doc = store.read(GAME_ID)
    for field in ("player1Ships", "player2Ships"):
        assert validate_fleet([Cell.from_dict(c) for c in doc[field]])
    assert len(fleet_writes(store)) == 2

    store.update(GAME_ID, {"player1Hits": []})
    assert len(fleet_writes(store)) == 2


def test_second_device_does_not_overwrite_fleet(game_factory, store, monkeypatch) -> None:
    game_factory(start=False)
    stale = store.read(GAME_ID)
    first = SyncEngine(store, GAME_ID, "alice")
    first.start()
    placed = store.read(GAME_ID)["player1Ships"]

    second = SyncEngine(store, GAME_ID, "alice")
    monkeypatch.setattr(store, "read", lambda game_id: copy.deepcopy(stale))
    second.refresh()
    monkeypatch.undo()
    assert store.read(GAME_ID)["player1Ships"] == placed
    assert len(fleet_writes(store)) == 1


def test_initial_view_events(game_factory) -> None:
    _, listeners = game_factory()
    alice, bob = listeners["alice"], listeners["bob"]
    assert alice.turns == [True]
    assert bob.turns == [False]
    assert set(alice.grids) == {"player", "enemy"}
    assert sum(c.is_ship for c in alice.grids["player"]) == 14
    assert not any(c.is_hit for c in alice.grids["enemy"])


def test_out_of_turn_tap_is_rejected_without_writing(game_factory, store) -> None:
    engines, listeners = game_factory()
    before = list(store.writes)
    assert engines["bob"].cell_tapped("enemy", 10) is Rejection.NOT_YOUR_TURN
    assert list(store.writes) == before
    assert listeners["bob"].rejections == [Rejection.NOT_YOUR_TURN]


def test_player_grid_taps_are_ignored(game_factory, store) -> None:
    engines, _ = game_factory()
    before = list(store.writes)
    assert engines["alice"].cell_tapped("player", 3) is None
    assert list(store.writes) == before


def test_hit_updates_both_clients(game_factory, store) -> None:
    engines, listeners = game_factory(player2Ships=ship_cells(17, 18))
    result = engines["alice"].cell_tapped("enemy", 17)
    assert isinstance(result, AttackMove) and result.is_hit

    doc = store.read(GAME_ID)
    assert doc["player1Hits"] == [{"isShip": True, "isHit": True, "position": 17}]
    assert doc["turn"] == "bob"

    alice, bob = listeners["alice"], listeners["bob"]
    assert alice.grids["enemy"][17] == Cell(17, is_ship=True, is_hit=True)
    assert bob.grids["player"][17] == Cell(17, is_ship=True, is_hit=True)
    assert alice.turns[-1] is False
    assert bob.turns[-1] is True
    assert not engines["alice"].is_my_turn
    assert engines["bob"].is_my_turn


def test_sinking_last_ship_wins_and_deletes(game_factory, store) -> None:
    engines, listeners = game_factory(player2Ships=ship_cells(5))
    result = engines["alice"].attack(5)
    assert isinstance(result, AttackMove)

    assert listeners["alice"].won == 1
    assert listeners["alice"].ended == 0
    assert listeners["bob"].won == 0
    assert listeners["bob"].ended == 1
    assert not store.exists(GAME_ID)
    assert [w[0] for w in store.writes].count("delete") == 1
    assert engines["alice"].won
    assert engines["bob"].game_over

    # the loser's late taps are absorbed, direct calls report the end
    assert engines["bob"].cell_tapped("enemy", 0) is None
    with pytest.raises(DocumentGone):
        engines["bob"].attack(0)


def test_failed_delete_is_retried_without_second_win(game_factory, store) -> None:
    engines, listeners = game_factory(player2Ships=ship_cells(5))
    store.fail_next("delete", Unavailable("offline"))
    engines["alice"].attack(5)
    assert listeners["alice"].won == 1
    assert isinstance(listeners["alice"].errors[-1], RemoteUnavailable)
    assert store.exists(GAME_ID)

    engines["alice"].refresh()
    assert not store.exists(GAME_ID)
    assert listeners["alice"].won == 1


def test_repeat_attack_is_rejected(game_factory, store) -> None:
    engines, listeners = game_factory(player2Ships=ship_cells(17, 18))
    engines["alice"].attack(20)
    engines["bob"].attack(30)
    assert engines["alice"].attack(20) is Rejection.ALREADY_ATTACKED
    hits = store.read(GAME_ID)["player1Hits"]
    assert [h["position"] for h in hits] == [20]
    assert listeners["alice"].rejections == [Rejection.ALREADY_ATTACKED]


def test_duplicate_tap_while_write_in_flight(game_factory, store, monkeypatch) -> None:
    engines, _ = game_factory(player2Ships=ship_cells(17, 18))
    alice = engines["alice"]
    original = store.update
    nested = []

    def update(game_id, fields, expected=None):
        if "player1Hits" in fields and not nested:
            nested.append(alice.attack(20))
        original(game_id, fields, expected)

    monkeypatch.setattr(store, "update", update)
    assert isinstance(alice.attack(20), AttackMove)
    assert nested == [Rejection.ALREADY_ATTACKED]
    assert len(store.read(GAME_ID)["player1Hits"]) == 1


def test_stale_read_surfaces_turn_conflict(game_factory, store, monkeypatch) -> None:
    engines, _ = game_factory(player2Ships=ship_cells(17, 18))
    stale = store.read(GAME_ID)
    engines["alice"].attack(20)

    monkeypatch.setattr(store, "read", lambda game_id: copy.deepcopy(stale))
    with pytest.raises(TurnConflict):
        engines["alice"].attack(21)
    monkeypatch.undo()

    doc = store.read(GAME_ID)
    assert [h["position"] for h in doc["player1Hits"]] == [20]
    assert doc["turn"] == "bob"


def test_unavailable_store_is_surfaced(game_factory, store) -> None:
    engines, _ = game_factory(player2Ships=ship_cells(17, 18))
    store.fail_next("update", Unavailable("offline"))
    with pytest.raises(RemoteUnavailable):
        engines["alice"].attack(20)
    assert store.read(GAME_ID)["turn"] == "alice"
    assert store.read(GAME_ID)["player1Hits"] == []

    assert isinstance(engines["alice"].attack(20), AttackMove)


def test_fleet_write_failure_is_reported_and_retried(game_factory, store) -> None:
    engines, listeners = game_factory(start=False)
    store.fail_next("update", Unavailable("offline"))
    engines["alice"].start()
    assert isinstance(listeners["alice"].errors[0], RemoteUnavailable)
    assert store.read(GAME_ID)["player1Ships"] == []

    engines["alice"].refresh()
    fleet = [Cell.from_dict(c) for c in store.read(GAME_ID)["player1Ships"]]
    assert validate_fleet(fleet)


def test_stopped_engine_gets_no_more_events(game_factory, store) -> None:
    engines, listeners = game_factory()
    alice = listeners["alice"]
    seen = (alice.grid_updates, list(alice.turns))
    engines["alice"].stop()
    assert store.subscriber_count(GAME_ID) == 1

    store.update(GAME_ID, {"turn": "bob"})
    assert (alice.grid_updates, alice.turns) == seen
    assert listeners["bob"].turns[-1] is True


def test_invalid_turn_in_snapshot_is_reported(game_factory, store) -> None:
    engines, listeners = game_factory()
    store.update(GAME_ID, {"turn": "mallory"})
    for name in ("alice", "bob"):
        assert isinstance(listeners[name].errors[-1], InvalidSnapshot)
    # last good view is kept
    assert engines["alice"].view is not None
    assert engines["alice"].view.is_my_turn


def test_document_deleted_elsewhere(game_factory, store) -> None:
    engines, listeners = game_factory()
    engines["bob"].stop()
    store.delete(GAME_ID)
    assert listeners["alice"].ended == 1
    assert engines["alice"].cell_tapped("enemy", 3) is None

    assert listeners["bob"].ended == 0
    with pytest.raises(DocumentGone):
        engines["bob"].attack(3)
    assert listeners["bob"].ended == 1


def test_out_of_range_attack(game_factory) -> None:
    engines, _ = game_factory()
    with pytest.raises(ValueError):
        engines["alice"].attack(64)


class StopOnGrid(RecordingListener):
    """Tears the engine down from inside the first matching grid callback."""

    def __init__(self, when=lambda cells: True) -> None:
        super().__init__()
        self.engine = None
        self.when = when

    def on_grid_changed(self, view_id, cells):
        super().on_grid_changed(view_id, cells)
        if self.engine is not None and self.when(cells):
            self.engine.stop()


def test_stop_from_view_callback_skips_fleet_write(store) -> None:
    store.create(GAME_ID, new_game_document("alice", "bob"))
    listener = StopOnGrid()
    engine = SyncEngine(store, GAME_ID, "alice", rng=random.Random(1), listener=listener)
    listener.engine = engine
    engine.start()

    assert fleet_writes(store) == []
    assert listener.grid_updates == 1
    assert store.subscriber_count(GAME_ID) == 0

    listener.engine = None
    engine.start()
    assert len(fleet_writes(store)) == 1


def test_stop_from_view_callback_skips_win_delete(store) -> None:
    doc = new_game_document("alice", "bob")
    doc["player1Ships"] = ship_cells(40)
    doc["player2Ships"] = ship_cells(5)
    store.create(GAME_ID, doc)
    listener = StopOnGrid(when=lambda cells: any(c.is_hit for c in cells))
    engine = SyncEngine(store, GAME_ID, "alice", listener=listener)
    listener.engine = engine
    engine.start()

    store.update(GAME_ID, {"player1Hits": [{"isShip": True, "isHit": True, "position": 5}]})
    assert store.exists(GAME_ID)
    assert listener.won == 0
    assert not engine.won
