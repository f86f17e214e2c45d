"""Local match driver: two engines and two bots sharing one in-memory store.

    python -m salvo.demo --games 50 --seed 7

Each match creates a fresh game document, lets both engines place their
fleets on first sight of it, then alternates bot shots through the normal
``cell_tapped`` path until the winner's engine deletes the document.
"""

from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from . import config as _cfg
from .bot import HuntBot
from .config import CELL_COUNT
from .engine import SyncEngine
from .game_state import new_game_document
from .router import ViewListener
from .store import InMemoryStore
from .turns import AttackMove
from .view import ENEMY_GRID

logger = logging.getLogger(__name__)

PLAYERS = ("alice", "bob")


@dataclass
class MatchResult:
    winner: str
    first_turn: str
    shots: Dict[str, int]


class _LogListener(ViewListener):
    def __init__(self, player: str) -> None:
        self.player = player

    def on_game_won(self) -> None:
        logger.info("%s: you won!", self.player)

    def on_game_ended(self) -> None:
        logger.info("%s: opponent sank your fleet", self.player)

    def on_error(self, exc: Exception) -> None:
        logger.warning("%s: %s", self.player, exc)


def play_match(seed: int, store: Optional[InMemoryStore] = None) -> MatchResult:
    """Play one seeded bot-vs-bot match to completion."""
    store = store if store is not None else InMemoryStore()
    rng = random.Random(seed)
    game_id = f"{_cfg.GAMES_COLLECTION}/demo-{seed}"
    first = rng.choice(PLAYERS)
    store.create(game_id, new_game_document(*PLAYERS, first_turn=first))

    engines = {
        p: SyncEngine(store, game_id, p, rng=random.Random(rng.getrandbits(32)), listener=_LogListener(p))
        for p in PLAYERS
    }
    bots = {p: HuntBot(seed=rng.getrandbits(32)) for p in PLAYERS}
    shots = {p: 0 for p in PLAYERS}

    for engine in engines.values():
        engine.start()
    try:
        # Each side has at most CELL_COUNT distinct targets.
        for _ in range(2 * CELL_COUNT + 1):
            if any(e.game_over for e in engines.values()):
                break
            player = next((p for p, e in engines.items() if e.is_my_turn), None)
            if player is None:
                raise RuntimeError(f"no player holds the turn in {game_id}")
            pos = bots[player].choose_shot()
            result = engines[player].cell_tapped(ENEMY_GRID, pos)
            if not isinstance(result, AttackMove):
                raise RuntimeError(f"{player} shot at {pos} was not accepted: {result!r}")
            bots[player].record(pos, result.is_hit)
            shots[player] += 1
        else:
            raise RuntimeError(f"match {game_id} did not finish")
    finally:
        for engine in engines.values():
            engine.stop()

    winner = next(p for p, e in engines.items() if e.won)
    return MatchResult(winner=winner, first_turn=first, shots=shots)


def main(argv: Optional[List[str]] = None) -> None:  # pragma: no cover – CLI entry
    parser = argparse.ArgumentParser(description="Play bot-vs-bot salvo matches locally")
    parser.add_argument("--games", type=int, default=_cfg.DEMO_GAMES, help="Number of matches to play")
    parser.add_argument("--seed", type=int, default=_cfg.DEMO_SEED, help="Base seed")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (_cfg.DEBUG or args.debug) else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    results = [play_match(args.seed + i) for i in range(args.games)]
    winning_shots = np.array([r.shots[r.winner] for r in results])
    wins = {p: sum(1 for r in results if r.winner == p) for p in PLAYERS}
    first_wins = sum(1 for r in results if r.winner == r.first_turn)

    print(f"Played {len(results)} match(es)")
    for p in PLAYERS:
        print(f"  {p:<6} wins: {wins[p]}")
    print(f"  first mover won {first_wins} time(s)")
    print(
        f"  winning shots: mean {winning_shots.mean():.1f}, "
        f"min {winning_shots.min()}, max {winning_shots.max()}"
    )


if __name__ == "__main__":
    main()
