from __future__ import annotations
import random
from collections import deque
from typing import Deque, Optional, Set

from .config import BOARD_SIZE, CELL_COUNT
from .grid import to_row_col


class HuntBot:
    """
    Shot picker for the demo driver.
    1. Parity hunt: fire all even squares in random order, then the odd ones.
    2. Probe: after a HIT, queue its four orthogonal neighbours and fire
       them before resuming the hunt.
    """

    def __init__(self, *, seed: Optional[int] = None) -> None:
        rnd = random.Random(seed)
        evens = [p for p in range(CELL_COUNT) if sum(to_row_col(p)) % 2 == 0]
        odds = [p for p in range(CELL_COUNT) if sum(to_row_col(p)) % 2 == 1]
        rnd.shuffle(evens)
        rnd.shuffle(odds)
        self.hunt_pool: Deque[int] = deque(evens + odds)
        self.probe_queue: Deque[int] = deque()
        self.shots_taken: Set[int] = set()

    def _legal(self, pos: int) -> bool:
        return 0 <= pos < CELL_COUNT and pos not in self.shots_taken

    def choose_shot(self) -> int:
        while self.probe_queue:
            pos = self.probe_queue.popleft()
            if self._legal(pos):
                return pos
        while self.hunt_pool:
            pos = self.hunt_pool.popleft()
            if self._legal(pos):
                return pos
        raise RuntimeError("no squares left to fire at")

    def record(self, pos: int, hit: bool) -> None:
        """Feed back the outcome of a shot at *pos*."""
        self.shots_taken.add(pos)
        if not hit:
            return
        row, col = to_row_col(pos)
        for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            r, c = row + dr, col + dc
            if 0 <= r < BOARD_SIZE and 0 <= c < BOARD_SIZE:
                nxt = r * BOARD_SIZE + c
                if self._legal(nxt):
                    self.probe_queue.append(nxt)
