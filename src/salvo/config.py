"""Central configuration for runtime-tunable parameters.

Constants can be overridden via environment variables so that the demo
driver and the automated test-suite can tune placement and logging without
code changes.
"""

from __future__ import annotations

import os

# ===========================================================================
# Game Constants
# ===========================================================================
# The board is always 8x8; positions are row-major indices 0..63.
BOARD_SIZE: int = 8
CELL_COUNT: int = BOARD_SIZE * BOARD_SIZE

# Ship lengths, placed in this order. Not overridable.
FLEET: tuple[int, ...] = (4, 3, 3, 2, 2)


# ===========================================================================
# Placement
# ===========================================================================
# SALVO_PLACEMENT_ATTEMPTS: random samples tried per ship before the generator
#   falls back to an exhaustive scan of every candidate run.
#   Defaults to 1000.
#   Example: export SALVO_PLACEMENT_ATTEMPTS=50
PLACEMENT_MAX_ATTEMPTS: int = int(os.getenv("SALVO_PLACEMENT_ATTEMPTS", "1000"))

# SALVO_PLACEMENT_SCAN_BUDGET: candidate runs the fallback scan may try before
#   giving up with PlacementExhausted. Defaults to 200000.
PLACEMENT_SCAN_BUDGET: int = int(os.getenv("SALVO_PLACEMENT_SCAN_BUDGET", "200000"))


# ===========================================================================
# Remote Document Layout
# ===========================================================================
# Name of the collection holding game documents in the remote store.
GAMES_COLLECTION: str = "games"


# ===========================================================================
# Demo Driver
# ===========================================================================
# SALVO_DEMO_GAMES: number of matches `python -m salvo.demo` plays by default.
#   Example: export SALVO_DEMO_GAMES=100
DEMO_GAMES: int = int(os.getenv("SALVO_DEMO_GAMES", "1"))

# SALVO_DEMO_SEED: base seed for fleets and bots in the demo driver.
#   Defaults to 0 so demo runs are reproducible.
DEMO_SEED: int = int(os.getenv("SALVO_DEMO_SEED", "0"))


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# SALVO_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
#   Example: export SALVO_DEBUG=1
DEBUG: bool = os.getenv("SALVO_DEBUG", "0") == "1"
