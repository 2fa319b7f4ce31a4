"""Game engine for the Mr. X rules engine.

This module provides game flow on top of the core models:
- Game start (roster shuffle, roles, starting stops)
- Game engine for validating moves and serializing them per game
"""

from .setup import (
    shuffle,
    start_game,
)

from .game_engine import (
    GameEngine,
    MoveResult,
)

__all__ = [
    # Setup
    "shuffle",
    "start_game",
    # Game engine
    "GameEngine",
    "MoveResult",
]
