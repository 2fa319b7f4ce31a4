"""Game start logic for the Mr. X rules engine.

Handles what happens once when a lobby turns into a game:
1. Shuffle the roster so anyone can end up as Mr. X
2. Hand out roles by roster position (Mr. X first)
3. Shuffle and hand out starting stops
4. Give Mr. X the first turn

All randomness comes from the random source passed in, so a seeded
``random.Random`` makes a game start reproducible.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Sequence, TypeVar, TYPE_CHECKING

from core.board import NodeId
from core.constants import DEFAULT_ROLES, Role

if TYPE_CHECKING:
    from core.game import Game

logger = logging.getLogger(__name__)

T = TypeVar("T")


def shuffle(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a shuffled copy of a sequence.

    Args:
        items: The items to shuffle. Left untouched.
        rng: Random source used for the permutation.
    """
    shuffled = list(items)
    rng.shuffle(shuffled)
    return shuffled


def start_game(
    game: Game,
    rng: Optional[random.Random] = None,
    roles: Sequence[Role] = DEFAULT_ROLES,
    positions: Optional[Sequence[NodeId]] = None,
) -> Game:
    """Assign roles and starting stops, then start the game.

    Args:
        game: A game whose roster is complete.
        rng: Random source for the roster and position shuffles. A fresh
            unseeded ``random.Random`` is used when omitted.
        roles: Roles in turn order, Mr. X first.
        positions: Candidate starting stops; every stop on the map when
            omitted. Players get distinct stops from this pool.

    Returns:
        The same game, now in progress.

    Raises:
        ValueError: If the roster is too small, or roles or positions do
            not fit the roster.
    """
    if not game.can_game_start():
        raise ValueError(
            f"Game {game.game_id} needs at least {game.limit['min']} players, "
            f"has {game.player_count}"
        )

    rng = rng or random.Random()
    pool = list(positions) if positions is not None else game.stops.nodes

    game.assign_roles(roles, lambda players: shuffle(players, rng))
    game.assign_initial_positions(shuffle(pool, rng))
    game.change_game_status()

    mr_x = game.get_mr_x_player()
    logger.info(
        "Game %s set up: %s plays %s",
        game.game_id, mr_x.username if mr_x else None, Role.MR_X.value,
    )
    return game
