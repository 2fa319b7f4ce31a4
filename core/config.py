"""Rule configuration for the Mr. X rules engine.

The defaults reproduce the standard game. Tests and variants can build their
own ``GameConfig`` and pass it to ``Game`` or ``GameEngine``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    Ticket,
    MIN_PLAYERS,
    MAX_PLAYERS,
    TOTAL_ROUNDS,
    REVELATION_ROUNDS,
    TWO_X_COOLDOWN,
    HIDDEN_POSITION,
    DETECTIVE_TICKETS,
    MR_X_TICKETS,
)


@dataclass(frozen=True)
class GameConfig:
    """Rule parameters for a single game.

    Attributes:
        min_players: Smallest roster that can start a game.
        max_players: Largest roster a game accepts.
        total_rounds: Round at which Mr. X escapes if still free.
        revelation_rounds: Rounds in which Mr. X's position is shown.
        two_x_cooldown: Rounds that must pass between double moves.
        hidden_position: Placeholder shown instead of Mr. X's node.
        detective_tickets: Starting tickets for each detective, as
            (ticket, count) pairs.
        mr_x_tickets: Starting tickets for Mr. X, as (ticket, count) pairs.
    """

    min_players: int = MIN_PLAYERS
    max_players: int = MAX_PLAYERS
    total_rounds: int = TOTAL_ROUNDS
    revelation_rounds: tuple[int, ...] = REVELATION_ROUNDS
    two_x_cooldown: int = TWO_X_COOLDOWN
    hidden_position: str = HIDDEN_POSITION
    detective_tickets: tuple[tuple[Ticket, int], ...] = tuple(DETECTIVE_TICKETS.items())
    mr_x_tickets: tuple[tuple[Ticket, int], ...] = tuple(MR_X_TICKETS.items())

    @property
    def limit(self) -> dict[str, int]:
        """Participant bounds in the shape clients expect."""
        return {"min": self.min_players, "max": self.max_players}

    def tickets_for(self, is_mr_x: bool) -> dict[Ticket, int]:
        """Return a fresh copy of the starting tickets for a side.

        Every ticket kind is present in the result so balances can be read
        without a default.
        """
        source = dict(self.mr_x_tickets if is_mr_x else self.detective_tickets)
        return {ticket: source.get(ticket, 0) for ticket in Ticket}


DEFAULT_CONFIG = GameConfig()
