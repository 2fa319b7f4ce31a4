"""Constants and enums for the Mr. X rules engine."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional


class Ticket(Enum):
    """Ticket kinds. The four transport modes double as graph route kinds."""

    TAXI = "taxi"
    BUS = "bus"
    SUBWAY = "subway"
    FERRY = "ferry"
    TWO_X = "twoX"  # Double move, Mr. X only

    @classmethod
    def transport(cls) -> list[Ticket]:
        """Return the ticket kinds that correspond to a route on the map."""
        return [cls.TAXI, cls.BUS, cls.SUBWAY, cls.FERRY]

    @property
    def is_transport(self) -> bool:
        return self is not Ticket.TWO_X


class Team(Enum):
    """The two sides of the game."""

    MR_X = "mr_x"
    DETECTIVES = "detectives"


class Role(Enum):
    """Player roles. Exactly one Mr. X per game, detectives told apart by color."""

    MR_X = "Mr. X"
    DETECTIVE_RED = "Detective Red"
    DETECTIVE_GREEN = "Detective Green"
    DETECTIVE_PURPLE = "Detective Purple"
    DETECTIVE_BLUE = "Detective Blue"
    DETECTIVE_ORANGE = "Detective Orange"

    @property
    def is_mr_x(self) -> bool:
        return self is Role.MR_X

    @property
    def is_detective(self) -> bool:
        return self is not Role.MR_X

    @property
    def team(self) -> Team:
        return Team.MR_X if self.is_mr_x else Team.DETECTIVES


class GameStatus(Enum):
    """Lifecycle of a single game."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    GAME_OVER = "game_over"


class WinningStatus(IntEnum):
    """Terminal outcome of a game.

    The integer values are the status codes clients already understand, so
    they must stay stable. Codes 2-6 carry the detective that made the
    capture.
    """

    MR_X_STRANDED = 1
    CAUGHT_BY_RED = 2
    CAUGHT_BY_GREEN = 3
    CAUGHT_BY_PURPLE = 4
    CAUGHT_BY_BLUE = 5
    CAUGHT_BY_ORANGE = 6
    MR_X_LEFT = 7
    DETECTIVES_STRANDED = 8
    DETECTIVES_OUT_OF_TICKETS = 9
    MR_X_ESCAPED = 10
    DETECTIVES_LEFT = 11

    @property
    def winner(self) -> Team:
        """The team this outcome is a win for."""
        if self.value <= WinningStatus.MR_X_LEFT.value:
            return Team.DETECTIVES
        return Team.MR_X

    @property
    def capturing_role(self) -> Optional[Role]:
        """The detective who caught Mr. X, or None for non-capture outcomes."""
        for role, status in CAPTURE_STATUS_BY_ROLE.items():
            if status is self:
                return role
        return None

    @classmethod
    def capture_by(cls, role: Role) -> WinningStatus:
        """Return the capture outcome for a detective role.

        Raises:
            ValueError: If the role is not a detective.
        """
        if role not in CAPTURE_STATUS_BY_ROLE:
            raise ValueError(f"{role.value} cannot capture Mr. X")
        return CAPTURE_STATUS_BY_ROLE[role]


CAPTURE_STATUS_BY_ROLE: dict[Role, WinningStatus] = {
    Role.DETECTIVE_RED: WinningStatus.CAUGHT_BY_RED,
    Role.DETECTIVE_GREEN: WinningStatus.CAUGHT_BY_GREEN,
    Role.DETECTIVE_PURPLE: WinningStatus.CAUGHT_BY_PURPLE,
    Role.DETECTIVE_BLUE: WinningStatus.CAUGHT_BY_BLUE,
    Role.DETECTIVE_ORANGE: WinningStatus.CAUGHT_BY_ORANGE,
}

# Role handed out by roster position; Mr. X always goes first
DEFAULT_ROLES: list[Role] = [
    Role.MR_X,
    Role.DETECTIVE_RED,
    Role.DETECTIVE_GREEN,
    Role.DETECTIVE_PURPLE,
    Role.DETECTIVE_BLUE,
    Role.DETECTIVE_ORANGE,
]

# Player limits (advisory, enforced by the lobby)
MIN_PLAYERS = 3
MAX_PLAYERS = 6

# Rounds
TOTAL_ROUNDS = 24
REVELATION_ROUNDS = (3, 8, 13, 18, 24)
TWO_X_COOLDOWN = 2  # Rounds that must pass before the next double move

# Shown to detectives in place of Mr. X's position
HIDDEN_POSITION = "###"

# Starting ticket endowments
DETECTIVE_TICKETS: dict[Ticket, int] = {
    Ticket.TAXI: 10,
    Ticket.BUS: 8,
    Ticket.SUBWAY: 4,
    Ticket.FERRY: 0,
}

MR_X_TICKETS: dict[Ticket, int] = {
    Ticket.TAXI: 4,
    Ticket.BUS: 3,
    Ticket.SUBWAY: 3,
    Ticket.FERRY: 5,
    Ticket.TWO_X: 2,
}
