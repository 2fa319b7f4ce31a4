"""Exceptions raised by the Mr. X rules engine."""


class GameError(Exception):
    """Base class for rule violations reported by the engine."""
    pass


class InvalidMoveError(GameError):
    """Raised when a move or action is not allowed in the current state."""
    pass


class InsufficientTicketsError(GameError):
    """Raised when a player spends a ticket they do not hold."""
    pass


class GameAlreadyOverError(GameError):
    """Raised when a mutation is attempted on a finished game."""
    pass


class GameNotStartedError(GameError):
    """Raised when a turn action is attempted before the game has started."""
    pass


class NoActivePlayersError(GameError):
    """Raised when turn rotation finds no active player in a full cycle."""
    pass
