"""Core data models for the Mr. X rules engine."""

from .constants import (
    Ticket,
    Team,
    Role,
    GameStatus,
    WinningStatus,
    CAPTURE_STATUS_BY_ROLE,
    DEFAULT_ROLES,
    MIN_PLAYERS,
    MAX_PLAYERS,
    TOTAL_ROUNDS,
    REVELATION_ROUNDS,
    TWO_X_COOLDOWN,
    HIDDEN_POSITION,
    DETECTIVE_TICKETS,
    MR_X_TICKETS,
)

from .errors import (
    GameError,
    InvalidMoveError,
    InsufficientTicketsError,
    GameAlreadyOverError,
    GameNotStartedError,
    NoActivePlayersError,
)

from .config import GameConfig, DEFAULT_CONFIG

from .board import NodeId, Connections, empty_connections, TransportGraph

from .player import Player

from .game import Game, create_game, is_stranded

__all__ = [
    # Constants
    "Ticket",
    "Team",
    "Role",
    "GameStatus",
    "WinningStatus",
    "CAPTURE_STATUS_BY_ROLE",
    "DEFAULT_ROLES",
    "MIN_PLAYERS",
    "MAX_PLAYERS",
    "TOTAL_ROUNDS",
    "REVELATION_ROUNDS",
    "TWO_X_COOLDOWN",
    "HIDDEN_POSITION",
    "DETECTIVE_TICKETS",
    "MR_X_TICKETS",
    # Errors
    "GameError",
    "InvalidMoveError",
    "InsufficientTicketsError",
    "GameAlreadyOverError",
    "GameNotStartedError",
    "NoActivePlayersError",
    # Config
    "GameConfig",
    "DEFAULT_CONFIG",
    # Board
    "NodeId",
    "Connections",
    "empty_connections",
    "TransportGraph",
    # Player
    "Player",
    # Game
    "Game",
    "create_game",
    "is_stranded",
]
