"""Main game engine for the Mr. X rules engine.

The GameEngine is the interface a request or session layer talks to. It:
- keeps the games in play, keyed by game id
- serializes every mutation of a game behind that game's lock
- validates submitted moves before handing them to Game.play_move()
- lets a player with no legal stop pass the turn

Move legality is enforced, not trusted: an illegal move raises and never
touches the game.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from core.board import NodeId, TransportGraph
from core.config import GameConfig
from core.constants import DEFAULT_ROLES, Role, Ticket, WinningStatus
from core.errors import (
    GameAlreadyOverError,
    GameError,
    GameNotStartedError,
    InsufficientTicketsError,
    InvalidMoveError,
)
from core.game import Game, create_game, is_stranded

from .setup import start_game

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    """Outcome of a submitted move.

    Attributes:
        username: The player who moved.
        destination: The stop they moved to.
        ticket: The ticket they used.
        two_x: Whether the move started a double move.
        round: Round counter after the move.
        next_player: Username of the player now on turn.
        revealed: True if Mr. X moved into a revelation round.
        game_over: Whether the game has ended.
        winning_status: Outcome if the game has ended.
    """

    username: str
    destination: NodeId
    ticket: Ticket
    two_x: bool
    round: int
    next_player: Optional[str]
    revealed: bool
    game_over: bool
    winning_status: Optional[WinningStatus]

    def __str__(self) -> str:
        return (
            f"MoveResult({self.username} -> {self.destination} by {self.ticket.value}, "
            f"round={self.round}, next={self.next_player}, game_over={self.game_over})"
        )


class GameEngine:
    """Registry and turn handler for concurrently running games.

    Games are independent; each has its own lock so moves in different
    games never wait on each other.

    Usage:
        engine = GameEngine(rng=random.Random(7))
        engine.create_game("g1", load_default_map(), ["ann", "bob", "cy"])
        engine.start_game("g1")

        view = engine.get_view("g1", "bob")
        result = engine.submit_move("g1", current_user, destination, "taxi")
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the engine.

        Args:
            config: Rule configuration for every game created here.
            rng: Random source for game starts.
        """
        self._config = config
        self._rng = rng or random.Random()
        self._games: dict[str, Game] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Game registry
    # -------------------------------------------------------------------------

    def create_game(
        self, game_id: str, stops: TransportGraph, usernames: Iterable[str]
    ) -> Game:
        """Create and register a game for a roster of usernames.

        Raises:
            ValueError: If a game with this id already exists.
        """
        with self._registry_lock:
            if game_id in self._games:
                raise ValueError(f"Game {game_id} already exists")
            game = create_game(game_id, stops, usernames, self._config)
            self._games[game_id] = game
            self._locks[game_id] = threading.Lock()
        logger.info("Game %s created for %d players", game_id, game.player_count)
        return game

    def get_game(self, game_id: str) -> Game:
        """Get a registered game.

        Raises:
            KeyError: If the game does not exist.
        """
        with self._registry_lock:
            game = self._games.get(game_id)
        if game is None:
            raise KeyError(f"Game {game_id} not found")
        return game

    def remove_game(self, game_id: str) -> None:
        """Forget a game, e.g. once its result has been stored."""
        with self._registry_lock:
            self._games.pop(game_id, None)
            self._locks.pop(game_id, None)

    @property
    def game_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._games)

    def _lock_for(self, game_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(game_id)
        if lock is None:
            raise KeyError(f"Game {game_id} not found")
        return lock

    # -------------------------------------------------------------------------
    # Game flow
    # -------------------------------------------------------------------------

    def start_game(
        self,
        game_id: str,
        roles: Optional[Sequence[Role]] = None,
        positions: Optional[Sequence[NodeId]] = None,
    ) -> Game:
        """Shuffle roles and starting stops and start a registered game."""
        with self._lock_for(game_id):
            game = self.get_game(game_id)
            return start_game(
                game,
                self._rng,
                roles=roles if roles is not None else DEFAULT_ROLES,
                positions=positions,
            )

    def submit_move(
        self,
        game_id: str,
        username: str,
        destination: NodeId,
        ticket: Ticket | str,
        two_x: bool = False,
    ) -> MoveResult:
        """Validate and play a move for a player.

        Args:
            game_id: The game to move in.
            username: The player submitting the move.
            destination: The stop to move to.
            ticket: The transport ticket to use.
            two_x: Start a double move with this move (Mr. X only).

        Returns:
            MoveResult describing the move and the game afterwards.

        Raises:
            GameAlreadyOverError: If the game has ended.
            GameNotStartedError: If the game has not started.
            InvalidMoveError: If it is not the player's turn, the ticket is
                not a transport ticket, or the stop is not reachable.
            InsufficientTicketsError: If the player lacks the ticket.
        """
        with self._lock_for(game_id):
            game = self.get_game(game_id)
            try:
                ticket = self._validate_move(game, username, destination, ticket)
                if two_x:
                    game.enable_two_x(game.round)
                game.play_move(destination, ticket)
            except GameError as e:
                logger.warning("Game %s: rejected move by %s: %s", game_id, username, e)
                raise

            mr_x_moved = game.is_mr_x(username)
            return MoveResult(
                username=username,
                destination=destination,
                ticket=ticket,
                two_x=two_x,
                round=game.round,
                next_player=None if game.game_over else game.current_player["username"],
                revealed=mr_x_moved and game.is_revelation_round(),
                game_over=game.game_over,
                winning_status=game.winning_status,
            )

    def _validate_turn(self, game: Game, username: str) -> None:
        if game.game_over:
            raise GameAlreadyOverError(f"Game {game.game_id} is over")
        if game.current_player_index is None:
            raise GameNotStartedError(f"Game {game.game_id} has not started")
        if not game.is_current_player(username):
            raise InvalidMoveError(f"It is not {username}'s turn")

    def _validate_move(
        self, game: Game, username: str, destination: NodeId, ticket: Ticket | str
    ) -> Ticket:
        self._validate_turn(game, username)

        try:
            ticket = Ticket(ticket)
        except ValueError:
            raise InvalidMoveError(f"Unknown ticket: {ticket}")
        if not ticket.is_transport:
            raise InvalidMoveError(f"{ticket.value} cannot be used to travel")

        if not game.find_player(username).is_ticket_available(ticket):
            raise InsufficientTicketsError(f"{username} has no {ticket.value} tickets remaining")
        if not game.is_move_possible(username, destination, ticket):
            raise InvalidMoveError(
                f"{username} cannot reach {destination} by {ticket.value}"
            )
        return ticket

    def pass_turn(self, game_id: str, username: str) -> Optional[str]:
        """Skip the turn of a player who has no legal stop.

        A stranded detective cannot move but the others may still be able
        to, so the turn passes on instead of ending the game.

        Returns:
            Username of the player now on turn, or None if the game ended.

        Raises:
            GameAlreadyOverError: If the game has ended.
            GameNotStartedError: If the game has not started.
            InvalidMoveError: If it is not the player's turn or the player
                still has a legal stop.
        """
        with self._lock_for(game_id):
            game = self.get_game(game_id)
            try:
                self._validate_turn(game, username)
                if not is_stranded(game.get_valid_stops(username)):
                    raise InvalidMoveError(f"{username} has a legal stop and must move")
            except GameError as e:
                logger.warning("Game %s: rejected pass by %s: %s", game_id, username, e)
                raise

            game.change_current_player()
            logger.debug("Game %s: %s passed", game_id, username)
            return None if game.game_over else game.current_player["username"]

    def leave_game(self, game_id: str, username: str) -> None:
        """Record a player leaving or forfeiting."""
        with self._lock_for(game_id):
            self.get_game(game_id).add_to_inactive(username)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_view(self, game_id: str, username: str) -> dict[str, Any]:
        """Snapshot of a game as the given player may see it."""
        with self._lock_for(game_id):
            game = self.get_game(game_id)
            view = game.get_state(viewer=username)
            view["isMyTurn"] = game.is_current_player(username)
            view["mrXLog"] = game.mr_x_log()
            view["isRevelationRound"] = game.is_revelation_round()
            return view

    def get_valid_stops(self, game_id: str, username: str) -> dict[str, list[NodeId]]:
        """Legal stops for a player keyed by ticket value."""
        with self._lock_for(game_id):
            valid_stops = self.get_game(game_id).get_valid_stops(username)
            return {ticket.value: targets for ticket, targets in valid_stops.items()}
