"""Game model for the Mr. X rules engine.

Game is the single source of truth for one match. It owns the roster in
turn order, the transport graph and all shared turn, round and outcome
state, and exposes the complete rules API:

- Setup: assign_roles(), assign_initial_positions(), change_game_status()
- Queries: get_valid_stops(), is_move_possible(), get_state(), ...
- Mutations: play_move(), enable_two_x(), add_to_inactive()

Move legality is computed by get_valid_stops() and is not re-checked by
play_move(); engine.game_engine.GameEngine does both for callers that
need validation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from .board import Connections, NodeId, TransportGraph, empty_connections
from .config import DEFAULT_CONFIG, GameConfig
from .constants import GameStatus, Role, Ticket, WinningStatus
from .errors import (
    GameAlreadyOverError,
    GameNotStartedError,
    InsufficientTicketsError,
    InvalidMoveError,
    NoActivePlayersError,
)
from .player import Player

logger = logging.getLogger(__name__)

Shuffler = Callable[[list[Player]], Sequence[Player]]


def is_stranded(valid_stops: Connections) -> bool:
    """Check if a set of legal stops offers no move at all."""
    return not any(valid_stops.values())


class Game:
    """A single game of Mr. X.

    Mutating methods must be serialized per game by the caller; read-only
    queries may run freely between mutations.

    Usage:
        game = Game("game-1", stops, [Player("ann"), Player("bob"), Player("cy")])
        game.assign_roles(DEFAULT_ROLES)
        game.assign_initial_positions([13, 26, 29])
        game.change_game_status()

        while not game.game_over:
            player = game.current_player["username"]
            stops = game.get_valid_stops(player)
            ...
            game.play_move(destination, ticket)
    """

    def __init__(
        self,
        game_id: str,
        stops: Optional[TransportGraph] = None,
        players: Optional[Iterable[Player]] = None,
        config: Optional[GameConfig] = None,
    ):
        self._game_id = game_id
        self._stops = stops if stops is not None else TransportGraph()
        self._players: list[Player] = list(players) if players else []
        self._config = config or DEFAULT_CONFIG
        self._limit = self._config.limit
        self._current_player_index: Optional[int] = None
        self._round = 0
        self._game_over = False
        self._winning_status: Optional[WinningStatus] = None
        self._two_x_taken_at: Optional[int] = None
        self._left_players: list[dict[str, Any]] = []

    # -------------------------------------------------------------------------
    # Read-only properties
    # -------------------------------------------------------------------------

    @property
    def game_id(self) -> str:
        return self._game_id

    @property
    def stops(self) -> TransportGraph:
        return self._stops

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def limit(self) -> dict[str, int]:
        return dict(self._limit)

    @property
    def current_player_index(self) -> Optional[int]:
        return self._current_player_index

    @property
    def round(self) -> int:
        return self._round

    @property
    def game_over(self) -> bool:
        return self._game_over

    @property
    def winning_status(self) -> Optional[WinningStatus]:
        return self._winning_status

    @property
    def two_x_taken_at(self) -> Optional[int]:
        return self._two_x_taken_at

    @property
    def left_players(self) -> list[dict[str, Any]]:
        return list(self._left_players)

    @property
    def player_count(self) -> int:
        return len(self._players)

    @property
    def current_player(self) -> dict[str, Any]:
        """Info of the player whose turn it is.

        Raises:
            GameNotStartedError: If the game has not started.
        """
        return self._get_current_player().info

    @property
    def status(self) -> GameStatus:
        """Current lifecycle state of the game."""
        if self._game_over:
            return GameStatus.GAME_OVER
        if self._current_player_index is None:
            return GameStatus.NOT_STARTED
        return GameStatus.IN_PROGRESS

    # -------------------------------------------------------------------------
    # Roster
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> None:
        """Add a player to the roster before the game starts.

        Raises:
            ValueError: If the game has started, is full, or the username is taken.
        """
        if self._current_player_index is not None:
            raise ValueError(f"Game {self._game_id} has already started")
        if self.is_game_full():
            raise ValueError(f"Game {self._game_id} is full ({self._limit['max']} players)")
        if self._lookup_player(player.username) is not None:
            raise ValueError(f"Player {player.username} is already in game {self._game_id}")
        self._players.append(player)

    def can_game_start(self) -> bool:
        return len(self._players) >= self._limit["min"]

    def is_game_full(self) -> bool:
        return len(self._players) >= self._limit["max"]

    def find_player(self, username: str) -> Player:
        """Get a player by username.

        Raises:
            KeyError: If no such player is in this game.
        """
        player = self._lookup_player(username)
        if player is None:
            raise KeyError(f"Player {username} is not in game {self._game_id}")
        return player

    def _lookup_player(self, username: str) -> Optional[Player]:
        return next((p for p in self._players if p.is_same_player(username)), None)

    def get_mr_x_player(self) -> Optional[Player]:
        return next((p for p in self._players if p.is_mr_x()), None)

    def is_mr_x(self, username: str) -> bool:
        return self.find_player(username).is_mr_x()

    def mr_x_log(self) -> list[str]:
        """Tickets Mr. X has used so far, oldest first."""
        mr_x = self.get_mr_x_player()
        if mr_x is None:
            return []
        return [ticket.value for ticket in mr_x.log]

    def get_players(self) -> list[dict[str, Any]]:
        return [player.info for player in self._players]

    def _get_detectives(self) -> list[Player]:
        return [p for p in self._players if p.is_detective()]

    def _get_active_detectives(self) -> list[Player]:
        return [
            p for p in self._get_detectives()
            if not self.has_player_left(p.username)
        ]

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def assign_roles(
        self,
        roles: Sequence[Role | str],
        shuffler: Optional[Shuffler] = None,
    ) -> None:
        """Reorder the roster and hand out roles by position.

        Args:
            roles: Roles in turn order; roles[i] goes to players[i]. The
                first role must be Mr. X so that he opens every round.
            shuffler: Called with a copy of the roster, returns it reordered.
                The roster order is kept when omitted.

        Raises:
            ValueError: If the game has started, there are fewer roles than
                players, or Mr. X is missing, duplicated or not first.
        """
        if self._current_player_index is not None:
            raise ValueError(f"Game {self._game_id} has already started")
        if len(roles) < len(self._players):
            raise ValueError(
                f"Need {len(self._players)} roles, got {len(roles)}"
            )

        assigned = [Role(role) for role in roles[:len(self._players)]]
        if assigned.count(Role.MR_X) != 1:
            raise ValueError("Exactly one player must be Mr. X")
        if assigned[0] is not Role.MR_X:
            raise ValueError("Mr. X must be the first role in turn order")

        players = list(self._players)
        if shuffler is not None:
            players = list(shuffler(players))
        if sorted(p.username for p in players) != sorted(p.username for p in self._players):
            raise ValueError("Shuffler must return a permutation of the roster")

        self._players = players
        for player, role in zip(self._players, assigned):
            player.assign_role(role, self._config)

    def assign_initial_positions(self, positions: Sequence[NodeId]) -> None:
        """Place players on their starting stops; positions[i] goes to players[i].

        Raises:
            ValueError: If there are too few positions, a stop is not on the
                map, or two players would share a stop.
        """
        if len(positions) < len(self._players):
            raise ValueError(
                f"Need {len(self._players)} starting positions, got {len(positions)}"
            )

        chosen = list(positions[:len(self._players)])
        if len(set(chosen)) != len(chosen):
            raise ValueError(f"Starting positions must be distinct: {chosen}")
        for node_id in chosen:
            if not self._stops.has_node(node_id):
                raise ValueError(f"Starting position {node_id} is not on the map")

        for player, node_id in zip(self._players, chosen):
            player.update_position(node_id)

    def change_game_status(self) -> None:
        """Start the game: Mr. X, at index 0, takes the first turn.

        Raises:
            ValueError: If the roster is empty.
        """
        if not self._players:
            raise ValueError(f"Game {self._game_id} has no players")
        self._current_player_index = 0
        logger.info(
            "Game %s started with %d players", self._game_id, len(self._players)
        )

    # -------------------------------------------------------------------------
    # Turn queries
    # -------------------------------------------------------------------------

    def _get_current_player(self) -> Player:
        if self._current_player_index is None:
            raise GameNotStartedError(f"Game {self._game_id} has not started")
        return self._players[self._current_player_index]

    def is_current_player(self, username: str) -> bool:
        if self._current_player_index is None:
            return False
        return self._players[self._current_player_index].is_same_player(username)

    def is_my_player(self, username: str) -> bool:
        """Check if a username belongs to a player of this (unfinished) game."""
        if self._game_over:
            return False
        return self._lookup_player(username) is not None

    def has_player_left(self, username: str) -> bool:
        return any(p["username"] == username for p in self._left_players)

    def is_player_active(self, username: str) -> bool:
        if not self.is_my_player(username):
            return False
        return not self.has_player_left(username)

    def have_all_detectives_left(self) -> bool:
        detectives = self._get_detectives()
        return bool(detectives) and all(
            self.has_player_left(d.username) for d in detectives
        )

    def is_revelation_round(self) -> bool:
        return self._round in self._config.revelation_rounds

    # -------------------------------------------------------------------------
    # Movement legality
    # -------------------------------------------------------------------------

    def _stops_occupied_by_detectives(self) -> set[NodeId]:
        return {
            d.current_position for d in self._get_active_detectives()
            if d.current_position is not None
        }

    def get_valid_stops(self, username: str) -> Connections:
        """Compute the stops a player may move to, per ticket kind.

        A stop is legal when it is connected to the player's stop by that
        kind, no active detective stands on it, the player holds the
        ticket, and it does not undo the player's last move with the same
        kind. Every transport kind is present in the result.

        Raises:
            KeyError: If the player is not in this game.
        """
        player = self.find_player(username)
        valid_stops = empty_connections()
        position = player.current_position
        if position is None or not self._stops.has_node(position):
            return valid_stops

        occupied = self._stops_occupied_by_detectives()
        for ticket, targets in self._stops.get_connections(position).items():
            if not player.is_ticket_available(ticket):
                continue
            valid_stops[ticket] = [
                target for target in targets
                if target not in occupied and player.not_hide_last(ticket, target)
            ]
        return valid_stops

    def is_move_possible(
        self, username: str, destination: NodeId, ticket: Optional[Ticket | str] = None
    ) -> bool:
        """Check if a stop is legal for a player, optionally with one ticket kind."""
        valid_stops = self.get_valid_stops(username)
        if ticket is not None:
            return destination in valid_stops.get(Ticket(ticket), [])
        return any(destination in targets for targets in valid_stops.values())

    def _get_stranded_players(self) -> list[dict[str, Any]]:
        stranded = []
        for player in self._players:
            if player.role is None or self.has_player_left(player.username):
                continue
            if is_stranded(self.get_valid_stops(player.username)):
                stranded.append({"role": player.role.value, "username": player.username})
        return stranded

    # -------------------------------------------------------------------------
    # Double move
    # -------------------------------------------------------------------------

    def is_two_x_available(self) -> bool:
        """Check if Mr. X may start a double move now.

        Always True before the first double move. Afterwards it needs Mr. X
        to be on turn with a double-move ticket and the cooldown to have
        passed.
        """
        if self._two_x_taken_at is None:
            return True
        if self._current_player_index is None:
            return False

        current_player = self._players[self._current_player_index]
        if not current_player.is_mr_x():
            return False
        if not current_player.is_ticket_available(Ticket.TWO_X):
            return False

        rounds_after_two_x = self._round - self._two_x_taken_at
        return rounds_after_two_x > self._config.two_x_cooldown

    def is_two_x_in_action(self) -> bool:
        """True in the single round during which Mr. X keeps the turn."""
        if self._two_x_taken_at is None:
            return False
        return self._round - self._two_x_taken_at == 1

    def enable_two_x(self, round_number: Optional[int] = None) -> None:
        """Spend Mr. X's double-move ticket for his current turn.

        Args:
            round_number: Round the double move starts in; defaults to the
                current round.

        Raises:
            GameAlreadyOverError: If the game has ended.
            GameNotStartedError: If the game has not started.
            InvalidMoveError: If it is not Mr. X's turn or a double move is
                not available.
            InsufficientTicketsError: If Mr. X has no double-move ticket.
        """
        self._require_in_progress()
        current_player = self._get_current_player()
        if not current_player.is_mr_x():
            raise InvalidMoveError(f"Only Mr. X can use a double move, not {current_player.username}")
        if not self.is_two_x_available():
            raise InvalidMoveError("Double move is not available this round")

        current_player.reduce_ticket(Ticket.TWO_X)
        self._two_x_taken_at = self._round if round_number is None else round_number
        logger.debug("Game %s: double move enabled in round %d", self._game_id, self._two_x_taken_at)

    # -------------------------------------------------------------------------
    # Moves and turn rotation
    # -------------------------------------------------------------------------

    def _require_in_progress(self) -> None:
        if self._game_over:
            raise GameAlreadyOverError(
                f"Game {self._game_id} is over ({self._winning_status.name})"
            )
        if self._current_player_index is None:
            raise GameNotStartedError(f"Game {self._game_id} has not started")

    def _transfer_ticket_to_mr_x(self, mover: Player, ticket: Ticket) -> None:
        # Only detectives' transport tickets go to Mr. X
        if ticket is Ticket.TWO_X or mover.is_mr_x():
            return
        mr_x = self.get_mr_x_player()
        if mr_x is not None:
            mr_x.add_ticket(ticket)

    def play_move(self, destination: NodeId, ticket: Ticket | str) -> None:
        """Move the current player and pass the turn on.

        The destination is not checked here; callers confirm it against
        get_valid_stops() first.

        Raises:
            GameAlreadyOverError: If the game has ended.
            GameNotStartedError: If the game has not started.
            InsufficientTicketsError: If the player lacks the ticket.
        """
        self._require_in_progress()
        ticket = Ticket(ticket)
        current_player = self._get_current_player()
        if not current_player.is_ticket_available(ticket):
            raise InsufficientTicketsError(
                f"Player {current_player.username} has no {ticket.value} tickets remaining"
            )

        current_player.update_position(destination)
        current_player.update_log(ticket)
        current_player.reduce_ticket(ticket)
        self._transfer_ticket_to_mr_x(current_player, ticket)

        if current_player.is_mr_x():
            self._round += 1

        logger.debug(
            "Game %s round %d: %s moved to %s by %s",
            self._game_id, self._round, current_player.username, destination, ticket.value,
        )

        if not self.is_two_x_in_action():
            self.change_current_player()

    def change_current_player(self) -> None:
        """Pass the turn to the next active player.

        Departed players are skipped. Each time the turn comes back to
        Mr. X the round-end checks run.

        Raises:
            GameNotStartedError: If the game has not started.
            NoActivePlayersError: If a full cycle finds nobody to play.
        """
        if self._game_over:
            return
        if self._current_player_index is None:
            raise GameNotStartedError(f"Game {self._game_id} has not started")

        for _ in range(len(self._players)):
            self._current_player_index = (self._current_player_index + 1) % len(self._players)
            self._set_game_over_status()
            if self._game_over:
                return
            if not self.has_player_left(self._players[self._current_player_index].username):
                return

        raise NoActivePlayersError(f"Game {self._game_id} has no active players")

    # -------------------------------------------------------------------------
    # Departures
    # -------------------------------------------------------------------------

    def add_to_inactive(self, username: str) -> None:
        """Record that a player has left the game.

        Mr. X leaving hands the win to the detectives; the last detective
        leaving hands it to Mr. X. Otherwise the turn moves on if it was
        the leaver's. Leaving twice, or after the game is over, only
        records the departure.

        Raises:
            KeyError: If the player is not in this game.
        """
        player = self.find_player(username)
        if self.has_player_left(username):
            return

        self._left_players.append(player.info)
        logger.info("Game %s: %s left", self._game_id, username)

        if self._game_over:
            return
        if player.is_mr_x():
            self._set_game_over(WinningStatus.MR_X_LEFT)
            return
        if self.have_all_detectives_left():
            self._set_game_over(WinningStatus.DETECTIVES_LEFT)
            return
        if self.is_current_player(username):
            self.change_current_player()

    # -------------------------------------------------------------------------
    # Outcome
    # -------------------------------------------------------------------------

    def _set_game_over(self, status: WinningStatus) -> None:
        # The first outcome reached stands
        if self._game_over:
            return
        self._game_over = True
        self._winning_status = status
        logger.info(
            "Game %s over in round %d: %s (%s win)",
            self._game_id, self._round, status.name, status.winner.value,
        )

    def _is_round_over(self) -> bool:
        return self._current_player_index == 0

    def _set_game_over_status(self) -> None:
        """Run the end-of-round checks in priority order."""
        if not self._is_round_over():
            return
        mr_x = self.get_mr_x_player()
        if mr_x is None:
            return
        detectives = self._get_active_detectives()

        if is_stranded(self.get_valid_stops(mr_x.username)):
            self._set_game_over(WinningStatus.MR_X_STRANDED)

        if detectives and all(
            is_stranded(self.get_valid_stops(d.username)) for d in detectives
        ):
            self._set_game_over(WinningStatus.DETECTIVES_STRANDED)

        if detectives and all(d.total_tickets() <= 0 for d in detectives):
            self._set_game_over(WinningStatus.DETECTIVES_OUT_OF_TICKETS)

        capturing = next(
            (d for d in detectives if d.current_position == mr_x.current_position),
            None,
        )
        if capturing is not None:
            self._set_game_over(WinningStatus.capture_by(capturing.role))
        elif self._round >= self._config.total_rounds:
            self._set_game_over(WinningStatus.MR_X_ESCAPED)

    # -------------------------------------------------------------------------
    # Views and serialization
    # -------------------------------------------------------------------------

    def _hide_mr_x(self, players: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for player in players:
            if player["role"] == Role.MR_X.value:
                player["currentPosition"] = self._config.hidden_position
                if "previousPosition" in player:
                    player["previousPosition"] = self._config.hidden_position
        return players

    def _can_see_mr_x(self, username: str) -> bool:
        viewer = self._lookup_player(username)
        if viewer is not None and viewer.is_mr_x():
            return True
        return self._game_over or self.is_revelation_round()

    def get_initial_stats(self, username: str) -> list[dict[str, Any]]:
        """Player infos at game start, with Mr. X hidden from detectives.

        Raises:
            KeyError: If the player is not in this game.
        """
        viewer = self.find_player(username)
        players = self.get_players()
        if viewer.is_mr_x():
            return players
        return self._hide_mr_x(players)

    def get_state(self, viewer: Optional[str] = None) -> dict[str, Any]:
        """Serializable snapshot of the game.

        Args:
            viewer: Username the snapshot is built for. Mr. X's position is
                hidden from anyone but Mr. X outside revelation rounds. When
                omitted the full snapshot is returned.
        """
        players = [player.to_dict() for player in self._players]
        if viewer is not None and not self._can_see_mr_x(viewer):
            players = self._hide_mr_x(players)

        return {
            "players": players,
            "gameId": self._game_id,
            "currentPlayerIndex": self._current_player_index,
            "round": self._round,
            "strandedPlayers": self._get_stranded_players() if self._round > 0 else [],
            "gameOver": self._game_over,
            "winningStatus": (
                int(self._winning_status) if self._winning_status is not None else None
            ),
            "twoXTakenAt": self._two_x_taken_at,
            "leftPlayers": [dict(p) for p in self._left_players],
        }

    @classmethod
    def from_state(
        cls,
        state: dict[str, Any],
        stops: TransportGraph,
        config: Optional[GameConfig] = None,
    ) -> Game:
        """Rebuild a game from a full get_state() snapshot."""
        game = cls(state["gameId"], stops, config=config)
        game._players = [Player.from_dict(data) for data in state["players"]]
        game._current_player_index = state.get("currentPlayerIndex")
        game._round = state.get("round", 0)
        game._game_over = state.get("gameOver", False)
        status = state.get("winningStatus")
        game._winning_status = WinningStatus(status) if status is not None else None
        game._two_x_taken_at = state.get("twoXTakenAt")
        game._left_players = [dict(p) for p in state.get("leftPlayers", [])]
        return game

    def __str__(self) -> str:
        """Return a human-readable string representation."""
        lines = [
            f"Game({self._game_id}, status={self.status.value}, round={self._round})",
            f"  Current player: {self._current_player_index}",
        ]
        for index, p in enumerate(self._players):
            role = p.role.value if p.role else "unassigned"
            state = "LEFT" if self.has_player_left(p.username) else "active"
            lines.append(
                f"    {index}: {p.username} ({role}) at {p.current_position}, "
                f"tickets={p.total_tickets()} [{state}]"
            )
        if self._winning_status is not None:
            lines.append(f"  Outcome: {self._winning_status.name}")
        return "\n".join(lines)


def create_game(
    game_id: str,
    stops: TransportGraph,
    usernames: Iterable[str],
    config: Optional[GameConfig] = None,
) -> Game:
    """Create a game with one unassigned player per username."""
    return Game(game_id, stops, [Player(username) for username in usernames], config)
