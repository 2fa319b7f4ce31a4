"""Tests for game start and the main game engine.

Tests cover:
1. Shuffling and game start with an injected random source
2. The game registry
3. Move submission and validation
4. Departures and per-player views
"""

import random
import threading

import pytest

from core.constants import DEFAULT_ROLES, GameStatus, Role, Ticket, WinningStatus
from core.errors import (
    GameAlreadyOverError,
    GameNotStartedError,
    InsufficientTicketsError,
    InvalidMoveError,
)
from core.game import create_game
from engine.game_engine import GameEngine, MoveResult
from engine.setup import shuffle, start_game
from maps.loader import load_default_map


# =============================================================================
# Fixtures
# =============================================================================

USERNAMES = ["ann", "bob", "cy"]


@pytest.fixture
def engine() -> GameEngine:
    """Engine with one game where ann is Mr. X at 1, bob at 11, cy at 16."""
    engine = GameEngine(rng=random.Random(1))
    game = engine.create_game("g1", load_default_map(), USERNAMES)
    game.assign_roles(DEFAULT_ROLES)
    game.assign_initial_positions([1, 11, 16])
    game.change_game_status()
    return engine


# =============================================================================
# Setup Tests
# =============================================================================

class TestShuffle:
    """Test the shuffle helper."""

    def test_returns_permutation(self):
        items = list(range(20))
        shuffled = shuffle(items, random.Random(3))
        assert sorted(shuffled) == items

    def test_leaves_input_untouched(self):
        items = [1, 2, 3, 4]
        shuffle(items, random.Random(3))
        assert items == [1, 2, 3, 4]

    def test_seeded_is_reproducible(self):
        items = list(range(20))
        assert shuffle(items, random.Random(9)) == shuffle(items, random.Random(9))


class TestStartGame:
    """Test start_game."""

    def test_starts_game(self):
        game = create_game("g", load_default_map(), USERNAMES)
        start_game(game, random.Random(5))

        assert game.status == GameStatus.IN_PROGRESS
        assert game.current_player_index == 0
        assert game.get_players()[0]["role"] == Role.MR_X.value
        assert game.is_current_player(game.get_mr_x_player().username)

    def test_positions_distinct_and_on_map(self):
        game = create_game("g", load_default_map(), USERNAMES)
        start_game(game, random.Random(5))

        positions = [p["currentPosition"] for p in game.get_players()]
        assert len(set(positions)) == len(positions)
        assert all(game.stops.has_node(position) for position in positions)

    def test_positions_drawn_from_pool(self):
        game = create_game("g", load_default_map(), USERNAMES)
        start_game(game, random.Random(5), positions=[13, 14, 15, 16])

        positions = {p["currentPosition"] for p in game.get_players()}
        assert positions <= {13, 14, 15, 16}

    def test_same_seed_same_start(self):
        first = create_game("g", load_default_map(), USERNAMES)
        second = create_game("g", load_default_map(), USERNAMES)
        start_game(first, random.Random(42))
        start_game(second, random.Random(42))

        assert first.get_state() == second.get_state()

    def test_too_few_players(self):
        game = create_game("g", load_default_map(), ["ann", "bob"])
        with pytest.raises(ValueError):
            start_game(game, random.Random(5))

    def test_too_few_positions(self):
        game = create_game("g", load_default_map(), USERNAMES)
        with pytest.raises(ValueError):
            start_game(game, random.Random(5), positions=[1, 2])


# =============================================================================
# Registry Tests
# =============================================================================

class TestRegistry:
    """Test game registration on the engine."""

    def test_create_and_get(self):
        engine = GameEngine()
        game = engine.create_game("g1", load_default_map(), USERNAMES)
        assert engine.get_game("g1") is game
        assert engine.game_ids == ["g1"]

    def test_duplicate_id(self, engine):
        with pytest.raises(ValueError):
            engine.create_game("g1", load_default_map(), USERNAMES)

    def test_unknown_game(self, engine):
        with pytest.raises(KeyError):
            engine.get_game("nope")
        with pytest.raises(KeyError):
            engine.submit_move("nope", "ann", 2, "taxi")

    def test_remove_game(self, engine):
        engine.remove_game("g1")
        assert engine.game_ids == []

    def test_removed_game_not_found(self, engine):
        engine.remove_game("g1")
        with pytest.raises(KeyError, match="not found"):
            engine.submit_move("g1", "ann", 2, "taxi")
        with pytest.raises(KeyError, match="not found"):
            engine.get_view("g1", "ann")

    def test_start_game(self):
        engine = GameEngine(rng=random.Random(8))
        engine.create_game("g2", load_default_map(), USERNAMES)
        game = engine.start_game("g2")
        assert game.status == GameStatus.IN_PROGRESS


# =============================================================================
# Move Submission Tests
# =============================================================================

class TestSubmitMove:
    """Test submit_move validation and results."""

    def test_valid_move(self, engine):
        result = engine.submit_move("g1", "ann", 2, "taxi")

        assert isinstance(result, MoveResult)
        assert result.destination == 2
        assert result.ticket == Ticket.TAXI
        assert result.round == 1
        assert result.next_player == "bob"
        assert not result.game_over
        assert result.winning_status is None

    def test_not_your_turn(self, engine):
        before = engine.get_game("g1").get_state()
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "bob", 10, "taxi")
        assert engine.get_game("g1").get_state() == before

    def test_unreachable_stop(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 6, "taxi")

    def test_wrong_ticket_for_route(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 2, "bus")

    def test_cannot_move_onto_detective(self, engine):
        """Stop 16 is a subway hop from 1 but cy stands there."""
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 16, "subway")

    def test_double_move_ticket_cannot_travel(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 2, "twoX")

    def test_unknown_ticket(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 2, "rocket")

    def test_missing_ticket(self, engine):
        engine.get_game("g1").find_player("ann").tickets[Ticket.TAXI] = 0
        with pytest.raises(InsufficientTicketsError):
            engine.submit_move("g1", "ann", 2, "taxi")

    def test_not_started(self):
        engine = GameEngine()
        engine.create_game("g", load_default_map(), USERNAMES)
        with pytest.raises(GameNotStartedError):
            engine.submit_move("g", "ann", 2, "taxi")

    def test_double_move(self, engine):
        result = engine.submit_move("g1", "ann", 2, "taxi", two_x=True)
        assert result.two_x
        assert result.next_player == "ann"

        result = engine.submit_move("g1", "ann", 6, "taxi")
        assert result.next_player == "bob"
        assert result.round == 2

    def test_rejected_double_move_keeps_ticket(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.submit_move("g1", "ann", 6, "taxi", two_x=True)

        game = engine.get_game("g1")
        assert game.find_player("ann").tickets[Ticket.TWO_X] == 2
        assert game.two_x_taken_at is None

    def test_detective_ticket_recycled(self, engine):
        engine.submit_move("g1", "ann", 2, "taxi")
        engine.submit_move("g1", "bob", 10, "taxi")

        game = engine.get_game("g1")
        assert game.find_player("ann").tickets[Ticket.TAXI] == 4
        assert game.find_player("bob").tickets[Ticket.TAXI] == 9

    def test_revealed_flag(self, engine):
        game = engine.get_game("g1")
        moves = [
            ("ann", 2, "taxi"), ("bob", 10, "taxi"), ("cy", 12, "taxi"),
            ("ann", 6, "taxi"), ("bob", 9, "taxi"), ("cy", 8, "taxi"),
        ]
        for username, destination, ticket in moves:
            result = engine.submit_move("g1", username, destination, ticket)
            assert not result.revealed

        result = engine.submit_move("g1", "ann", 14, "bus")
        assert game.round == 3
        assert result.revealed

    def test_concurrent_submissions(self, engine):
        """Only one of two racing submissions for the same turn succeeds."""
        outcomes = []

        def submit():
            try:
                engine.submit_move("g1", "ann", 2, "taxi")
                outcomes.append("ok")
            except InvalidMoveError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=submit) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["ok", "rejected"]
        assert engine.get_game("g1").round == 1


# =============================================================================
# Pass Tests
# =============================================================================

class TestPassTurn:
    """Test pass_turn for players with no legal stop."""

    def test_stranded_detective_passes(self, engine):
        game = engine.get_game("g1")
        game.find_player("bob").tickets = {ticket: 0 for ticket in Ticket}

        engine.submit_move("g1", "ann", 2, "taxi")
        assert game.is_current_player("bob")

        assert engine.pass_turn("g1", "bob") == "cy"
        assert game.is_current_player("cy")

        result = engine.submit_move("g1", "cy", 15, "taxi")
        assert result.next_player == "ann"
        assert not result.game_over

    def test_player_with_legal_stop_must_move(self, engine):
        with pytest.raises(InvalidMoveError):
            engine.pass_turn("g1", "ann")
        assert engine.get_game("g1").is_current_player("ann")

    def test_only_current_player_may_pass(self, engine):
        engine.get_game("g1").find_player("bob").tickets = {ticket: 0 for ticket in Ticket}
        with pytest.raises(InvalidMoveError):
            engine.pass_turn("g1", "bob")

    def test_no_pass_after_game_over(self, engine):
        engine.leave_game("g1", "ann")
        with pytest.raises(GameAlreadyOverError):
            engine.pass_turn("g1", "bob")


# =============================================================================
# Departure and View Tests
# =============================================================================

class TestLeaveAndViews:
    """Test leave_game, get_view and get_valid_stops."""

    def test_mr_x_leaving_ends_game(self, engine):
        engine.leave_game("g1", "ann")

        game = engine.get_game("g1")
        assert game.winning_status == WinningStatus.MR_X_LEFT
        with pytest.raises(GameAlreadyOverError):
            engine.submit_move("g1", "bob", 10, "taxi")

    def test_view_hides_mr_x(self, engine):
        view = engine.get_view("g1", "bob")
        assert view["players"][0]["currentPosition"] == "###"
        assert not view["isMyTurn"]
        assert view["mrXLog"] == []

        view = engine.get_view("g1", "ann")
        assert view["players"][0]["currentPosition"] == 1
        assert view["isMyTurn"]

    def test_view_shows_log(self, engine):
        engine.submit_move("g1", "ann", 3, "bus")
        assert engine.get_view("g1", "bob")["mrXLog"] == ["bus"]

    def test_valid_stops_by_ticket_value(self, engine):
        assert engine.get_valid_stops("g1", "ann") == {
            "taxi": [2, 5],
            "bus": [3],
            "subway": [],
            "ferry": [4],
        }
