"""Player model for the Mr. X rules engine.

Each player has a role, a position on the map and a ticket balance.
Every player keeps a log of the tickets used. Mr. X's log is all the
detectives ever learn about his route between revelation rounds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .board import NodeId
from .config import DEFAULT_CONFIG, GameConfig
from .constants import Role, Ticket
from .errors import InsufficientTicketsError


@dataclass
class Player:
    """Represents one participant in a game.

    Attributes:
        username: Identity of the player, unique within a game.
        role: Assigned role, None until the game starts.
        current_position: Stop the player stands on, None until placed.
        previous_position: Stop the player stood on before their last move.
        tickets: Remaining tickets by kind.
        log: Tickets used, oldest first.
    """

    username: str
    role: Optional[Role] = None
    current_position: Optional[NodeId] = None
    previous_position: Optional[NodeId] = None
    tickets: dict[Ticket, int] = field(default_factory=dict)
    log: list[Ticket] = field(default_factory=list)

    def assign_role(self, role: Role, config: GameConfig = DEFAULT_CONFIG) -> None:
        """Assign the player's role and hand out the matching tickets.

        Raises:
            ValueError: If the player already has a role.
        """
        if self.role is not None:
            raise ValueError(f"Player {self.username} already plays {self.role.value}")
        self.role = role
        self.tickets = config.tickets_for(role.is_mr_x)

    def update_position(self, node_id: NodeId) -> None:
        """Move the player to a stop. Legality is checked by the game."""
        self.previous_position = self.current_position
        self.current_position = node_id

    def update_log(self, ticket: Ticket) -> None:
        """Record a used ticket."""
        self.log.append(ticket)

    def is_ticket_available(self, ticket: Ticket) -> bool:
        """Check if the player holds at least one ticket of a kind."""
        return self.tickets.get(ticket, 0) > 0

    def reduce_ticket(self, ticket: Ticket) -> None:
        """Spend one ticket.

        Raises:
            InsufficientTicketsError: If the player has none of that kind.
        """
        if not self.is_ticket_available(ticket):
            raise InsufficientTicketsError(
                f"Player {self.username} has no {ticket.value} tickets remaining"
            )
        self.tickets[ticket] -= 1

    def add_ticket(self, ticket: Ticket) -> None:
        """Receive one ticket."""
        self.tickets[ticket] = self.tickets.get(ticket, 0) + 1

    def total_tickets(self) -> int:
        """Return the number of tickets held across all kinds."""
        return sum(self.tickets.values())

    def not_hide_last(self, ticket: Ticket, destination: Optional[NodeId] = None) -> bool:
        """Check the no-immediate-undo rule for a ticket kind.

        A player may not take the same kind of transport straight back to
        the stop they just came from. Only the last move is considered.

        Args:
            ticket: The ticket kind the player wants to use.
            destination: The stop they want to reach. When omitted, any
                reuse of the last ticket kind counts as a possible undo.

        Returns:
            False if the move would undo the last move, True otherwise.
        """
        if not self.log or self.log[-1] != ticket:
            return True
        if destination is None:
            return False
        return destination != self.previous_position

    def is_mr_x(self) -> bool:
        return self.role is Role.MR_X

    def is_detective(self) -> bool:
        return self.role is not None and self.role.is_detective

    def is_same_player(self, username: str) -> bool:
        return self.username == username

    @property
    def info(self) -> dict[str, Any]:
        """Read-only projection of the player for clients."""
        return {
            "username": self.username,
            "role": self.role.value if self.role else None,
            "currentPosition": self.current_position,
            "tickets": {ticket.value: count for ticket, count in self.tickets.items()},
            "log": [ticket.value for ticket in self.log],
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize the full player state, including restore-only fields."""
        data = self.info
        data["previousPosition"] = self.previous_position
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Player:
        """Rebuild a player from ``to_dict()`` or ``info`` output."""
        role = data.get("role")
        return cls(
            username=data["username"],
            role=Role(role) if role else None,
            current_position=data.get("currentPosition"),
            previous_position=data.get("previousPosition"),
            tickets={Ticket(kind): count for kind, count in data.get("tickets", {}).items()},
            log=[Ticket(kind) for kind in data.get("log", [])],
        )
