"""Transport graph for the Mr. X rules engine.

The map is a static graph of stops:
- Nodes are numbered stops
- Each stop lists, per ticket kind, the stops reachable with that ticket
- Topology never changes during a game; only player positions do
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .constants import Ticket


# Type aliases for clarity
NodeId = int
Connections = dict[Ticket, list[NodeId]]


def empty_connections() -> Connections:
    """Return a connection record with every transport kind present and empty."""
    return {ticket: [] for ticket in Ticket.transport()}


@dataclass
class TransportGraph:
    """The map represented as adjacency lists keyed by ticket kind.

    Neighbor lists keep their insertion order and contain no duplicates.

    Attributes:
        stops: Mapping from node ID to its connections per ticket kind.
    """

    stops: dict[NodeId, Connections] = field(default_factory=dict)

    def add_stop(self, node_id: NodeId) -> None:
        """Add an isolated stop if it is not already on the map."""
        self.stops.setdefault(node_id, empty_connections())

    def add_route(self, node_a: NodeId, node_b: NodeId, ticket: Ticket) -> None:
        """Connect two stops in both directions with a ticket kind.

        Raises:
            ValueError: If the ticket is not a transport kind.
        """
        if not ticket.is_transport:
            raise ValueError(f"{ticket.value} is not a route kind")
        for source, target in ((node_a, node_b), (node_b, node_a)):
            self.add_stop(source)
            neighbors = self.stops[source][ticket]
            if target not in neighbors:
                neighbors.append(target)

    def has_node(self, node_id: NodeId) -> bool:
        """Check if a stop exists on the map."""
        return node_id in self.stops

    @property
    def nodes(self) -> list[NodeId]:
        """All stop IDs in ascending order."""
        return sorted(self.stops)

    def get_connections(self, node_id: NodeId) -> Connections:
        """Get the connections leaving a stop.

        Raises:
            KeyError: If the stop does not exist.
        """
        return self.stops[node_id]

    def get_neighbors(
        self, node_id: NodeId, ticket: Optional[Ticket] = None
    ) -> list[NodeId]:
        """Get stops reachable from a stop, optionally with one ticket kind only."""
        connections = self.stops.get(node_id, {})
        if ticket is not None:
            return list(connections.get(ticket, []))

        neighbors: list[NodeId] = []
        for targets in connections.values():
            for target in targets:
                if target not in neighbors:
                    neighbors.append(target)
        return neighbors

    def count_routes(self, ticket: Ticket) -> int:
        """Count undirected routes of one kind (each stored in both directions)."""
        total = sum(len(c.get(ticket, [])) for c in self.stops.values())
        return total // 2

    def to_dict(self) -> dict[str, dict[str, list[NodeId]]]:
        """Serialize to the JSON shape used by map files."""
        return {
            str(node_id): {
                ticket.value: list(targets)
                for ticket, targets in connections.items()
            }
            for node_id, connections in sorted(self.stops.items())
        }

    @classmethod
    def from_dict(cls, data: dict[Any, dict[str, list[NodeId]]]) -> TransportGraph:
        """Build a graph from already-validated map data.

        No symmetry or connectivity checks are made here; use
        ``maps.loader.MapLoader`` for untrusted input.
        """
        graph = cls()
        for node_key, routes in data.items():
            node_id = int(node_key)
            graph.add_stop(node_id)
            for ticket_value, targets in routes.items():
                ticket = Ticket(ticket_value)
                graph.stops[node_id][ticket] = [int(t) for t in dict.fromkeys(targets)]
        return graph

    def clone(self) -> TransportGraph:
        """Create a deep copy of this graph."""
        return TransportGraph(
            stops={
                node_id: {ticket: list(targets) for ticket, targets in connections.items()}
                for node_id, connections in self.stops.items()
            }
        )
