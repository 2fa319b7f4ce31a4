"""Map data loader for the Mr. X rules engine.

Loads and validates transport graphs from JSON, converting them into
TransportGraph instances ready for use in a game. Two shapes are accepted:

- Adjacency, as stored alongside saved games::

    {"stops": {"1": {"taxi": [8, 9], "bus": [58]}, ...}}

- Route lists, convenient for hand-written maps::

    {"nodes": [1, 2, ...], "routes": {"taxi": [[1, 8], [1, 9]], ...}}

Route kinds also accept the plural names older map files use
("taxies", "buses", "subways", "ferries").
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from core.board import NodeId, TransportGraph
from core.constants import Ticket

logger = logging.getLogger(__name__)

DEFAULT_MAP_PATH = Path(__file__).parent / "demo_map.json"

ROUTE_ALIASES: dict[str, Ticket] = {
    "taxies": Ticket.TAXI,
    "buses": Ticket.BUS,
    "subways": Ticket.SUBWAY,
    "ferries": Ticket.FERRY,
}


class MapLoadError(Exception):
    """Raised when map loading or validation fails."""
    pass


def parse_route_kind(name: str) -> Ticket:
    """Resolve a route name from a map file to its ticket kind.

    Raises:
        MapLoadError: If the name is not a transport kind.
    """
    if name in ROUTE_ALIASES:
        return ROUTE_ALIASES[name]
    try:
        ticket = Ticket(name)
    except ValueError:
        raise MapLoadError(f"Unknown route kind: {name}")
    if not ticket.is_transport:
        raise MapLoadError(f"{name} is not a route kind")
    return ticket


class MapLoader:
    """Loads and validates map data from JSON files."""

    def __init__(self, strict: bool = True):
        """Initialize the loader.

        Args:
            strict: If True, also require every route to be listed from both
                    ends and the whole map to be connected.
        """
        self.strict = strict

    def load_from_file(self, file_path: str | Path) -> TransportGraph:
        """Load a map from a JSON file.

        Raises:
            MapLoadError: If the file cannot be read, parsed or validated.
        """
        path = Path(file_path)

        if not path.exists():
            raise MapLoadError(f"Map file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise MapLoadError(f"Invalid JSON in map file: {e}")
        except IOError as e:
            raise MapLoadError(f"Error reading map file: {e}")

        graph = self.load_from_dict(data)
        logger.debug("Loaded map %s with %d stops", path, len(graph.stops))
        return graph

    def load_from_dict(self, data: dict[str, Any]) -> TransportGraph:
        """Load a map from a dictionary in either supported shape.

        Raises:
            MapLoadError: If validation fails.
        """
        if not isinstance(data, dict):
            raise MapLoadError("Map data must be a dictionary")

        if "stops" in data:
            graph = self._load_adjacency(data["stops"])
        elif "nodes" in data and "routes" in data:
            graph = self._load_routes(data["nodes"], data["routes"])
        else:
            raise MapLoadError("Map data needs a 'stops' key or 'nodes' and 'routes' keys")

        if not graph.stops:
            raise MapLoadError("Map must have at least one stop")

        self._validate_graph(graph)
        return graph

    def _parse_node_id(self, value: Any) -> NodeId:
        # JSON object keys are strings, so accept digit strings too
        if isinstance(value, bool):
            raise MapLoadError(f"Invalid stop ID: {value!r}")
        if isinstance(value, str) and value.isdigit():
            value = int(value)
        if not isinstance(value, int) or value < 0:
            raise MapLoadError(f"Invalid stop ID: {value!r}")
        return value

    def _load_adjacency(self, stops: Any) -> TransportGraph:
        if not isinstance(stops, dict):
            raise MapLoadError("'stops' must be a dictionary")

        graph = TransportGraph()
        for node_key in stops:
            graph.add_stop(self._parse_node_id(node_key))

        for node_key, routes in stops.items():
            node_id = self._parse_node_id(node_key)
            if not isinstance(routes, dict):
                raise MapLoadError(f"Routes of stop {node_id} must be a dictionary")

            for kind, targets in routes.items():
                ticket = parse_route_kind(kind)
                if not isinstance(targets, list):
                    raise MapLoadError(f"{kind} routes of stop {node_id} must be a list")
                neighbors = graph.stops[node_id][ticket]
                for target in targets:
                    target_id = self._parse_node_id(target)
                    self._check_route(graph, node_id, target_id)
                    if target_id not in neighbors:
                        neighbors.append(target_id)
        return graph

    def _load_routes(self, nodes: Any, routes: Any) -> TransportGraph:
        if not isinstance(nodes, list):
            raise MapLoadError("'nodes' must be a list")
        if not isinstance(routes, dict):
            raise MapLoadError("'routes' must be a dictionary")

        graph = TransportGraph()
        for value in nodes:
            node_id = self._parse_node_id(value)
            if graph.has_node(node_id):
                raise MapLoadError(f"Duplicate stop ID: {node_id}")
            graph.add_stop(node_id)

        for kind, pairs in routes.items():
            ticket = parse_route_kind(kind)
            if not isinstance(pairs, list):
                raise MapLoadError(f"'{kind}' routes must be a list")
            for pair in pairs:
                if not isinstance(pair, list) or len(pair) != 2:
                    raise MapLoadError(f"Route must be a pair of stops: {pair!r}")
                node_a = self._parse_node_id(pair[0])
                node_b = self._parse_node_id(pair[1])
                self._check_route(graph, node_a, node_b)
                graph.add_route(node_a, node_b, ticket)
        return graph

    def _check_route(self, graph: TransportGraph, node_a: NodeId, node_b: NodeId) -> None:
        for node_id in (node_a, node_b):
            if not graph.has_node(node_id):
                raise MapLoadError(f"Route references unknown stop: {node_id}")
        if node_a == node_b:
            raise MapLoadError(f"Self-loop route not allowed: [{node_a}, {node_b}]")

    def _validate_graph(self, graph: TransportGraph) -> None:
        """Validate the complete graph structure."""
        if not self.strict:
            return

        # Every route must be usable in both directions
        for node_id, connections in graph.stops.items():
            for ticket, targets in connections.items():
                for target in targets:
                    if node_id not in graph.stops[target][ticket]:
                        raise MapLoadError(
                            f"{ticket.value} route {node_id} -> {target} "
                            f"has no return route"
                        )

        # All stops should be reachable from any stop
        if len(graph.stops) > 1:
            start_node = next(iter(graph.stops))
            visited: set[NodeId] = set()
            self._dfs(graph, start_node, visited)

            if len(visited) != len(graph.stops):
                unreachable = set(graph.stops) - visited
                raise MapLoadError(
                    f"Map is not connected. Unreachable stops: {sorted(unreachable)}"
                )

    def _dfs(self, graph: TransportGraph, node_id: NodeId, visited: set[NodeId]) -> None:
        """Depth-first search to check connectivity."""
        stack = [node_id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            for neighbor in graph.get_neighbors(current):
                if neighbor not in visited:
                    stack.append(neighbor)


def load_map(file_path: str | Path, strict: bool = True) -> TransportGraph:
    """Convenience function to load a map from a file."""
    loader = MapLoader(strict=strict)
    return loader.load_from_file(file_path)


def load_default_map() -> TransportGraph:
    """Load the small demo map bundled with the package.

    Raises:
        MapLoadError: If the bundled map file is missing or invalid.
    """
    return load_map(DEFAULT_MAP_PATH, strict=True)


def get_map_stats(graph: TransportGraph) -> dict[str, Any]:
    """Get statistics about a transport graph.

    Returns:
        Dictionary with stop count and route counts per kind.
    """
    return {
        "num_stops": len(graph.stops),
        "routes_by_kind": {
            ticket.value: graph.count_routes(ticket) for ticket in Ticket.transport()
        },
        "ferry_stops": sorted(
            node_id for node_id, connections in graph.stops.items()
            if connections.get(Ticket.FERRY)
        ),
    }
