"""Map loading utilities for the Mr. X rules engine."""

from .loader import (
    MapLoader,
    MapLoadError,
    load_map,
    load_default_map,
    get_map_stats,
    parse_route_kind,
    DEFAULT_MAP_PATH,
)

__all__ = [
    "MapLoader",
    "MapLoadError",
    "load_map",
    "load_default_map",
    "get_map_stats",
    "parse_route_kind",
    "DEFAULT_MAP_PATH",
]
