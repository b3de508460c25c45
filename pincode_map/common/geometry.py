"""Coordinate helpers."""

from __future__ import annotations

import math
from typing import Any, NamedTuple


class Coordinates(NamedTuple):
    lat: float
    lon: float


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def make_coordinates(lat: Any, lon: Any) -> Coordinates | None:
    parsed_lat = safe_float(lat)
    parsed_lon = safe_float(lon)
    if parsed_lat is None or parsed_lon is None:
        return None
    return Coordinates(parsed_lat, parsed_lon)


def parse_coordinates(value: Any) -> Coordinates | None:
    """Accept a ``[lat, lon]`` pair; anything else is treated as absent."""
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        return None
    if len(value) != 2:
        return None
    return make_coordinates(value[0], value[1])
