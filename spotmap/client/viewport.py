"""
Viewport bounds normalization.

Map widgets report extents that can run past the antimeridian (east > 180
after panning, or west < -180) and can span more than one world width when
zoomed far out. The query endpoint only understands a plain box with
longitudes in [-180, 180], so every reported extent goes through
``normalize_viewport`` first. A ``None`` result means "whole world": fetch
without a geographic filter.
"""
import math
from typing import Optional

from spotmap.models.dto import BoundingBox

WORLD_WIDTH = 360.0


def _finite(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def normalize_longitude(lon: float) -> float:
    """Wrap a longitude into [-180, 180). Non-finite input becomes 0."""
    lon = _finite(lon)
    if -180.0 <= lon < 180.0:
        return lon
    return ((lon + 180.0) % WORLD_WIDTH + WORLD_WIDTH) % WORLD_WIDTH - 180.0


def clamp_latitude(lat: float) -> float:
    """Clamp a latitude into [-90, 90]. Non-finite input becomes 0."""
    return max(-90.0, min(90.0, _finite(lat)))


def normalize_viewport(south: float, north: float, west: float, east: float) -> Optional[BoundingBox]:
    """
    Convert a raw map extent into canonical query bounds.

    Returns None when the east-west span covers the whole world. A viewport
    that straddles the antimeridian is widened to the full longitude range,
    keeping its latitude band, so min_lon never exceeds max_lon.
    """
    west, east = _finite(west), _finite(east)
    span = east - west
    if span >= WORLD_WIDTH:
        return None

    min_lat, max_lat = sorted((clamp_latitude(south), clamp_latitude(north)))

    if span < 0:
        # Some widgets report a wrapped extent with east numerically below west.
        span += WORLD_WIDTH

    min_lon = normalize_longitude(west)
    max_lon = min_lon + span
    if max_lon > 180.0:
        min_lon, max_lon = -180.0, 180.0

    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)
