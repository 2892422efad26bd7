# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects; only depends on models.Coord.
#
# Haversine is not numerically stable near the poles or across the
# antimeridian. That is an accepted limitation for street-level navigation.

import math

from .models import Coord


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(a: Coord, b: Coord) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        a: Origin coordinate.
        b: Destination coordinate.

    Returns:
        Distance in metres (symmetric, zero for identical points).
    """
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(1.0, h)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def calculate_bearing(a: Coord, b: Coord) -> float:
    """
    Initial bearing (forward azimuth) from a to b in degrees [0, 360).

    Args:
        a: Origin coordinate.
        b: Destination coordinate.

    Returns:
        Bearing in degrees, clockwise from north.
    """
    rlat1, rlon1 = math.radians(a.lat), math.radians(a.lon)
    rlat2, rlon2 = math.radians(b.lat), math.radians(b.lon)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return normalize_angle(math.degrees(math.atan2(y, x)))


def normalize_angle(angle: float) -> float:
    """Reduce any finite angle into [0, 360)."""
    result = angle % 360.0
    # -1e-17 % 360 rounds up to exactly 360.0
    if result >= 360.0:
        result = 0.0
    return result


def shortest_angle_delta(frm: float, to: float) -> float:
    """
    Signed shortest rotation from `frm` to `to`, in (-180, 180].

    Positive values rotate clockwise.
    """
    diff = (to - frm) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


def interpolate(a: Coord, b: Coord, ratio: float) -> Coord:
    """Linear interpolation between two coordinates (ratio 0 -> a, 1 -> b)."""
    return Coord(
        a.lat + (b.lat - a.lat) * ratio,
        a.lon + (b.lon - a.lon) * ratio,
    )
