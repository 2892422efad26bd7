# route_simplifier.py
# Ingest checks for routes coming from a provider, and overview geometry
# simplification (Douglas-Peucker) for routes that exceed the point budget.

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, TypeVar

import numpy as np

from ..models import Coord, Route
from ..nav_config import (
    MAX_LOCATION_HISTORY,
    MAX_ROUTE_POINTS,
    SIMPLIFICATION_TOLERANCE_DEG,
    NavConfig,
)
from ..nav_errors import MalformedRoute

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sum of leg distances may differ from the route total by rounding only
_SUM_TOLERANCE_M = 1.0
_SUM_TOLERANCE_RATIO = 0.01


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_route(route: Route) -> Route:
    """
    Check the structural invariants of a freshly fetched route.

    Args:
        route: Route produced by a provider.

    Returns:
        The same route, unchanged.

    Raises:
        MalformedRoute: If the route has no legs, no overview geometry, an
            empty leg geometry, or a negative distance/duration.
    """
    if not route.legs:
        raise MalformedRoute("Route has no legs.")
    if not route.geometry:
        raise MalformedRoute("Route overview geometry is empty.")
    if route.distance_m < 0 or route.duration_s < 0:
        raise MalformedRoute(
            f"Route totals must be non-negative (distance={route.distance_m}, duration={route.duration_s})."
        )
    for i, leg in enumerate(route.legs):
        if not leg.geometry:
            raise MalformedRoute(f"Leg {i} has an empty geometry.")
        if leg.distance_m < 0:
            raise MalformedRoute(f"Leg {i} has a negative distance ({leg.distance_m}).")
        if leg.duration_s < 0:
            raise MalformedRoute(f"Leg {i} has a negative duration ({leg.duration_s}).")

    leg_sum = sum(leg.distance_m for leg in route.legs)
    allowed = max(_SUM_TOLERANCE_M, route.distance_m * _SUM_TOLERANCE_RATIO)
    if abs(leg_sum - route.distance_m) > allowed:
        logger.warning(
            f"Leg distances sum to {leg_sum:.1f} m but route total is {route.distance_m:.1f} m."
        )
    if route.geometry[0] != route.origin or route.geometry[-1] != route.destination:
        logger.warning("Overview geometry endpoints do not match the route origin/destination.")
    return route


# ---------------------------------------------------------------------------
# Douglas-Peucker
# ---------------------------------------------------------------------------

def _segment_distances(pts: np.ndarray, start: int, end: int) -> np.ndarray:
    """
    Distance (in degrees) from pts[start+1:end] to the segment pts[start]-pts[end].

    Points whose projection falls outside the segment are measured to the
    nearest endpoint.
    """
    a = pts[start]
    b = pts[end]
    inner = pts[start + 1:end]
    ab = b - a
    len_sq = float(ab @ ab)
    if len_sq == 0.0:
        return np.hypot(*(inner - a).T)
    t = np.clip(((inner - a) @ ab) / len_sq, 0.0, 1.0)
    proj = a + t[:, None] * ab
    return np.hypot(*(inner - proj).T)


def douglas_peucker(points: Sequence[Coord], tolerance: float) -> List[Coord]:
    """
    Simplify a polyline, keeping points that deviate more than `tolerance`.

    Uses an explicit work stack instead of recursion, so call depth stays
    constant on long or pathological inputs. Output is deterministic and
    always keeps the first and last point.

    Args:
        points:    Polyline vertices.
        tolerance: Maximum allowed deviation, in coordinate degrees.

    Returns:
        Simplified list of the original Coord objects, in order.
    """
    n = len(points)
    if n <= 2:
        return list(points)

    pts = np.array([(p.lat, p.lon) for p in points], dtype=float)
    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue
        dists = _segment_distances(pts, start, end)
        idx = int(np.argmax(dists))
        if dists[idx] > tolerance:
            split = start + 1 + idx
            keep[split] = True
            stack.append((split, end))
            stack.append((start, split))

    return [points[i] for i in np.flatnonzero(keep)]


def simplify_route_geometry(
    points: Sequence[Coord],
    max_points: int = MAX_ROUTE_POINTS,
    tolerance: float = SIMPLIFICATION_TOLERANCE_DEG,
) -> List[Coord]:
    """Return `points` unchanged if within budget, otherwise simplified."""
    if len(points) <= max_points:
        return list(points)
    simplified = douglas_peucker(points, tolerance)
    logger.info(f"Simplified route geometry {len(points)} -> {len(simplified)} points.")
    return simplified


def prepare_route(route: Route, config: Optional[NavConfig] = None) -> Route:
    """
    Validate a route and bound its overview geometry.

    Returns a new Route when the geometry was simplified; legs are kept
    intact because progress tracking matches against them.
    """
    config = config or NavConfig()
    validate_route(route)
    if len(route.geometry) <= config.max_route_points:
        return route
    geometry = simplify_route_geometry(
        route.geometry,
        max_points=config.max_route_points,
        tolerance=config.simplification_tolerance_deg,
    )
    return replace(route, geometry=tuple(geometry))


def trim_history(history: Sequence[T], max_len: int = MAX_LOCATION_HISTORY) -> List[T]:
    """Keep only the most recent `max_len` entries."""
    if len(history) <= max_len:
        return list(history)
    return list(history)[-max_len:]
