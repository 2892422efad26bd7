# route_tracker.py
# Progress of the user's position along an active route.
# Call load_route() once, then check_progress() on every accepted GPS fix.

import logging
from typing import Optional

import numpy as np

from ..geo_utils import EARTH_RADIUS_M, haversine_distance
from ..models import Coord, ProgressState, Route
from ..nav_config import NavConfig

logger = logging.getLogger(__name__)


def _distances_to(position: Coord, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorised haversine from `position` to many points, in metres."""
    lat1 = np.radians(position.lat)
    lat2 = np.radians(lats)
    d_lat = lat2 - lat1
    d_lon = np.radians(lons - position.lon)
    h = np.sin(d_lat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(d_lon / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def find_current_leg(position: Coord, route: Route) -> int:
    """
    Index of the leg holding the route point closest to `position`.

    Every leg's geometry is scanned. On ties the first leg in route order
    wins, which can mis-attribute progress on routes that loop back near
    themselves.
    """
    best_index = 0
    best_dist = float("inf")
    for index, leg in enumerate(route.legs):
        if not leg.geometry:
            continue
        lats = np.fromiter((c.lat for c in leg.geometry), dtype=float, count=len(leg.geometry))
        lons = np.fromiter((c.lon for c in leg.geometry), dtype=float, count=len(leg.geometry))
        leg_min = float(_distances_to(position, lats, lons).min())
        if leg_min < best_dist:
            best_dist = leg_min
            best_index = index
    return best_index


def compute_progress(position: Coord, route: Route, leg_index: int) -> ProgressState:
    """
    Remaining distance/time and the next instruction from `leg_index` on.

    Args:
        position:  Current position.
        route:     Active route.
        leg_index: Leg the user is on (see find_current_leg).

    Returns:
        A fresh ProgressState.

    Raises:
        ValueError: If leg_index is outside the route.
    """
    if not 0 <= leg_index < len(route.legs):
        raise ValueError(f"leg_index {leg_index} out of range for {len(route.legs)} legs")

    leg = route.legs[leg_index]
    to_leg_end = haversine_distance(position, leg.end)

    remaining_distance = to_leg_end
    remaining_time = (to_leg_end / leg.distance_m) * leg.duration_s if leg.distance_m > 0 else 0.0
    for later in route.legs[leg_index + 1:]:
        remaining_distance += later.distance_m
        remaining_time += later.duration_s

    next_instruction = None
    next_distance = None
    if leg_index + 1 < len(route.legs):
        upcoming = route.legs[leg_index + 1]
        next_instruction = upcoming.instruction
        next_distance = haversine_distance(position, upcoming.start)

    return ProgressState(
        leg_index=leg_index,
        remaining_distance_m=remaining_distance,
        remaining_time_s=remaining_time,
        next_instruction=next_instruction,
        next_instruction_distance_m=next_distance,
    )


class RouteTracker:
    """
    Stateful progress tracker for a single navigation session.

    Usage:
        tracker = RouteTracker(config)
        tracker.load_route(route)

        # Inside GPS loop:
        progress = tracker.check_progress(current_coord)
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._route: Optional[Route] = None
        self._progress: Optional[ProgressState] = None
        self._active: bool = False
        self._arrived: bool = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def load_route(self, route: Route) -> None:
        """Load a new route and reset state."""
        self._route = route
        self._progress = ProgressState.initial(route)
        self._active = True
        self._arrived = False

    def stop(self) -> None:
        """Forcibly end navigation and drop the route."""
        self._active = False
        self._route = None
        self._progress = None
        self._arrived = False

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def route(self) -> Optional[Route]:
        return self._route

    @property
    def progress(self) -> Optional[ProgressState]:
        return self._progress

    @property
    def arrived(self) -> bool:
        return self._arrived

    # ------------------------------------------------------------------
    # Core method: call on every accepted GPS fix
    # ------------------------------------------------------------------

    def check_progress(self, position: Coord) -> Optional[ProgressState]:
        """
        Recompute progress for `position`.

        Returns:
            The new ProgressState, or None when navigation is not active.
        """
        if not self._active or self._route is None:
            return None

        leg_index = find_current_leg(position, self._route)
        progress = compute_progress(position, self._route, leg_index)
        self._progress = progress

        on_last_leg = leg_index == len(self._route.legs) - 1
        if (
            not self._arrived
            and on_last_leg
            and progress.remaining_distance_m <= self.config.arrival_threshold_m
        ):
            self._arrived = True
            logger.info("Destination reached.")
        return progress
