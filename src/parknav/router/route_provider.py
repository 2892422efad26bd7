# route_provider.py
# Route providers behind a single fetch_route() capability.
#
# The navigation core never talks to the network. Google / OpenRouteService
# providers receive an injected `transport` that performs the HTTP call and
# returns the decoded JSON body; this module only builds requests and parses
# responses into Route objects.

import logging
import re
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..geo_utils import haversine_distance, interpolate
from ..models import Coord, ManeuverModifier, ManeuverType, Route, RouteLeg
from ..nav_config import MOCK_SPEED_MPS
from ..nav_errors import RouteUnavailable
from .polyline import decode_polyline

logger = logging.getLogger(__name__)

# transport(method, url, payload, headers) -> decoded JSON body
Transport = Callable[[str, str, dict, dict], dict]

GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
OPENROUTE_DIRECTIONS_URL = "https://api.openrouteservice.org/v2/directions/driving-car"

_HTML_TAG = re.compile(r"<[^>]*>")


class RouteProviderKind(Enum):
    MOCK      = "mock"
    GOOGLE    = "google"
    OPENROUTE = "openroute"


class RouteProvider:
    """Interface: fetch a route or raise RouteUnavailable."""

    kind: RouteProviderKind

    def fetch_route(
        self,
        origin: Coord,
        destination: Coord,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> Route:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

def _mock_instruction(index: int, total: int) -> str:
    if index == 0:
        return "Head north on current road"
    if index == total - 1:
        return "Arrive at destination"
    directions = ("left", "right", "straight")
    roads = ("Main Road", "Boulevard", "Street", "Avenue", "Lane")
    direction = directions[index % len(directions)]
    road = roads[index % len(roads)]
    if direction == "straight":
        return f"Continue straight on {road}"
    return f"Turn {direction} onto {road}"


class MockRouteProvider(RouteProvider):
    """
    Deterministic straight-line route for development and simulation.

    The line is cut into 3..8 equal legs (one per kilometre) travelled at
    `speed_mps`.
    """

    kind = RouteProviderKind.MOCK

    def __init__(self, speed_mps: float = MOCK_SPEED_MPS) -> None:
        self.speed_mps = speed_mps

    def fetch_route(
        self,
        origin: Coord,
        destination: Coord,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> Route:
        total = haversine_distance(origin, destination)
        duration = float(int(total / self.speed_mps + 0.5))
        n_legs = min(max(3, int(total / 1000 + 0.5)), 8)
        modifiers = (ManeuverModifier.LEFT, ManeuverModifier.RIGHT, ManeuverModifier.STRAIGHT)

        points = [interpolate(origin, destination, i / n_legs) for i in range(n_legs + 1)]
        legs: List[RouteLeg] = []
        for i in range(n_legs):
            if i == 0:
                maneuver = ManeuverType.DEPART
            elif i == n_legs - 1:
                maneuver = ManeuverType.ARRIVE
            else:
                maneuver = ManeuverType.TURN
            legs.append(RouteLeg(
                geometry=(points[i], points[i + 1]),
                distance_m=total / n_legs,
                duration_s=duration / n_legs,
                instruction=_mock_instruction(i, n_legs),
                maneuver=maneuver,
                modifier=modifiers[i % 3],
            ))

        logger.info(f"Mock route: {total:.0f} m in {len(legs)} legs.")
        return Route(legs=tuple(legs), geometry=tuple(points), distance_m=total, duration_s=duration)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _modifier_from_text(text: str) -> ManeuverModifier:
    text = text.lower()
    if "left" in text:
        return ManeuverModifier.LEFT
    if "right" in text:
        return ManeuverModifier.RIGHT
    return ManeuverModifier.STRAIGHT


def _google_maneuver(raw: Optional[str]) -> Tuple[ManeuverType, ManeuverModifier]:
    raw = raw or "straight"
    modifier = _modifier_from_text(raw)
    if modifier == ManeuverModifier.STRAIGHT:
        return ManeuverType.CONTINUE, modifier
    return ManeuverType.TURN, modifier


# OpenRouteService instruction type codes
_ORS_TYPES = {
    0: (ManeuverType.TURN, ManeuverModifier.LEFT),
    1: (ManeuverType.TURN, ManeuverModifier.RIGHT),
    2: (ManeuverType.TURN, ManeuverModifier.LEFT),
    3: (ManeuverType.TURN, ManeuverModifier.RIGHT),
    4: (ManeuverType.TURN, ManeuverModifier.LEFT),
    5: (ManeuverType.TURN, ManeuverModifier.RIGHT),
    6: (ManeuverType.CONTINUE, ManeuverModifier.STRAIGHT),
    10: (ManeuverType.ARRIVE, ManeuverModifier.ARRIVE),
    11: (ManeuverType.DEPART, ManeuverModifier.DEPART),
    12: (ManeuverType.CONTINUE, ManeuverModifier.LEFT),
    13: (ManeuverType.CONTINUE, ManeuverModifier.RIGHT),
}


def parse_google_response(data: dict) -> Route:
    """
    Convert a Google Directions JSON body into a Route (first route, first leg).

    Raises:
        RouteUnavailable: On a non-OK status or a body missing required keys.
    """
    status = data.get("status", "OK")
    if status != "OK":
        raise RouteUnavailable(f"Google Directions API error: {status}")
    try:
        route = data["routes"][0]
        leg = route["legs"][0]
        geometry = decode_polyline(route["overview_polyline"]["points"])
        legs = []
        for step in leg["steps"]:
            maneuver, modifier = _google_maneuver(step.get("maneuver"))
            legs.append(RouteLeg(
                geometry=tuple(decode_polyline(step["polyline"]["points"])),
                distance_m=float(step["distance"]["value"]),
                duration_s=float(step["duration"]["value"]),
                instruction=_HTML_TAG.sub("", step["html_instructions"]),
                maneuver=maneuver,
                modifier=modifier,
            ))
        return Route(
            legs=tuple(legs),
            geometry=tuple(geometry),
            distance_m=float(leg["distance"]["value"]),
            duration_s=float(leg["duration"]["value"]),
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RouteUnavailable(f"Unexpected Google Directions response: {e!r}") from e


def _openroute_geometry(raw) -> List[Coord]:
    if isinstance(raw, str):
        return decode_polyline(raw)
    if isinstance(raw, dict):
        raw = raw["coordinates"]
    # GeoJSON order is [lon, lat]
    return [Coord(float(c[1]), float(c[0])) for c in raw]


def parse_openroute_response(data: dict) -> Route:
    """
    Convert an OpenRouteService directions JSON body into a Route.

    Raises:
        RouteUnavailable: On an error body or missing keys.
    """
    if "error" in data:
        raise RouteUnavailable(f"OpenRouteService error: {data['error']}")
    try:
        route = data["routes"][0]
        summary = route["summary"]
        geometry = _openroute_geometry(route["geometry"])
        legs = []
        for step in route["segments"][0]["steps"]:
            first, last = step["way_points"]
            maneuver, modifier = _ORS_TYPES.get(
                int(step.get("type", 6)), (ManeuverType.CONTINUE, ManeuverModifier.STRAIGHT)
            )
            legs.append(RouteLeg(
                geometry=tuple(geometry[first:last + 1]),
                distance_m=float(step["distance"]),
                duration_s=float(step["duration"]),
                instruction=step["instruction"],
                maneuver=maneuver,
                modifier=modifier,
            ))
        return Route(
            legs=tuple(legs),
            geometry=tuple(geometry),
            distance_m=float(summary.get("distance", 0.0)),
            duration_s=float(summary.get("duration", 0.0)),
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RouteUnavailable(f"Unexpected OpenRouteService response: {e!r}") from e


# ---------------------------------------------------------------------------
# Remote providers
# ---------------------------------------------------------------------------

class _RemoteRouteProvider(RouteProvider):

    def __init__(self, api_key: Optional[str], transport: Optional[Transport], language: str = "en",
                 units: str = "metric") -> None:
        self.api_key = api_key
        self.transport = transport
        self.language = language
        self.units = units

    def fetch_route(
        self,
        origin: Coord,
        destination: Coord,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> Route:
        if not self.api_key:
            raise RouteUnavailable(f"{self.kind.value} API key required")
        if self.transport is None:
            raise RouteUnavailable(f"No transport configured for {self.kind.value} routing")
        try:
            data = self._request(origin, destination, list(waypoints or []))
        except RouteUnavailable:
            raise
        except Exception as e:
            logger.warning(f"{self.kind.value} route request failed: {e}")
            raise RouteUnavailable("Failed to fetch route") from e
        return self._parse(data)

    def _request(self, origin: Coord, destination: Coord, waypoints: List[Coord]) -> dict:
        raise NotImplementedError

    def _parse(self, data: dict) -> Route:
        raise NotImplementedError


class GoogleRouteProvider(_RemoteRouteProvider):
    kind = RouteProviderKind.GOOGLE

    def _request(self, origin: Coord, destination: Coord, waypoints: List[Coord]) -> dict:
        params = {
            "origin": f"{origin.lat},{origin.lon}",
            "destination": f"{destination.lat},{destination.lon}",
            "mode": "driving",
            "language": self.language,
            "units": self.units,
            "key": self.api_key,
        }
        if waypoints:
            params["waypoints"] = "|".join(f"{w.lat},{w.lon}" for w in waypoints)
        return self.transport("GET", GOOGLE_DIRECTIONS_URL, params, {})

    def _parse(self, data: dict) -> Route:
        return parse_google_response(data)


class OpenRouteProvider(_RemoteRouteProvider):
    kind = RouteProviderKind.OPENROUTE

    def _request(self, origin: Coord, destination: Coord, waypoints: List[Coord]) -> dict:
        body = {
            "coordinates": [[c.lon, c.lat] for c in [origin, *waypoints, destination]],
            "format": "json",
            "instructions": True,
            "units": "m" if self.units == "metric" else "mi",
        }
        headers = {"Authorization": self.api_key, "Content-Type": "application/json"}
        return self.transport("POST", OPENROUTE_DIRECTIONS_URL, body, headers)

    def _parse(self, data: dict) -> Route:
        return parse_openroute_response(data)


def create_route_provider(
    kind: RouteProviderKind = RouteProviderKind.MOCK,
    api_key: Optional[str] = None,
    transport: Optional[Transport] = None,
    **kwargs,
) -> RouteProvider:
    """Build the provider for `kind`; the orchestrator only sees fetch_route()."""
    if kind == RouteProviderKind.GOOGLE:
        return GoogleRouteProvider(api_key, transport, **kwargs)
    if kind == RouteProviderKind.OPENROUTE:
        return OpenRouteProvider(api_key, transport, **kwargs)
    return MockRouteProvider(**kwargs)
