"""
Tests for parknav.router.route_provider: mock routes, Google / OpenRouteService
parsing through a fake transport, and provider selection.
"""

import pytest

from nav_helpers import BASE, north_of
from parknav.geo_utils import haversine_distance
from parknav.models import ManeuverModifier, ManeuverType
from parknav.nav_errors import RouteUnavailable
from parknav.router.polyline import encode_polyline
from parknav.router.route_provider import (
    GOOGLE_DIRECTIONS_URL,
    OPENROUTE_DIRECTIONS_URL,
    GoogleRouteProvider,
    MockRouteProvider,
    OpenRouteProvider,
    RouteProviderKind,
    create_route_provider,
    parse_google_response,
    parse_openroute_response,
)
from parknav.router.route_simplifier import validate_route

MID = north_of(BASE, 400.0)
END = north_of(BASE, 1000.0)


# ── helpers ──────────────────────────────────────────────────────────────

class FakeTransport:
    """Records requests and answers with a canned body (or raises)."""

    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    def __call__(self, method, url, payload, headers):
        self.calls.append((method, url, payload, headers))
        if self.error is not None:
            raise self.error
        return self.body


def _google_body():
    return {
        "status": "OK",
        "routes": [{
            "overview_polyline": {"points": encode_polyline([BASE, MID, END])},
            "legs": [{
                "distance": {"value": 1000},
                "duration": {"value": 100},
                "steps": [
                    {
                        "polyline": {"points": encode_polyline([BASE, MID])},
                        "distance": {"value": 400},
                        "duration": {"value": 40},
                        "html_instructions": "Head <b>north</b>",
                    },
                    {
                        "polyline": {"points": encode_polyline([MID, END])},
                        "distance": {"value": 600},
                        "duration": {"value": 60},
                        "html_instructions": "Turn <b>right</b> onto <b>Main Road</b>",
                        "maneuver": "turn-right",
                    },
                ],
            }],
        }],
    }


def _openroute_body():
    return {
        "routes": [{
            "summary": {"distance": 1000.0, "duration": 100.0},
            "geometry": {"coordinates": [[p.lon, p.lat] for p in (BASE, MID, END)]},
            "segments": [{
                "steps": [
                    {"distance": 400.0, "duration": 40.0, "type": 11,
                     "instruction": "Head north", "way_points": [0, 1]},
                    {"distance": 600.0, "duration": 60.0, "type": 1,
                     "instruction": "Turn right onto Main Road", "way_points": [1, 2]},
                ],
            }],
        }],
    }


# ── mock provider ────────────────────────────────────────────────────────

def test_mock_route_has_one_leg_per_kilometre():
    route = MockRouteProvider().fetch_route(BASE, north_of(BASE, 5000.0))
    assert len(route.legs) == 5
    assert route.distance_m == pytest.approx(5000.0)
    assert route.duration_s == 360.0
    assert sum(leg.distance_m for leg in route.legs) == pytest.approx(route.distance_m)
    validate_route(route)


def test_mock_leg_count_is_clamped():
    short = MockRouteProvider().fetch_route(BASE, north_of(BASE, 300.0))
    long = MockRouteProvider().fetch_route(BASE, north_of(BASE, 20_000.0))
    assert len(short.legs) == 3
    assert len(long.legs) == 8


def test_mock_instructions_and_maneuvers():
    route = MockRouteProvider().fetch_route(BASE, north_of(BASE, 5000.0))
    texts = [leg.instruction for leg in route.legs]
    assert texts[0] == "Head north on current road"
    assert texts[1] == "Turn right onto Boulevard"
    assert texts[2] == "Continue straight on Street"
    assert texts[-1] == "Arrive at destination"
    assert route.legs[0].maneuver == ManeuverType.DEPART
    assert route.legs[-1].maneuver == ManeuverType.ARRIVE
    assert route.legs[0].start == BASE


def test_mock_legs_are_contiguous():
    route = MockRouteProvider().fetch_route(BASE, north_of(BASE, 4000.0))
    for prev, nxt in zip(route.legs, route.legs[1:]):
        assert prev.end == nxt.start


# ── Google ───────────────────────────────────────────────────────────────

def test_parse_google_response():
    route = parse_google_response(_google_body())
    assert route.distance_m == 1000.0
    assert route.duration_s == 100.0
    assert len(route.geometry) == 3
    assert [leg.instruction for leg in route.legs] == ["Head north", "Turn right onto Main Road"]
    assert route.legs[0].maneuver == ManeuverType.CONTINUE
    assert (route.legs[1].maneuver, route.legs[1].modifier) == (ManeuverType.TURN, ManeuverModifier.RIGHT)
    assert haversine_distance(route.legs[1].end, END) < 1.0


def test_google_error_status_raises():
    with pytest.raises(RouteUnavailable, match="ZERO_RESULTS"):
        parse_google_response({"status": "ZERO_RESULTS", "routes": []})


def test_google_missing_keys_raise_route_unavailable():
    with pytest.raises(RouteUnavailable):
        parse_google_response({"status": "OK", "routes": []})


def test_google_provider_builds_request():
    transport = FakeTransport(_google_body())
    provider = GoogleRouteProvider("secret", transport)
    route = provider.fetch_route(BASE, END, waypoints=[MID])
    assert len(route.legs) == 2
    method, url, params, _ = transport.calls[0]
    assert (method, url) == ("GET", GOOGLE_DIRECTIONS_URL)
    assert params["key"] == "secret"
    assert params["origin"] == f"{BASE.lat},{BASE.lon}"
    assert params["waypoints"] == f"{MID.lat},{MID.lon}"


# ── OpenRouteService ─────────────────────────────────────────────────────

def test_parse_openroute_response():
    route = parse_openroute_response(_openroute_body())
    assert route.distance_m == 1000.0
    assert route.legs[0].geometry == (BASE, MID)
    assert route.legs[1].geometry == (MID, END)
    assert route.legs[0].maneuver == ManeuverType.DEPART
    assert route.legs[1].modifier == ManeuverModifier.RIGHT


def test_openroute_error_body_raises():
    with pytest.raises(RouteUnavailable):
        parse_openroute_response({"error": {"code": 2010, "message": "Could not find point"}})


def test_openroute_provider_sends_lon_lat_pairs():
    transport = FakeTransport(_openroute_body())
    OpenRouteProvider("secret", transport).fetch_route(BASE, END, waypoints=[MID])
    method, url, body, headers = transport.calls[0]
    assert (method, url) == ("POST", OPENROUTE_DIRECTIONS_URL)
    assert body["coordinates"] == [[BASE.lon, BASE.lat], [MID.lon, MID.lat], [END.lon, END.lat]]
    assert headers["Authorization"] == "secret"


# ── failures and selection ───────────────────────────────────────────────

def test_missing_api_key_raises_without_request():
    transport = FakeTransport(_google_body())
    with pytest.raises(RouteUnavailable, match="API key required"):
        GoogleRouteProvider(None, transport).fetch_route(BASE, END)
    assert transport.calls == []


def test_transport_failure_is_wrapped():
    transport = FakeTransport(error=OSError("connection reset"))
    with pytest.raises(RouteUnavailable, match="Failed to fetch route") as info:
        OpenRouteProvider("secret", transport).fetch_route(BASE, END)
    assert isinstance(info.value.__cause__, OSError)


def test_create_route_provider_dispatch():
    transport = FakeTransport()
    assert isinstance(create_route_provider(), MockRouteProvider)
    assert create_route_provider(RouteProviderKind.MOCK, speed_mps=10.0).speed_mps == 10.0
    google = create_route_provider(RouteProviderKind.GOOGLE, "k", transport)
    ors = create_route_provider(RouteProviderKind.OPENROUTE, "k", transport, language="tr")
    assert isinstance(google, GoogleRouteProvider)
    assert isinstance(ors, OpenRouteProvider)
    assert ors.language == "tr"
