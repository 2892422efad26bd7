"""
Tests for parknav.navigator: the orchestrator wired to replay sources, a
manual idle timer and synthetic routes.
"""

import threading
import time
from dataclasses import replace

import pytest

from nav_helpers import BASE, ManualIdleTimer, north_of, three_leg_route
from parknav.event_pump import EventPump
from parknav.models import (
    CameraMode,
    HeadingSample,
    InteractionKind,
    PositionSample,
    UserInteraction,
)
from parknav.nav_config import NavConfig
from parknav.nav_errors import LocationUnavailable, MalformedRoute, RouteUnavailable
from parknav.navigator import NavigationOrchestrator
from parknav.router.route_provider import MockRouteProvider
from parknav.sensors.sources import ReplayHeadingSource, ReplayPositionSource


# ── helpers ──────────────────────────────────────────────────────────────

class FailingProvider:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def fetch_route(self, origin, destination, waypoints=None):
        self.calls += 1
        raise self.error


class Harness:
    """Orchestrator plus the collaborators a test needs to poke; samples run inline."""

    def __init__(self, provider=None, **config):
        self.positions = ReplayPositionSource()
        self.headings = ReplayHeadingSource()
        self.timer = ManualIdleTimer()
        self.nav = NavigationOrchestrator(
            self.positions,
            self.headings,
            provider,
            config=NavConfig(**config),
            idle_timer=self.timer,
            clock=lambda: 0.0,
            pump=None,
        )
        self.frames = []
        self.ended = []
        self.nav.subscribe_frames(self.frames.append)
        self.nav.subscribe_ended(lambda: self.ended.append(True))

    def fix(self, metres_north, t, speed=10.0):
        self.positions.emit(PositionSample(north_of(BASE, metres_north), timestamp=t, speed=speed))


@pytest.fixture
def h():
    return Harness()


# ── end to end ───────────────────────────────────────────────────────────

def test_fix_at_second_leg_start_reports_remaining_legs(h):
    h.nav.start_navigation(three_leg_route())
    h.fix(1000.0, t=1.0)
    progress = h.nav.progress
    assert progress.leg_index == 1
    assert progress.remaining_distance_m == pytest.approx(2000.0)
    assert progress.next_instruction == "Turn right onto Street"
    assert h.frames[-1].progress == progress
    assert h.frames[-1].position == north_of(BASE, 1000.0)


def test_start_publishes_initial_frame_and_subscribes(h):
    route = three_leg_route()
    assert h.nav.start_navigation(route) is route
    assert h.nav.is_navigating
    assert len(h.frames) == 1
    assert h.frames[0].progress.remaining_distance_m == 3000.0
    assert h.positions.subscriber_count == 1
    assert h.headings.subscriber_count == 1


def test_navigate_to_uses_current_fix_as_origin():
    h = Harness(provider=MockRouteProvider())
    h.fix(0.0, t=0.0)
    route = h.nav.navigate_to(north_of(BASE, 4000.0))
    assert route.origin == BASE
    assert len(route.legs) == 4
    assert h.nav.route is route
    assert h.nav.is_navigating


# ── failures ─────────────────────────────────────────────────────────────

def test_no_fix_raises_location_unavailable():
    h = Harness(provider=MockRouteProvider())
    with pytest.raises(LocationUnavailable):
        h.nav.navigate_to(north_of(BASE, 4000.0))
    assert not h.nav.is_navigating
    assert h.positions.subscriber_count == 0


def test_provider_failure_changes_nothing():
    provider = FailingProvider(RuntimeError("socket closed"))
    h = Harness(provider=provider)
    with pytest.raises(RouteUnavailable):
        h.nav.navigate_to(north_of(BASE, 4000.0), origin=BASE)
    assert provider.calls == 1
    assert not h.nav.is_navigating
    assert h.nav.route is None
    assert h.frames == []


def test_missing_provider_raises_route_unavailable(h):
    with pytest.raises(RouteUnavailable):
        h.nav.navigate_to(north_of(BASE, 4000.0), origin=BASE)


def test_malformed_route_keeps_active_route(h):
    good = three_leg_route()
    h.nav.start_navigation(good)
    with pytest.raises(MalformedRoute):
        h.nav.start_navigation(replace(good, legs=()))
    assert h.nav.route is good
    assert h.nav.is_navigating


def test_malformed_route_does_not_start_navigation(h):
    with pytest.raises(MalformedRoute):
        h.nav.start_navigation(replace(three_leg_route(), geometry=()))
    assert not h.nav.is_navigating
    assert h.positions.subscriber_count == 0


def test_failing_frame_listener_does_not_stop_navigation(h):
    def broken(_):
        raise RuntimeError("render crashed")

    h.nav.subscribe_frames(broken)
    h.nav.start_navigation(three_leg_route())
    h.fix(100.0, t=1.0)
    assert len(h.frames) == 2


# ── lifecycle ────────────────────────────────────────────────────────────

def test_end_navigation_is_idempotent_and_unsubscribes(h):
    h.nav.start_navigation(three_leg_route())
    h.nav.end_navigation()
    h.nav.end_navigation()
    assert h.ended == [True]
    assert not h.nav.is_navigating
    assert h.nav.route is None
    assert h.positions.subscriber_count == 0
    assert h.headings.subscriber_count == 0
    assert h.nav.pose.mode == CameraMode.AUTONOMOUS


def test_samples_after_end_are_ignored(h):
    h.nav.start_navigation(three_leg_route())
    h.nav.end_navigation()
    count = len(h.frames)
    h.fix(500.0, t=5.0)
    assert h.nav.on_position_sample(PositionSample(BASE, timestamp=6.0)) is None
    assert h.nav.on_heading_sample(HeadingSample(90.0, timestamp=6.0)) is None
    assert len(h.frames) == count


def test_reroute_keeps_single_subscription(h):
    h.nav.start_navigation(three_leg_route())
    h.nav.start_navigation(three_leg_route(first_leg_gap_m=0.0))
    assert h.positions.subscriber_count == 1
    assert h.ended == []
    assert len(h.frames) == 2


def test_unsubscribe_frames(h):
    extra = []
    handle = h.nav.subscribe_frames(extra.append)
    h.nav.unsubscribe(handle)
    h.nav.start_navigation(three_leg_route())
    assert extra == []
    assert len(h.frames) == 1


# ── sample handling ──────────────────────────────────────────────────────

def test_throttled_sample_publishes_nothing(h):
    h.nav.start_navigation(three_leg_route())
    h.fix(100.0, t=1.0)
    h.fix(110.0, t=1.01)
    assert len(h.frames) == 2
    assert h.nav.throttler.rejected_counts["location"] == 1


def test_small_move_does_not_pan_the_map(h):
    h.nav.start_navigation(three_leg_route())
    h.fix(100.0, t=1.0)
    h.fix(105.0, t=2.5)
    last = h.frames[-1]
    assert not last.update_map
    assert last.position == north_of(BASE, 105.0)
    assert last.pose.center == north_of(BASE, 100.0)


def test_heading_is_smoothed_and_does_not_pan_the_map(h):
    h.nav.start_navigation(three_leg_route())
    h.headings.emit(HeadingSample(90.0, timestamp=1.0))
    h.headings.emit(HeadingSample(100.0, timestamp=1.5))
    assert h.nav.heading == pytest.approx(92.0)
    assert not h.frames[-1].update_map


def test_history_is_bounded():
    h = Harness(history_size=3)
    h.nav.start_navigation(three_leg_route())
    for i in range(5):
        h.fix(100.0 * (i + 1), t=2.0 * (i + 1))
    assert h.nav.history == [north_of(BASE, 300.0), north_of(BASE, 400.0), north_of(BASE, 500.0)]


def test_arrival_is_reported():
    h = Harness()
    h.nav.start_navigation(three_leg_route())
    h.fix(2995.0, t=1.0)
    assert h.nav.arrived


# ── camera arbitration ───────────────────────────────────────────────────

def test_user_interaction_then_idle_timeout_publishes_frames(h):
    h.nav.start_navigation(three_leg_route())
    h.fix(100.0, t=1.0)
    frame = h.nav.on_user_interaction(
        UserInteraction(InteractionKind.ROTATE, timestamp=2.0, bearing=135.0)
    )
    assert frame.pose.mode == CameraMode.USER_CONTROLLED
    assert h.timer.last_delay == 10.0
    h.timer.fire()
    last = h.frames[-1]
    assert last.pose.mode == CameraMode.AUTONOMOUS
    assert last.pose.bearing == 0.0
    assert last.pose.center == north_of(BASE, 100.0)


def test_turn_is_highlighted_near_next_leg(h):
    h.nav.start_navigation(three_leg_route())
    h.headings.emit(HeadingSample(10.0, timestamp=0.5))
    h.fix(1970.0, t=1.0)
    pose = h.frames[-1].pose
    assert pose.zoom == 18.0
    assert pose.pitch == 45.0
    assert pose.bearing == pytest.approx(10.0)


# ── event pump ───────────────────────────────────────────────────────────

def test_samples_routed_through_pump(h):
    pump = EventPump()
    pump.start()
    h.nav.attach_pump(pump)
    h.nav.start_navigation(three_leg_route())
    h.fix(1000.0, t=1.0)
    pump.join()
    pump.stop()
    assert h.nav.progress.leg_index == 1
    assert len(h.frames) == 2


# ── default wiring: private pump ─────────────────────────────────────────

def _default_nav():
    positions, headings = ReplayPositionSource(), ReplayHeadingSource()
    nav = NavigationOrchestrator(positions, headings, idle_timer=ManualIdleTimer())
    return nav, positions, headings


def test_heading_producer_returns_while_position_handler_runs():
    nav, positions, headings = _default_nav()
    entered = threading.Event()
    release = threading.Event()

    def slow_renderer(frame):
        if frame.position is not None and not release.is_set():
            entered.set()
            release.wait(2.0)

    nav.subscribe_frames(slow_renderer)
    nav.start_navigation(three_leg_route())
    positions.emit(PositionSample(north_of(BASE, 100.0), timestamp=1.0, speed=10.0))
    assert entered.wait(2.0)

    started = time.monotonic()
    headings.emit(HeadingSample(90.0, timestamp=1.0))
    assert time.monotonic() - started < 0.1

    release.set()
    nav.pump.join()
    assert nav.heading == pytest.approx(90.0)
    nav.end_navigation()


def test_private_pump_follows_navigation_lifecycle():
    nav, positions, _ = _default_nav()
    assert not nav.pump.running
    nav.start_navigation(three_leg_route())
    assert nav.pump.running
    positions.emit(PositionSample(north_of(BASE, 1000.0), timestamp=1.0, speed=10.0))
    nav.end_navigation()
    assert not nav.pump.running
    nav.start_navigation(three_leg_route())
    assert nav.pump.running
    nav.end_navigation()


def test_end_navigation_from_a_frame_listener():
    nav, positions, _ = _default_nav()
    ended = threading.Event()

    def stop_on_arrival(frame):
        if nav.arrived:
            nav.end_navigation()

    nav.subscribe_frames(stop_on_arrival)
    nav.subscribe_ended(ended.set)
    nav.start_navigation(three_leg_route())
    positions.emit(PositionSample(north_of(BASE, 2995.0), timestamp=1.0, speed=10.0))
    assert ended.wait(2.0)
    assert not nav.is_navigating


def test_attach_pump_none_switches_to_inline_handling():
    nav, positions, _ = _default_nav()
    nav.start_navigation(three_leg_route())
    nav.attach_pump(None)
    assert nav.pump is None
    positions.emit(PositionSample(north_of(BASE, 1000.0), timestamp=1.0, speed=10.0))
    assert nav.progress.leg_index == 1
    nav.end_navigation()
