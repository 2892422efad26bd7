# navigator.py
# Public entry point for the navigation core.
# Owns no business logic. Composes the throttler, smoother, tracker and
# camera controller, and publishes one NavigationFrame per processed update.

import logging
import threading
import time
from typing import Any, Callable, List, Optional, Sequence

from .camera.camera_controller import CameraController
from .camera.idle_timer import IdleTimer
from .event_pump import EventPump
from .models import (
    CameraPose,
    Coord,
    HeadingSample,
    NavigationFrame,
    PositionSample,
    ProgressState,
    Route,
    UserInteraction,
)
from .nav_config import NavConfig
from .nav_errors import LocationUnavailable, RouteUnavailable
from .router.route_provider import RouteProvider
from .router.route_simplifier import prepare_route, trim_history
from .router.route_tracker import RouteTracker
from .sensors.heading_smoother import HeadingSmoother
from .sensors.sources import (
    HeadingSource,
    PositionSource,
    SubscriptionHandle,
    SubscriptionRegistry,
)
from .sensors.update_throttler import UpdateThrottler

logger = logging.getLogger(__name__)

# Default for the pump argument: build and manage a private EventPump
_OWN_PUMP: Any = object()


class NavigationOrchestrator:
    """
    High-level navigation facade.

    Typical lifecycle:
        nav = NavigationOrchestrator(position_source, heading_source, provider)
        nav.subscribe_frames(render)
        nav.navigate_to(Coord(39.921, 32.852))

        # Sources push samples; frames arrive in render().
        nav.end_navigation()

    Both sensor streams and user gestures are handled under one lock, so
    updates are serialized. Sensor callbacks only enqueue onto an EventPump
    (owned by the orchestrator unless one is passed in), so producers never
    wait on that lock. Pass pump=None to handle samples inline on the
    producer's thread, which keeps tests deterministic.

    Args:
        position_source: Pull/push position collaborator.
        heading_source:  Push heading collaborator.
        route_provider:  Anything with fetch_route(); only needed for navigate_to().
        config:          Optional NavConfig; defaults to NavConfig().
        throttler:       Shared UpdateThrottler (its state outlives sessions).
        smoother:        HeadingSmoother; built from config if omitted.
        idle_timer:      Timer for the camera idle timeout.
        clock:           Time source for frames not caused by a sample.
        pump:            EventPump for sensor callbacks; by default one is
                         created, started with navigation and stopped at its
                         end. An injected pump is left to its owner.
    """

    def __init__(
        self,
        position_source: PositionSource,
        heading_source: HeadingSource,
        route_provider: Optional[RouteProvider] = None,
        config: Optional[NavConfig] = None,
        throttler: Optional[UpdateThrottler] = None,
        smoother: Optional[HeadingSmoother] = None,
        idle_timer: Optional[IdleTimer] = None,
        clock: Optional[Callable[[], float]] = None,
        pump: Optional[EventPump] = _OWN_PUMP,
    ) -> None:
        self.config = config or NavConfig()
        self._position_source = position_source
        self._heading_source = heading_source
        self._provider = route_provider
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()

        # Specialist modules
        self.throttler = throttler or UpdateThrottler(self.config)
        self.smoother = smoother or HeadingSmoother(self.config.smoothing_factor)
        self._tracker = RouteTracker(self.config)
        self._camera = CameraController(
            self.config, idle_timer=idle_timer, on_change=self._on_camera_change, lock=self._lock,
        )

        self._frames: SubscriptionRegistry[NavigationFrame] = SubscriptionRegistry("frames")
        self._ended: SubscriptionRegistry[None] = SubscriptionRegistry("navigation_ended")
        self._position_handle: Optional[SubscriptionHandle] = None
        self._heading_handle: Optional[SubscriptionHandle] = None
        self._owns_pump = pump is _OWN_PUMP
        self._pump: Optional[EventPump] = EventPump() if self._owns_pump else pump

        self._navigating = False
        self._position: Optional[Coord] = None
        self._heading: Optional[float] = None
        self._history: List[Coord] = []
        self._last_frame: Optional[NavigationFrame] = None

    # ------------------------------------------------------------------
    # Consumer subscriptions
    # ------------------------------------------------------------------

    def subscribe_frames(self, callback: Callable[[NavigationFrame], None]) -> SubscriptionHandle:
        return self._frames.subscribe(callback)

    def subscribe_ended(self, callback: Callable[[], None]) -> SubscriptionHandle:
        return self._ended.subscribe(lambda _: callback())

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if handle.topic == self._ended.topic:
            self._ended.unsubscribe(handle)
        else:
            self._frames.unsubscribe(handle)

    def attach_pump(self, pump: Optional[EventPump]) -> None:
        """
        Route source callbacks through a caller-owned `pump`, or inline when
        None. The private pump, if any, is stopped after the switch.
        """
        with self._lock:
            previous = self._pump if self._owns_pump else None
            self._owns_pump = False
            self._pump = pump
            if self._navigating:
                self._unsubscribe_sources()
                self._subscribe_sources()
        if previous is not None:
            previous.stop()

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def navigate_to(
        self,
        destination: Coord,
        origin: Optional[Coord] = None,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> Route:
        """
        Fetch a route to `destination` and start navigating it.

        Args:
            destination: Target coordinate.
            origin:      Start; defaults to the current position fix.
            waypoints:   Optional intermediate stops.

        Returns:
            The route now being navigated.

        Raises:
            LocationUnavailable: No origin given and no fix available.
            RouteUnavailable:    Provider failure; no state was changed.
            MalformedRoute:      Provider returned a broken route.
        """
        if origin is None:
            try:
                origin = self._position_source.get_current_position().coord
            except LocationUnavailable as e:
                logger.warning(f"Cannot start navigation: {e}")
                raise
        if self._provider is None:
            raise RouteUnavailable("No route provider configured.")

        logger.info(f"Requesting route: {origin} → {destination}")
        try:
            route = self._provider.fetch_route(origin, destination, waypoints)
        except RouteUnavailable as e:
            logger.warning(f"Route request failed: {e}")
            raise
        except Exception as e:
            logger.warning(f"Route provider raised {e!r}")
            raise RouteUnavailable("Failed to fetch route") from e

        return self.start_navigation(route)

    def start_navigation(self, route: Route) -> Route:
        """
        Begin (or re-route) navigation along `route`.

        Raises:
            MalformedRoute: The route was rejected; any active route stays.
        """
        prepared = prepare_route(route, self.config)
        with self._lock:
            rerouting = self._navigating
            self._tracker.load_route(prepared)
            if not rerouting:
                self._camera.start_navigation()
                self._history = []
                if self._owns_pump:
                    self._pump.start()
                self._subscribe_sources()
            self._navigating = True
            frame = self._make_frame(self._clock(), update_map=True)
            logger.info(
                f"{'Re-route' if rerouting else 'Route'} ready: {len(prepared.legs)} legs, "
                f"{prepared.distance_m:.0f} m. First: {prepared.legs[0].instruction}"
            )
            self._publish(frame)
        return prepared

    def end_navigation(self) -> None:
        """
        Stop navigating. Safe to call more than once.

        Samples still queued on the private pump are drained (and ignored)
        before this returns, unless it is called from a pump handler.
        """
        with self._lock:
            self._unsubscribe_sources()
            if not self._navigating:
                return
            self._navigating = False
            self._camera.end_navigation()
            self._tracker.stop()
            self._history = []
            logger.info("Navigation ended.")
            self._ended.publish(None)
        # Outside the lock: the worker may be waiting on it
        if self._owns_pump:
            self._pump.stop()

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def on_position_sample(self, sample: PositionSample) -> Optional[NavigationFrame]:
        """
        Process one position fix.

        Returns:
            The published frame, or None if the sample was throttled or
            navigation is not active.
        """
        with self._lock:
            if not self._navigating:
                return None
            if not self.throttler.should_update_location(sample):
                return None

            update_map = self.throttler.should_update_map(sample)
            progress = self._tracker.check_progress(sample.coord)
            self._position = sample.coord
            self._history = trim_history(self._history + [sample.coord], self.config.history_size)

            self._camera.on_progress(
                sample.coord,
                progress,
                self._heading,
                move_camera=update_map or self._near_turn(progress),
            )
            frame = self._make_frame(sample.timestamp, update_map=update_map)
            self._publish(frame)
            return frame

    def on_heading_sample(self, sample: HeadingSample) -> Optional[NavigationFrame]:
        """Process one compass reading (throttled, then smoothed)."""
        with self._lock:
            if not self._navigating:
                return None
            if not self.throttler.should_update_orientation(sample):
                return None

            self._heading = self.smoother.update(sample.heading)
            self._camera.on_heading(self._heading)
            frame = self._make_frame(sample.timestamp, update_map=False)
            self._publish(frame)
            return frame

    def on_user_interaction(self, event: UserInteraction) -> NavigationFrame:
        """Hand the camera to the user; autonomous control resumes after the idle timeout."""
        with self._lock:
            self._camera.on_user_interaction(event)
            frame = self._make_frame(event.timestamp, update_map=True)
            self._publish(frame)
            return frame

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _near_turn(self, progress: Optional[ProgressState]) -> bool:
        if progress is None or progress.next_instruction_distance_m is None:
            return False
        return progress.next_instruction_distance_m < self.config.turn_highlight_distance_m

    def _make_frame(self, timestamp: float, update_map: bool) -> NavigationFrame:
        return NavigationFrame(
            pose=self._camera.pose,
            progress=self._tracker.progress,
            timestamp=timestamp,
            position=self._position,
            heading=self._heading,
            update_map=update_map,
        )

    def _publish(self, frame: NavigationFrame) -> None:
        self._last_frame = frame
        self._frames.publish(frame)

    def _on_camera_change(self, pose: CameraPose) -> None:
        # Idle timeout fired on the timer thread
        with self._lock:
            if not self._navigating:
                return
            self._publish(self._make_frame(self._clock(), update_map=True))

    def _subscribe_sources(self) -> None:
        if self._pump is not None:
            pump = self._pump

            def on_position(sample: PositionSample) -> None:
                pump.post(self.on_position_sample, sample)

            def on_heading(sample: HeadingSample) -> None:
                pump.post(self.on_heading_sample, sample)
        else:
            on_position = self.on_position_sample
            on_heading = self.on_heading_sample
        if self._position_handle is None:
            self._position_handle = self._position_source.subscribe(on_position)
        if self._heading_handle is None:
            self._heading_handle = self._heading_source.subscribe(on_heading)

    def _unsubscribe_sources(self) -> None:
        if self._position_handle is not None:
            self._position_source.unsubscribe(self._position_handle)
            self._position_handle = None
        if self._heading_handle is not None:
            self._heading_source.unsubscribe(self._heading_handle)
            self._heading_handle = None

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def is_navigating(self) -> bool:
        return self._navigating

    @property
    def route(self) -> Optional[Route]:
        return self._tracker.route

    @property
    def progress(self) -> Optional[ProgressState]:
        return self._tracker.progress

    @property
    def arrived(self) -> bool:
        return self._tracker.arrived

    @property
    def pose(self) -> CameraPose:
        return self._camera.pose

    @property
    def pump(self) -> Optional[EventPump]:
        return self._pump

    @property
    def camera(self) -> CameraController:
        return self._camera

    @property
    def heading(self) -> Optional[float]:
        return self._heading

    @property
    def last_frame(self) -> Optional[NavigationFrame]:
        return self._last_frame

    @property
    def history(self) -> List[Coord]:
        return list(self._history)
