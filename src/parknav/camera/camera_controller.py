# camera_controller.py
# State machine arbitrating the map camera between autonomous following and
# user control. States: AUTONOMOUS, USER_CONTROLLED.
#
# AUTONOMOUS      -- user pan/zoom/rotate/tilt -->  USER_CONTROLLED (idle timer restarted)
# USER_CONTROLLED -- idle timeout, navigating  -->  AUTONOMOUS (north-up, recentred)
# any             -- navigation ended          -->  AUTONOMOUS (defaults, timer cancelled)

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional

from ..models import CameraMode, CameraPose, Coord, ProgressState, UserInteraction
from ..nav_config import NavConfig
from .idle_timer import IdleTimer

logger = logging.getLogger(__name__)


class CameraEvent(Enum):
    USER_INTERACTION = "user_interaction"
    IDLE_TIMEOUT     = "idle_timeout"
    NAVIGATION_ENDED = "navigation_ended"


_TRANSITIONS = {
    (CameraMode.AUTONOMOUS, CameraEvent.USER_INTERACTION): CameraMode.USER_CONTROLLED,
    (CameraMode.USER_CONTROLLED, CameraEvent.USER_INTERACTION): CameraMode.USER_CONTROLLED,
    (CameraMode.USER_CONTROLLED, CameraEvent.IDLE_TIMEOUT): CameraMode.AUTONOMOUS,
    (CameraMode.AUTONOMOUS, CameraEvent.NAVIGATION_ENDED): CameraMode.AUTONOMOUS,
    (CameraMode.USER_CONTROLLED, CameraEvent.NAVIGATION_ENDED): CameraMode.AUTONOMOUS,
}


class CameraController:
    """
    Single owner of the CameraPose.

    Args:
        config:     NavConfig with zoom/pitch/timeout settings.
        idle_timer: Timer used for the user-idle timeout.
        on_change:  Called with the new pose when it changes from the
                    timer thread (no caller is around to receive it).
        lock:       Mutual-exclusion domain shared with the orchestrator.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        idle_timer: Optional[IdleTimer] = None,
        on_change: Optional[Callable[[CameraPose], None]] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._timer = idle_timer or IdleTimer()
        self._on_change = on_change
        self._lock = lock or threading.RLock()

        self._pose = self._default_pose()
        self._navigating = False
        self._tracked: Optional[Coord] = None
        self._heading: Optional[float] = None
        self._turn_highlight = False
        self._idle_token: Optional[int] = None

    def _default_pose(self, center: Optional[Coord] = None) -> CameraPose:
        return CameraPose(center=center, zoom=self.config.default_zoom, bearing=0.0, pitch=0.0)

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def pose(self) -> CameraPose:
        return self._pose

    @property
    def mode(self) -> CameraMode:
        return self._pose.mode

    @property
    def is_navigating(self) -> bool:
        return self._navigating

    @property
    def idle_timer_pending(self) -> bool:
        return self._idle_token is not None

    def _dispatch(self, event: CameraEvent) -> CameraMode:
        new_mode = _TRANSITIONS.get((self._pose.mode, event))
        if new_mode is not None and new_mode != self._pose.mode:
            logger.debug(f"Camera {self._pose.mode.value} -> {new_mode.value} on {event.value}")
        return new_mode if new_mode is not None else self._pose.mode

    # ------------------------------------------------------------------
    # Navigation lifecycle
    # ------------------------------------------------------------------

    def start_navigation(self) -> CameraPose:
        """Fresh autonomous pose for a new session."""
        with self._lock:
            self._cancel_idle_timer()
            self._navigating = True
            self._turn_highlight = False
            self._pose = self._default_pose(self._tracked)
            return self._pose

    def end_navigation(self) -> CameraPose:
        """Force AUTONOMOUS with default pitch/bearing; safe to call repeatedly."""
        with self._lock:
            self._cancel_idle_timer()
            mode = self._dispatch(CameraEvent.NAVIGATION_ENDED)
            self._navigating = False
            self._turn_highlight = False
            self._pose = replace(
                self._pose,
                mode=mode,
                zoom=self.config.default_zoom,
                bearing=0.0,
                pitch=0.0,
            )
            return self._pose

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def on_user_interaction(self, event: UserInteraction) -> CameraPose:
        """Hand the camera to the user and restart (never extend) the idle timer."""
        with self._lock:
            mode = self._dispatch(CameraEvent.USER_INTERACTION)
            self._pose = CameraPose(
                center=event.center if event.center is not None else self._pose.center,
                zoom=event.zoom if event.zoom is not None else self._pose.zoom,
                bearing=event.bearing if event.bearing is not None else self._pose.bearing,
                pitch=event.pitch if event.pitch is not None else self._pose.pitch,
                mode=mode,
                last_user_interaction=event.timestamp,
            )
            if self._navigating:
                self._idle_token = self._timer.start(self.config.idle_timeout_s, self._on_timer)
            return self._pose

    def on_idle_timeout(self, token: int) -> Optional[CameraPose]:
        """
        Return control to the autonomous camera.

        Returns:
            The new pose, or None when the firing was stale (a newer
            interaction restarted the timer) or nothing changed.
        """
        with self._lock:
            if token != self._idle_token:
                logger.debug(f"Ignoring stale idle timeout (token {token}).")
                return None
            self._idle_token = None
            if not self._navigating or self._pose.mode != CameraMode.USER_CONTROLLED:
                return None
            mode = self._dispatch(CameraEvent.IDLE_TIMEOUT)
            self._turn_highlight = False
            self._pose = replace(
                self._pose,
                mode=mode,
                center=self._tracked if self._tracked is not None else self._pose.center,
                zoom=self.config.follow_zoom,
                bearing=0.0,
                pitch=0.0,
            )
            logger.info("User idle; camera back to autonomous north-up.")
            return self._pose

    def on_progress(
        self,
        position: Coord,
        progress: Optional[ProgressState],
        heading: Optional[float] = None,
        move_camera: bool = True,
    ) -> CameraPose:
        """
        Follow the tracked position; highlight an upcoming turn.

        With move_camera=False only the tracked position is recorded (the
        fix was too close to the last camera move to be worth animating).
        """
        with self._lock:
            self._tracked = position
            if heading is not None:
                self._heading = heading
            if (
                not move_camera
                or not self._navigating
                or self._pose.mode != CameraMode.AUTONOMOUS
            ):
                return self._pose

            next_dist = progress.next_instruction_distance_m if progress else None
            self._turn_highlight = (
                next_dist is not None and next_dist < self.config.turn_highlight_distance_m
            )
            if self._turn_highlight:
                self._pose = replace(
                    self._pose,
                    center=position,
                    zoom=self.config.turn_zoom,
                    pitch=self.config.turn_pitch,
                    bearing=self._heading if self._heading is not None else 0.0,
                )
            else:
                self._pose = replace(
                    self._pose,
                    center=position,
                    zoom=self.config.follow_zoom,
                    pitch=0.0,
                    bearing=0.0,
                )
            return self._pose

    def on_heading(self, heading: float) -> CameraPose:
        """Track heading; rotates the camera only while a turn is highlighted."""
        with self._lock:
            self._heading = heading
            if (
                self._navigating
                and self._turn_highlight
                and self._pose.mode == CameraMode.AUTONOMOUS
            ):
                self._pose = replace(self._pose, bearing=heading)
            return self._pose

    # ------------------------------------------------------------------
    # Timer plumbing
    # ------------------------------------------------------------------

    def _on_timer(self, token: int) -> None:
        pose = self.on_idle_timeout(token)
        if pose is not None and self._on_change is not None:
            self._on_change(pose)

    def _cancel_idle_timer(self) -> None:
        if self._idle_token is not None:
            self._timer.cancel()
            self._idle_token = None
