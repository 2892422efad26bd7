# update_throttler.py
# Battery/CPU gate in front of the position and heading streams.
#
# Every should_update_* method is a boolean decision plus bookkeeping;
# samples are never modified. Rejected samples are simply dropped and
# counted per stream.

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional

from ..geo_utils import haversine_distance
from ..models import Coord, HeadingSample, PositionSample
from ..nav_config import NavConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdaptiveIntervals:
    """Effective throttling intervals after the power-saving multiplier."""
    location_interval_s: float
    orientation_interval_s: float
    map_update_interval_s: float


@dataclass(frozen=True)
class LocationRequestConfig:
    """Suggested settings for the platform location request."""
    distance_filter_m: float
    interval_s: float
    fastest_interval_s: float


MOVING_REQUEST = LocationRequestConfig(distance_filter_m=5.0, interval_s=2.0, fastest_interval_s=1.0)
STATIONARY_REQUEST = LocationRequestConfig(distance_filter_m=50.0, interval_s=10.0, fastest_interval_s=5.0)


@dataclass
class _ThrottleState:
    last_location_ts: Optional[float] = None
    last_orientation_ts: Optional[float] = None
    stationary: bool = False
    stationary_since: Optional[float] = None
    map_reference: Optional[Coord] = None


class UpdateThrottler:
    """
    Decide whether incoming samples should propagate downstream.

    The state survives navigation sessions; call reset() at a session
    boundary to forget timestamps and the stationary classification.

    Args:
        config: NavConfig instance for intervals and thresholds.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._state = _ThrottleState()
        self._power_saving = False
        self._rejected: Counter = Counter()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Power saving
    # ------------------------------------------------------------------

    @property
    def power_saving(self) -> bool:
        return self._power_saving

    @power_saving.setter
    def power_saving(self, enabled: bool) -> None:
        with self._lock:
            self._power_saving = bool(enabled)
        logger.info(f"Power saving {'enabled' if enabled else 'disabled'}.")

    def _scaled(self, interval: float) -> float:
        if self._power_saving:
            return interval * self.config.power_saving_multiplier
        return interval

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def should_update_location(self, sample: PositionSample) -> bool:
        """Time-based gate for position samples, slower while stationary."""
        with self._lock:
            state = self._state
            now = sample.timestamp

            if state.last_location_ts is None:
                state.last_location_ts = now
                return True

            elapsed = now - state.last_location_ts
            if elapsed < self._scaled(self.config.location_interval_s):
                return self._reject("location", elapsed)

            self._update_stationary(sample)

            if (
                state.stationary
                and now - state.stationary_since > self.config.stationary_threshold_s
                and elapsed < self._scaled(self.config.stationary_interval_s)
            ):
                return self._reject("location", elapsed)

            state.last_location_ts = now
            return True

    def should_update_orientation(self, sample: HeadingSample) -> bool:
        """Time-based gate for heading samples."""
        with self._lock:
            state = self._state
            now = sample.timestamp
            if state.last_orientation_ts is not None:
                elapsed = now - state.last_orientation_ts
                if elapsed < self._scaled(self.config.orientation_interval_s):
                    return self._reject("orientation", elapsed)
            state.last_orientation_ts = now
            return True

    def should_update_map(self, sample: PositionSample) -> bool:
        """Distance gate for map camera movement, independent of time."""
        with self._lock:
            state = self._state
            if state.map_reference is None:
                state.map_reference = sample.coord
                return True

            moved = haversine_distance(state.map_reference, sample.coord)
            if moved >= self.config.map_update_distance_m:
                state.map_reference = sample.coord
                return True

            self._rejected["map"] += 1
            return False

    def _update_stationary(self, sample: PositionSample) -> None:
        speed = sample.speed or 0.0
        state = self._state
        if speed < self.config.stationary_speed_mps:
            if not state.stationary:
                state.stationary = True
                state.stationary_since = sample.timestamp
                logger.debug(f"Stationary since t={sample.timestamp:.3f}")
        elif state.stationary:
            state.stationary = False
            state.stationary_since = None
            logger.debug(f"Moving again at t={sample.timestamp:.3f} ({speed:.1f} m/s)")

    def _reject(self, stream: str, elapsed: float) -> bool:
        self._rejected[stream] += 1
        logger.debug(f"Throttled {stream} sample ({elapsed * 1000:.0f} ms since last).")
        return False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_stationary(self) -> bool:
        with self._lock:
            return self._state.stationary

    def stationary_duration(self, now: float) -> float:
        """Seconds spent stationary as of `now` (0 while moving)."""
        with self._lock:
            if not self._state.stationary or self._state.stationary_since is None:
                return 0.0
            return max(0.0, now - self._state.stationary_since)

    @property
    def rejected_counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._rejected)

    def adaptive_intervals(self) -> AdaptiveIntervals:
        with self._lock:
            return AdaptiveIntervals(
                location_interval_s=self._scaled(self.config.location_interval_s),
                orientation_interval_s=self._scaled(self.config.orientation_interval_s),
                map_update_interval_s=self._scaled(self.config.map_update_interval_s),
            )

    def optimized_location_config(self) -> LocationRequestConfig:
        """Location request settings suited to the current movement state."""
        with self._lock:
            return STATIONARY_REQUEST if self._state.stationary else MOVING_REQUEST

    def reset(self) -> None:
        """Forget all timestamps, the stationary state and the map reference."""
        with self._lock:
            self._state = _ThrottleState()
            self._rejected.clear()
