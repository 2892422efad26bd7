# sources.py
# Position and heading sources, and the subscription registry they share.
#
# Platform backends (GPS, compass, gyro) live outside this package; they
# only need to implement PositionSource / HeadingSource. The replay sources
# below are fed programmatically and drive the simulation and the tests.

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

from ..geo_utils import calculate_bearing
from ..models import Coord, HeadingSample, PositionSample
from ..nav_errors import LocationUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by subscribe(); pass it back to unsubscribe()."""
    id: int
    topic: str = ""


class SubscriptionRegistry(Generic[T]):
    """
    Listeners keyed by handle, not by callback identity.

    publish() calls every listener; an exception in one listener is logged
    and never stops delivery to the others or removes the listener.
    """

    def __init__(self, topic: str) -> None:
        self.topic = topic
        self._listeners: Dict[SubscriptionHandle, Callable[[T], None]] = {}
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> SubscriptionHandle:
        handle = SubscriptionHandle(next(_handle_ids), self.topic)
        with self._lock:
            self._listeners[handle] = callback
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Remove a listener. Returns False if the handle was unknown."""
        with self._lock:
            return self._listeners.pop(handle, None) is not None

    def publish(self, value: T) -> None:
        with self._lock:
            listeners = list(self._listeners.items())
        for handle, callback in listeners:
            try:
                callback(value)
            except Exception:
                logger.exception(f"Listener {handle.id} on '{self.topic}' raised; continuing.")

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


# ---------------------------------------------------------------------------
# Source interfaces
# ---------------------------------------------------------------------------

class PositionSource:
    """Interface for the position collaborator (pull and push)."""

    def get_current_position(self) -> PositionSample:
        """Return one fix, or raise LocationUnavailable."""
        raise NotImplementedError

    def subscribe(self, callback: Callable[[PositionSample], None]) -> SubscriptionHandle:
        raise NotImplementedError

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        raise NotImplementedError


class HeadingSource:
    """Interface for the heading collaborator (push only)."""

    def subscribe(self, callback: Callable[[HeadingSample], None]) -> SubscriptionHandle:
        raise NotImplementedError

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Replay implementations
# ---------------------------------------------------------------------------

class ReplayPositionSource(PositionSource):
    """
    Position source fed by emit(); remembers the last fix for pull requests.

    Args:
        available: When False, get_current_position() raises
                   LocationUnavailable (permission denied / no sensor).
    """

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self._registry: SubscriptionRegistry[PositionSample] = SubscriptionRegistry("position")
        self._last: Optional[PositionSample] = None

    @property
    def last_known(self) -> Optional[PositionSample]:
        return self._last

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    def get_current_position(self) -> PositionSample:
        if not self.available:
            raise LocationUnavailable("Location services are disabled or denied.")
        if self._last is None:
            raise LocationUnavailable("No position fix received yet.")
        return self._last

    def subscribe(self, callback: Callable[[PositionSample], None]) -> SubscriptionHandle:
        return self._registry.subscribe(callback)

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._registry.unsubscribe(handle)

    def emit(self, sample: PositionSample) -> None:
        """Record `sample` and push it to every subscriber."""
        if not self.available:
            return
        self._last = sample
        self._registry.publish(sample)


class ReplayHeadingSource(HeadingSource):
    """Heading source fed by emit()."""

    # GPS-derived headings are less trustworthy than the compass
    GPS_BEARING_ACCURACY = 0.5

    def __init__(self) -> None:
        self._registry: SubscriptionRegistry[HeadingSample] = SubscriptionRegistry("heading")
        self._last: Optional[HeadingSample] = None

    @property
    def last_known(self) -> Optional[HeadingSample]:
        return self._last

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    def subscribe(self, callback: Callable[[HeadingSample], None]) -> SubscriptionHandle:
        return self._registry.subscribe(callback)

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._registry.unsubscribe(handle)

    def emit(self, sample: HeadingSample) -> None:
        self._last = sample
        self._registry.publish(sample)

    def emit_gps_bearing(self, frm: Coord, to: Coord, timestamp: float) -> HeadingSample:
        """Fallback when no compass is present: heading from two GPS fixes."""
        sample = HeadingSample(
            heading=calculate_bearing(frm, to),
            timestamp=timestamp,
            accuracy=self.GPS_BEARING_ACCURACY,
        )
        self.emit(sample)
        return sample
