# heading_smoother.py
# Circular exponential smoothing for a noisy compass heading stream.

import math
from typing import Optional

from ..geo_utils import normalize_angle, shortest_angle_delta


def heading_from_magnetometer(x: float, y: float) -> float:
    """Heading in degrees [0, 360) from the horizontal magnetometer axes."""
    return normalize_angle(math.degrees(math.atan2(y, x)))


class HeadingSmoother:
    """
    Exponentially smooth headings along the shortest arc.

    A smoothing factor of 0 passes raw headings through; 1 freezes the
    output at the first heading ever seen.

    Usage:
        smoother = HeadingSmoother(0.8)
        heading = smoother.update(raw_heading)
    """

    def __init__(self, smoothing_factor: float = 0.8) -> None:
        self._factor = 0.0
        self._last: Optional[float] = None
        self.set_smoothing_factor(smoothing_factor)

    @property
    def smoothing_factor(self) -> float:
        return self._factor

    @property
    def last_heading(self) -> Optional[float]:
        return self._last

    def set_smoothing_factor(self, factor: float) -> None:
        """Clamp `factor` into [0, 1] and apply it to future updates."""
        self._factor = max(0.0, min(1.0, float(factor)))

    def update(self, raw_heading: float) -> float:
        """
        Fold one raw heading into the smoothed estimate.

        Args:
            raw_heading: Heading in degrees, any range.

        Returns:
            Smoothed heading in [0, 360).
        """
        if self._last is None:
            self._last = normalize_angle(raw_heading)
            return self._last

        delta = shortest_angle_delta(self._last, raw_heading)
        self._last = normalize_angle(self._last + delta * (1.0 - self._factor))
        return self._last

    def reset(self) -> None:
        self._last = None
