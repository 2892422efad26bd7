# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

from dataclasses import dataclass, fields


# ---------------------------------------------------------------------------
# Defaults shared with modules that can run without a config
# ---------------------------------------------------------------------------

MAX_ROUTE_POINTS: int = 1000
SIMPLIFICATION_TOLERANCE_DEG: float = 0.0001   # ~10 m at mid latitudes
MAX_LOCATION_HISTORY: int = 100
MOCK_SPEED_MPS: float = 13.89                  # 50 km/h


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Throttling (seconds unless stated)
    location_interval_s: float = 1.0
    orientation_interval_s: float = 0.1
    stationary_speed_mps: float = 1.0
    stationary_threshold_s: float = 30.0       # stationary this long -> slow cadence
    stationary_interval_s: float = 5.0
    map_update_distance_m: float = 10.0
    map_update_interval_s: float = 0.5
    power_saving_multiplier: float = 2.0

    # Heading smoothing (0 = passthrough, 1 = frozen)
    smoothing_factor: float = 0.8

    # Route geometry
    max_route_points: int = MAX_ROUTE_POINTS
    simplification_tolerance_deg: float = SIMPLIFICATION_TOLERANCE_DEG

    # Progress tracking
    arrival_threshold_m: float = 15.0
    history_size: int = MAX_LOCATION_HISTORY

    # Camera
    idle_timeout_s: float = 10.0
    turn_highlight_distance_m: float = 50.0
    default_zoom: float = 15.0
    follow_zoom: float = 16.0
    turn_zoom: float = 18.0
    turn_pitch: float = 45.0

    # Mock routing
    mock_speed_mps: float = MOCK_SPEED_MPS

    @classmethod
    def from_dict(cls, d: dict) -> "NavConfig":
        """Build a config from a plain dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})
