# models.py
# Shared data structures and enums used across all modules.

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate (WGS-84, decimal degrees)."""
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d["lon"]))


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

class ManeuverType(Enum):
    DEPART   = "depart"
    TURN     = "turn"
    CONTINUE = "continue"
    ARRIVE   = "arrive"


class ManeuverModifier(Enum):
    LEFT     = "left"
    RIGHT    = "right"
    STRAIGHT = "straight"
    DEPART   = "depart"
    ARRIVE   = "arrive"


@dataclass(frozen=True)
class RouteLeg:
    """One maneuver-to-maneuver segment of a route."""
    geometry: Tuple[Coord, ...]
    distance_m: float
    duration_s: float
    instruction: str
    maneuver: ManeuverType = ManeuverType.CONTINUE
    modifier: Optional[ManeuverModifier] = None

    @property
    def start(self) -> Coord:
        return self.geometry[0]

    @property
    def end(self) -> Coord:
        return self.geometry[-1]

    def to_dict(self) -> dict:
        return {
            "geometry": [c.to_dict() for c in self.geometry],
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "instruction": self.instruction,
            "maneuver": self.maneuver.value,
            "modifier": self.modifier.value if self.modifier else None,
        }

    @staticmethod
    def from_dict(d: dict) -> "RouteLeg":
        modifier = d.get("modifier")
        return RouteLeg(
            geometry=tuple(Coord.from_dict(c) for c in d["geometry"]),
            distance_m=float(d["distance_m"]),
            duration_s=float(d["duration_s"]),
            instruction=d["instruction"],
            maneuver=ManeuverType(d.get("maneuver", ManeuverType.CONTINUE.value)),
            modifier=ManeuverModifier(modifier) if modifier else None,
        )


@dataclass(frozen=True)
class Route:
    """
    A planned route: ordered legs plus a flattened overview geometry.

    Owned by the navigation session that requested it and replaced
    wholesale on re-route.
    """
    legs: Tuple[RouteLeg, ...]
    geometry: Tuple[Coord, ...]
    distance_m: float
    duration_s: float

    @property
    def origin(self) -> Coord:
        return self.legs[0].start

    @property
    def destination(self) -> Coord:
        return self.legs[-1].end

    def to_dict(self) -> dict:
        return {
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "geometry": [c.to_dict() for c in self.geometry],
            "legs": [leg.to_dict() for leg in self.legs],
        }

    @staticmethod
    def from_dict(d: dict) -> "Route":
        return Route(
            legs=tuple(RouteLeg.from_dict(leg) for leg in d["legs"]),
            geometry=tuple(Coord.from_dict(c) for c in d["geometry"]),
            distance_m=float(d["distance_m"]),
            duration_s=float(d["duration_s"]),
        )


# ---------------------------------------------------------------------------
# Sensor samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionSample:
    """A single fix from the position source."""
    coord: Coord
    timestamp: float                  # seconds, caller-consistent clock
    heading: Optional[float] = None   # degrees
    speed: Optional[float] = None     # m/s
    accuracy: Optional[float] = None  # metres


@dataclass(frozen=True)
class HeadingSample:
    """A single reading from the heading source."""
    heading: float                    # degrees [0, 360)
    timestamp: float
    accuracy: float = 0.0


# ---------------------------------------------------------------------------
# Navigation progress
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressState:
    """Recomputed on every accepted position sample; never patched in place."""
    leg_index: int
    remaining_distance_m: float
    remaining_time_s: float
    next_instruction: Optional[str] = None
    next_instruction_distance_m: Optional[float] = None

    @classmethod
    def initial(cls, route: Route) -> "ProgressState":
        """State shown right after navigation starts, before any fix."""
        first = route.legs[0]
        return cls(
            leg_index=0,
            remaining_distance_m=route.distance_m,
            remaining_time_s=route.duration_s,
            next_instruction=first.instruction,
            next_instruction_distance_m=first.distance_m,
        )


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------

class CameraMode(Enum):
    AUTONOMOUS      = "autonomous"
    USER_CONTROLLED = "user_controlled"


@dataclass(frozen=True)
class CameraPose:
    """Desired map camera; produced only by CameraController."""
    center: Optional[Coord]
    zoom: float
    bearing: float
    pitch: float
    mode: CameraMode = CameraMode.AUTONOMOUS
    last_user_interaction: Optional[float] = None

    @property
    def is_user_controlled(self) -> bool:
        return self.mode == CameraMode.USER_CONTROLLED


class InteractionKind(Enum):
    PAN    = "pan"
    ZOOM   = "zoom"
    ROTATE = "rotate"
    TILT   = "tilt"


@dataclass(frozen=True)
class UserInteraction:
    """A pan/zoom/rotate/tilt gesture, with the pose the user left behind."""
    kind: InteractionKind
    timestamp: float
    center: Optional[Coord] = None
    zoom: Optional[float] = None
    bearing: Optional[float] = None
    pitch: Optional[float] = None


# ---------------------------------------------------------------------------
# Consolidated output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigationFrame:
    """Everything the presentation layer needs after one processed update."""
    pose: CameraPose
    progress: Optional[ProgressState]
    timestamp: float
    position: Optional[Coord] = None
    heading: Optional[float] = None
    update_map: bool = True
