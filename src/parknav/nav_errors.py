# nav_errors.py
# Error taxonomy surfaced to callers of the navigation core.
#
# A throttled ("stale") sample is not an error: it is dropped and only
# counted by UpdateThrottler.


class NavigationError(Exception):
    """Base class for every error raised by parknav."""


class LocationUnavailable(NavigationError):
    """Position sensor denied, absent, or produced no fix."""


class RouteUnavailable(NavigationError):
    """The route provider failed; no navigation state was created."""


class MalformedRoute(NavigationError):
    """A route violated a structural invariant and was rejected on ingest."""
