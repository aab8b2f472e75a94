"""Exceptions raised by the route synthesis pipeline.

Only ``InvalidRequest`` and ``LocationNotFound`` are meant to reach the
caller. ``SnapUnavailable`` is recovered from inside the pipeline by falling
back to procedural geometry, and ``RoutingFailed`` can only happen when every
fallback produced fewer than two points.
"""


class RouteSynthesisError(Exception):
    """Base class for every error raised by the route pipeline."""


class InvalidRequest(RouteSynthesisError, ValueError):
    """Missing or malformed request input (no center, non-positive days...)."""


class InvalidCoordinate(InvalidRequest):
    """A latitude or longitude that is non-finite or out of range."""


class EmptyInput(RouteSynthesisError, ValueError):
    """An operation that needs at least one point received none."""


class LocationNotFound(RouteSynthesisError):
    """The geocoder returned no match for a place name."""


class SnapUnavailable(RouteSynthesisError):
    """The routing provider was unreachable or returned unusable data."""


class RoutingFailed(RouteSynthesisError):
    """No candidate source produced a usable path."""
