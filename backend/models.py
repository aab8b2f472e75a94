"""Pydantic request and response models for the route synthesis backend."""

from typing import Literal

from pydantic import BaseModel, Field

ActivityType = Literal["hike", "bike"]
"""Activity class of a trip: ``hike`` loops back, ``bike`` is point-to-point."""

WaypointSource = Literal["explicit", "suggested", "procedural"]


class WaypointInput(BaseModel):
    """A point of interest the route should pass through.

    Either a place ``name`` (geocoded near the route center) or explicit
    ``lat``/``lng`` coordinates.
    """

    name: str | None = None
    lat: float | None = None
    lng: float | None = None


class RouteRequest(BaseModel):
    """Request body for the /generate-route endpoint."""

    location: str | None = None
    """Free-text place name or 'lat,lng' string; ignored when lat/lng are set."""

    lat: float | None = None
    lng: float | None = None

    days: int
    """Trip duration in days; must be at least 1."""

    type: ActivityType

    waypoints: list[WaypointInput] = Field(default_factory=list)
    """Optional ordered points of interest to route through."""


class Place(BaseModel):
    """A resolved location with a display name."""

    lat: float
    lng: float
    name: str = ""


class Route(BaseModel):
    """A synthesized route, before it is shaped into the HTTP response."""

    points: list[tuple[float, float]]
    """Ordered (lat, lng) points; at least two."""

    total_km: float
    """Sum of the great-circle distances between consecutive points."""

    day_breaks: list[int]
    """Indices into ``points`` where one day ends and the next begins."""

    activity: ActivityType
    center: tuple[float, float]
    source: WaypointSource = "procedural"
    snapped: bool = False


class RouteMeta(BaseModel):
    days: int
    type: ActivityType
    total_km: int
    breaks: list[int]
    source: WaypointSource
    snapped: bool


class RouteResponse(BaseModel):
    """The complete result of a route generation request."""

    center: Place
    points: list[tuple[float, float]]
    meta: RouteMeta


class GeocodeRequest(BaseModel):
    """Request body for the /geocode-address endpoint."""

    address: str


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    formatted_address: str
