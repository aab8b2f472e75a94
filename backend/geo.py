"""Spherical geometry helpers.

All functions work on ``(lat, lng)`` tuples in degrees and a spherical earth
of radius 6371 km. They are pure: no I/O and no hidden state.
"""

import math
from collections.abc import Iterable, Sequence

from errors import EmptyInput, InvalidCoordinate

EARTH_RADIUS_KM: float = 6371.0

LatLng = tuple[float, float]
BoundingBox = tuple[LatLng, LatLng]


def validate(point: LatLng) -> LatLng:
    """Returns ``point`` unchanged, or raises InvalidCoordinate."""
    lat, lng = point
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinate(f"Non-finite coordinate: {point!r}")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise InvalidCoordinate(f"Coordinate out of range: {point!r}")
    return point


def _check_finite(*values: float) -> None:
    if not all(math.isfinite(v) for v in values):
        raise InvalidCoordinate(f"Non-finite input: {values!r}")


def distance_km(a: LatLng, b: LatLng) -> float:
    """Returns the great-circle distance in kilometres (haversine)."""
    _check_finite(*a, *b)
    lat1_r, lat2_r = math.radians(a[0]), math.radians(b[0])
    dlat = lat2_r - lat1_r
    dlng = math.radians(b[1] - a[1])
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def destination(origin: LatLng, bearing_deg: float, dist_km: float) -> LatLng:
    """Projects ``dist_km`` from ``origin`` along ``bearing_deg``.

    Uses the spherical "destination point" formula. The longitude of the
    result is normalised into (-180, 180].
    """
    _check_finite(*origin, bearing_deg, dist_km)
    lat1 = math.radians(origin[0])
    lng1 = math.radians(origin[1])
    brg = math.radians(bearing_deg)
    delta = dist_km / EARTH_RADIUS_KM

    sin_lat2 = (
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(brg)
    )
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    y = math.sin(brg) * math.sin(delta) * math.cos(lat1)
    x = math.cos(delta) - math.sin(lat1) * math.sin(lat2)
    lng2 = lng1 + math.atan2(y, x)

    lng_deg = math.degrees(lng2) % 360.0
    if lng_deg > 180.0:
        lng_deg -= 360.0
    return math.degrees(lat2), lng_deg


def bounding_box(points: Iterable[LatLng]) -> BoundingBox:
    """Returns ``((min_lat, min_lng), (max_lat, max_lng))`` of ``points``."""
    pts = list(points)
    if not pts:
        raise EmptyInput("bounding_box needs at least one point.")
    lats = [p[0] for p in pts]
    lngs = [p[1] for p in pts]
    return (min(lats), min(lngs)), (max(lats), max(lngs))


def box_around(center: LatLng, radius_km: float) -> BoundingBox:
    """Returns the box enclosing the four cardinal points ``radius_km`` away.

    A box crossing the antimeridian is returned with its western longitude
    greater than its eastern one (the Google Maps ``bounds`` convention);
    ``contains`` understands that form.
    """
    north, east, south, west = (
        destination(center, b, radius_km) for b in (0, 90, 180, 270)
    )
    (min_lat, min_lng), (max_lat, max_lng) = bounding_box([north, east, south, west])
    if west[1] > east[1]:
        return (min_lat, west[1]), (max_lat, east[1])
    return (min_lat, min_lng), (max_lat, max_lng)


def contains(box: BoundingBox, point: LatLng) -> bool:
    (min_lat, min_lng), (max_lat, max_lng) = box
    if not min_lat <= point[0] <= max_lat:
        return False
    if min_lng <= max_lng:
        return min_lng <= point[1] <= max_lng
    # Wraps across the antimeridian.
    return point[1] >= min_lng or point[1] <= max_lng


def polyline_km(points: Sequence[LatLng]) -> float:
    """Total length of the polyline: sum of consecutive great-circle legs."""
    return sum(
        distance_km(points[i - 1], points[i]) for i in range(1, len(points))
    )
