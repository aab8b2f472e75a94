"""Place-name resolution through the Google Maps geocoding API."""

import logging
import os

import googlemaps

from errors import InvalidRequest, LocationNotFound
from geo import BoundingBox, LatLng, contains, validate
from models import Place

logger = logging.getLogger(__name__)

GEOCODE_TIMEOUT_S: int = 10

_PROVIDER_ERRORS = (
    googlemaps.exceptions.ApiError,
    googlemaps.exceptions.TransportError,
    googlemaps.exceptions.Timeout,
)


def default_client() -> googlemaps.Client:
    """Builds a Maps client from ``GOOGLE_MAPS_API_KEY``."""
    return googlemaps.Client(
        key=os.environ.get("GOOGLE_MAPS_API_KEY", ""),
        timeout=GEOCODE_TIMEOUT_S,
    )


def parse_lat_lng(text: str) -> LatLng | None:
    """Parses a ``"lat,lng"`` string, or returns None if it is not one."""
    parts = text.split(",")
    if len(parts) != 2:
        return None
    try:
        point = float(parts[0].strip()), float(parts[1].strip())
    except ValueError:
        return None
    return validate(point)


async def geocode(maps_client: googlemaps.Client, location: str) -> Place:
    """Returns the best match for ``location``.

    If ``location`` is already in ``lat,lng`` format the values are parsed
    directly without a network call.

    Raises:
        InvalidRequest: If ``location`` is blank.
        LocationNotFound: If the geocoder has no match.
    """
    location = location.strip()
    if not location:
        raise InvalidRequest("location must not be empty.")

    point = parse_lat_lng(location)
    if point is not None:
        return Place(lat=point[0], lng=point[1], name=location)

    result = maps_client.geocode(location)
    if not result:
        raise LocationNotFound(f"Could not geocode location: {location!r}")
    loc = result[0]["geometry"]["location"]
    return Place(
        lat=float(loc["lat"]),
        lng=float(loc["lng"]),
        name=result[0].get("formatted_address", location),
    )


def geocode_in_box(
    maps_client: googlemaps.Client,
    name: str,
    box: BoundingBox,
    near: str = "",
) -> LatLng | None:
    """Resolves a waypoint name to a point inside ``box``.

    The box is passed to the geocoder as a bias; matches outside it are
    discarded. If the bare name finds nothing, the name qualified with
    ``near`` (the base place name) is tried once more. Provider errors count
    as "not found".
    """
    (min_lat, min_lng), (max_lat, max_lng) = box
    bounds = {"southwest": (min_lat, min_lng), "northeast": (max_lat, max_lng)}
    queries = [name]
    if near:
        queries.append(f"{name}, {near}")

    for query in queries:
        try:
            results = maps_client.geocode(query, bounds=bounds)
        except _PROVIDER_ERRORS as exc:
            logger.warning("Geocoding %r failed: %s", query, exc)
            return None
        for result in results or []:
            loc = result["geometry"]["location"]
            point = float(loc["lat"]), float(loc["lng"])
            if contains(box, point):
                return point
    logger.info("No match for waypoint %r inside the search box", name)
    return None
