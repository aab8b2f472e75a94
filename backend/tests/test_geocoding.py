"""Tests for geocoding.py. The Maps client is mocked."""

import googlemaps
import pytest

import geo
import geocoding
from errors import InvalidCoordinate, InvalidRequest, LocationNotFound

PARIS = (48.8566, 2.3522)
BOX = geo.box_around(PARIS, 8)


class _MockMapsClient:
    def __init__(self, results=None, error=None):
        self._results = results or {}
        self._error = error
        self.calls: list[tuple[str, dict | None]] = []

    def geocode(self, address, bounds=None):
        self.calls.append((address, bounds))
        if self._error is not None:
            raise self._error
        point = self._results.get(address)
        if point is None:
            return []
        return [{"geometry": {"location": {"lat": point[0], "lng": point[1]}}}]


def test_parse_lat_lng():
    assert geocoding.parse_lat_lng(" 48.85 , 2.35 ") == (48.85, 2.35)
    assert geocoding.parse_lat_lng("Paris, France") is None
    assert geocoding.parse_lat_lng("Paris") is None


def test_parse_lat_lng_out_of_range():
    with pytest.raises(InvalidCoordinate):
        geocoding.parse_lat_lng("123.0,2.0")


@pytest.mark.asyncio
async def test_geocode_parses_lat_lng_string_without_api_call():
    maps = _MockMapsClient()
    place = await geocoding.geocode(maps, "48.8566,2.3522")
    assert (place.lat, place.lng) == PARIS
    assert maps.calls == []


@pytest.mark.asyncio
async def test_geocode_calls_api_for_address():
    maps = _MockMapsClient(results={"Paris": PARIS})
    place = await geocoding.geocode(maps, "Paris")
    assert (place.lat, place.lng) == PARIS
    assert place.name == "Paris"


@pytest.mark.asyncio
async def test_geocode_raises_on_empty():
    with pytest.raises(InvalidRequest, match="must not be empty"):
        await geocoding.geocode(_MockMapsClient(), "   ")


@pytest.mark.asyncio
async def test_geocode_raises_when_api_returns_no_results():
    with pytest.raises(LocationNotFound, match="Could not geocode"):
        await geocoding.geocode(_MockMapsClient(), "Nonexistent Place XYZ")


def test_geocode_in_box_passes_bounds():
    inside = geo.destination(PARIS, 30, 3)
    maps = _MockMapsClient(results={"Louvre": inside})
    assert geocoding.geocode_in_box(maps, "Louvre", BOX) == inside
    _, bounds = maps.calls[0]
    assert bounds == {"southwest": BOX[0], "northeast": BOX[1]}


def test_geocode_in_box_discards_matches_outside():
    maps = _MockMapsClient(results={"Louvre": (51.5, -0.12)})
    assert geocoding.geocode_in_box(maps, "Louvre", BOX, near="Paris") is None
    assert [q for q, _ in maps.calls] == ["Louvre", "Louvre, Paris"]


def test_geocode_in_box_tries_qualified_name():
    inside = geo.destination(PARIS, 200, 4)
    maps = _MockMapsClient(results={"Old Mill, Paris": inside})
    assert geocoding.geocode_in_box(maps, "Old Mill", BOX, near="Paris") == inside


def test_geocode_in_box_treats_provider_errors_as_not_found():
    maps = _MockMapsClient(error=googlemaps.exceptions.ApiError("OVER_QUERY_LIMIT"))
    assert geocoding.geocode_in_box(maps, "Louvre", BOX, near="Paris") is None
    assert len(maps.calls) == 1
