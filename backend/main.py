"""Trail route synthesis backend service.

Exposes endpoints for multi-day hike/bike route generation and address
geocoding.
"""

import logging

from fastapi import FastAPI, HTTPException

import geocoding
import route_generation
from errors import InvalidRequest, LocationNotFound
from models import GeocodeRequest, GeocodeResponse, RouteRequest, RouteResponse

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="Trail Route Backend",
    description="Multi-day hike and bike route synthesis.",
    version="0.3.0",
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint used by the host to verify the service is live."""
    return {"status": "ok"}


@app.post("/generate-route", response_model=RouteResponse)
async def generate_route(request: RouteRequest) -> RouteResponse:
    """Generates a multi-day route around a center location.

    Runs the synthesis pipeline:
    1. Resolves the center from lat/lng or by geocoding ``location``.
    2. Resolves explicit waypoints, or asks Claude for suggestions.
    3. Snaps the waypoints onto the road network via OSRM.
    4. Falls back to procedural rings rescaled to the target distance band.
    5. Clamps overlong routes and splits the route into days.

    Args:
        request: ``RouteRequest`` with the center, days, activity type and
            optional waypoints.

    Returns:
        ``RouteResponse`` with the center, ordered points and metadata
        (total km, day break indices).

    Raises:
        HTTPException 400: On missing or malformed input.
        HTTPException 404: If the location could not be geocoded.
        HTTPException 502: If no route could be produced.
    """
    try:
        return await route_generation.generate(request)
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LocationNotFound as exc:
        raise HTTPException(status_code=404, detail="Location not found.") from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("route_generation.generate failed")
        raise HTTPException(
            status_code=502,
            detail="Routing service failed. Please try again.",
        ) from exc


@app.post("/geocode-address", response_model=GeocodeResponse)
async def geocode_address(request: GeocodeRequest) -> GeocodeResponse:
    """Geocodes a human-readable address to lat/lng coordinates.

    Raises:
        HTTPException 400: If address is empty.
        HTTPException 404: If the address could not be geocoded.
        HTTPException 502: If the upstream Google Maps API call fails.
    """
    if not request.address.strip():
        raise HTTPException(
            status_code=400,
            detail="address must not be empty.",
        )
    try:
        place = await geocoding.geocode(geocoding.default_client(), request.address)
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LocationNotFound as exc:
        raise HTTPException(
            status_code=404,
            detail=f"Could not geocode address: {request.address!r}",
        ) from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("geocode_address failed")
        raise HTTPException(
            status_code=502,
            detail="Failed to geocode the address. Please try again.",
        ) from exc
    return GeocodeResponse(
        lat=place.lat, lng=place.lng, formatted_address=place.name
    )
