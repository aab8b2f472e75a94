"""Road snapping through the OSRM routing API.

The snapper sends an ordered waypoint list to OSRM and returns the road- or
trail-following polyline as ``(lat, lng)`` tuples. OSRM speaks ``lon,lat``
in both directions, so coordinates are flipped on the way out and back.

Failures never escape as transport errors: anything that prevents a usable
polyline is reported as ``SnapUnavailable`` so callers can fall back to the
unsnapped geometry.
"""

import asyncio
import logging
import os
from collections.abc import Sequence
from typing import Any

import httpx

from errors import SnapUnavailable
from geo import LatLng

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider settings. Each can be overridden through the environment.
# ---------------------------------------------------------------------------

DEFAULT_OSRM_BASE_URL: str = "https://router.project-osrm.org"
# Every OSRM deployment serves this profile; used when the requested mode is
# rejected.
FALLBACK_MODE: str = "driving"
DEFAULT_TIMEOUT_S: float = 10.0
# Immediate retries after a transport error (connection reset, timeout).
DEFAULT_TRANSPORT_RETRIES: int = 1
DEFAULT_RETRY_DELAY_S: float = 0.25

_ROUTE_PARAMS = {
    "overview": "full",
    "geometries": "geojson",
    "steps": "false",
    "continue_straight": "false",
}


class RoadSnapper:
    """Adapts ordered waypoints onto the road network via OSRM.

    Args:
        http_client: Shared async HTTP client. The snapper never closes it.
        base_url: OSRM server root. Defaults to ``OSRM_BASE_URL`` or the
            public demo server.
        timeout_s: Per-request timeout.
        transport_retries: How many times a request is repeated after a
            transport error before giving up.
        retry_delay_s: Fixed pause before each transport retry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport_retries: int | None = None,
        retry_delay_s: float | None = None,
    ) -> None:
        self._http = http_client
        self.base_url = (
            base_url
            or os.environ.get("OSRM_BASE_URL", "")
            or DEFAULT_OSRM_BASE_URL
        ).rstrip("/")
        self.timeout_s = (
            timeout_s
            if timeout_s is not None
            else float(os.environ.get("OSRM_TIMEOUT_S", DEFAULT_TIMEOUT_S))
        )
        self.transport_retries = (
            transport_retries
            if transport_retries is not None
            else int(
                os.environ.get("OSRM_TRANSPORT_RETRIES", DEFAULT_TRANSPORT_RETRIES)
            )
        )
        self.retry_delay_s = (
            retry_delay_s
            if retry_delay_s is not None
            else float(os.environ.get("OSRM_RETRY_DELAY_S", DEFAULT_RETRY_DELAY_S))
        )

    async def snap(
        self,
        waypoints: Sequence[LatLng],
        mode: str,
        *,
        close_loop: bool,
    ) -> list[LatLng]:
        """Returns the snapped polyline through ``waypoints``.

        When ``close_loop`` is set the first waypoint is appended again so the
        provider routes back to the start.

        Raises:
            SnapUnavailable: Fewer than two waypoints, provider unreachable,
                both the requested and the fallback mode rejected, or a
                response without usable geometry.
        """
        if len(waypoints) < 2:
            raise SnapUnavailable("At least two waypoints are required to snap.")

        ordered = list(waypoints)
        if close_loop:
            ordered.append(ordered[0])
        coords = format_coordinates(ordered)

        response = await self._request(mode, coords)
        if not response.is_success and mode != FALLBACK_MODE:
            logger.warning(
                "OSRM rejected mode %r (HTTP %d); retrying with %r",
                mode,
                response.status_code,
                FALLBACK_MODE,
            )
            response = await self._request(FALLBACK_MODE, coords)

        if not response.is_success:
            logger.warning("OSRM request failed: HTTP %d", response.status_code)
            raise SnapUnavailable(f"OSRM returned HTTP {response.status_code}.")

        try:
            payload = response.json()
        except ValueError as exc:
            raise SnapUnavailable("OSRM returned a non-JSON body.") from exc
        return parse_route_geometry(payload)

    async def _request(self, mode: str, coords: str) -> httpx.Response:
        url = f"{self.base_url}/route/v1/{mode}/{coords}"
        attempts = 1 + max(0, self.transport_retries)
        for attempt in range(attempts):
            logger.info("OSRM %s request (%d waypoints)", mode, coords.count(";") + 1)
            try:
                return await self._http.get(
                    url, params=_ROUTE_PARAMS, timeout=self.timeout_s
                )
            except httpx.TransportError as exc:
                if attempt == attempts - 1:
                    logger.warning("OSRM unreachable: %s", exc)
                    raise SnapUnavailable(f"OSRM unreachable: {exc}") from exc
                logger.warning(
                    "OSRM transport error on attempt %d: %s", attempt + 1, exc
                )
                await asyncio.sleep(self.retry_delay_s)
        raise SnapUnavailable("OSRM request was never attempted.")


def format_coordinates(points: Sequence[LatLng]) -> str:
    """Converts ``(lat, lng)`` tuples to OSRM's ``lon,lat;lon,lat`` form."""
    return ";".join(f"{lng},{lat}" for lat, lng in points)


def parse_route_geometry(payload: Any) -> list[LatLng]:
    """Extracts the first route's GeoJSON line as ``(lat, lng)`` tuples."""
    try:
        if payload.get("code", "Ok") != "Ok":
            raise SnapUnavailable(
                f"OSRM error: {payload.get('message', payload['code'])}"
            )
        coordinates = payload["routes"][0]["geometry"]["coordinates"]
        points = [(float(lat), float(lng)) for lng, lat, *_ in coordinates]
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
        raise SnapUnavailable("OSRM response has no usable geometry.") from exc
    if len(points) < 2:
        raise SnapUnavailable("OSRM geometry has fewer than two points.")
    return points
