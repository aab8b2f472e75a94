"""Hike and bike route synthesis pipeline.

Given a center, a number of days and an activity type, produce a continuous
route whose length falls inside the activity's per-day distance band:

  1.  Resolve the center (``lat``/``lng`` or a geocoded place name).
  2.  Resolve candidate waypoints: explicit ones from the request, else names
      suggested by Claude and geocoded near the center.
  3.  Snap the candidates onto the road/trail network through OSRM and accept
      the result if its length is inside the target band.
  4.  Otherwise fall back to procedural rings around the center, rescaled
      until their (snapped) length converges on the band midpoint.
  5.  Clamp routes that overshoot the hard ceiling by decimation.
  6.  Split the route into day-sized segments.

Snapping and suggestions are optional: when either is unavailable the
pipeline degrades to pure procedural geometry instead of failing.
"""

import logging
import math
import os
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import NamedTuple

import googlemaps
import httpx
from anthropic import AsyncAnthropic

from errors import InvalidRequest, RoutingFailed, SnapUnavailable
from geo import BoundingBox, LatLng, box_around, destination, distance_km, polyline_km, validate
from geocoding import default_client, geocode, geocode_in_box
from models import (
    ActivityType,
    Place,
    Route,
    RouteMeta,
    RouteRequest,
    RouteResponse,
    WaypointInput,
    WaypointSource,
)
from snapping import RoadSnapper
from suggestions import suggest_waypoint_names

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Route-generation rules — all tuneable constants in one place.
# ---------------------------------------------------------------------------


class ActivityProfile(NamedTuple):
    """Distance band, shape and routing mode of one activity type."""

    min_day_km: float
    max_day_km: float
    jitter: float
    """Full width of the multiplicative radius jitter applied to ring points."""
    closed: bool
    """True if the route returns to its start (loop)."""
    travel_mode: str
    """OSRM profile used for snapping."""
    search_radius_km: float
    """Waypoint names are only accepted within this distance of the center."""

    @property
    def default_day_km(self) -> float:
        return (self.min_day_km + self.max_day_km) / 2


PROFILES: dict[str, ActivityProfile] = {
    "hike": ActivityProfile(
        min_day_km=5,
        max_day_km=15,
        jitter=0.12,
        closed=True,
        travel_mode="walking",
        search_radius_km=8,
    ),
    "bike": ActivityProfile(
        min_day_km=30,
        max_day_km=60,
        jitter=0.08,
        closed=False,
        travel_mode="cycling",
        search_radius_km=25,
    ),
}

# -- Procedural rings -------------------------------------------------------
MIN_RING_SAMPLES: int = 12
RING_SAMPLES_PER_DAY: int = 14
MIN_RING_RADIUS_KM: float = 1.0

# -- Convergence ------------------------------------------------------------
MAX_CONVERGENCE_TRIES: int = 6

# -- Clamping ---------------------------------------------------------------
# Routes longer than this multiple of the band maximum are decimated.
HARD_MAX_TOLERANCE: float = 1.05

# Loop closure check, in degrees.
CLOSURE_TOLERANCE_DEG: float = 1e-9


class Candidate(NamedTuple):
    points: list[LatLng]
    snapped: bool


CandidateStep = Callable[[float], Awaitable[Candidate | None]]

# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


async def generate(
    request: RouteRequest,
    *,
    maps_client: googlemaps.Client | None = None,
    claude_client: AsyncAnthropic | None = None,
    http_client: httpx.AsyncClient | None = None,
    rng: random.Random | None = None,
) -> RouteResponse:
    """Generates a multi-day route matching [request].

    Args:
        request: Center (place name or lat/lng), days, activity type and
            optional waypoints.
        maps_client: Optional pre-constructed Google Maps client, used for
            geocoding. Created from ``GOOGLE_MAPS_API_KEY`` when a place name
            has to be resolved and none is given.
        claude_client: Optional pre-constructed Anthropic client for waypoint
            suggestions. Created from ``ANTHROPIC_API_KEY`` if omitted; when
            neither is available suggestions are skipped.
        http_client: Optional shared HTTP client for the routing provider.
            A private one is created and closed when omitted.
        rng: Random source for procedural rings.

    Returns:
        A ``RouteResponse`` with the resolved center, the ordered route points
        and the route metadata.

    Raises:
        InvalidRequest: Missing center, non-positive days or bad coordinates.
        LocationNotFound: The center place name could not be geocoded.
        RoutingFailed: No usable path could be produced.
    """
    profile = get_profile(request.type)
    min_total, max_total = target_band(profile, request.days)

    maps = _LazyMapsClient(maps_client)

    logger.info(
        "Route generation started: %s, %d day(s), %s, band %.0f–%.0fkm",
        request.location or f"{request.lat},{request.lng}",
        request.days,
        request.type,
        min_total,
        max_total,
    )

    # Step 1: Resolve the center.
    center = await _resolve_center(request, maps)
    center_point = (center.lat, center.lng)
    logger.info("Resolved center: %f, %f (%s)", center.lat, center.lng, center.name)

    # Step 2: Candidate waypoints.
    box = box_around(center_point, profile.search_radius_km)
    waypoints, source = await _resolve_waypoints(
        request, center, box, maps, claude_client
    )

    # Steps 3–6: Snap, converge, clamp, segment.
    owns_http = http_client is None
    _http = http_client or httpx.AsyncClient()
    try:
        route = await synthesize(
            center_point,
            request.days,
            request.type,
            waypoints=waypoints,
            waypoint_source=source,
            snapper=RoadSnapper(_http),
            rng=rng,
        )
    finally:
        if owns_http:
            await _http.aclose()

    logger.info(
        "Route generation complete: %.1fkm, %d points, source=%s, snapped=%s",
        route.total_km,
        len(route.points),
        route.source,
        route.snapped,
    )

    return RouteResponse(
        center=center,
        points=route.points,
        meta=RouteMeta(
            days=request.days,
            type=request.type,
            total_km=round(route.total_km),
            breaks=route.day_breaks,
            source=route.source,
            snapped=route.snapped,
        ),
    )


async def synthesize(
    center: LatLng,
    days: int,
    activity: ActivityType,
    *,
    waypoints: Sequence[LatLng] | None = None,
    waypoint_source: WaypointSource = "explicit",
    snapper: RoadSnapper | None = None,
    rng: random.Random | None = None,
) -> Route:
    """Builds a route around ``center`` for ``days`` of ``activity``.

    Waypoints (two or more) are tried first; if snapping them fails or the
    snapped length misses the target band, procedural rings take over. A
    ``snapper`` of None means snapping is unavailable: rings are used as
    generated.
    """
    profile = get_profile(activity)
    min_total, max_total = target_band(profile, days)
    target_km = (min_total + max_total) / 2
    validate(center)
    rng = rng or random.Random()

    points: list[LatLng] | None = None
    source: WaypointSource = "procedural"
    snapped = False

    if waypoints and len(waypoints) >= 2:
        if snapper is None:
            logger.info("No snapper available; ignoring %s waypoints", waypoint_source)
        else:
            try:
                line = await snapper.snap(
                    waypoints, profile.travel_mode, close_loop=profile.closed
                )
            except SnapUnavailable as exc:
                logger.warning("Snapping %s waypoints failed: %s", waypoint_source, exc)
            else:
                total = polyline_km(line)
                if min_total <= total <= max_total:
                    logger.info(
                        "%s waypoints accepted: %.1fkm", waypoint_source, total
                    )
                    points, source, snapped = line, waypoint_source, True
                else:
                    logger.info(
                        "%s waypoints give %.1fkm, outside %.0f–%.0fkm",
                        waypoint_source, total, min_total, max_total,
                    )

    if points is None:
        step = _procedural_step(center, days, profile, target_km, snapper, rng)
        best = await converge(
            step, target_km=target_km, band=(min_total, max_total)
        )
        if best is None:
            raise RoutingFailed("Procedural generation produced no path.")
        candidate, _ = best
        points, snapped = candidate.points, candidate.snapped

    if profile.closed and not _same_point(points[0], points[-1]):
        points = [*points, points[0]]
    points = clamp_length(
        points, max_total * HARD_MAX_TOLERANCE, closed=profile.closed
    )
    if len(points) < 2:
        raise RoutingFailed("Route has fewer than two points.")

    total_km = polyline_km(points)
    return Route(
        points=points,
        total_km=total_km,
        day_breaks=segment_days(points, total_km, days, profile),
        activity=activity,
        center=center,
        source=source,
        snapped=snapped,
    )


# ---------------------------------------------------------------------------
# Profiles and target band
# ---------------------------------------------------------------------------


def get_profile(activity: str) -> ActivityProfile:
    try:
        return PROFILES[activity]
    except KeyError:
        raise InvalidRequest(
            f"Unknown activity type {activity!r}; expected one of {sorted(PROFILES)}."
        ) from None


def target_band(profile: ActivityProfile, days: int) -> tuple[float, float]:
    """Returns the accepted ``(min_total_km, max_total_km)`` for the trip."""
    if days < 1:
        raise InvalidRequest("days must be a positive integer.")
    return profile.min_day_km * days, profile.max_day_km * days


# ---------------------------------------------------------------------------
# Procedural rings
# ---------------------------------------------------------------------------


def ring_sample_count(days: int) -> int:
    return max(MIN_RING_SAMPLES, days * RING_SAMPLES_PER_DAY)


def build_ring(
    center: LatLng,
    target_km: float,
    n_samples: int,
    jitter: float,
    *,
    scale: float = 1.0,
    closed: bool,
    rng: random.Random,
) -> list[LatLng]:
    """Places ``n_samples`` points around ``center`` on a jittered circle.

    The base radius makes the circumference roughly ``target_km``. Each point
    sits on an evenly spaced bearing at a radius scaled by a factor drawn
    from ``[1 - jitter/2, 1 + jitter/2]``. Closed rings repeat the first
    point at the end.
    """
    radius = max(MIN_RING_RADIUS_KM, target_km / (2 * math.pi)) * scale
    ring = [
        destination(
            center,
            360.0 * i / n_samples,
            radius * rng.uniform(1 - jitter / 2, 1 + jitter / 2),
        )
        for i in range(n_samples)
    ]
    if closed:
        ring.append(ring[0])
    return ring


def _procedural_step(
    center: LatLng,
    days: int,
    profile: ActivityProfile,
    target_km: float,
    snapper: RoadSnapper | None,
    rng: random.Random,
) -> CandidateStep:
    """Returns a convergence step that builds and, if possible, snaps a ring.

    Once the snapper fails it is not called again for this route; later
    tries use the raw ring.
    """
    n_samples = ring_sample_count(days)
    active = snapper

    async def step(factor: float) -> Candidate:
        nonlocal active
        ring = build_ring(
            center,
            target_km,
            n_samples,
            profile.jitter,
            scale=factor,
            closed=profile.closed,
            rng=rng,
        )
        if active is None:
            return Candidate(ring, False)
        # The closing point is re-added by the snapper.
        waypoints = ring[:-1] if profile.closed else ring
        try:
            line = await active.snap(
                waypoints, profile.travel_mode, close_loop=profile.closed
            )
        except SnapUnavailable as exc:
            logger.warning("Snapping unavailable, using raw rings: %s", exc)
            active = None
            return Candidate(ring, False)
        return Candidate(line, True)

    return step


# ---------------------------------------------------------------------------
# Convergence
# ---------------------------------------------------------------------------


async def converge(
    step: CandidateStep,
    *,
    target_km: float,
    band: tuple[float, float],
    max_tries: int = MAX_CONVERGENCE_TRIES,
) -> tuple[Candidate, float] | None:
    """Rescales candidates until one lands inside ``band``.

    Each try calls ``step(factor)``. A candidate inside the band is returned
    at once; otherwise ``factor`` is multiplied by ``sqrt(target / length)``
    and the next try begins. When the tries run out the candidate closest to
    ``target_km`` is returned, even if it is outside the band. Returns None
    only if no try produced a candidate.
    """
    min_total, max_total = band
    factor = 1.0
    best: tuple[Candidate, float] | None = None
    best_diff = math.inf

    for attempt in range(max_tries):
        candidate = await step(factor)
        if candidate is None or len(candidate.points) < 2:
            logger.info("Try %d produced no candidate", attempt + 1)
            continue

        total = polyline_km(candidate.points)
        diff = abs(total - target_km)
        if diff < best_diff:
            best, best_diff = (candidate, total), diff

        if min_total <= total <= max_total:
            logger.info(
                "Converged on try %d: %.1fkm (factor %.3f)", attempt + 1, total, factor
            )
            return candidate, total

        logger.info(
            "Try %d: %.1fkm outside %.0f–%.0fkm (factor %.3f)",
            attempt + 1, total, min_total, max_total, factor,
        )
        if total > 0:
            factor *= math.sqrt(target_km / total)

    if best is not None:
        logger.warning(
            "Band %.0f–%.0fkm not reached after %d tries; best effort %.1fkm",
            min_total, max_total, max_tries, best[1],
        )
    return best


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


def _same_point(a: LatLng, b: LatLng) -> bool:
    return (
        abs(a[0] - b[0]) <= CLOSURE_TOLERANCE_DEG
        and abs(a[1] - b[1]) <= CLOSURE_TOLERANCE_DEG
    )


def decimate(points: Sequence[LatLng], *, closed: bool) -> list[LatLng]:
    """Keeps every second point, re-closing the loop when ``closed``."""
    kept = list(points[::2])
    if closed and kept and not _same_point(kept[0], kept[-1]):
        kept.append(kept[0])
    return kept


def clamp_length(
    points: Sequence[LatLng], max_km: float, *, closed: bool
) -> list[LatLng]:
    """Decimates ``points`` once if the route is longer than ``max_km``."""
    total = polyline_km(points)
    if total <= max_km:
        return list(points)
    kept = decimate(points, closed=closed)
    if len(kept) < 2 or (closed and len(kept) < 3):
        logger.warning("Route too short to decimate (%d points)", len(points))
        return list(points)
    logger.info(
        "Route %.1fkm exceeds %.1fkm; decimated to %.1fkm",
        total, max_km, polyline_km(kept),
    )
    return kept


# ---------------------------------------------------------------------------
# Day segmentation
# ---------------------------------------------------------------------------


def segment_days(
    points: Sequence[LatLng],
    total_km: float,
    days: int,
    profile: ActivityProfile,
) -> list[int]:
    """Returns up to ``days - 1`` point indices where each day ends.

    The per-day share is the even split of ``total_km`` clamped into the
    profile's daily band. A break is recorded at the first point where the
    cumulative distance reaches the next multiple of that share.
    """
    per_day = min(profile.max_day_km, max(profile.min_day_km, total_km / days))
    breaks: list[int] = []
    travelled = 0.0
    for i in range(1, len(points)):
        if len(breaks) >= days - 1:
            break
        travelled += distance_km(points[i - 1], points[i])
        if travelled >= (len(breaks) + 1) * per_day:
            breaks.append(i)
    return breaks


# ---------------------------------------------------------------------------
# Center and waypoint resolution
# ---------------------------------------------------------------------------


class _LazyMapsClient:
    """Creates the default Maps client on first use only."""

    def __init__(self, client: googlemaps.Client | None) -> None:
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None or bool(
            os.environ.get("GOOGLE_MAPS_API_KEY", "")
        )

    def get(self) -> googlemaps.Client:
        if self._client is None:
            self._client = default_client()
        return self._client


async def _resolve_center(request: RouteRequest, maps: _LazyMapsClient) -> Place:
    if request.lat is not None and request.lng is not None:
        lat, lng = validate((request.lat, request.lng))
        return Place(lat=lat, lng=lng, name=request.location or f"{lat},{lng}")
    if request.location and request.location.strip():
        return await geocode(maps.get(), request.location)
    raise InvalidRequest("location or lat/lng is required.")


async def _resolve_waypoints(
    request: RouteRequest,
    center: Place,
    box: BoundingBox,
    maps: _LazyMapsClient,
    claude_client: AsyncAnthropic | None,
) -> tuple[list[LatLng], WaypointSource]:
    """Returns the candidate waypoints and where they came from.

    An empty list means the route is built procedurally.
    """
    if request.waypoints:
        explicit = _resolve_explicit(request.waypoints, center, box, maps)
        if len(explicit) >= 2:
            logger.info("Using %d explicit waypoints", len(explicit))
            return explicit, "explicit"
        logger.info("Only %d explicit waypoint(s) resolved", len(explicit))

    _claude = claude_client
    if _claude is None and os.environ.get("ANTHROPIC_API_KEY", "").strip():
        _claude = AsyncAnthropic(api_key=os.environ["ANTHROPIC_API_KEY"])
    if _claude is None:
        logger.info("No Anthropic client; generating a procedural route")
        return [], "procedural"
    if not maps.available:
        logger.info("No Maps client to place suggestions; generating procedurally")
        return [], "procedural"

    names = await suggest_waypoint_names(
        _claude, center.name, request.type, request.days
    )
    suggested = [
        point
        for point in (
            geocode_in_box(maps.get(), name, box, near=center.name) for name in names
        )
        if point is not None
    ]
    logger.info("Placed %d of %d suggested waypoints", len(suggested), len(names))
    if len(suggested) >= 2:
        return suggested, "suggested"
    return [], "procedural"


def _resolve_explicit(
    waypoints: Sequence[WaypointInput],
    center: Place,
    box: BoundingBox,
    maps: _LazyMapsClient,
) -> list[LatLng]:
    resolved: list[LatLng] = []
    for wp in waypoints:
        if wp.lat is not None and wp.lng is not None:
            resolved.append(validate((wp.lat, wp.lng)))
        elif wp.name and wp.name.strip():
            if not maps.available:
                logger.warning(
                    "No Maps client to place waypoint %r; dropping it", wp.name
                )
                continue
            point = geocode_in_box(maps.get(), wp.name.strip(), box, near=center.name)
            if point is not None:
                resolved.append(point)
        else:
            logger.warning("Ignoring waypoint without name or coordinates")
    return resolved
