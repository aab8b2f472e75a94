"""Waypoint-name suggestions from Claude.

Claude proposes a handful of well-known local places for the trip; the
names are geocoded by the caller. This step is optional: any failure yields
an empty list and the route falls back to procedural geometry.
"""

import json
import logging
import os
import re

import anthropic
from anthropic import AsyncAnthropic

from models import ActivityType

logger = logging.getLogger(__name__)

# Claude model used for waypoint-name suggestions.
DEFAULT_SUGGESTION_MODEL: str = "claude-haiku-4-5-20251001"
MAX_SUGGESTIONS: int = 10

# System prompt to force JSON-only responses from Claude.
_JSON_SYSTEM_PROMPT = (
    "You are a trip planning API. You respond with ONLY valid JSON "
    "— no markdown, no explanation, no commentary. Your entire "
    "response must be a single JSON object."
)

_SUGGESTION_PROMPT = """\
Suggest 5-10 short local waypoint names for a scenic {route_shape} inside or \
very near the base location. Use names a geocoder can resolve (parks, \
viewpoints, villages, landmarks).

Base location: {place_name}
Mode: {activity}
Days: {days}

Return ONLY JSON matching this schema: {{"waypoints": [{{"name": "string"}}]}}
"""


def _extract_json_object(text: str) -> dict | None:
    """Extracts a JSON object from text that may contain extra commentary."""
    text = text.strip()
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    # Otherwise take the first non-empty object that starts at any "{".
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            parsed, _ = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        if isinstance(parsed, dict) and parsed:
            return parsed

    return None


def _names_from(payload: dict | None) -> list[str]:
    if not payload or not isinstance(payload.get("waypoints"), list):
        return []
    names = []
    for item in payload["waypoints"]:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names[:MAX_SUGGESTIONS]


async def suggest_waypoint_names(
    claude_client: AsyncAnthropic,
    place_name: str,
    activity: ActivityType,
    days: int,
) -> list[str]:
    """Asks Claude for local waypoint names around ``place_name``.

    Returns an empty list when the API call fails or the reply cannot be
    parsed.
    """
    prompt = _SUGGESTION_PROMPT.format(
        route_shape="point-to-point ride" if activity == "bike" else "loop hike",
        place_name=place_name,
        activity=activity,
        days=days,
    )

    logger.info("Requesting waypoint suggestions from Claude for %s", place_name)
    try:
        response = await claude_client.messages.create(
            model=os.environ.get("SUGGESTION_MODEL", DEFAULT_SUGGESTION_MODEL),
            max_tokens=512,
            system=_JSON_SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": prompt},
                {"role": "assistant", "content": "{"},
            ],
        )
    except anthropic.APIError as exc:
        logger.warning("Skipping waypoint suggestions: %s", exc)
        return []

    text = getattr(response.content[0], "text", None) if response.content else None
    if not isinstance(text, str):
        logger.warning("Skipping waypoint suggestions: reply has no text block")
        return []

    # Prepend the "{" we used as prefill.
    raw = "{" + text.strip()
    names = _names_from(_extract_json_object(raw))
    if not names:
        logger.warning("No usable waypoint names in Claude reply: %s", raw[:200])
    return names
