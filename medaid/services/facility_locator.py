"""Care facility search using the Perplexity Sonar API.

Given a category ("Urgent Care Hospitals", "Pharmacies", ...) and optionally
the caller's coordinates, returns a short narrative plus the named, linkable
places the search grounded its answer on.
"""

import logging
from urllib.parse import urlparse

import httpx

from medaid import errors
from medaid.config import (
    FACILITY_MAP_HOSTS,
    FACILITY_SEARCH_TIMEOUT,
    PERPLEXITY_API_KEY,
    PERPLEXITY_MODEL,
)
from medaid.models.facility import Coordinates, Facility, FacilitySearchResult

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

FACILITY_CATEGORIES = [
    "Top Cardiologists",
    "Urgent Care Hospitals",
    "Phlebotomy Labs",
    "Pharmacies",
]

_SYSTEM_PROMPT = (
    "You are a healthcare facility finder. "
    "Recommend real, currently operating facilities and include their map listings as sources. "
    "Keep the description brief and factual. Do not give medical advice."
)


def build_query(category: str, coordinates: Coordinates | None) -> str:
    where = f"{coordinates.latitude}, {coordinates.longitude}" if coordinates else "my location"
    return (
        f"Find high-quality {category} near {where}. "
        "Provide a brief description and then specific locations."
    )


def is_map_citation(uri: str) -> bool:
    """True when a citation URI points at a map listing."""
    parsed = urlparse(uri)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    location = host + parsed.path.lower()
    for pattern in FACILITY_MAP_HOSTS:
        if location == pattern or location.startswith(pattern.rstrip("/") + "/"):
            return True
        if "/" not in pattern and host.endswith("." + pattern):
            return True
    return False


def facilities_from_citations(data: dict) -> list[Facility]:
    """Keep map-type grounding citations that carry both a title and a URI."""
    facilities: list[Facility] = []
    seen: set[str] = set()
    for item in data.get("search_results") or []:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        uri = str(item.get("url") or "").strip()
        if not title or not uri or uri in seen or not is_map_citation(uri):
            continue
        seen.add(uri)
        facilities.append(Facility(title=title, uri=uri))
    return facilities


async def locate(category: str, coordinates: Coordinates | None = None) -> FacilitySearchResult:
    """Search for facilities of ``category``, near ``coordinates`` when known.

    Missing coordinates are a supported fallback: the query is simply not
    geo-specific. Raises TransportFailure when the search call fails and
    ParseError when the response body is unusable.
    """
    if not PERPLEXITY_API_KEY:
        logger.warning("PERPLEXITY_API_KEY not set, cannot search facilities")
        raise errors.TransportFailure("Facility search is not configured")

    body: dict = {
        "model": PERPLEXITY_MODEL,
        "messages": [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": build_query(category, coordinates)},
        ],
    }
    if coordinates:
        body["web_search_options"] = {
            "user_location": {
                "latitude": coordinates.latitude,
                "longitude": coordinates.longitude,
            },
        }

    try:
        async with httpx.AsyncClient(timeout=FACILITY_SEARCH_TIMEOUT) as client:
            resp = await client.post(
                PERPLEXITY_URL,
                headers={
                    "Authorization": f"Bearer {PERPLEXITY_API_KEY}",
                    "Content-Type": "application/json",
                },
                json=body,
            )
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error("Perplexity API error %s: %s", e.response.status_code, e)
        raise errors.TransportFailure(f"Facility search returned {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error("Facility search failed: %s", e)
        raise errors.TransportFailure("Facility search request failed") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise errors.ParseError("Facility search response is not JSON") from e
    if not isinstance(data, dict):
        raise errors.ParseError("Facility search response is not a JSON object")

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise errors.ParseError("Facility search response has no choices")
    message = choices[0].get("message") or {}
    if not isinstance(message, dict):
        raise errors.ParseError("Facility search response has a malformed message")
    narrative = str(message.get("content") or "").strip()
    facilities = facilities_from_citations(data)
    logger.info(
        "Facility search for %r returned %d map citation(s) (location %s)",
        category,
        len(facilities),
        "used" if coordinates else "not provided",
    )
    return FacilitySearchResult(
        category=category,
        narrative=narrative,
        facilities=facilities,
        used_location=coordinates is not None,
    )
