"""
Address lookup via OpenStreetMap Nominatim.

Turns the free-text location typed into a record into candidate
coordinates. Zero hits is a normal result; anything that goes wrong on the
wire is reported as a single GeocodingFailed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .config import settings
from .errors import GeocodingFailed
from .logging_setup import get_logger

logger = get_logger()


@dataclass
class GeocodeCandidate:
    display_name: str
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return {"displayName": self.display_name, "latitude": self.latitude, "longitude": self.longitude}


def _parse_candidate(item: Dict[str, Any]) -> GeocodeCandidate:
    return GeocodeCandidate(
        display_name=str(item["display_name"]),
        latitude=float(item["lat"]),
        longitude=float(item["lon"]),
    )


async def geocode(
    location: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    limit: Optional[int] = None,
) -> List[GeocodeCandidate]:
    """Return up to ``limit`` candidates for ``location`` (searched within Japan)."""
    location = (location or "").strip()
    if not location:
        raise ValueError("location must not be empty")
    limit = limit or settings.geocode_limit

    params = {"format": "json", "q": f"{location}, Japan"}
    headers = {"User-Agent": settings.geocode_user_agent}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.geocode_timeout) as http:
                res = await http.get(settings.geocode_url, params=params, headers=headers)
        else:
            res = await client.get(settings.geocode_url, params=params, headers=headers)
        res.raise_for_status()
        results = res.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geocoding failed for {location!r}: {e}")
        raise GeocodingFailed(f"Geocoding request failed: {e}") from e

    if not isinstance(results, list):
        raise GeocodingFailed("Unexpected geocoding response")
    try:
        return [_parse_candidate(item) for item in results[:limit]]
    except (KeyError, TypeError, ValueError) as e:
        raise GeocodingFailed(f"Malformed geocoding result: {e}") from e
