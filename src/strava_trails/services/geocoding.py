"""Reverse geocoding of activity start points.

``MapboxGeocoder`` talks to the Mapbox places API and raises on failure.
``PlaceEnricher`` wraps it for the loading pipeline: it never raises, caches
successful lookups for the session, and turns every failure into empty place
fields.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import requests

from strava_trails.config import MAPBOX_GEOCODING_URL
from strava_trails.errors import EnrichmentFailure
from strava_trails.models.activity import Place

logger = logging.getLogger("strava_trails.geocoding")

# Mapbox place_type -> Place field
PLACE_TYPE_FIELDS = {
    "place": "city",
    "region": "state",
    "country": "country",
}

CACHE_PRECISION = 5


class Geocoder(Protocol):
    def reverse(self, lat: float, lng: float) -> Place: ...


class MapboxGeocoder:
    """Blocking Mapbox reverse geocoder."""

    def __init__(
        self,
        access_token: str,
        base_url: str = MAPBOX_GEOCODING_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def reverse(self, lat: float, lng: float) -> Place:
        """Look up the place containing a coordinate.

        Args:
            lat: Latitude.
            lng: Longitude.

        Returns:
            Place with the first settlement, region and country found.

        Raises:
            EnrichmentFailure: On network errors, non-2xx responses or
                malformed payloads.
        """
        url = f"{self.base_url}/{lng},{lat}.json"
        try:
            response = self.session.get(
                url,
                params={"access_token": self.access_token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise EnrichmentFailure(f"Geocoding request failed: {e}") from e
        except ValueError as e:
            raise EnrichmentFailure("Geocoding response was not JSON") from e

        return parse_place(payload)


def parse_place(payload: Any) -> Place:
    """Extract city, state and country from a Mapbox feature collection.

    The first feature of each kind wins.

    Raises:
        EnrichmentFailure: If the payload has no feature list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise EnrichmentFailure("Geocoding response has no features")

    found: dict[str, str] = {}
    for feature in payload["features"]:
        if not isinstance(feature, dict):
            continue
        text = feature.get("text")
        if not isinstance(text, str):
            continue
        for place_type in feature.get("place_type") or []:
            field_name = PLACE_TYPE_FIELDS.get(place_type)
            if field_name and field_name not in found:
                found[field_name] = text

    return Place(**found)


class PlaceEnricher:
    """Failure-tolerant async place lookup used while normalizing pages."""

    def __init__(self, geocoder: Geocoder | None = None) -> None:
        """Initialize the enricher.

        Args:
            geocoder: Reverse geocoder; None disables enrichment.
        """
        self.geocoder = geocoder
        self._cache: dict[tuple[float, float], Place] = {}

    @property
    def enabled(self) -> bool:
        return self.geocoder is not None

    async def enrich(self, lat: float, lng: float) -> Place:
        """Resolve a coordinate to a place, or empty fields on any failure."""
        if self.geocoder is None:
            return Place.empty()

        key = (round(lat, CACHE_PRECISION), round(lng, CACHE_PRECISION))
        if key in self._cache:
            return self._cache[key]

        try:
            place = await asyncio.to_thread(self.geocoder.reverse, lat, lng)
        except Exception as e:
            logger.warning("Place lookup failed for %.5f,%.5f: %s", lat, lng, e)
            return Place.empty()

        self._cache[key] = place
        return place

    def clear_cache(self) -> None:
        self._cache.clear()
