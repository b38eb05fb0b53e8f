"""Activity model.

An Activity is the canonical, immutable form of one Strava activity record.
All measurements are metric; unit conversion happens in views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from strava_trails.lib.geometry import LngLat


@dataclass(frozen=True)
class Place:
    """Reverse-geocoded location of an activity's start point.

    Fields are empty strings when enrichment failed or was skipped.
    """

    city: str = ""
    state: str = ""
    country: str = ""

    @classmethod
    def empty(cls) -> Place:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.city or self.state or self.country)

    def label(self) -> str:
        """Comma-separated non-empty parts, e.g. "Boulder, Colorado, United States"."""
        return ", ".join(part for part in (self.city, self.state, self.country) if part)

    def to_dict(self) -> dict[str, str]:
        return {"city": self.city, "state": self.state, "country": self.country}


@dataclass(frozen=True)
class Activity:
    """Represents a normalized Strava activity."""

    id: str
    name: str
    category: str
    date: date
    distance_meters: float = 0.0
    moving_time_seconds: int = 0
    elapsed_time_seconds: int = 0
    elevation_gain_meters: float = 0.0
    geometry: tuple[LngLat, ...] = ()
    start_point: LngLat | None = None
    place: Place = field(default_factory=Place)

    @property
    def has_track(self) -> bool:
        return bool(self.geometry)

    def to_dict(self) -> dict[str, Any]:
        """Convert activity to dictionary for JSON serialization.

        Returns:
            Dictionary representation with metric values.
        """
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "date": self.date.isoformat(),
            "distance_meters": self.distance_meters,
            "moving_time_seconds": self.moving_time_seconds,
            "elapsed_time_seconds": self.elapsed_time_seconds,
            "elevation_gain_meters": self.elevation_gain_meters,
            "geometry": [list(point) for point in self.geometry],
            "start_point": list(self.start_point) if self.start_point else None,
            "place": self.place.to_dict(),
        }

    def to_feature(self, style: dict[str, Any] | None = None) -> dict[str, Any]:
        """Convert to a GeoJSON LineString feature for the rendering surface.

        Args:
            style: Style attributes to attach as feature properties.

        Returns:
            GeoJSON Feature dictionary keyed by the activity id.
        """
        properties: dict[str, Any] = {
            "name": self.name,
            "category": self.category,
            "date": self.date.isoformat(),
            "distance_meters": self.distance_meters,
            "moving_time_seconds": self.moving_time_seconds,
            "elapsed_time_seconds": self.elapsed_time_seconds,
            "elevation_gain_meters": self.elevation_gain_meters,
            **self.place.to_dict(),
        }
        if style:
            properties.update(style)
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": {
                "type": "LineString",
                "coordinates": [list(point) for point in self.geometry],
            },
            "properties": properties,
        }
