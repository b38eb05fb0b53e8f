"""Coordinate helpers: polyline decoding and geographic bounds.

Every coordinate pair leaving this module is (longitude, latitude), the order
GeoJSON and the rendering surface use. Strava and the polyline encoding are
(latitude, longitude), so the reordering happens here and nowhere else.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import polyline

LngLat = tuple[float, float]


def decode_polyline(encoded: str | None) -> tuple[LngLat, ...]:
    """Decode a Google encoded polyline into (lng, lat) pairs.

    Args:
        encoded: Encoded polyline string (Strava ``summary_polyline``).

    Returns:
        Decoded points, empty when the input is empty or None.

    Raises:
        ValueError: If the string is not a valid encoded polyline.
    """
    if not encoded:
        return ()
    try:
        points = polyline.decode(encoded)
    except (IndexError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid encoded polyline: {e}") from e
    return tuple((float(lng), float(lat)) for lat, lng in points)


def latlng_to_lnglat(latlng: Sequence[float] | None) -> LngLat | None:
    """Reorder an upstream [lat, lng] pair, or None if it is not a pair."""
    if not latlng or len(latlng) != 2:
        return None
    try:
        lat, lng = float(latlng[0]), float(latlng[1])
    except (TypeError, ValueError):
        return None
    return (lng, lat)


@dataclass(frozen=True)
class Bounds:
    """Rectangular lng/lat box shown by the rendering surface.

    A box whose ``west`` edge is greater than its ``east`` edge crosses the
    antimeridian.
    """

    west: float
    south: float
    east: float
    north: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) is greater than north ({self.north})")
        for name in ("west", "east"):
            if not -180.0 <= getattr(self, name) <= 180.0:
                raise ValueError(f"{name} longitude out of range: {getattr(self, name)}")
        for name in ("south", "north"):
            if not -90.0 <= getattr(self, name) <= 90.0:
                raise ValueError(f"{name} latitude out of range: {getattr(self, name)}")

    @classmethod
    def parse(cls, text: str) -> Bounds:
        """Parse ``"west,south,east,north"``."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected west,south,east,north; got {text!r}")
        try:
            west, south, east, north = (float(p) for p in parts)
        except ValueError:
            raise ValueError(f"Bounds must be numeric: {text!r}") from None
        return cls(west, south, east, north)

    @classmethod
    def around(cls, points: Iterable[LngLat]) -> Bounds | None:
        """Smallest box containing all points, or None for no points."""
        points = list(points)
        if not points:
            return None
        lngs = [p[0] for p in points]
        lats = [p[1] for p in points]
        return cls(min(lngs), min(lats), max(lngs), max(lats))

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, point: LngLat) -> bool:
        """True if the point lies inside the box, edges included."""
        lng, lat = point
        if not self.south <= lat <= self.north:
            return False
        if self.crosses_antimeridian:
            return lng >= self.west or lng <= self.east
        return self.west <= lng <= self.east

    def intersects(self, geometry: Iterable[LngLat]) -> bool:
        """True if any point of the geometry lies inside the box."""
        return any(self.contains(point) for point in geometry)
