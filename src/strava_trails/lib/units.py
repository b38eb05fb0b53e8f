"""Unit-system presentation helpers.

Activities always store metric values. Everything here is a pure conversion
applied at display time.
"""

from __future__ import annotations

from enum import Enum

METERS_PER_KILOMETER = 1000.0
METERS_PER_MILE = 1609.34
FEET_PER_METER = 3.28084


class UnitSystem(str, Enum):
    """Measurement system used for display."""

    METRIC = "metric"
    IMPERIAL = "imperial"

    @classmethod
    def parse(cls, value: str | UnitSystem) -> UnitSystem:
        """Parse a unit system name, case-insensitively.

        Raises:
            ValueError: If the name is not a known unit system.
        """
        if isinstance(value, UnitSystem):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown unit system: {value!r}") from None

    def toggled(self) -> UnitSystem:
        return UnitSystem.IMPERIAL if self is UnitSystem.METRIC else UnitSystem.METRIC

    @property
    def distance_unit(self) -> str:
        return "km" if self is UnitSystem.METRIC else "mi"

    @property
    def elevation_unit(self) -> str:
        return "m" if self is UnitSystem.METRIC else "ft"


def convert_distance(meters: float, units: UnitSystem) -> float:
    """Convert meters to kilometers or miles."""
    if units is UnitSystem.METRIC:
        return meters / METERS_PER_KILOMETER
    return meters / METERS_PER_MILE


def convert_elevation(meters: float, units: UnitSystem) -> float:
    """Convert meters to meters or feet."""
    if units is UnitSystem.METRIC:
        return meters
    return meters * FEET_PER_METER


def seconds_to_minutes(seconds: float) -> float:
    return seconds / 60.0


def format_distance(meters: float, units: UnitSystem) -> str:
    return f"{convert_distance(meters, units):.2f} {units.distance_unit}"


def format_elevation(meters: float, units: UnitSystem) -> str:
    return f"{convert_elevation(meters, units):.2f} {units.elevation_unit}"


def format_duration(seconds: float) -> str:
    """Format a duration as H:MM:SS, or M:SS under an hour."""
    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
