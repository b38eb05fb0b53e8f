"""Activity normalization.

Turns one raw Strava activity summary into an :class:`Activity`. The
conversion itself is pure; the only side effect of :func:`normalize` is the
place lookup it awaits.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import Any

from strava_trails.errors import MalformedRecordError
from strava_trails.lib.geometry import LngLat, decode_polyline, latlng_to_lnglat
from strava_trails.models.activity import Activity, Place

logger = logging.getLogger("strava_trails.normalizer")

EnrichFn = Callable[[float, float], Awaitable[Place]]


def record_id(raw: dict[str, Any]) -> str:
    """Stable identity of a raw record.

    Raises:
        MalformedRecordError: If the record has no id.
    """
    value = raw.get("id")
    if value is None or value == "":
        raise MalformedRecordError("Activity record has no id")
    return str(value)


def parse_start_date(raw: dict[str, Any]) -> date:
    """Calendar date of the activity start.

    Prefers the athlete-local timestamp, which is what the athlete saw on
    their watch.

    Raises:
        MalformedRecordError: If no parseable start timestamp is present.
    """
    value = raw.get("start_date_local") or raw.get("start_date")
    if not value:
        raise MalformedRecordError("Activity record has no start date", record_id=raw.get("id"))
    if isinstance(value, datetime):
        return value.date()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        raise MalformedRecordError(
            f"Unparseable start date: {value!r}", record_id=raw.get("id")
        ) from None


def encoded_geometry(raw: dict[str, Any]) -> str | None:
    map_info = raw.get("map") or {}
    if isinstance(map_info, dict) and map_info.get("summary_polyline"):
        return map_info["summary_polyline"]
    return raw.get("encoded_geometry") or None


def decode_geometry(raw: dict[str, Any]) -> tuple[LngLat, ...]:
    """Decode the record's track, or an empty geometry if it has none.

    An undecodable polyline is logged and treated as a missing track.
    """
    encoded = encoded_geometry(raw)
    try:
        return decode_polyline(encoded)
    except ValueError as e:
        logger.warning("Activity %s has an invalid polyline: %s", raw.get("id"), e)
        return ()


def start_point(raw: dict[str, Any], geometry: tuple[LngLat, ...]) -> LngLat | None:
    """First track point, else the upstream start location."""
    if geometry:
        return geometry[0]
    return latlng_to_lnglat(raw.get("start_latlng"))


def _number(raw: dict[str, Any], *keys: str) -> float:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return 0.0


def normalize_record(
    raw: dict[str, Any],
    place: Place | None = None,
    geometry: tuple[LngLat, ...] | None = None,
) -> Activity:
    """Build an Activity from a raw record and its already-resolved place.

    Args:
        raw: Raw Strava activity summary.
        place: Place of the start point; empty when None.
        geometry: Already decoded track; decoded from the record when None.

    Returns:
        Normalized activity in metric units with (lng, lat) geometry.

    Raises:
        MalformedRecordError: If id or start date is missing.
    """
    activity_id = record_id(raw)
    activity_date = parse_start_date(raw)
    if geometry is None:
        geometry = decode_geometry(raw)

    return Activity(
        id=activity_id,
        name=raw.get("name") or "Untitled",
        category=str(raw.get("sport_type") or raw.get("type") or "Workout"),
        date=activity_date,
        distance_meters=_number(raw, "distance"),
        moving_time_seconds=int(_number(raw, "moving_time")),
        elapsed_time_seconds=int(_number(raw, "elapsed_time")),
        elevation_gain_meters=_number(raw, "total_elevation_gain", "elevation_gain"),
        geometry=geometry,
        start_point=start_point(raw, geometry),
        place=place or Place.empty(),
    )


async def normalize(raw: dict[str, Any], enrich: EnrichFn) -> Activity:
    """Normalize a raw record, looking up the place of its start point.

    Required fields are validated before any lookup is issued. Records
    without a start point skip enrichment and get empty place fields.

    Raises:
        MalformedRecordError: If id or start date is missing.
    """
    record_id(raw)
    parse_start_date(raw)

    geometry = decode_geometry(raw)
    point = start_point(raw, geometry)
    place = Place.empty()
    if point is not None:
        lng, lat = point
        place = await enrich(lat, lng)

    return normalize_record(raw, place, geometry)
