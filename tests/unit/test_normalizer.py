"""Unit tests for activity normalization."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

from strava_trails.errors import MalformedRecordError
from strava_trails.models.activity import Place
from strava_trails.services.normalizer import (
    normalize,
    normalize_record,
    parse_start_date,
    record_id,
)

BOULDER = Place(city="Boulder", state="Colorado", country="United States")


class RecordingEnricher:
    """Enrich function that records the coordinates it was asked about."""

    def __init__(self, place: Place = BOULDER) -> None:
        self.place = place
        self.calls: list[tuple[float, float]] = []

    async def __call__(self, lat: float, lng: float) -> Place:
        self.calls.append((lat, lng))
        return self.place


@pytest.mark.ai_generated
class TestNormalizeRecord:
    """Tests for the pure record conversion."""

    def test_fields(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record(activity_id=42, name="Morning Trail", sport_type="TrailRun")

        activity = normalize_record(raw, BOULDER)

        assert activity.id == "42"
        assert activity.name == "Morning Trail"
        assert activity.category == "TrailRun"
        assert activity.date == date(2024, 6, 1)
        assert activity.distance_meters == 10000.0
        assert activity.moving_time_seconds == 3000
        assert activity.elapsed_time_seconds == 3300
        assert activity.elevation_gain_meters == 120.0
        assert activity.place == BOULDER

    def test_geometry_is_lng_lat(self, make_record: Callable[..., dict[str, Any]]) -> None:
        activity = normalize_record(make_record())

        lng, lat = activity.geometry[0]
        assert lng == pytest.approx(-105.2705)
        assert lat == pytest.approx(40.015)
        assert activity.start_point == activity.geometry[0]

    def test_deterministic(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record()

        assert normalize_record(raw, BOULDER) == normalize_record(raw, BOULDER)

    def test_type_fallback_and_defaults(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record(sport_type=None, type="Hike", name="", distance=None)

        activity = normalize_record(raw)

        assert activity.category == "Hike"
        assert activity.name == "Untitled"
        assert activity.distance_meters == 0.0
        assert activity.place.is_empty

    def test_local_date_preferred(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record(start_date="2024-06-02T02:00:00Z", start_date_local="2024-06-01T20:00:00")

        assert parse_start_date(raw) == date(2024, 6, 1)

    def test_no_track_uses_start_latlng(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record(track=None, start_latlng=[46.5, 7.9])

        activity = normalize_record(raw)

        assert activity.geometry == ()
        assert not activity.has_track
        assert activity.start_point == (7.9, 46.5)

    def test_invalid_polyline_means_no_track(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record(track=None, map={"summary_polyline": "_p~iF~ps|U_"})

        assert normalize_record(raw).geometry == ()

    def test_missing_id(self, make_record: Callable[..., dict[str, Any]]) -> None:
        raw = make_record()
        del raw["id"]

        with pytest.raises(MalformedRecordError):
            record_id(raw)

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_bad_start_date(self, make_record: Callable[..., dict[str, Any]], value: Any) -> None:
        raw = make_record(start_date=value or "", start_date_local=value)
        raw["start_date"] = value

        with pytest.raises(MalformedRecordError):
            normalize_record(raw)


@pytest.mark.ai_generated
class TestNormalize:
    """Tests for the async normalize with enrichment."""

    async def test_enriches_start_point(self, make_record: Callable[..., dict[str, Any]]) -> None:
        enrich = RecordingEnricher()

        activity = await normalize(make_record(), enrich)

        assert enrich.calls == [(40.015, -105.2705)]
        assert activity.place == BOULDER

    async def test_no_location_skips_enrichment(
        self, make_record: Callable[..., dict[str, Any]]
    ) -> None:
        enrich = RecordingEnricher()

        activity = await normalize(make_record(track=None), enrich)

        assert enrich.calls == []
        assert activity.place.is_empty

    async def test_malformed_record_skips_enrichment(
        self, make_record: Callable[..., dict[str, Any]]
    ) -> None:
        enrich = RecordingEnricher()
        raw = make_record()
        del raw["id"]

        with pytest.raises(MalformedRecordError):
            await normalize(raw, enrich)
        assert enrich.calls == []
