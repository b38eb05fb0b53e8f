"""Shared fixtures for strava-trails tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import polyline
import pytest
from click.testing import CliRunner

# Default track around Boulder, CO as (lng, lat)
BOULDER_TRACK = (
    (-105.2705, 40.0150),
    (-105.2710, 40.0160),
    (-105.2720, 40.0175),
)

STRAVA_API = "https://strava.test/api/v3"
MAPBOX_API = "https://mapbox.test/geocoding/v5/mapbox.places"


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop handlers installed by setup_logging so they do not outlive a CLI run."""
    yield
    logger = logging.getLogger("strava_trails")
    for handler in list(logger.handlers):
        logging.getLogger("urllib3").removeHandler(handler)
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for raw Strava activity summaries.

    ``track`` is given as (lng, lat) pairs and polyline-encoded the way the
    API ships it.
    """

    def _make(
        activity_id: int | str = 1,
        start_date: str = "2024-06-01T08:00:00Z",
        track: Sequence[tuple[float, float]] | None = BOULDER_TRACK,
        **fields: Any,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": activity_id,
            "name": f"Activity {activity_id}",
            "sport_type": "Run",
            "type": "Run",
            "start_date": start_date,
            "start_date_local": start_date.replace("Z", ""),
            "distance": 10000.0,
            "moving_time": 3000,
            "elapsed_time": 3300,
            "total_elevation_gain": 120.0,
            "map": {
                "summary_polyline": polyline.encode([(lat, lng) for lng, lat in track])
                if track
                else ""
            },
        }
        if track:
            record["start_latlng"] = [track[0][1], track[0][0]]
        record.update(fields)
        return record

    return _make


@pytest.fixture
def make_page(make_record: Callable[..., dict[str, Any]]) -> Callable[..., list[dict[str, Any]]]:
    """Factory for a page of ``count`` records with ids starting at ``first_id``."""

    def _make(count: int, first_id: int = 1) -> list[dict[str, Any]]:
        return [
            make_record(activity_id=first_id + i, start_date=f"2024-06-{(i % 28) + 1:02d}T08:00:00Z")
            for i in range(count)
        ]

    return _make


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_config(tmp_path: Path) -> Path:
    """Config file pointing at the mocked APIs, without skeleton delay."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f"""
[strava]
api_url = "{STRAVA_API}"

[mapbox]
geocoding_url = "{MAPBOX_API}"

[engine]
per_page = 30
skeleton_min_ms = 0
unit_system = "imperial"

[logging]
directory = "{(tmp_path / "logs").as_posix()}"
"""
    )
    return config_path


@pytest.fixture
def cli_env(cli_config: Path) -> dict[str, str]:
    """Environment for CLI invocations isolated from the user's setup."""
    return {
        "STRAVA_TRAILS_CONFIG": str(cli_config),
        "STRAVA_ACCESS_TOKEN": "test-token",
        "STRAVA_FALLBACK_TOKEN": "",
        "MAPBOX_ACCESS_TOKEN": "",
        "STRAVA_TRAILS_LOG_DIR": "",
        "STRAVA_TRAILS_UNITS": "",
    }
