"""CLI integration tests for the map command."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
import responses

from strava_trails.cli import main

ACTIVITIES_URL = "https://strava.test/api/v3/athlete/activities"


class TestMap:
    """Tests for strava-trails map command."""

    @pytest.mark.ai_generated
    @responses.activate
    def test_map_writes_html(
        self,
        cli_runner,
        cli_env: dict[str, str],
        make_page: Callable[..., list],
        tmp_path: Path,
    ) -> None:
        """Verify the map page is written with every trail."""
        responses.get(ACTIVITIES_URL, json=make_page(4))
        output = tmp_path / "site" / "trails.html"

        result = cli_runner.invoke(main, ["map", "-o", str(output)], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert output.exists()
        content = output.read_text()
        assert "L.polyline" in content
        assert "Activity 4" in content
        assert "Wrote 4 trails" in result.output

    @pytest.mark.ai_generated
    @responses.activate
    def test_map_centers_on_latest_activity(
        self,
        cli_runner,
        cli_env: dict[str, str],
        make_record: Callable[..., dict],
        tmp_path: Path,
    ) -> None:
        """Verify the initial view is the start of the most recent activity."""
        responses.get(
            ACTIVITIES_URL,
            json=[
                make_record(activity_id=2, track=((7.9, 46.5), (7.91, 46.51))),
                make_record(activity_id=1),
            ],
        )
        output = tmp_path / "trails.html"

        result = cli_runner.invoke(main, ["map", "--output", str(output)], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert ".setView([46.5, 7.9], 12)" in output.read_text()

    @pytest.mark.ai_generated
    @responses.activate
    def test_map_json_output(
        self,
        cli_runner,
        cli_env: dict[str, str],
        make_record: Callable[..., dict],
        tmp_path: Path,
    ) -> None:
        """Verify --json reports the output file and trail count."""
        responses.get(
            ACTIVITIES_URL,
            json=[make_record(activity_id=1), make_record(activity_id=2, track=None)],
        )
        output = tmp_path / "trails.html"

        result = cli_runner.invoke(main, ["--json", "map", "-o", str(output)], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = json.loads(result.stdout)
        assert data["status"] == "success"
        assert data["output"] == str(output)
        # The activity without a track has nothing to draw
        assert data["trails"] == 1

    @pytest.mark.ai_generated
    @responses.activate
    def test_map_failure_writes_nothing(
        self, cli_runner, cli_env: dict[str, str], tmp_path: Path
    ) -> None:
        """Verify a failed load exits with 1 and leaves no file."""
        responses.get(ACTIVITIES_URL, json={"message": "Not Found"}, status=404)
        output = tmp_path / "trails.html"

        result = cli_runner.invoke(main, ["map", "-o", str(output)], env=cli_env)

        assert result.exit_code == 1
        assert not output.exists()
