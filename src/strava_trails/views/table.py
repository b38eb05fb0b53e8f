"""Activity list view.

Rows follow the columns of the web dashboard table. Values are converted to
the selected unit system here, at display time.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from strava_trails.lib.units import (
    UnitSystem,
    convert_distance,
    convert_elevation,
    seconds_to_minutes,
)
from strava_trails.models.activity import Activity

if TYPE_CHECKING:
    from strava_trails.services.engine import TrailsEngine


def column_headers(units: UnitSystem) -> list[str]:
    return [
        "Date",
        "Name",
        "Type",
        f"Distance ({units.distance_unit})",
        "Moving Time (min)",
        "Elapsed Time (min)",
        f"Elevation Gain ({units.elevation_unit})",
        "City",
        "State/Province",
        "Country",
        "Latitude",
        "Longitude",
    ]


def activity_row(
    activity: Activity,
    units: UnitSystem,
    highlighted_id: str | None = None,
) -> dict[str, Any]:
    """One list row with values in ``units``.

    Args:
        activity: Activity to display.
        units: Display unit system.
        highlighted_id: Currently highlighted activity id.

    Returns:
        Row dictionary, also used for JSON output.
    """
    lng, lat = activity.start_point if activity.start_point else (None, None)
    return {
        "id": activity.id,
        "date": activity.date.isoformat(),
        "name": activity.name,
        "type": activity.category,
        "distance": round(convert_distance(activity.distance_meters, units), 2),
        "moving_time_min": round(seconds_to_minutes(activity.moving_time_seconds), 2),
        "elapsed_time_min": round(seconds_to_minutes(activity.elapsed_time_seconds), 2),
        "elevation_gain": round(convert_elevation(activity.elevation_gain_meters, units), 2),
        "city": activity.place.city,
        "state": activity.place.state,
        "country": activity.place.country,
        "start_lat": lat,
        "start_lng": lng,
        "units": units.value,
        "highlighted": activity.id == highlighted_id,
    }


def activity_rows(
    activities: Iterable[Activity],
    units: UnitSystem,
    highlighted_id: str | None = None,
) -> list[dict[str, Any]]:
    return [activity_row(a, units, highlighted_id) for a in activities]


_ROW_KEYS = [
    "date",
    "name",
    "type",
    "distance",
    "moving_time_min",
    "elapsed_time_min",
    "elevation_gain",
    "city",
    "state",
    "country",
    "start_lat",
    "start_lng",
]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_table(
    activities: Iterable[Activity],
    units: UnitSystem,
    highlighted_id: str | None = None,
) -> str:
    """Render activities as an aligned plain-text table.

    The highlighted row is marked with ``>``.
    """
    rows = activity_rows(activities, units, highlighted_id)
    headers = column_headers(units)
    cells = [[_cell(row[key]) for key in _ROW_KEYS] for row in rows]

    widths = [len(h) for h in headers]
    for line in cells:
        widths = [max(w, len(c)) for w, c in zip(widths, line)]

    def fmt(marker: str, values: list[str]) -> str:
        return marker + "  ".join(v.ljust(w) for v, w in zip(values, widths)).rstrip()

    lines = [fmt("  ", headers), fmt("  ", ["-" * w for w in widths])]
    for row, line in zip(rows, cells):
        lines.append(fmt("> " if row["highlighted"] else "  ", line))
    return "\n".join(lines)


class ActivityList:
    """List view observing the engine's visible set and highlight.

    Shows the visible activities once the map reports its bounds, and every
    loaded activity before that.
    """

    def __init__(self, engine: TrailsEngine) -> None:
        self.engine = engine
        self.highlighted_id: str | None = engine.highlight.value
        engine.highlight.subscribe(self._on_highlight)

    @property
    def activities(self) -> tuple[Activity, ...]:
        if self.engine.visibility.bounds is not None:
            return self.engine.visibility.visible
        return self.engine.store.activities

    def rows(self) -> list[dict[str, Any]]:
        return activity_rows(self.activities, self.engine.unit_system, self.highlighted_id)

    def render(self) -> str:
        return render_table(self.activities, self.engine.unit_system, self.highlighted_id)

    def hover(self, activity_id: str) -> None:
        self.engine.hover(activity_id)

    def hover_end(self, activity_id: str) -> None:
        self.engine.hover_end(activity_id)

    def jump_to(self, activity_id: str) -> None:
        """Handle "jump to activity": highlight it and focus the map."""
        self.engine.select(activity_id)

    def _on_highlight(self, activity_id: str | None) -> None:
        self.highlighted_id = activity_id
