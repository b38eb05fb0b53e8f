"""Trail styling for the rendering surface."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from typing import Any

from strava_trails.models.activity import Activity

STRAVA_ORANGE = "#FC4C02"

CATEGORY_COLORS = {
    "TrailRun": STRAVA_ORANGE,
    "Trail Run": STRAVA_ORANGE,
    "AlpineSki": "#0000FF",
    "BackcountrySki": "#0000FF",
    "Skiing": "#0000FF",
}

LINE_WIDTH = 4
HIGHLIGHT_LINE_WIDTH = 8
HIGHLIGHT_COLOR = STRAVA_ORANGE


def trail_color(activity: Activity) -> str:
    """Stable color for an activity's trail.

    Known categories get a fixed color; everything else is derived from the
    activity id so a trail keeps its color across re-renders.
    """
    if activity.category in CATEGORY_COLORS:
        return CATEGORY_COLORS[activity.category]
    digest = hashlib.sha1(activity.id.encode("utf-8")).hexdigest()
    return f"#{digest[:6].upper()}"


def style_attributes(activity: Activity, highlighted: bool = False) -> dict[str, Any]:
    return {
        "color": HIGHLIGHT_COLOR if highlighted else trail_color(activity),
        "base_color": trail_color(activity),
        "width": HIGHLIGHT_LINE_WIDTH if highlighted else LINE_WIDTH,
        "highlighted": highlighted,
    }


def feature_collection(
    activities: Iterable[Activity],
    highlighted_id: str | None = None,
) -> dict[str, Any]:
    """GeoJSON FeatureCollection of all trails with style attributes.

    Activities without a track are left out since there is nothing to draw.
    """
    return {
        "type": "FeatureCollection",
        "features": [
            activity.to_feature(style_attributes(activity, activity.id == highlighted_id))
            for activity in activities
            if activity.has_track
        ],
    }
