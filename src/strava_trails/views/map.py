"""Static trail map page.

Generates a standalone Leaflet page drawing every loaded trail next to the
activity list. Hovering a trail or a list row highlights both; clicking a row
flies the map to the activity start.
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any

from strava_trails.lib.geometry import Bounds, LngLat
from strava_trails.lib.units import UnitSystem, format_distance, format_duration, format_elevation
from strava_trails.views.style import HIGHLIGHT_COLOR, HIGHLIGHT_LINE_WIDTH, LINE_WIDTH


class HtmlMapSurface:
    """Rendering surface that collects state for a static HTML page."""

    def __init__(self) -> None:
        self.features: dict[str, Any] = {"type": "FeatureCollection", "features": []}
        self.highlighted_id: str | None = None
        self.focus_point: LngLat | None = None

    def set_features(self, features: dict[str, Any]) -> None:
        self.features = features

    def set_highlight(self, activity_id: str | None) -> None:
        self.highlighted_id = activity_id

    def focus(self, point: LngLat) -> None:
        self.focus_point = point

    def render(
        self,
        units: UnitSystem,
        center: LngLat | None = None,
        title: str = "My Strava Trails",
    ) -> str:
        return generate_trails_html(
            self.features,
            units,
            center=self.focus_point or center,
            highlighted_id=self.highlighted_id,
            title=title,
        )

    def write(self, path: Path, units: UnitSystem, center: LngLat | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(units, center), encoding="utf-8")
        return path


def _route_entries(features: dict[str, Any], units: UnitSystem) -> list[dict[str, Any]]:
    """Flatten GeoJSON features into the route records used by the page script."""
    routes = []
    for feature in features.get("features", []):
        props = feature.get("properties", {})
        coords = feature.get("geometry", {}).get("coordinates", [])
        place = ", ".join(p for p in (props.get("city"), props.get("state"), props.get("country")) if p)
        routes.append(
            {
                "id": feature.get("id"),
                "name": props.get("name", ""),
                "category": props.get("category", ""),
                "date": props.get("date", ""),
                "distance": format_distance(props.get("distance_meters", 0.0), units),
                "moving_time": format_duration(props.get("moving_time_seconds", 0)),
                "elapsed_time": format_duration(props.get("elapsed_time_seconds", 0)),
                "elevation": format_elevation(props.get("elevation_gain_meters", 0.0), units),
                "place": place,
                # Leaflet wants [lat, lng]
                "coords": [[lat, lng] for lng, lat in coords],
                "color": props.get("base_color") or props.get("color", "#607D8B"),
                "width": LINE_WIDTH,
            }
        )
    # Most recent first, as in the list view
    routes.sort(key=lambda r: r["date"], reverse=True)
    return routes


def _script_json(value: Any) -> str:
    """JSON for embedding in an inline script; "</" cannot end the block."""
    return json.dumps(value).replace("</", "<\\/")


def _initial_view(routes: list[dict[str, Any]], center: LngLat | None) -> tuple[list[float], int]:
    if center is not None:
        return [center[1], center[0]], 12
    points = [(lng, lat) for r in routes for lat, lng in r["coords"]]
    bounds = Bounds.around(points)
    if bounds is None:
        return [0.0, 0.0], 2
    span = max(bounds.east - bounds.west, bounds.north - bounds.south)
    if span < 0.01:
        zoom = 15
    elif span < 0.1:
        zoom = 12
    elif span < 1:
        zoom = 10
    elif span < 10:
        zoom = 7
    else:
        zoom = 4
    return [(bounds.south + bounds.north) / 2, (bounds.west + bounds.east) / 2], zoom


def generate_trails_html(
    features: dict[str, Any],
    units: UnitSystem,
    center: LngLat | None = None,
    highlighted_id: str | None = None,
    title: str = "My Strava Trails",
) -> str:
    """Generate the trail map page.

    Args:
        features: GeoJSON FeatureCollection from the engine.
        units: Unit system for the displayed values.
        center: Initial (lng, lat) center; fitted to the trails when None.
        highlighted_id: Activity highlighted when the page opens.
        title: Page title.

    Returns:
        HTML content.
    """
    routes = _route_entries(features, units)
    map_center, zoom = _initial_view(routes, center)

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)}</title>
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
    <style>
        body {{ margin: 0; padding: 0; font: 14px/18px Arial, Helvetica, sans-serif; display: flex; height: 100vh; }}
        #map {{ flex: 2; }}
        #list {{ flex: 1; overflow-y: auto; border-left: 1px solid #ddd; }}
        #list h2 {{ margin: 8px 12px; font-size: 16px; }}
        .row {{ padding: 8px 12px; border-bottom: 1px solid #eee; cursor: pointer; }}
        .row.highlighted {{ background: #FFF0E8; border-left: 4px solid #FC4C02; }}
        .row .meta {{ color: #666; font-size: 12px; }}
        .empty {{ padding: 12px; color: #666; }}
    </style>
</head>
<body>
    <div id="map"></div>
    <div id="list"><h2>{html.escape(title)}</h2><div id="rows"></div></div>
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <script>
        var routes = {_script_json(routes)};
        var highlightedId = {_script_json(highlighted_id)};
        var highlightColor = {json.dumps(HIGHLIGHT_COLOR)};
        var highlightWidth = {HIGHLIGHT_LINE_WIDTH};
        var map = L.map('map', {{ preferCanvas: true }}).setView({json.dumps(map_center)}, {zoom});

        L.tileLayer('https://tile.openstreetmap.org/{{z}}/{{x}}/{{y}}.png', {{
            maxZoom: 19,
            attribution: '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
        }}).addTo(map);

        var lines = {{}};
        var rowsById = {{}};

        function escapeHtml(text) {{
            var div = document.createElement('div');
            div.textContent = text;
            return div.innerHTML;
        }}

        function setHighlight(id) {{
            if (highlightedId === id) return;
            var previous = highlightedId;
            highlightedId = id;
            [previous, id].forEach(function(routeId) {{
                if (routeId === null || !lines[routeId]) return;
                var on = routeId === highlightedId;
                lines[routeId].line.setStyle({{
                    color: on ? highlightColor : lines[routeId].route.color,
                    weight: on ? highlightWidth : lines[routeId].route.width
                }});
                if (on) lines[routeId].line.bringToFront();
                if (rowsById[routeId]) rowsById[routeId].classList.toggle('highlighted', on);
            }});
        }}

        function clearHighlight(id) {{
            // A late leave event must not clear a newer hover
            if (highlightedId === id) setHighlight(null);
        }}

        function renderRows() {{
            var bounds = map.getBounds();
            var container = document.getElementById('rows');
            container.innerHTML = '';
            rowsById = {{}};
            routes.forEach(function(route) {{
                var visible = route.coords.some(function(c) {{ return bounds.contains(c); }});
                if (!visible) return;
                var row = document.createElement('div');
                row.className = 'row' + (route.id === highlightedId ? ' highlighted' : '');
                row.innerHTML = '<strong>' + escapeHtml(route.name) + '</strong><div class="meta">' +
                    escapeHtml(route.date + ' · ' + route.category + ' · ' + route.distance +
                    ' · ' + route.moving_time + (route.place ? ' · ' + route.place : '')) + '</div>';
                row.addEventListener('mouseenter', function() {{ setHighlight(route.id); }});
                row.addEventListener('mouseleave', function() {{ clearHighlight(route.id); }});
                row.addEventListener('click', function() {{
                    setHighlight(route.id);
                    map.flyTo(route.coords[0], 15);
                }});
                container.appendChild(row);
                rowsById[route.id] = row;
            }});
            if (!container.children.length) {{
                container.innerHTML = '<div class="empty">No activities in this area.</div>';
            }}
        }}

        routes.forEach(function(route) {{
            if (route.coords.length === 0) return;
            var line = L.polyline(route.coords, {{
                color: route.id === highlightedId ? highlightColor : route.color,
                weight: route.id === highlightedId ? highlightWidth : route.width,
                opacity: 0.85,
                lineJoin: 'round',
                lineCap: 'round'
            }}).addTo(map);
            line.bindPopup(
                '<b>' + escapeHtml(route.name) + '</b><br>' +
                'Type: ' + escapeHtml(route.category) + '<br>' +
                'Distance: ' + route.distance + '<br>' +
                'Moving time: ' + route.moving_time + '<br>' +
                'Elapsed time: ' + route.elapsed_time + '<br>' +
                'Elevation gain: ' + route.elevation + '<br>' +
                (route.place ? 'Location: ' + escapeHtml(route.place) + '<br>' : '') +
                'Date: ' + route.date
            );
            line.on('mouseover', function() {{ setHighlight(route.id); }});
            line.on('mouseout', function() {{ clearHighlight(route.id); }});
            line.on('click', function() {{ setHighlight(route.id); }});
            lines[route.id] = {{ line: line, route: route }};
        }});

        map.on('moveend', renderRows);
        renderRows();
    </script>
</body>
</html>
"""
