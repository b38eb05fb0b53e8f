"""Command-line interface for strava-trails.

Provides CLI commands for listing loaded activities, querying the activities
visible in a map viewport, and writing a standalone trail map page.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click

from strava_trails import __version__
from strava_trails.config import DEFAULT_CONFIG_PATH, UNIT_SYSTEMS, load_config
from strava_trails.lib.logging import setup_logging

if TYPE_CHECKING:
    from strava_trails.config import Config
    from strava_trails.services.engine import TrailsEngine


class JSONReport:
    """The single JSON document a command prints with --json."""

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled

    def emit(self, data: dict[str, Any]) -> None:
        if self.enabled:
            click.echo(json.dumps(data, indent=2, default=str))


class Context:
    """CLI context holding the loaded configuration and output mode."""

    def __init__(self) -> None:
        self.config: Config | None = None
        self.verbose: int = 0
        self.quiet: bool = False
        self.json_output: bool = False
        self.report: JSONReport = JSONReport()

    def log(self, message: str, level: int = 0) -> None:
        """Print a human-readable line.

        Args:
            message: Text to print.
            level: Verbosity needed to show it (0 always, unless --quiet).
        """
        if self.json_output or level > self.verbose or (self.quiet and level == 0):
            return
        click.echo(message)

    def fail(self, message: str, exit_code: int) -> NoReturn:
        """Report an error (as JSON with --json) and exit."""
        if self.json_output:
            self.report.emit({"status": "error", "error": message})
        else:
            click.echo(f"Error: {message}", err=True)
        sys.exit(exit_code)


pass_context = click.make_pass_decorator(Context, ensure=True)

pages_option = click.option(
    "--pages",
    "-n",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of activity pages to load",
)


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-error output",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format",
)
@click.option(
    "--units",
    type=click.Choice(UNIT_SYSTEMS),
    default=None,
    help="Display unit system (default: from configuration)",
)
@click.version_option(version=__version__, prog_name="strava-trails")
@pass_context
def main(
    ctx: Context,
    config_path: Path | None,
    verbose: int,
    quiet: bool,
    json_output: bool,
    units: str | None,
) -> None:
    """Strava Trails CLI.

    Load your Strava activities, see which ones cross a map area, and
    render them as trails on an interactive map.
    """
    ctx.verbose = verbose
    ctx.quiet = quiet
    ctx.json_output = json_output
    ctx.report = JSONReport(json_output)

    try:
        ctx.config = load_config(config_path)
    except (ValueError, OSError) as e:
        ctx.fail(f"Invalid configuration: {e}", 2)

    if units is not None:
        ctx.config.engine.unit_system = units

    setup_logging(
        ctx.config,
        console_level=logging.DEBUG if verbose > 1 else logging.INFO,
        # stdout carries the JSON document
        quiet=quiet or json_output,
    )


async def _load_pages(engine: TrailsEngine, pages: int) -> bool:
    """Load up to ``pages`` pages; False if the initial load failed."""
    if not await engine.start():
        return False
    for _ in range(pages - 1):
        if not engine.controller.cursor.has_more:
            break
        await engine.load_more()
        if engine.state.error is not None:
            break
    return True


def _run_engine(ctx: Context, pages: int, surface: Any = None) -> TrailsEngine:
    """Build an engine from the configuration and load pages into it.

    Exits with code 1 if the activities could not be loaded.
    """
    from strava_trails.services.engine import TrailsEngine

    config = ctx.config
    if config is None:
        ctx.fail("Configuration not loaded", 1)

    engine = TrailsEngine.from_config(config, surface=surface)
    try:
        loaded = asyncio.run(_load_pages(engine, pages))
    finally:
        engine.close()

    if not loaded:
        banner = engine.state.error
        ctx.fail(banner.message if banner else "Loading activities failed", 1)

    if engine.state.error is not None:
        ctx.log(f"Warning: {engine.state.error.message}")
    ctx.log(
        f"Loaded {len(engine.store)} activities "
        f"(page {engine.controller.cursor.page}, "
        f"{'more available' if engine.controller.cursor.has_more else 'no more pages'})",
        level=1,
    )
    return engine


def _status(engine: TrailsEngine) -> dict[str, Any]:
    return {
        "status": "success",
        "state": engine.state.to_dict(),
        "cursor": engine.controller.cursor.to_dict(),
        "units": engine.unit_system.value,
    }


@main.command()
@pages_option
@pass_context
def activities(ctx: Context, pages: int) -> None:
    """List loaded activities in the order Strava returned them (newest first)."""
    from strava_trails.views.table import ActivityList

    engine = _run_engine(ctx, pages)
    activity_list = ActivityList(engine)

    if ctx.json_output:
        ctx.report.emit({**_status(engine), "activities": activity_list.rows()})
    elif len(engine.store) == 0:
        ctx.log("No activities found")
    else:
        ctx.log(activity_list.render())


@main.command()
@click.option(
    "--bounds",
    "-b",
    required=True,
    help="Viewport bounds as WEST,SOUTH,EAST,NORTH in degrees",
)
@pages_option
@pass_context
def visible(ctx: Context, bounds: str, pages: int) -> None:
    """List loaded activities whose trails cross the given bounds."""
    from strava_trails.lib.geometry import Bounds
    from strava_trails.services.engine import SurfaceReady
    from strava_trails.views.table import ActivityList

    try:
        viewport = Bounds.parse(bounds)
    except ValueError as e:
        ctx.fail(f"Invalid bounds: {e}", 2)

    engine = _run_engine(ctx, pages)
    engine.dispatch(SurfaceReady(viewport))
    activity_list = ActivityList(engine)

    if ctx.json_output:
        ctx.report.emit({
            **_status(engine),
            "bounds": [viewport.west, viewport.south, viewport.east, viewport.north],
            "loaded": len(engine.store),
            "activities": activity_list.rows(),
        })
    elif not activity_list.activities:
        ctx.log(f"No activities in this area ({len(engine.store)} loaded)")
    else:
        ctx.log(activity_list.render())


@main.command(name="map")
@pages_option
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("trails.html"),
    show_default=True,
    help="Output HTML file",
)
@pass_context
def map_cmd(ctx: Context, pages: int, output: Path) -> None:
    """Write an interactive trail map page."""
    from strava_trails.views.map import HtmlMapSurface

    surface = HtmlMapSurface()
    engine = _run_engine(ctx, pages, surface=surface)

    try:
        path = surface.write(output, engine.unit_system, center=engine.center)
    except OSError as e:
        ctx.fail(f"Could not write map: {e}", 1)

    trails = len(surface.features["features"])
    if ctx.json_output:
        ctx.report.emit({**_status(engine), "output": str(path), "trails": trails})
    else:
        ctx.log(f"Wrote {trails} trails to {path}")


if __name__ == "__main__":
    main()
