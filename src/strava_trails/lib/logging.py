"""Logging setup for strava-trails.

Console messages go to stderr so stdout stays free for tables and JSON. Every
run also writes a DEBUG log file, which additionally receives the urllib3
connection records of the Strava and Mapbox requests.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from strava_trails.config import Config

logger = logging.getLogger("strava_trails")

# Loggers of the HTTP stack that only go to the log file
HTTP_LOGGERS = ("urllib3",)

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _detach_handlers() -> None:
    """Close handlers left by a previous setup, wherever they were attached."""
    http_loggers = [logging.getLogger(name) for name in HTTP_LOGGERS]
    for handler in list(logger.handlers):
        for http_logger in http_loggers:
            http_logger.removeHandler(handler)
        logger.removeHandler(handler)
        handler.close()


def _run_log_path(log_dir: Path) -> Path:
    # ISO 8601 basic format keeps runs sortable by name
    timestamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    return log_dir / f"strava-trails-{timestamp}.log"


def setup_logging(
    config: "Config | None" = None,
    log_dir: Path | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet: bool = False,
) -> logging.Logger:
    """Install the console and run-file handlers on the strava_trails logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        config: Application config; supplies the log directory.
        log_dir: Log directory overriding the config.
        console_level: Console threshold when not quiet.
        file_level: Run-file threshold.
        quiet: Limit the console to warnings and errors.

    Returns:
        The strava_trails logger.
    """
    _detach_handlers()
    logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.WARNING if quiet else console_level)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_dir is None:
        log_dir = config.logging.directory if config is not None else Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = _run_log_path(log_dir)

    run_file = logging.FileHandler(log_file, encoding="utf-8")
    run_file.setLevel(file_level)
    run_file.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(run_file)

    for name in HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        http_logger.setLevel(logging.DEBUG)
        http_logger.addHandler(run_file)

    logger.debug("Logging to %s", log_file)
    return logger
