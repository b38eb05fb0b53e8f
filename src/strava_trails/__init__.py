"""Strava Trails: interactive maps of geo-tagged fitness activities.

Loads activities page by page from the Strava API, enriches them with
reverse-geocoded place names, and renders them as trails on a map with a
synchronized activity list.
"""

__version__ = "0.1.0"

__author__ = "strava_trails contributors"
__license__ = "Apache-2.0"

__all__ = ["__version__"]
