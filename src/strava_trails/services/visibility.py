"""Viewport visibility.

Computes which stored activities have at least one track point inside the
rendering surface's current bounds. The result is a derived view; the store
is never touched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from strava_trails.lib.geometry import Bounds
from strava_trails.models.activity import Activity
from strava_trails.models.store import ActivityStore, dedupe_activities

logger = logging.getLogger("strava_trails.visibility")

VisibleObserver = Callable[[tuple[Activity, ...]], None]


def visible_activities(bounds: Bounds, activities: Iterable[Activity]) -> list[Activity]:
    """Activities whose geometry intersects ``bounds``, most recent first.

    Args:
        bounds: Current viewport box.
        activities: Candidates in insertion order.

    Returns:
        Deduplicated activities sorted by date descending; activities on the
        same date keep their insertion order.
    """
    inside = [a for a in dedupe_activities(activities) if bounds.intersects(a.geometry)]
    # list.sort is stable, also with reverse=True
    inside.sort(key=lambda a: a.date, reverse=True)
    return inside


class ViewportVisibility:
    """Keeps the visible set current as bounds and store change."""

    def __init__(self, store: ActivityStore) -> None:
        self.store = store
        self.bounds: Bounds | None = None
        self.surface_ready = False
        self.visible: tuple[Activity, ...] = ()
        self._observers: list[VisibleObserver] = []
        store.subscribe(self._on_store_changed)

    def mark_surface_ready(self, bounds: Bounds | None = None) -> None:
        """Rendering surface finished loading; start tracking visibility."""
        self.surface_ready = True
        if bounds is not None:
            self.bounds = bounds
        self.recompute()

    def on_bounds_changed(self, bounds: Bounds) -> tuple[Activity, ...]:
        self.bounds = bounds
        return self.recompute()

    def recompute(self) -> tuple[Activity, ...]:
        """Recompute the visible set from the current bounds and store."""
        if self.bounds is None:
            visible: tuple[Activity, ...] = ()
        else:
            visible = tuple(visible_activities(self.bounds, self.store))
        self.visible = visible
        logger.debug("%d of %d activities visible", len(visible), len(self.store))
        for observer in list(self._observers):
            observer(visible)
        return visible

    def subscribe(self, observer: VisibleObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _on_store_changed(self, _store: ActivityStore) -> None:
        if self.surface_ready:
            self.recompute()
