"""Accumulated activity store.

The single source of truth for loaded activities: insertion-ordered, unique
by id, and only ever replaced wholesale or appended to.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator

from strava_trails.models.activity import Activity

logger = logging.getLogger("strava_trails.store")

StoreListener = Callable[["ActivityStore"], None]


def dedupe_activities(
    activities: Iterable[Activity],
    seen: set[str] | None = None,
) -> list[Activity]:
    """Drop activities whose id was already seen, keeping the first occurrence.

    Args:
        activities: Candidate activities in order.
        seen: Ids already present; updated in place when given.

    Returns:
        Activities with new ids, in their original order.
    """
    if seen is None:
        seen = set()
    unique: list[Activity] = []
    for activity in activities:
        if activity.id in seen:
            continue
        seen.add(activity.id)
        unique.append(activity)
    return unique


class ActivityStore:
    """Insertion-ordered, id-deduplicated collection of activities."""

    def __init__(self) -> None:
        self._activities: list[Activity] = []
        self._by_id: dict[str, Activity] = {}
        self._listeners: list[StoreListener] = []
        self.version = 0

    def replace(self, activities: Iterable[Activity]) -> int:
        """Replace the whole collection.

        Args:
            activities: New contents; duplicate ids keep their first occurrence.

        Returns:
            Number of activities stored.
        """
        unique = dedupe_activities(activities)
        self._activities = unique
        self._by_id = {a.id: a for a in unique}
        logger.debug("Store replaced with %d activities", len(unique))
        self._changed()
        return len(unique)

    def append(self, activities: Iterable[Activity]) -> int:
        """Append activities whose ids are not stored yet.

        Args:
            activities: Activities to add, in order.

        Returns:
            Number of activities actually added.
        """
        added = dedupe_activities(activities, seen=set(self._by_id))
        self._activities = [*self._activities, *added]
        for activity in added:
            self._by_id[activity.id] = activity
        logger.debug("Store appended %d activities (total %d)", len(added), len(self._activities))
        self._changed()
        return len(added)

    def by_id(self, activity_id: str) -> Activity | None:
        return self._by_id.get(activity_id)

    @property
    def activities(self) -> tuple[Activity, ...]:
        """Snapshot of the stored activities in insertion order."""
        return tuple(self._activities)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Call ``listener(store)`` after every mutation.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            listener(self)

    def __contains__(self, activity_id: object) -> bool:
        return activity_id in self._by_id

    def __iter__(self) -> Iterator[Activity]:
        return iter(self.activities)

    def __len__(self) -> int:
        return len(self._activities)
