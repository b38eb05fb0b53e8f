"""Shared highlight state between the activity list and the map."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger("strava_trails.highlight")

HighlightObserver = Callable[["str | None"], None]


class HighlightState:
    """Single nullable "currently emphasized activity" id.

    Hover and click events from either view mutate it; both views observe it
    and restyle themselves. A held id always names a stored activity.
    """

    def __init__(self, contains: Callable[[str], bool]) -> None:
        """Initialize the highlight state.

        Args:
            contains: Membership test against the activity store.
        """
        self._contains = contains
        self._observers: list[HighlightObserver] = []
        self.value: str | None = None

    def set_highlight(self, activity_id: str) -> bool:
        """Highlight an activity.

        Returns:
            False if the id is not in the store (state unchanged).
        """
        if not self._contains(activity_id):
            logger.debug("Ignoring highlight of unknown activity %s", activity_id)
            return False
        self._set(activity_id)
        return True

    def clear_highlight(self, activity_id: str) -> bool:
        """Clear the highlight if it is still held by ``activity_id``.

        A late mouse-leave for an activity that is no longer highlighted must
        not clobber a newer hover.

        Returns:
            True if the highlight was cleared.
        """
        if self.value is None or self.value != activity_id:
            return False
        self._set(None)
        return True

    def reset(self) -> None:
        self._set(None)

    def reconcile(self) -> None:
        """Drop the held id if the store no longer contains it."""
        if self.value is not None and not self._contains(self.value):
            logger.debug("Highlighted activity %s left the store", self.value)
            self._set(None)

    def subscribe(self, observer: HighlightObserver) -> Callable[[], None]:
        """Call ``observer(value)`` on every change.

        Returns:
            Function that removes the observer.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _set(self, value: str | None) -> None:
        if value == self.value:
            return
        self.value = value
        for observer in list(self._observers):
            observer(value)
