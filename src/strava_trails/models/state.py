"""Loading state tracking for strava-trails.

Tracks the pagination cursor and the loading/error state machine that drives
user-visible feedback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from strava_trails.errors import AuthError, InvalidTransitionError, TrailsError

logger = logging.getLogger("strava_trails.state")


@dataclass(frozen=True)
class PaginationCursor:
    """Position in the paginated activities listing.

    ``page`` is the last committed page; 1 right after a reset.
    """

    page: int = 1
    per_page: int = 30
    has_more: bool = True

    def after_page(self, page: int, record_count: int) -> PaginationCursor:
        """Cursor after committing ``page`` which held ``record_count`` records."""
        return replace(self, page=page, has_more=record_count >= self.per_page)

    def to_dict(self) -> dict[str, Any]:
        return {"page": self.page, "per_page": self.per_page, "has_more": self.has_more}


class LoadState(str, Enum):
    """Engine loading states."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    REFETCHING = "refetching"
    LOADING_MORE = "loading_more"
    READY = "ready"
    FAILED = "failed"

    @property
    def shows_skeleton(self) -> bool:
        """Whether the views should show a placeholder instead of data."""
        return self in (LoadState.INITIALIZING, LoadState.REFETCHING)


# Which states each load-starting event may be issued from.
_START_TRANSITIONS: dict[LoadState, frozenset[LoadState]] = {
    LoadState.INITIALIZING: frozenset({LoadState.IDLE, LoadState.FAILED, LoadState.INITIALIZING}),
    LoadState.REFETCHING: frozenset(
        {LoadState.READY, LoadState.REFETCHING, LoadState.LOADING_MORE}
    ),
    LoadState.LOADING_MORE: frozenset({LoadState.READY}),
}


@dataclass(frozen=True)
class ErrorBanner:
    """User-visible error message."""

    message: str
    kind: str
    retryable: bool

    @classmethod
    def from_error(cls, error: BaseException) -> ErrorBanner:
        if isinstance(error, AuthError):
            message = f"Strava rejected the credentials: {error}"
        else:
            message = str(error) or error.__class__.__name__
        retryable = isinstance(error, TrailsError) and error.retryable
        return cls(message=message, kind=error.__class__.__name__, retryable=retryable)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "kind": self.kind, "retryable": self.retryable}


StateObserver = Callable[["LoadingStateMachine"], None]


class LoadingStateMachine:
    """Initializing / Refetching / LoadingMore / Ready / Failed transitions.

    Each load is started with the generation it belongs to. Completion events
    carrying an older generation are ignored, so a superseded load can never
    flip the state back.
    """

    def __init__(self) -> None:
        self.state = LoadState.IDLE
        self.generation: int | None = None
        self.error: ErrorBanner | None = None
        self._observers: list[StateObserver] = []

    def can_begin(self, state: LoadState) -> bool:
        allowed = _START_TRANSITIONS.get(state)
        return allowed is not None and self.state in allowed

    def begin(self, state: LoadState, generation: int) -> None:
        """Start a load.

        Args:
            state: INITIALIZING, REFETCHING or LOADING_MORE.
            generation: Generation the load runs under.

        Raises:
            InvalidTransitionError: If the load cannot start from the current state.
        """
        if not self.can_begin(state):
            raise InvalidTransitionError(f"Cannot enter {state.value} from {self.state.value}")
        if state is not LoadState.LOADING_MORE:
            self.error = None
        self._move(state, generation)

    def succeed(self, generation: int) -> bool:
        """Finish the load of ``generation`` successfully.

        Returns:
            False if the event was stale and ignored.
        """
        if not self._is_current(generation):
            return False
        self._move(LoadState.READY, generation)
        return True

    def fail(self, generation: int, error: BaseException) -> bool:
        """Finish the load of ``generation`` with an error.

        A failed load-more keeps the already displayed data and only sets a
        transient banner; other failures move to FAILED.

        Returns:
            False if the event was stale and ignored.
        """
        if not self._is_current(generation):
            return False
        self.error = ErrorBanner.from_error(error)
        if self.state is LoadState.LOADING_MORE:
            logger.warning("Loading more activities failed: %s", self.error.message)
            self._move(LoadState.READY, generation)
        else:
            logger.error("Loading activities failed: %s", self.error.message)
            self._move(LoadState.FAILED, generation)
        return True

    def dismiss_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._notify()

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "generation": self.generation,
            "error": self.error.to_dict() if self.error else None,
        }

    def _is_current(self, generation: int) -> bool:
        if generation != self.generation:
            logger.debug(
                "Ignoring completion of generation %s (current %s)", generation, self.generation
            )
            return False
        return self.state in (
            LoadState.INITIALIZING,
            LoadState.REFETCHING,
            LoadState.LOADING_MORE,
        )

    def _move(self, state: LoadState, generation: int) -> None:
        logger.debug("Load state %s -> %s (generation %d)", self.state.value, state.value, generation)
        self.state = state
        self.generation = generation
        self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)
