"""Error types for strava-trails.

Only page-fetch failures and exhausted authentication reach the loading
state machine. Enrichment and malformed-record errors are absorbed where they
occur, and stale-generation discards are control flow, never user-visible.
"""

from __future__ import annotations


class TrailsError(Exception):
    """Base class for strava-trails errors."""

    #: Whether the user can meaningfully retry the failed operation.
    retryable: bool = False


class PageFetchError(TrailsError):
    """An activities page could not be fetched or parsed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientNetworkError(PageFetchError):
    """Connection failure, timeout, rate limit, or server error."""

    retryable = True


class AuthError(TrailsError):
    """Credential rejected (HTTP 401) or no usable credential left."""

    def __init__(self, message: str, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token


class EnrichmentFailure(TrailsError):
    """Reverse geocoding failed for a coordinate."""


class MalformedRecordError(TrailsError):
    """Upstream record lacks a field required to build an activity."""

    def __init__(self, message: str, record_id: object = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class StaleGenerationDiscard(TrailsError):
    """Result belongs to a generation that has since been superseded."""

    def __init__(self, generation: int, active_generation: int) -> None:
        super().__init__(
            f"generation {generation} superseded by {active_generation}"
        )
        self.generation = generation
        self.active_generation = active_generation


class InvalidTransitionError(TrailsError):
    """Loading state machine received an event not valid in its state."""
