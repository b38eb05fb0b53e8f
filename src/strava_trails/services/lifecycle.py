"""Request lifecycle management.

Every asynchronous operation is tagged with the generation that was active
when it was issued. Minting a new generation cancels whatever older
generations still have in flight, and results from an older generation are
never committed. Credential acquisition is shared: concurrent callers wait on
the same pending fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from strava_trails.errors import StaleGenerationDiscard
from strava_trails.services.credentials import CredentialProvider

logger = logging.getLogger("strava_trails.lifecycle")

T = TypeVar("T")


class RequestLifecycleManager:
    """Generation counter plus registry of cancelable in-flight work."""

    def __init__(self, credentials: CredentialProvider) -> None:
        """Initialize the manager.

        Args:
            credentials: Source of bearer tokens.
        """
        self.credentials = credentials
        self.active_generation = 0
        self._handles: dict[int, list[Callable[[], object]]] = {}
        self._token: str | None = None
        self._token_task: asyncio.Task[str] | None = None
        self._token_task_generation = 0

    def begin_generation(self) -> int:
        """Mint a new generation and cancel everything older.

        Returns:
            The new generation number.
        """
        previous = self.active_generation
        self.active_generation += 1

        stale = [g for g in self._handles if g < self.active_generation]
        canceled = 0
        for generation in stale:
            for cancel in self._handles.pop(generation):
                cancel()
                canceled += 1

        logger.debug(
            "Generation %d -> %d (%d in-flight operations canceled)",
            previous,
            self.active_generation,
            canceled,
        )
        return self.active_generation

    def is_current(self, generation: int) -> bool:
        return generation == self.active_generation

    def register_handle(self, generation: int, cancel: Callable[[], object]) -> None:
        """Register a cancel callback for work issued under ``generation``.

        The callback runs immediately when the generation is already stale.
        """
        if generation < self.active_generation:
            cancel()
            return
        self._handles.setdefault(generation, []).append(cancel)

    def unregister_handle(self, generation: int, cancel: Callable[[], object]) -> None:
        handles = self._handles.get(generation)
        if handles and cancel in handles:
            handles.remove(cancel)
            if not handles:
                del self._handles[generation]

    def pending_count(self, generation: int | None = None) -> int:
        """Number of registered in-flight operations, optionally for one generation."""
        if generation is not None:
            return len(self._handles.get(generation, []))
        return sum(len(h) for h in self._handles.values())

    def commit_if_current(self, generation: int, fn: Callable[[], object]) -> bool:
        """Run ``fn`` only if ``generation`` is still active.

        Returns:
            True if ``fn`` ran, False if the result was discarded.
        """
        if not self.is_current(generation):
            logger.debug(
                "Discarding result of generation %d (active %d)",
                generation,
                self.active_generation,
            )
            return False
        fn()
        return True

    def ensure_current(self, generation: int) -> None:
        """Raise StaleGenerationDiscard if ``generation`` was superseded."""
        if not self.is_current(generation):
            raise StaleGenerationDiscard(generation, self.active_generation)

    async def track(self, generation: int, awaitable: Awaitable[T]) -> T:
        """Await an operation on behalf of ``generation``.

        The operation runs as a task whose cancellation is registered under
        the generation, so minting a newer generation aborts it.

        Raises:
            StaleGenerationDiscard: If the generation was superseded before or
                while the operation ran.
        """
        task = asyncio.ensure_future(awaitable)
        self.register_handle(generation, task.cancel)
        try:
            result = await task
        except asyncio.CancelledError:
            if self.is_current(generation):
                raise
            raise StaleGenerationDiscard(generation, self.active_generation) from None
        except Exception as e:
            # Failures of superseded work are as irrelevant as its results
            if self.is_current(generation) or isinstance(e, StaleGenerationDiscard):
                raise
            raise StaleGenerationDiscard(generation, self.active_generation) from e
        finally:
            self.unregister_handle(generation, task.cancel)

        self.ensure_current(generation)
        return result

    async def acquire_token(self, generation: int) -> str:
        """Get a bearer token for work of ``generation``.

        The token is cached for the process. While a fetch is pending, every
        caller shares it instead of starting another.

        Raises:
            AuthError: If the credential provider has no usable token.
            StaleGenerationDiscard: If the generation was superseded.
        """
        if self._token is not None:
            self.ensure_current(generation)
            return self._token

        if (
            self._token_task is None
            or self._token_task.done()
            or self._token_task_generation != generation
        ):
            logger.debug("Fetching credential for generation %d", generation)
            self._token_task = asyncio.ensure_future(self._fetch_token())
            self._token_task_generation = generation
            cancel = self._token_task.cancel
            self.register_handle(generation, cancel)
            self._token_task.add_done_callback(
                lambda _task: self.unregister_handle(generation, cancel)
            )

        return await self.track(generation, asyncio.shield(self._token_task))

    def invalidate_token(self, token: str) -> None:
        """Forget a rejected token so the next acquisition picks another."""
        self.credentials.invalidate(token)
        if self._token == token:
            self._token = None

    async def _fetch_token(self) -> str:
        token = await self.credentials.acquire()
        self._token = token
        return token
