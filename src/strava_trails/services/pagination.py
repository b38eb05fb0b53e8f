"""Paginated activity loading.

Drives fetch -> normalize -> commit cycles against the Strava activities
listing. Pages are committed atomically and only while the generation they
were requested under is still active.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from strava_trails.errors import AuthError, MalformedRecordError, StaleGenerationDiscard
from strava_trails.models.activity import Activity, Place
from strava_trails.models.state import PaginationCursor
from strava_trails.models.store import ActivityStore
from strava_trails.services.geocoding import PlaceEnricher
from strava_trails.services.lifecycle import RequestLifecycleManager
from strava_trails.services.normalizer import normalize
from strava_trails.services.strava import StravaClient

logger = logging.getLogger("strava_trails.pagination")

DEFAULT_PER_PAGE = 30


class PaginationController:
    """Loads pages of activities into the store."""

    def __init__(
        self,
        client: StravaClient,
        enricher: PlaceEnricher,
        store: ActivityStore,
        lifecycle: RequestLifecycleManager,
        per_page: int = DEFAULT_PER_PAGE,
        max_auth_retries: int = 2,
    ) -> None:
        """Initialize the controller.

        Args:
            client: Strava API client.
            enricher: Place lookup for activity start points.
            store: Store that receives committed pages.
            lifecycle: Generation and credential manager.
            per_page: Page size requested from the API.
            max_auth_retries: Rejected-token retries per page fetch.
        """
        self.client = client
        self.enricher = enricher
        self.store = store
        self.lifecycle = lifecycle
        self.max_auth_retries = max_auth_retries
        self.cursor = PaginationCursor(page=1, per_page=per_page, has_more=True)
        self._in_flight: int | None = None

    @property
    def loading(self) -> bool:
        """Whether a page load of the active generation is in flight."""
        return self._in_flight is not None and self._in_flight == self.lifecycle.active_generation

    def reset(self, reason: str) -> int:
        """Start a new generation and rewind the cursor to page 1.

        Work still in flight for older generations is canceled.

        Args:
            reason: Why the reset happened, for the log.

        Returns:
            The new generation.
        """
        generation = self.lifecycle.begin_generation()
        self.cursor = PaginationCursor(page=1, per_page=self.cursor.per_page, has_more=True)
        self._in_flight = None
        logger.info("Loading activities (%s, generation %d)", reason, generation)
        return generation

    async def load_initial(self, reason: str = "initial") -> bool:
        """Reset and load page 1, replacing the store contents.

        Returns:
            True if the page was committed, False if it was superseded.

        Raises:
            PageFetchError: If the page could not be fetched.
            AuthError: If no credential was accepted.
        """
        generation = self.reset(reason)
        return await self.load_page(generation, page=1, replace=True)

    async def load_more(self) -> bool:
        """Load the page after the cursor under the current generation.

        Does nothing when a load is already in flight or the listing is
        exhausted.

        Returns:
            True if a page was committed.

        Raises:
            PageFetchError: If the page could not be fetched; store and cursor
                are left unchanged.
            AuthError: If no credential was accepted.
        """
        if self.loading:
            logger.debug("Load already in flight; ignoring load-more")
            return False
        if not self.cursor.has_more:
            logger.debug("No more activities to load")
            return False

        generation = self.lifecycle.active_generation
        return await self.load_page(generation, page=self.cursor.page + 1, replace=False)

    async def load_page(self, generation: int, page: int, replace: bool) -> bool:
        """Fetch, normalize and commit one page for ``generation``.

        Args:
            generation: Generation the page belongs to.
            page: 1-based page number.
            replace: Replace the store (True) or append to it (False).

        Returns:
            True if committed, False if the generation was superseded.
        """
        self._in_flight = generation
        try:
            records = await self._fetch_page(generation, page)
            activities = await self._normalize_page(generation, records)
        except StaleGenerationDiscard as e:
            logger.debug("Page %d discarded: %s", page, e)
            return False
        finally:
            if self._in_flight == generation:
                self._in_flight = None

        def commit() -> None:
            if replace:
                self.store.replace(activities)
            else:
                self.store.append(activities)
            self.cursor = self.cursor.after_page(page, len(records))

        committed = self.lifecycle.commit_if_current(generation, commit)
        if committed:
            logger.info(
                "Loaded page %d: %d activities (%d total, more=%s)",
                page,
                len(activities),
                len(self.store),
                self.cursor.has_more,
            )
        return committed

    async def _fetch_page(self, generation: int, page: int) -> list[dict[str, Any]]:
        """Fetch raw records, retrying with another credential on 401."""
        attempts = 0
        while True:
            token = await self.lifecycle.acquire_token(generation)
            try:
                return await self.lifecycle.track(
                    generation,
                    asyncio.to_thread(
                        self.client.get_activities, token, page, self.cursor.per_page
                    ),
                )
            except AuthError:
                self.lifecycle.invalidate_token(token)
                attempts += 1
                if attempts > self.max_auth_retries:
                    logger.error("Giving up after %d rejected credentials", attempts)
                    raise
                logger.warning(
                    "Credential rejected fetching page %d; retrying (%d/%d)",
                    page,
                    attempts,
                    self.max_auth_retries,
                )

    async def _normalize_page(
        self, generation: int, records: list[dict[str, Any]]
    ) -> list[Activity]:
        """Normalize all records of a page, enriching them concurrently."""

        async def enrich(lat: float, lng: float) -> Place:
            return await self.lifecycle.track(generation, self.enricher.enrich(lat, lng))

        async def normalize_one(raw: Any) -> Activity | None:
            if not isinstance(raw, dict):
                logger.warning("Skipping non-object activity record: %r", raw)
                return None
            try:
                return await normalize(raw, enrich)
            except MalformedRecordError as e:
                logger.warning("Skipping malformed activity record %s: %s", e.record_id, e)
                return None

        results = await asyncio.gather(*(normalize_one(raw) for raw in records))
        self.lifecycle.ensure_current(generation)
        return [activity for activity in results if activity is not None]
