"""Trails engine.

Wires the activity store, pagination, request lifecycle, visibility and
highlight state together, and turns rendering-surface events and user
actions (load more, retry, unit toggle) into state changes. Data flows one
way: loads mutate the store, the store drives visibility and features, and
the views only read.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Union

from strava_trails.config import Config
from strava_trails.errors import AuthError, InvalidTransitionError, PageFetchError
from strava_trails.lib.geometry import Bounds, LngLat
from strava_trails.lib.units import UnitSystem
from strava_trails.models.highlight import HighlightState
from strava_trails.models.state import LoadingStateMachine, LoadState
from strava_trails.models.store import ActivityStore
from strava_trails.services.credentials import CredentialProvider, StaticCredentialProvider
from strava_trails.services.geocoding import MapboxGeocoder, PlaceEnricher
from strava_trails.services.lifecycle import RequestLifecycleManager
from strava_trails.services.pagination import DEFAULT_PER_PAGE, PaginationController
from strava_trails.services.strava import StravaClient
from strava_trails.services.visibility import ViewportVisibility
from strava_trails.views.style import feature_collection

logger = logging.getLogger("strava_trails.engine")

# Errors that end a load and reach the state machine
LOAD_ERRORS = (PageFetchError, AuthError)


@dataclass(frozen=True)
class SurfaceReady:
    bounds: Bounds | None = None


@dataclass(frozen=True)
class BoundsChanged:
    bounds: Bounds


@dataclass(frozen=True)
class FeatureHover:
    activity_id: str


@dataclass(frozen=True)
class FeatureHoverEnd:
    activity_id: str


@dataclass(frozen=True)
class FeatureClick:
    activity_id: str


SurfaceEvent = Union[SurfaceReady, BoundsChanged, FeatureHover, FeatureHoverEnd, FeatureClick]


class RenderingSurface(Protocol):
    """Map that draws trails and reports viewport and pointer events."""

    def set_features(self, features: dict[str, Any]) -> None: ...

    def set_highlight(self, activity_id: str | None) -> None: ...

    def focus(self, point: LngLat) -> None: ...


class TrailsEngine:
    """Loads activities and keeps the derived views consistent."""

    def __init__(
        self,
        client: StravaClient,
        enricher: PlaceEnricher,
        credentials: CredentialProvider,
        per_page: int = DEFAULT_PER_PAGE,
        max_auth_retries: int = 2,
        skeleton_min_ms: int = 400,
        unit_system: UnitSystem | str = UnitSystem.IMPERIAL,
        surface: RenderingSurface | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Strava API client.
            enricher: Place lookup for start points.
            credentials: Bearer-token source.
            per_page: Activities per page.
            max_auth_retries: Rejected-token retries per page fetch.
            skeleton_min_ms: Minimum time INITIALIZING/REFETCHING stay
                visible; 0 disables it.
            unit_system: Initial display unit system.
            surface: Rendering surface, if already available.
        """
        self.client = client
        self.enricher = enricher
        self.skeleton_min_seconds = max(skeleton_min_ms, 0) / 1000.0
        self.unit_system = UnitSystem.parse(unit_system)

        self.store = ActivityStore()
        self.lifecycle = RequestLifecycleManager(credentials)
        self.controller = PaginationController(
            client,
            enricher,
            self.store,
            self.lifecycle,
            per_page=per_page,
            max_auth_retries=max_auth_retries,
        )
        self.state = LoadingStateMachine()
        self.highlight = HighlightState(contains=self.store.__contains__)
        self.visibility = ViewportVisibility(self.store)

        self.surface: RenderingSurface | None = None
        self.store.subscribe(self._on_store_changed)
        self.highlight.subscribe(self._on_highlight_changed)
        if surface is not None:
            self.attach_surface(surface)

    @classmethod
    def from_config(
        cls,
        config: Config,
        surface: RenderingSurface | None = None,
    ) -> TrailsEngine:
        """Build an engine talking to the real Strava and Mapbox APIs."""
        timeout = config.engine.request_timeout
        geocoder = None
        if config.mapbox.access_token:
            geocoder = MapboxGeocoder(
                config.mapbox.access_token,
                base_url=config.mapbox.geocoding_url,
                timeout=timeout,
            )
        else:
            logger.info("No Mapbox token configured; place names will be empty")

        return cls(
            client=StravaClient(config.strava.api_url, timeout=timeout),
            enricher=PlaceEnricher(geocoder),
            credentials=StaticCredentialProvider.from_config(config),
            per_page=config.engine.per_page,
            max_auth_retries=config.engine.max_auth_retries,
            skeleton_min_ms=config.engine.skeleton_min_ms,
            unit_system=config.engine.unit_system,
            surface=surface,
        )

    # -- user actions ------------------------------------------------------

    async def start(self) -> bool:
        """Load the first page (IDLE -> INITIALIZING -> READY/FAILED).

        Returns:
            True if the load completed and the engine is READY.
        """
        return await self._reload(LoadState.INITIALIZING, "initial")

    async def retry(self) -> bool:
        """Start over after a failure (FAILED -> INITIALIZING).

        From READY this reloads the first page instead.
        """
        self.state.dismiss_error()
        if self.state.can_begin(LoadState.INITIALIZING):
            return await self._reload(LoadState.INITIALIZING, "retry")
        return await self._reload(LoadState.REFETCHING, "retry")

    async def load_more(self) -> bool:
        """Append the next page (READY -> LOADING_MORE -> READY).

        A failure keeps the loaded activities and sets a dismissible error.

        Returns:
            True if a page was appended.
        """
        if self.state.state is not LoadState.READY or not self.controller.cursor.has_more:
            return False

        generation = self.lifecycle.active_generation
        self.state.begin(LoadState.LOADING_MORE, generation)
        try:
            committed = await self.controller.load_more()
        except LOAD_ERRORS as e:
            self.state.fail(generation, e)
            return False

        self.state.succeed(generation)
        return committed

    async def set_unit_system(self, unit_system: UnitSystem | str) -> bool:
        """Switch units and refetch (READY -> REFETCHING -> READY/FAILED).

        Before the first load or after a failure only the preference changes.

        Returns:
            True if a refetch ran and completed.
        """
        units = UnitSystem.parse(unit_system)
        if units is self.unit_system:
            return False
        self.unit_system = units
        logger.info("Unit system changed to %s", units.value)

        if self.state.can_begin(LoadState.REFETCHING):
            return await self._reload(LoadState.REFETCHING, "unit system change")
        if self.state.state is LoadState.INITIALIZING:
            return await self._reload(LoadState.INITIALIZING, "unit system change")
        return False

    async def toggle_unit_system(self) -> bool:
        return await self.set_unit_system(self.unit_system.toggled())

    def dismiss_error(self) -> None:
        self.state.dismiss_error()

    def close(self) -> None:
        """Cancel outstanding work and release HTTP sessions."""
        self.lifecycle.begin_generation()
        self.client.session.close()
        geocoder = self.enricher.geocoder
        if isinstance(geocoder, MapboxGeocoder):
            geocoder.session.close()

    # -- rendering surface -------------------------------------------------

    def attach_surface(self, surface: RenderingSurface) -> None:
        """Connect a rendering surface and hand it the current trails."""
        self.surface = surface
        surface.set_features(self.feature_collection())
        surface.set_highlight(self.highlight.value)

    def dispatch(self, event: SurfaceEvent) -> None:
        """Handle an event emitted by the rendering surface."""
        if isinstance(event, SurfaceReady):
            self.visibility.mark_surface_ready(event.bounds)
        elif isinstance(event, BoundsChanged):
            self.visibility.on_bounds_changed(event.bounds)
        elif isinstance(event, FeatureHover):
            self.hover(event.activity_id)
        elif isinstance(event, FeatureHoverEnd):
            self.hover_end(event.activity_id)
        elif isinstance(event, FeatureClick):
            self.select(event.activity_id)
        else:
            raise TypeError(f"Unknown surface event: {event!r}")

    def hover(self, activity_id: str) -> None:
        self.highlight.set_highlight(activity_id)

    def hover_end(self, activity_id: str) -> None:
        self.highlight.clear_highlight(activity_id)

    def select(self, activity_id: str) -> None:
        """Highlight an activity and move the map to its start."""
        if not self.highlight.set_highlight(activity_id):
            return
        activity = self.store.by_id(activity_id)
        if self.surface is not None and activity is not None and activity.start_point:
            self.surface.focus(activity.start_point)

    def feature_collection(self) -> dict[str, Any]:
        return feature_collection(self.store, self.highlight.value)

    @property
    def center(self) -> LngLat | None:
        """Start of the most recently loaded activity with a location."""
        for activity in self.store:
            if activity.start_point is not None:
                return activity.start_point
        return None

    # -- internals ---------------------------------------------------------

    async def _reload(self, state: LoadState, reason: str) -> bool:
        if not self.state.can_begin(state):
            raise InvalidTransitionError(
                f"Cannot enter {state.value} from {self.state.state.value}"
            )

        started = asyncio.get_running_loop().time()
        generation = self.controller.reset(reason)
        self.state.begin(state, generation)

        try:
            committed = await self.controller.load_page(generation, page=1, replace=True)
        except LOAD_ERRORS as e:
            await self._hold_skeleton(started)
            self.state.fail(generation, e)
            return False

        if not committed:
            return False
        # A reset store starts with nothing highlighted
        self.highlight.reset()
        await self._hold_skeleton(started)
        return self.state.succeed(generation)

    async def _hold_skeleton(self, started: float) -> None:
        remaining = self.skeleton_min_seconds - (asyncio.get_running_loop().time() - started)
        if remaining > 0:
            await asyncio.sleep(remaining)

    def _on_store_changed(self, _store: ActivityStore) -> None:
        self.highlight.reconcile()
        if self.surface is not None:
            self.surface.set_features(self.feature_collection())

    def _on_highlight_changed(self, activity_id: str | None) -> None:
        if self.surface is not None:
            self.surface.set_highlight(activity_id)
