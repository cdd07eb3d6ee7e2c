from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Set

import aiohttp

from app.config import Settings, get_settings
from app.errors import InvalidInput, PipelineError, StaleResult
from app.models import (
    ChannelState,
    Coordinate,
    ErrorKind,
    PlaceMatch,
    RawPOI,
    SearchError,
    SearchPhase,
    SearchResponse,
    SearchState,
    Translation,
    WeatherReport,
)
from app.services import geocoder, overpass, translation, weather
from app.services.auth import SessionObserver
from app.services.channels import SideChannel
from app.services.ranking import rank

logger = logging.getLogger(__name__)

GeocodeFn = Callable[[str], Awaitable[PlaceMatch]]
QueryPoisFn = Callable[[Coordinate, float], Awaitable[List[RawPOI]]]
WeatherFn = Callable[[Coordinate, Optional[str]], Awaitable[WeatherReport]]
TranslateFn = Callable[[str, str, str], Awaitable[Translation]]


class SearchOrchestrator:
    """Sequences geocode -> POI query -> ranking for one client and owns its SearchState.

    Every search gets a new generation number. Each step captures the generation
    it was started under and only commits if that is still the latest one, so a
    slow response from an older search can never overwrite a newer search.

    Weather and translation run as independent side channels; their failures
    stay in their own state and never touch the search state.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        settings: Optional[Settings] = None,
        sessions: Optional[SessionObserver] = None,
        geocode: Optional[GeocodeFn] = None,
        query_pois: Optional[QueryPoisFn] = None,
        fetch_weather: Optional[WeatherFn] = None,
        translate: Optional[TranslateFn] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._sessions = sessions
        self._geocode = geocode or partial(geocoder.resolve, session, settings=self.settings)
        self._query_pois = query_pois or partial(overpass.query_nearby, session, settings=self.settings)
        self._fetch_weather = fetch_weather or partial(weather.fetch_weather, session, settings=self.settings)
        self._translate = translate or partial(translation.translate_text, session, settings=self.settings)

        self.weather: SideChannel[WeatherReport] = SideChannel("weather", WeatherReport)
        self.translation: SideChannel[Translation] = SideChannel("translation", Translation)

        self._generation = 0
        self._state = SearchState(
            reference_coordinate=Coordinate(lat=self.settings.default_lat, lon=self.settings.default_lon),
            zoom_hint=self.settings.default_zoom,
        )
        self._tasks: Set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def history_enabled(self) -> bool:
        return self._sessions is not None and self._sessions.is_authenticated

    def snapshot(self) -> SearchResponse:
        return SearchResponse(
            search=self._state,
            weather=self.weather.state,
            translation=self.translation.state,
            history_enabled=self.history_enabled,
        )

    def start(self) -> None:
        """Kick off the startup weather fetch for the default location."""
        self.dispatch_weather(self._state.reference_coordinate, self.settings.default_location_name)

    def dispatch_weather(self, coordinate: Coordinate, location_name: Optional[str] = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(self.weather.run(lambda: self._fetch_weather(coordinate, location_name)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight side-channel fetches."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def translate(
        self, text: str, source_lang: str = "en", target_lang: str = "vi"
    ) -> ChannelState[Translation]:
        return await self.translation.run(lambda: self._translate(text, source_lang, target_lang))

    def _commit(self, generation: int, **changes: Any) -> SearchState:
        if generation != self._generation:
            raise StaleResult(generation, self._generation)
        self._state = self._state.model_copy(update=changes)
        return self._state

    async def submit(self, query: str) -> SearchState:
        """Run one user-initiated search and return the resulting state.

        A blank query raises InvalidInput and leaves the current state untouched.
        If a newer search starts while this one is in flight, this call returns
        the newer search's state instead of its own.
        """
        if not query or not query.strip():
            raise InvalidInput("Please enter a place name")

        self._generation += 1
        generation = self._generation
        previous = self._state
        # fresh state per search; only the map view carries over
        self._state = SearchState(
            generation=generation,
            query_text=query.strip(),
            reference_coordinate=previous.reference_coordinate,
            zoom_hint=previous.zoom_hint,
            phase=SearchPhase.GEOCODING,
        )
        logger.info("Search %d started: %r", generation, query)

        try:
            try:
                match = await self._geocode(query)
            except PipelineError as e:
                logger.info("Search %d failed while geocoding: %s", generation, e.message)
                return self._commit(
                    generation,
                    phase=SearchPhase.FAILED,
                    error=SearchError(kind=e.kind, message=e.message),
                )

            self._commit(
                generation,
                phase=SearchPhase.QUERYING_POIS,
                reference_coordinate=match.coordinate,
                display_name=match.display_name,
                zoom_hint=self.settings.place_zoom,
            )
            self.dispatch_weather(match.coordinate, match.display_name or query.strip())

            try:
                candidates = await self._query_pois(match.coordinate, self.settings.search_radius_m)
            except PipelineError as e:
                logger.info("Search %d failed while querying POIs: %s", generation, e.message)
                return self._commit(
                    generation,
                    phase=SearchPhase.FAILED,
                    results=[],
                    error=SearchError(kind=e.kind, message=e.message),
                )

            results = rank(candidates, match.coordinate, self.settings.result_limit)
            logger.info("Search %d ready with %d of %d candidates", generation, len(results), len(candidates))
            return self._commit(generation, phase=SearchPhase.READY, results=results, error=None)
        except StaleResult as e:
            logger.debug("Discarding stale search result: %s", e.message)
            return self._state
        except asyncio.CancelledError:
            self._fail_if_current(generation, ErrorKind.PROVIDER_ERROR, "Search was cancelled")
            raise
        except Exception:
            logger.exception("Search %d crashed", generation)
            return self._fail_if_current(generation, ErrorKind.PROVIDER_ERROR, "Search failed unexpectedly")

    def _fail_if_current(self, generation: int, kind: ErrorKind, message: str) -> SearchState:
        # never leave the current search stuck in Geocoding/QueryingPOIs
        if generation == self._generation:
            self._state = self._state.model_copy(
                update={
                    "phase": SearchPhase.FAILED,
                    "results": [],
                    "error": SearchError(kind=kind, message=message),
                }
            )
        return self._state
