# roulette/services/session.py
# Owns the mutable state of one user session (wheel, candidate lookup, history)
# and runs the fetch -> normalize -> filter -> wheel pipeline.

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import structlog
from structlog.contextvars import bound_contextvars

from roulette.core.config import settings
from roulette.core.errors import EmptyResultSetError, StaleResultError
from roulette.models.dto import (
    Candidate,
    HistoryEntry,
    RawRecord,
    SearchSettings,
    WheelOption,
    WheelResult,
    WheelState,
)
from roulette.services import overpass
from roulette.services.filtering import filter_and_dedupe
from roulette.services.history import HistoryStore
from roulette.services.normalizer import (
    DEFAULT_PRICE_LEVEL,
    count_usable,
    format_distance_miles,
    normalize_records,
)
from roulette.services.query_builder import build_query
from roulette.services.storage import InMemoryKeyValueStore, PreferencesRepository
from roulette.services.wheel import WheelEntry, WheelSelector

logger = structlog.get_logger(__name__)

Fetcher = Callable[[str], Awaitable[List[RawRecord]]]
Location = Tuple[float, float]


class WheelSession:
    """
    Explicit session state threaded through the pipeline.

    Only the most recently issued fetch may commit: every call to
    `fetch_and_build_wheel` takes a new generation number, and a result whose
    generation is no longer the latest is discarded. A failed or discarded
    fetch leaves the previous wheel untouched.
    """

    def __init__(
        self,
        repository: Optional[PreferencesRepository] = None,
        selector: Optional[WheelSelector] = None,
        fetcher: Fetcher = overpass.fetch_elements,
        reveal_delay: float = settings.REVEAL_DELAY_SECONDS,
        amenity: str = settings.AMENITY,
    ):
        self.repository = repository or PreferencesRepository(InMemoryKeyValueStore())
        self.selector = selector or WheelSelector()
        self.fetcher = fetcher
        self.reveal_delay = reveal_delay
        self.amenity = amenity

        self.settings = SearchSettings()
        self.history = HistoryStore()
        self.wheel = WheelState()
        self.candidates: Dict[str, Candidate] = {}

        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        return self._generation

    # --- persistence ---

    async def load(self) -> None:
        """Reads settings and history from the repository (session start)."""
        self.settings = await self.repository.load_settings()
        self.history = HistoryStore(await self.repository.load_history(), limit=self.history.limit)
        logger.info("session_loaded", history=len(self.history),
                    radius_miles=self.settings.search_radius_miles)

    async def save_settings(self, search_settings: SearchSettings) -> None:
        await self.repository.save_settings(search_settings)
        self.settings = search_settings

    # --- pipeline ---

    async def fetch_and_build_wheel(
        self, location: Location, search_settings: Optional[SearchSettings] = None
    ) -> WheelResult:
        """
        Runs the whole pipeline for `location` and commits the new wheel.

        Raises:
            NetworkError: the geodata request failed.
            EmptyResultSetError: nothing came back, or nothing with a name.
            StaleResultError: a newer fetch was issued meanwhile.
        """
        search_settings = search_settings or self.settings
        self._generation += 1
        generation = self._generation

        with bound_contextvars(generation=generation):
            latitude, longitude = location
            radius_miles = search_settings.search_radius_miles
            location_query, query_text = build_query(latitude, longitude, radius_miles)
            logger.info("fetch_started", lat=latitude, lon=longitude,
                        radius_meters=location_query.radius_meters)

            records = await self.fetcher(query_text)
            self._check_current(generation)

            if not records:
                logger.warning("fetch_empty", reason=EmptyResultSetError.NO_RESULTS)
                raise EmptyResultSetError(EmptyResultSetError.NO_RESULTS)
            if count_usable(records, self.amenity) == 0:
                logger.warning("fetch_empty", reason=EmptyResultSetError.NO_NAMED_RESULTS,
                               elements=len(records))
                raise EmptyResultSetError(EmptyResultSetError.NO_NAMED_RESULTS)

            normalized = normalize_records(records, radius_miles, self.amenity)
            candidates = filter_and_dedupe(normalized, search_settings.price_range)
            wheel = self.selector.build_wheel(candidates)
            logger.info("candidates_ready", elements=len(records), normalized=len(normalized),
                        unique=len(candidates), options=len(wheel))

            if self.reveal_delay > 0:
                await asyncio.sleep(self.reveal_delay)
            self._check_current(generation)

            # Commit both at once; nothing was written before this point
            self.wheel = wheel
            self.candidates = {c.name: c for c in candidates}
            return WheelResult(wheel=wheel, candidates=candidates, generation=generation)

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            logger.info("fetch_discarded", latest=self._generation)
            raise StaleResultError(generation, self._generation)

    async def refresh(
        self, location: Location, search_settings: Optional[SearchSettings] = None
    ) -> WheelResult:
        """Like `fetch_and_build_wheel`, but first cancels any refresh still in flight."""
        self.cancel()
        task = asyncio.create_task(self.fetch_and_build_wheel(location, search_settings))
        self._inflight = task
        try:
            return await task
        finally:
            if self._inflight is task:
                self._inflight = None

    def cancel(self) -> bool:
        """Cancels the in-flight refresh, if any. Returns whether one was cancelled."""
        task = self._inflight
        if task is None or task.done():
            return False
        logger.info("fetch_cancelled", generation=self._generation)
        task.cancel()
        return True

    # --- wheel interaction ---

    async def spin(self) -> Candidate:
        """Spins the current wheel, records the winner in history and persists it."""
        winner = self.selector.spin(self.wheel)
        candidate = self.candidates.get(winner.name)
        if candidate is None:
            # Injected option with no full record behind it
            candidate = self._option_snapshot(winner)
        self.history.append(candidate)
        await self.repository.save_history(self.history.to_payload())
        return candidate

    def add_to_wheel(self, entry: WheelEntry) -> WheelState:
        self.wheel = self.selector.add_to_wheel(self.wheel, entry)
        if isinstance(entry, HistoryEntry):
            self.candidates.setdefault(entry.name, entry.snapshot())
        elif isinstance(entry, Candidate):
            self.candidates.setdefault(entry.name, entry)
        return self.wheel

    def add_history_entry_to_wheel(self, index: int) -> WheelState:
        return self.add_to_wheel(self.history.get(index))

    def _option_snapshot(self, option: WheelOption) -> Candidate:
        # Only name and map link are known; coordinates come back out of the link
        query = parse_qs(urlsplit(option.map_view_url).query)
        try:
            latitude = float(query["mlat"][0])
            longitude = float(query["mlon"][0])
        except (KeyError, IndexError, ValueError):
            latitude = longitude = 0.0
        return Candidate(
            name=option.name,
            distance_miles=format_distance_miles(self.settings.search_radius_miles),
            price_level=DEFAULT_PRICE_LEVEL,
            latitude=latitude,
            longitude=longitude,
            external_id=0,
            external_kind="node",
            external_record_url="",
            map_view_url=option.map_view_url,
        )
