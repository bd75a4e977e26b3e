"""
Viewport sync controller.

Keeps three things in step: the map viewport, the spot listing being
loaded, and the URL. The controller moves through three phases:

UNINITIALIZED  no bounds seen yet; fetching is suspended.
BOUNDS_KNOWN   the first bounds report (a box or "whole world") was applied
               immediately and fetching is enabled.
STEADY         every later bounds report is debounced, so a pan/zoom burst
               turns into one query.

If the initial bounds came from the URL, the controller starts in
BOUNDS_KNOWN and swallows the first live report from the map, which would
otherwise overwrite the restored view.

The URL mirrors bounds, search text, filters and selection through its own,
shorter debounce so history gets one entry per settled state.
"""
import asyncio
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Set

import structlog

from spotmap.client.debounce import Debouncer
from spotmap.client.spots_client import InfiniteSpotsLoader, QueryKey
from spotmap.client.url_state import FilterOptions, UrlState, encode_url_state
from spotmap.client.viewport import normalize_viewport
from spotmap.core.config import settings
from spotmap.models.dto import BoundingBox

logger = structlog.get_logger(__name__)


class SyncPhase(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    BOUNDS_KNOWN = "BOUNDS_KNOWN"
    STEADY = "STEADY"


TRANSITIONS: Dict[SyncPhase, FrozenSet[SyncPhase]] = {
    SyncPhase.UNINITIALIZED: frozenset({SyncPhase.BOUNDS_KNOWN}),
    SyncPhase.BOUNDS_KNOWN: frozenset({SyncPhase.STEADY}),
    SyncPhase.STEADY: frozenset(),
}


class ViewportSyncController:
    def __init__(
        self,
        loader: InfiniteSpotsLoader,
        navigate: Callable[[str], None],
        initial_state: Optional[UrlState] = None,
        limit: int = 100,
        bounds_debounce_ms: int = settings.BOUNDS_DEBOUNCE_MS,
        url_debounce_ms: int = settings.URL_DEBOUNCE_MS,
    ):
        initial_state = initial_state or UrlState()
        self.loader = loader
        self.navigate = navigate
        self.limit = limit

        self.bounds: Optional[BoundingBox] = initial_state.bounds
        self.search_query = initial_state.search_query
        self.filters = initial_state.filters
        self.selected_spot_id = initial_state.selected_spot_id

        self.phase = SyncPhase.UNINITIALIZED
        self._suppress_next_report = False
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()

        self._bounds_debouncer = Debouncer(bounds_debounce_ms, self._apply_bounds)
        self._url_debouncer = Debouncer(url_debounce_ms, self._write_url)

        if initial_state.bounds is not None:
            self._suppress_next_report = True
            self._transition(SyncPhase.BOUNDS_KNOWN)

    # --- state machine ---

    @property
    def fetch_enabled(self) -> bool:
        return self.phase is not SyncPhase.UNINITIALIZED

    def _transition(self, target: SyncPhase) -> None:
        if target not in TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal sync transition {self.phase.value} -> {target.value}")
        logger.debug("viewport_sync_transition", source=self.phase.value, target=target.value)
        self.phase = target

    def start(self) -> None:
        """Kick off the first fetch when bounds were restored from the URL."""
        if self.fetch_enabled:
            self._refetch()

    # --- inputs ---

    def on_map_bounds(self, south: float, north: float, west: float, east: float) -> None:
        """Raw extent reported by the map widget."""
        self.report_bounds(normalize_viewport(south, north, west, east))

    def report_bounds(self, bounds: Optional[BoundingBox]) -> None:
        """Normalized bounds; None means the viewport covers the whole world."""
        if self._closed:
            return
        if self._suppress_next_report:
            self._suppress_next_report = False
            logger.debug("viewport_report_suppressed")
            return

        if self.phase is SyncPhase.UNINITIALIZED:
            self._transition(SyncPhase.BOUNDS_KNOWN)
            self._apply_bounds(bounds)
            return

        if self.phase is SyncPhase.BOUNDS_KNOWN:
            self._transition(SyncPhase.STEADY)
        self._bounds_debouncer.schedule(bounds)

    def set_search(self, text: str) -> None:
        if text == self.search_query:
            return
        self.search_query = text
        self._refetch()
        self._schedule_url()

    def set_filters(self, filters: FilterOptions) -> None:
        self.filters = filters
        self._schedule_url()

    def select_spot(self, spot_id: Optional[int]) -> None:
        self.selected_spot_id = spot_id
        self._schedule_url()

    # --- outputs ---

    @property
    def query_key(self) -> QueryKey:
        return QueryKey(bounds=self.bounds, search=self.search_query.strip(), limit=self.limit)

    def snapshot(self) -> UrlState:
        return UrlState(
            bounds=self.bounds,
            search_query=self.search_query,
            filters=self.filters,
            selected_spot_id=self.selected_spot_id,
        )

    def _apply_bounds(self, bounds: Optional[BoundingBox]) -> None:
        if self._closed:
            return
        self.bounds = bounds
        self._refetch()
        self._schedule_url()

    def _refetch(self) -> None:
        if not self.fetch_enabled or self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.loader.reset(self.query_key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_url(self) -> None:
        if not self._closed:
            self._url_debouncer.schedule()

    def _write_url(self) -> None:
        if not self._closed:
            self.navigate(encode_url_state(self.snapshot()))

    async def close(self) -> None:
        """Cancel pending timers and in-flight fetches."""
        self._closed = True
        self._bounds_debouncer.cancel()
        self._url_debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
