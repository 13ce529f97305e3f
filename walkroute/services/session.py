# Edit-time model of one route-drawing session and its reconciliation with
# the map surface and the geocoding/search provider.

import asyncio
from typing import Callable, Coroutine, List, Optional, Set

import structlog

from walkroute.core.config import settings
from walkroute.models.dto import (
    Mode,
    Place,
    RouteEntry,
    RoutePoint,
    RouteSnapshot,
    SessionSeed,
    SessionView,
    Spot,
    SpotEntry,
    SpotSnapshot,
)
from walkroute.services.debouncer import SearchDebouncer
from walkroute.services.geo_lookup import GeoLookupClient, GeoLookupError
from walkroute.services.map_surface import MapSurface
from walkroute.utils.haversine import polyline_length_km

logger = structlog.get_logger(__name__)

Listener = Callable[[SessionView], None]


class SessionClosedError(RuntimeError):
    """A user event arrived after the session was closed."""


class RouteSpotSession:
    """
    Owns the ordered route, the per-point address projection, the spot list,
    the active mode and the search/selection sub-state of one editing session.

    User events (`handle_map_tap`, `clear_route`, ...) apply synchronously and
    must be called from the event loop. The lookups they trigger run as tasks
    and are validated for staleness when they complete:

    - an address lands in its slot only if the slot still carries the token
      minted for the tap that created it,
    - a location search applies only if the route has not been emptied or
      restarted since the first point was laid,
    - a text search applies only if its debouncer token is still current.

    Every route point owns one address slot. `resolved_addresses` exposes the
    contiguous resolved prefix of those slots, so it is never longer than the
    route and entry `i` always belongs to point `i`.
    """

    def __init__(
        self,
        map_surface: MapSurface,
        geo_client: GeoLookupClient,
        seed: Optional[SessionSeed] = None,
        debouncer: Optional[SearchDebouncer] = None,
        resolve_seeded_addresses: Optional[bool] = None,
    ):
        self.map = map_surface
        self.geo = geo_client
        self.seed = seed or SessionSeed()
        self.debouncer = debouncer or SearchDebouncer()
        self.resolve_seeded_addresses = (
            settings.RESOLVE_SEEDED_ADDRESSES if resolve_seeded_addresses is None else resolve_seeded_addresses
        )

        self.mode = Mode.ROUTE_DRAWING
        self.selected_spot: Optional[int] = None
        self.query_text = ""
        self.is_input_focused = False
        self.candidate_places: List[Place] = []
        self.nearby_places: List[Place] = []

        self._points: List[RoutePoint] = []
        self._slot_tokens: List[int] = []
        self._addresses: List[Optional[str]] = []
        self._spots: List[Spot] = [s.model_copy(deep=True) for s in self.seed.spots]
        self._next_slot_token = 0
        self._route_epoch = 0

        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._opened = False
        self._closed = False

        for point in self.seed.route_points:
            self._push_point(point.model_copy())

    # --- Read access ---

    @property
    def route_points(self) -> List[RoutePoint]:
        return list(self._points)

    @property
    def spots(self) -> List[Spot]:
        return list(self._spots)

    @property
    def resolved_addresses(self) -> List[str]:
        resolved = []
        for address in self._addresses:
            if address is None:
                break
            resolved.append(address)
        return resolved

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_lookups(self) -> int:
        return len(self._tasks) + self.debouncer.in_flight + int(self.debouncer.pending)

    def snapshot(self) -> RouteSnapshot:
        return RouteSnapshot(
            route_points=[(p.longitude, p.latitude) for p in self._points],
            spots=[
                SpotSnapshot(
                    title=s.title,
                    content=s.content,
                    point=(s.point.longitude, s.point.latitude),
                )
                for s in self._spots
            ],
            distance_km=round(polyline_length_km(self._points), 3),
        )

    def view(self) -> SessionView:
        addresses = self.resolved_addresses
        last = len(self._points) - 1
        entries = []
        for i, address in enumerate(addresses):
            if i == 0:
                label = "start"
            elif i == last:
                label = "end"
            else:
                label = "via"
            entries.append(RouteEntry(index=i, label=label, address=address))

        return SessionView(
            mode=self.mode,
            route_point_count=len(self._points),
            route_entries=entries,
            spots=[
                SpotEntry(
                    index=i,
                    title=s.title,
                    content=s.content,
                    latitude=s.point.latitude,
                    longitude=s.point.longitude,
                    selected=(i == self.selected_spot),
                )
                for i, s in enumerate(self._spots)
            ],
            selected_spot=self.selected_spot,
            query_text=self.query_text,
            is_input_focused=self.is_input_focused,
            show_search_panel=not self._points,
            candidate_places=list(self.candidate_places),
            nearby_places=list(self.nearby_places),
            pending_lookups=self.pending_lookups,
        )

    def add_listener(self, listener: Listener) -> None:
        """Register `listener(view)`, called after every applied change."""
        self._listeners.append(listener)

    # --- Lifecycle ---

    def open(self) -> None:
        """Push the seeded route and spots onto the map."""
        self._ensure_open()
        if self._opened:
            return
        self._opened = True

        if self._points:
            first = self._points[0]
            self.map.draw_polyline(list(self._points))
            self.map.pan_to(first.latitude, first.longitude)
            self._start_nearby_search(first)
            if self.resolve_seeded_addresses:
                for index, point in enumerate(self._points):
                    self._spawn(self._resolve_address(index, self._slot_tokens[index], point))
        elif self.seed.resume_latitude is not None and self.seed.resume_longitude is not None:
            self.map.pan_to(self.seed.resume_latitude, self.seed.resume_longitude)
            self.map.add_current_location_marker(self.seed.resume_latitude, self.seed.resume_longitude)

        if self._spots:
            self.map.add_markers([s.point for s in self._spots])

        logger.info(
            "session_opened",
            route_points=len(self._points),
            spots=len(self._spots),
        )
        self._notify()

    async def settle(self) -> None:
        """Wait until no lookup is outstanding, including a debounced search not yet fired."""
        while self._tasks or self.debouncer.pending or self.debouncer.in_flight:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.debouncer.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.debouncer.close()
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()
        logger.info("session_closed", route_points=len(self._points), spots=len(self._spots))

    # --- Mode & taps ---

    def set_mode(self, mode: Mode) -> None:
        self._ensure_open()
        self.mode = Mode(mode)
        self._notify()

    def handle_map_tap(self, lat: float, lon: float) -> None:
        self._ensure_open()
        point = RoutePoint(latitude=lat, longitude=lon)

        if self.mode == Mode.ROUTE_DRAWING:
            index, token = self._push_point(point)
            self.map.draw_segment(lat, lon)
            self._spawn(self._resolve_address(index, token, point))
            if len(self._points) == 1:
                self.map.remove_current_location_marker()
                self._start_nearby_search(point)
            logger.debug("route_point_added", index=index)
        else:
            self._spots.append(Spot(point=point))
            self.map.add_marker(lat, lon)
            logger.debug("spot_added", index=len(self._spots) - 1)

        self._notify()

    # --- Route editing ---

    def clear_route(self) -> None:
        self._ensure_open()
        if not self._points:
            return
        self._points.clear()
        self._slot_tokens.clear()
        self._addresses.clear()
        self.nearby_places = []
        self.map.remove_all_lines()
        self._notify()

    def revert_last_route_point(self) -> None:
        self._ensure_open()
        if not self._points:
            return
        self._points.pop()
        self._slot_tokens.pop()
        self._addresses.pop()
        if not self._points:
            self.nearby_places = []
        self.map.remove_last_line()
        self._notify()

    # --- Spot editing ---

    def remove_spot(self, index: int) -> None:
        self._ensure_open()
        if not self._valid_spot_index(index):
            return

        if self.selected_spot is not None:
            if index == self.selected_spot:
                self.selected_spot = None
            elif index < self.selected_spot:
                self.selected_spot -= 1

        del self._spots[index]
        self.map.remove_marker(index)
        self._notify()

    def update_spot_title(self, index: int, text: str) -> None:
        self._ensure_open()
        if not self._valid_spot_index(index):
            return
        self._spots[index].title = text
        self._notify()

    def update_spot_content(self, index: int, text: str) -> None:
        self._ensure_open()
        if not self._valid_spot_index(index):
            return
        self._spots[index].content = text
        self._notify()

    def select_spot(self, index: int) -> None:
        self._ensure_open()
        if not self._valid_spot_index(index):
            return
        self.selected_spot = index
        point = self._spots[index].point
        self.map.pan_to(point.latitude, point.longitude)
        self._notify()

    # --- Search ---

    def on_search_text_change(self, text: str) -> None:
        self._ensure_open()
        self.query_text = text
        if not text:
            self.debouncer.cancel()
            self.candidate_places = []
        else:
            self.debouncer.schedule(text, self._search_text)
        self._notify()

    def focus_search(self) -> None:
        self._ensure_open()
        self._set_focus(True)

    def close_search(self) -> None:
        self._ensure_open()
        self._set_focus(False)

    def select_place(self, place: Place) -> None:
        """Move the view to `place`. Never adds a route point or spot."""
        self._ensure_open()
        self.map.pan_to(place.latitude, place.longitude)
        self.debouncer.cancel()
        self.query_text = place.name
        self.candidate_places = []
        if self.is_input_focused:
            self.is_input_focused = False
            self.map.resize()
        self._notify()

    # --- Internals ---

    def _push_point(self, point: RoutePoint):
        self._next_slot_token += 1
        self._points.append(point)
        self._slot_tokens.append(self._next_slot_token)
        self._addresses.append(None)
        return len(self._points) - 1, self._next_slot_token

    def _slot_is_current(self, index: int, token: int) -> bool:
        return not self._closed and index < len(self._slot_tokens) and self._slot_tokens[index] == token

    def _start_nearby_search(self, point: RoutePoint) -> None:
        self._route_epoch += 1
        self.nearby_places = []
        self._spawn(self._search_nearby(point, self._route_epoch))

    def _set_focus(self, focused: bool) -> None:
        if self.is_input_focused == focused:
            return
        self.is_input_focused = focused
        # The map area changes size with the search panel
        self.map.resize()
        self._notify()

    def _valid_spot_index(self, index: int) -> bool:
        return 0 <= index < len(self._spots)

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError("session is closed")

    async def _resolve_address(self, index: int, token: int, point: RoutePoint) -> None:
        try:
            parts = await self.geo.reverse_geocode(point.latitude, point.longitude)
            address = parts.display_name()
        except GeoLookupError as e:
            logger.warning("reverse_geocode_failed", index=index, error=str(e))
            address = ""

        if not self._slot_is_current(index, token):
            logger.debug("stale_address_discarded", index=index)
            return
        self._addresses[index] = address
        self._notify()

    async def _search_nearby(self, point: RoutePoint, epoch: int) -> None:
        try:
            places = await self.geo.search_places_by_location(point.latitude, point.longitude)
        except GeoLookupError as e:
            logger.warning("location_search_failed", error=str(e))
            places = []

        if self._closed or epoch != self._route_epoch or not self._points:
            logger.debug("stale_location_search_discarded", epoch=epoch)
            return
        self.nearby_places = places
        self._notify()

    async def _search_text(self, text: str, token: int) -> None:
        try:
            places = await self.geo.search_places_by_text(text)
        except GeoLookupError as e:
            logger.warning("text_search_failed", query=text, error=str(e))
            places = []

        if self._closed or not self.debouncer.is_current(token):
            logger.debug("stale_text_search_discarded", query=text)
            return
        self.candidate_places = places
        self._notify()

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("lookup_task_failed", error=repr(task.exception()))

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("session_listener_failed")
