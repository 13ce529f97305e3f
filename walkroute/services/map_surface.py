# The map-rendering side of a session.
# Sessions issue commands; a browser map client polls the queue and replays them.

import logging
from typing import Any, List, Protocol, Sequence

from walkroute.models.dto import MapCommand, RoutePoint

logger = logging.getLogger(__name__)


class MapSurface(Protocol):
    """Commands a session may issue to the rendered map. All are fire-and-forget."""
    def draw_segment(self, lat: float, lon: float) -> None: ...
    def remove_last_line(self) -> None: ...
    def remove_all_lines(self) -> None: ...
    def draw_polyline(self, points: Sequence[RoutePoint]) -> None: ...
    def add_marker(self, lat: float, lon: float) -> None: ...
    def add_markers(self, points: Sequence[RoutePoint]) -> None: ...
    def remove_marker(self, index: int) -> None: ...
    def add_current_location_marker(self, lat: float, lon: float) -> None: ...
    def remove_current_location_marker(self) -> None: ...
    def pan_to(self, lat: float, lon: float) -> None: ...
    def resize(self) -> None: ...


class CommandQueueSurface:
    """
    MapSurface that records every command with a monotonically increasing
    sequence number.

    The client keeps the last `seq` it applied and asks for everything after
    it, so commands are replayed exactly once and in issue order. Only the
    most recent `max_commands` entries are retained.
    """

    def __init__(self, max_commands: int = 5000):
        self.max_commands = max_commands
        self._commands: List[MapCommand] = []
        self._seq = 0

    @property
    def last_seq(self) -> int:
        return self._seq

    def commands_after(self, seq: int = 0) -> List[MapCommand]:
        return [c for c in self._commands if c.seq > seq]

    def ops(self) -> List[str]:
        return [c.op for c in self._commands]

    def _push(self, op: str, **args: Any) -> None:
        self._seq += 1
        self._commands.append(MapCommand(seq=self._seq, op=op, args=args))
        if len(self._commands) > self.max_commands:
            del self._commands[: len(self._commands) - self.max_commands]
        logger.debug(f"map command #{self._seq}: {op} {args}")

    def draw_segment(self, lat: float, lon: float) -> None:
        self._push("draw_segment", latitude=lat, longitude=lon)

    def remove_last_line(self) -> None:
        self._push("remove_last_line")

    def remove_all_lines(self) -> None:
        self._push("remove_all_lines")

    def draw_polyline(self, points: Sequence[RoutePoint]) -> None:
        self._push("draw_polyline", points=[p.model_dump() for p in points])

    def add_marker(self, lat: float, lon: float) -> None:
        self._push("add_marker", latitude=lat, longitude=lon)

    def add_markers(self, points: Sequence[RoutePoint]) -> None:
        self._push("add_markers", points=[p.model_dump() for p in points])

    def remove_marker(self, index: int) -> None:
        self._push("remove_marker", index=index)

    def add_current_location_marker(self, lat: float, lon: float) -> None:
        self._push("add_current_location_marker", latitude=lat, longitude=lon)

    def remove_current_location_marker(self) -> None:
        self._push("remove_current_location_marker")

    def pan_to(self, lat: float, lon: float) -> None:
        self._push("pan_to", latitude=lat, longitude=lon)

    def resize(self) -> None:
        self._push("resize")
