# Data models for route-drawing sessions, provider results and API payloads.

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

# --- Editing Model ---

class Mode(str, Enum):
    """Which tap handler and side panel are active."""
    ROUTE_DRAWING = "road"
    SPOT_PLACING = "spot"

class RoutePoint(BaseModel):
    """A tapped coordinate on the route. Its index in the route is its identity."""
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude.")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude.")

class Spot(BaseModel):
    """A labeled point of interest placed independently of the route."""
    point: RoutePoint
    title: str = Field("", description="Spot title entered by the user.")
    content: str = Field("", description="Free-text description of the spot.")

class Place(BaseModel):
    """A place returned by text or location search."""
    id: str = Field(..., description="Provider place identifier.")
    name: str = Field(..., description="Display name of the place.")
    address: str = Field("", description="Road address, or general address when no road address exists.")
    latitude: float
    longitude: float

class AddressParts(BaseModel):
    """Result of reverse geocoding a single coordinate."""
    road_address_name: Optional[str] = None
    general_address_name: Optional[str] = None
    district_name: Optional[str] = None

    def display_name(self) -> str:
        """Road address, falling back to the general address, with the district in parentheses."""
        address = self.road_address_name or self.general_address_name or ""
        if self.district_name:
            return f"{address} ({self.district_name})"
        return address

# --- Session Seed & Snapshot ---

class SessionSeed(BaseModel):
    """Initial values injected by the surrounding screen when a session opens."""
    route_points: List[RoutePoint] = Field(default_factory=list)
    spots: List[Spot] = Field(default_factory=list)
    resume_latitude: Optional[float] = Field(None, description="Where to center the map when there is no route yet.")
    resume_longitude: Optional[float] = None

class SpotSnapshot(BaseModel):
    title: str
    content: str
    point: Tuple[float, float] = Field(..., description="(lon, lat)")

class RouteSnapshot(BaseModel):
    """Read-only copy of the route and spots for the submission flow."""
    route_points: List[Tuple[float, float]] = Field(..., description="Route as (lon, lat) pairs.")
    spots: List[SpotSnapshot]
    distance_km: float = Field(..., description="Length of the route polyline in kilometers.")

# --- Derived View State ---

class RouteEntry(BaseModel):
    index: int
    label: str = Field(..., description="'start', 'via' or 'end'.")
    address: str

class SpotEntry(BaseModel):
    index: int
    title: str
    content: str
    latitude: float
    longitude: float
    selected: bool = False

class SessionView(BaseModel):
    """Everything the side panels need to render the current session."""
    mode: Mode
    route_point_count: int
    route_entries: List[RouteEntry]
    spots: List[SpotEntry]
    selected_spot: Optional[int] = None
    query_text: str = ""
    is_input_focused: bool = False
    show_search_panel: bool = True
    candidate_places: List[Place] = Field(default_factory=list)
    nearby_places: List[Place] = Field(default_factory=list)
    pending_lookups: int = 0

# --- Map Commands ---

class MapCommand(BaseModel):
    """A command queued for the map client, replayed in `seq` order."""
    seq: int
    op: str
    args: Dict[str, Any] = Field(default_factory=dict)

# --- API Request/Response Models ---

class ModeRequest(BaseModel):
    mode: Mode

class TapRequest(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

class SpotUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None

class SearchTextRequest(BaseModel):
    text: str = Field("", description="Current contents of the search box.")

class SessionCreatedResponse(BaseModel):
    session_id: str
    view: SessionView

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")
