# HTTP surface over the in-memory session registry.
# Each endpoint forwards one user event to a session and returns the derived view.

from fastapi import APIRouter, Request, HTTPException, status, Response
from typing import List, Optional

from walkroute.models.dto import (
    ErrorResponse,
    MapCommand,
    ModeRequest,
    Place,
    RouteSnapshot,
    SearchTextRequest,
    SessionCreatedResponse,
    SessionSeed,
    SessionView,
    SpotUpdateRequest,
    TapRequest,
)
from walkroute.services.registry import SessionLimitError, SessionRegistry
from walkroute.services.session import RouteSpotSession

router = APIRouter()

NOT_FOUND = {404: {"model": ErrorResponse}}

# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry

def get_session(request: Request, session_id: str) -> RouteSpotSession:
    session = get_registry(request).get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorResponse(
                error="SESSION_NOT_FOUND",
                detail=f"No open session with id {session_id}.",
            ).model_dump(),
        )
    return session

# ----------------------------------------------------------------------
# Session lifecycle
# ----------------------------------------------------------------------
@router.post(
    "/sessions",
    response_model=SessionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"model": ErrorResponse}},
)
async def open_session(request: Request, seed: Optional[SessionSeed] = None):
    """Open a session, optionally seeded with a previously saved route and spots."""
    registry = get_registry(request)
    try:
        session_id = registry.open(seed)
    except SessionLimitError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ErrorResponse(
                error="TOO_MANY_SESSIONS",
                detail="Too many open sessions. Close one and try again.",
            ).model_dump(),
        )
    return SessionCreatedResponse(session_id=session_id, view=registry.get(session_id).view())

@router.get("/sessions/{session_id}", response_model=SessionView, responses=NOT_FOUND)
async def read_session(request: Request, session_id: str):
    return get_session(request, session_id).view()

@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
async def close_session(request: Request, session_id: str):
    get_session(request, session_id)
    get_registry(request).close(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/sessions/{session_id}/snapshot", response_model=RouteSnapshot, responses=NOT_FOUND)
async def read_snapshot(request: Request, session_id: str):
    """Route and spots in submission form: (lon, lat) pairs plus route length."""
    return get_session(request, session_id).snapshot()

@router.get("/sessions/{session_id}/commands", response_model=List[MapCommand], responses=NOT_FOUND)
async def read_map_commands(request: Request, session_id: str, after: int = 0):
    """Map commands issued after sequence number `after`, oldest first."""
    return get_session(request, session_id).map.commands_after(after)

# ----------------------------------------------------------------------
# Drawing
# ----------------------------------------------------------------------
@router.put("/sessions/{session_id}/mode", response_model=SessionView, responses=NOT_FOUND)
async def set_mode(request: Request, session_id: str, data: ModeRequest):
    session = get_session(request, session_id)
    session.set_mode(data.mode)
    return session.view()

@router.post("/sessions/{session_id}/taps", response_model=SessionView, responses=NOT_FOUND)
async def tap_map(request: Request, session_id: str, data: TapRequest):
    session = get_session(request, session_id)
    session.handle_map_tap(data.latitude, data.longitude)
    return session.view()

@router.delete("/sessions/{session_id}/route", response_model=SessionView, responses=NOT_FOUND)
async def clear_route(request: Request, session_id: str):
    session = get_session(request, session_id)
    session.clear_route()
    return session.view()

@router.post("/sessions/{session_id}/route/revert", response_model=SessionView, responses=NOT_FOUND)
async def revert_route(request: Request, session_id: str):
    session = get_session(request, session_id)
    session.revert_last_route_point()
    return session.view()

# ----------------------------------------------------------------------
# Spots
# ----------------------------------------------------------------------
@router.patch("/sessions/{session_id}/spots/{index}", response_model=SessionView, responses=NOT_FOUND)
async def update_spot(request: Request, session_id: str, index: int, data: SpotUpdateRequest):
    session = get_session(request, session_id)
    if data.title is not None:
        session.update_spot_title(index, data.title)
    if data.content is not None:
        session.update_spot_content(index, data.content)
    return session.view()

@router.delete("/sessions/{session_id}/spots/{index}", response_model=SessionView, responses=NOT_FOUND)
async def remove_spot(request: Request, session_id: str, index: int):
    session = get_session(request, session_id)
    session.remove_spot(index)
    return session.view()

@router.post("/sessions/{session_id}/spots/{index}/select", response_model=SessionView, responses=NOT_FOUND)
async def select_spot(request: Request, session_id: str, index: int):
    session = get_session(request, session_id)
    session.select_spot(index)
    return session.view()

# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
@router.put("/sessions/{session_id}/search", response_model=SessionView, responses=NOT_FOUND)
async def change_search_text(request: Request, session_id: str, data: SearchTextRequest):
    session = get_session(request, session_id)
    session.on_search_text_change(data.text)
    return session.view()

@router.post("/sessions/{session_id}/search/focus", response_model=SessionView, responses=NOT_FOUND)
async def focus_search(request: Request, session_id: str):
    session = get_session(request, session_id)
    session.focus_search()
    return session.view()

@router.post("/sessions/{session_id}/search/close", response_model=SessionView, responses=NOT_FOUND)
async def close_search(request: Request, session_id: str):
    session = get_session(request, session_id)
    session.close_search()
    return session.view()

@router.post("/sessions/{session_id}/places/select", response_model=SessionView, responses=NOT_FOUND)
async def select_place(request: Request, session_id: str, place: Place):
    session = get_session(request, session_id)
    session.select_place(place)
    return session.view()
