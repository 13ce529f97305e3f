import uuid
from typing import Dict, Optional

import structlog

from walkroute.core.config import settings
from walkroute.models.dto import SessionSeed
from walkroute.services.geo_lookup import GeoLookupClient
from walkroute.services.map_surface import CommandQueueSurface
from walkroute.services.session import RouteSpotSession

logger = structlog.get_logger(__name__)


class SessionLimitError(RuntimeError):
    """The process already holds the maximum number of open sessions."""


class SessionRegistry:
    """
    In-memory store of open sessions for one process.

    Each session gets its own CommandQueueSurface; the geo client is shared.
    """

    def __init__(self, geo_client: GeoLookupClient, max_sessions: Optional[int] = None):
        self.geo_client = geo_client
        self.max_sessions = max_sessions or settings.MAX_OPEN_SESSIONS
        self._sessions: Dict[str, RouteSpotSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, seed: Optional[SessionSeed] = None) -> str:
        if len(self._sessions) >= self.max_sessions:
            logger.warning("session_limit_reached", open_sessions=len(self._sessions))
            raise SessionLimitError("too many open sessions")

        session_id = uuid.uuid4().hex
        session = RouteSpotSession(CommandQueueSurface(), self.geo_client, seed=seed)
        self._sessions[session_id] = session
        session.open()
        logger.info("session_registered", session_id=session_id, open_sessions=len(self._sessions))
        return session_id

    def get(self, session_id: str) -> Optional[RouteSpotSession]:
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
