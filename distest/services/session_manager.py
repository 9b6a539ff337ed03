from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from distest.config.loader import (
    get_default_participant_name,
    get_peer_settings,
    get_store_settings,
)
from distest.database import SessionLocal
from distest.services.participant_session import Participant, SessionPhase
from distest.store.sql_store import PeerConnector, SqlReplicaStore
from distest.utils.identifiers import (
    ROLE_ADMIN,
    ROLE_VOTER,
    build_meeting_link,
    generate_participant_name,
    parse_meeting_id,
)

JSONCompatibleDict = Dict[str, Any]

transport_logger = logging.getLogger("transport")
logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingJoin:
    """What to do once the transport reports the local peer id."""

    role: str
    peer_to_join: Optional[str] = None
    name: Optional[str] = None
    requested_at: datetime = field(default_factory=_now)


class ParticipantSessionManager:
    """Local coordination layer between the transport, the store and the API.

    Holds at most one participant per process. The session stays in the
    ``initial`` phase until the transport's ready signal delivers a peer id.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        connector: Optional[PeerConnector] = None,
        participant_factory: Callable[..., Participant] = Participant,
    ) -> None:
        self._session_factory = session_factory
        self._connector = connector
        self._participant_factory = participant_factory
        self._pending: Optional[PendingJoin] = None
        self._db: Optional[Session] = None
        self.participant: Optional[Participant] = None
        self.peer_id: Optional[str] = None
        self.role: Optional[str] = None
        self._invalidation_listeners: List[Callable[[], None]] = []
        self._error_hooks: List[Callable[[Any], None]] = []

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    def add_invalidation_listener(self, listener: Callable[[], None]) -> None:
        self._invalidation_listeners.append(listener)

    def remove_invalidation_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._invalidation_listeners:
            self._invalidation_listeners.remove(listener)

    def add_error_hook(self, hook: Callable[[Any], None]) -> None:
        self._error_hooks.append(hook)

    def _notify_invalidated(self) -> None:
        for listener in list(self._invalidation_listeners):
            listener()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def phase(self) -> SessionPhase:
        if self.participant is None:
            return SessionPhase.INITIAL
        return self.participant.phase

    def init_new(self, name: Optional[str] = None) -> PendingJoin:
        """Prepare a fresh session hosted by this node, administered locally."""
        return self._request(ROLE_ADMIN, None, name)

    def join(self, meeting_id: str, name: Optional[str] = None) -> PendingJoin:
        """Prepare to join the session behind an ``a-``/``v-`` meeting id."""
        parsed = parse_meeting_id(meeting_id)
        if parsed is None:
            raise HTTPException(status_code=400, detail="Please provide a meeting ID.")
        role, peer_id = parsed
        return self._request(role, peer_id, name)

    def _request(
        self, role: str, peer_to_join: Optional[str], name: Optional[str]
    ) -> PendingJoin:
        if self.participant is not None:
            raise HTTPException(status_code=409, detail="A session is already open.")
        self._pending = PendingJoin(role=role, peer_to_join=peer_to_join, name=name)
        logger.info("Session requested: role=%s join=%s", role, peer_to_join)
        return self._pending

    def on_transport_ready(self, peer_id: str) -> Participant:
        """Handle the transport's ready signal carrying the local peer id."""
        if self._pending is None:
            raise HTTPException(
                status_code=409, detail="No session has been requested."
            )
        pending = self._pending
        name = pending.name or get_default_participant_name() or generate_participant_name()
        namespace = get_store_settings()["namespace_prefix"] + name

        self._db = self._session_factory()
        store = SqlReplicaStore(
            self._db, namespace, clean=True, connector=self._connector
        )
        store.on_error(self.report_transport_error)
        participant = self._participant_factory(
            store,
            name,
            clean=pending.peer_to_join is None,
            admin=pending.role == ROLE_ADMIN,
            mark_callback=self._notify_invalidated,
        )
        self.participant = participant
        self.peer_id = peer_id
        self.role = pending.role
        self._pending = None
        if pending.peer_to_join:
            participant.connect_to(pending.peer_to_join)
        transport_logger.info(
            "Transport ready: peer=%s participant=%s role=%s", peer_id, name, self.role
        )
        self._notify_invalidated()
        return participant

    def report_transport_error(self, error: Any) -> None:
        """Log a transport failure and forward it to registered hooks."""
        transport_logger.error("Transport error: %s", error)
        for hook in list(self._error_hooks):
            hook(error)

    def require_participant(self) -> Participant:
        if self.participant is None:
            raise HTTPException(status_code=409, detail="No session is open.")
        return self.participant

    def reconnect(self, peer_id: str) -> None:
        self.require_participant().connect_to(peer_id)

    def links(self, base_url: Optional[str] = None) -> Dict[str, str]:
        if self.peer_id is None:
            return {"admin": "", "voter": ""}
        return {
            "admin": build_meeting_link(self.peer_id, ROLE_ADMIN, base_url),
            "voter": build_meeting_link(self.peer_id, ROLE_VOTER, base_url),
        }

    def transport_settings(self) -> JSONCompatibleDict:
        return {
            "pending": self._pending is not None,
            "iceServers": get_peer_settings()["ice_servers"],
        }

    def reset(self) -> None:
        if self._db is not None:
            self._db.close()
        self._db = None
        self._pending = None
        self.participant = None
        self.peer_id = None
        self.role = None


session_manager = ParticipantSessionManager(SessionLocal)


def get_session_manager() -> ParticipantSessionManager:
    return session_manager
