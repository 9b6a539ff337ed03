"""Service layer for the distributed estimation session."""

from .participant_session import Participant, SessionPhase  # noqa: F401
from .session_manager import (
    ParticipantSessionManager,
    get_session_manager,
    session_manager,
)  # noqa: F401
from .vote_summary import ItemStatistics, VoteSummary  # noqa: F401

__all__ = [
    "Participant",
    "SessionPhase",
    "ParticipantSessionManager",
    "get_session_manager",
    "session_manager",
    "ItemStatistics",
    "VoteSummary",
]
