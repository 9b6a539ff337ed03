import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from distest.schemas.session import (
    ConnectRequest,
    CurrentItem,
    DotsPerVoterRequest,
    EstimateRequest,
    ItemSubmission,
    ItemSummary,
    RemoteRecord,
    SessionLinks,
    SessionStartRequest,
    SessionStatusResponse,
    StateRequest,
    SummaryResponse,
    TopVoteRequest,
    TransportErrorRequest,
    TransportReadyRequest,
)
from distest.services.participant_session import SessionPhase
from distest.services.session_manager import (
    ParticipantSessionManager,
    get_session_manager,
)
from distest.services.vote_summary import ItemStatistics
from distest.store.sql_store import SqlReplicaStore

router = APIRouter(prefix="/api/session", tags=["session"])

logger = logging.getLogger(__name__)


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or math.isnan(value) or math.isinf(value):
        return None
    return value


def _item_summary(item: ItemStatistics) -> ItemSummary:
    return ItemSummary(
        id=item.id,
        bold_text=item.bold_text,
        text=item.text,
        top_vote_count=item.top_vote_count,
        total_estimate_count=item.total_estimate_count,
        finished_estimate_count=item.finished_estimate_count,
        median_estimate=item.median_estimate,
        average_estimate=_finite(item.average_estimate),
        relative_standard_deviation=_finite(item.relative_standard_deviation),
    )


def build_status(manager: ParticipantSessionManager) -> SessionStatusResponse:
    participant = manager.participant
    if participant is None:
        return SessionStatusResponse(phase=manager.phase.value)

    phase = participant.phase
    current_item = None
    if phase == SessionPhase.ESTIMATING:
        item_id = participant.get_current_item_id()
        item = participant.vote_summary.get(item_id)
        if item is not None:
            current_item = CurrentItem(
                id=item.id, bold_text=item.bold_text, text=item.text
            )
        # Selection can come up empty against a stale replica.
        phase = participant.phase

    return SessionStatusResponse(
        phase=phase.value,
        name=participant.name,
        peer_id=manager.peer_id,
        role=manager.role,
        admin=participant.admin,
        state=participant.get_state(),
        dots_per_voter=participant.get_dots_per_voter(),
        voter_count=participant.vote_summary.voter_count,
        top_vote=participant.get_top_vote(),
        current_item=current_item,
        links=SessionLinks(**manager.links()),
    )


@router.get("", response_model=SessionStatusResponse)
async def get_status(
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    return build_status(manager)


@router.post("/new", response_model=SessionStatusResponse)
async def start_session(
    payload: SessionStartRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.init_new(payload.name)
    return build_status(manager)


@router.post("/join", response_model=SessionStatusResponse)
async def join_session(
    payload: SessionStartRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.join(payload.meeting_id or "", payload.name)
    return build_status(manager)


@router.delete("", response_model=SessionStatusResponse)
async def leave_session(
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.reset()
    return build_status(manager)


@router.get("/transport")
async def get_transport_settings(
    manager: ParticipantSessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    return manager.transport_settings()


@router.post("/transport/ready", response_model=SessionStatusResponse)
async def transport_ready(
    payload: TransportReadyRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    peer_id = payload.peer_id.strip()
    if not peer_id:
        raise HTTPException(status_code=400, detail="Peer id is required.")
    manager.on_transport_ready(peer_id)
    return build_status(manager)


@router.post("/transport/error")
async def transport_error(
    payload: TransportErrorRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
) -> Dict[str, str]:
    manager.report_transport_error(payload.error)
    return {"status": "logged"}


@router.post("/connect", response_model=SessionStatusResponse)
async def reconnect(
    payload: ConnectRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.reconnect(payload.peer_id)
    return build_status(manager)


@router.post("/replica")
async def apply_remote_record(
    payload: RemoteRecord,
    manager: ParticipantSessionManager = Depends(get_session_manager),
) -> Dict[str, str]:
    store = manager.require_participant().store
    if not isinstance(store, SqlReplicaStore):
        raise HTTPException(
            status_code=409, detail="The local store does not accept remote records."
        )
    store.apply_remote(payload.table, payload.key, payload.value)
    return {"status": "applied"}


@router.post("/items")
async def submit_items(
    payload: ItemSubmission,
    manager: ParticipantSessionManager = Depends(get_session_manager),
) -> Dict[str, List[str]]:
    participant = manager.require_participant()
    item_ids = participant.add_items(payload.text)
    if not item_ids:
        raise HTTPException(status_code=400, detail="Item text cannot be empty.")
    return {"item_ids": item_ids}


@router.post("/top-vote", response_model=SessionStatusResponse)
async def vote_for_top(
    payload: TopVoteRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.require_participant().vote_for_top(payload.item_ids)
    return build_status(manager)


@router.post("/estimate", response_model=SessionStatusResponse)
async def save_estimate(
    payload: EstimateRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.require_participant().save_estimate(payload.value)
    return build_status(manager)


@router.post("/recover", response_model=SessionStatusResponse)
async def recover_active_item(
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.require_participant().recover_active_item()
    return build_status(manager)


@router.put("/state", response_model=SessionStatusResponse)
async def set_state(
    payload: StateRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.require_participant().set_state(payload.state)
    return build_status(manager)


@router.put("/dots-per-voter", response_model=SessionStatusResponse)
async def set_dots_per_voter(
    payload: DotsPerVoterRequest,
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    manager.require_participant().set_dots_per_voter(payload.dots_per_voter)
    return build_status(manager)


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    manager: ParticipantSessionManager = Depends(get_session_manager),
):
    summary = manager.require_participant().vote_summary
    return SummaryResponse(
        voter_count=summary.voter_count,
        top_vote_count=summary.top_vote_count,
        min_finished_estimate_count=summary.min_finished_estimate_count,
        max_finished_estimate_count=summary.max_finished_estimate_count,
        items=[_item_summary(item) for item in summary.sorted_items],
    )
