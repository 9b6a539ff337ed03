from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class SessionStartRequest(BaseModel):
    meeting_id: Optional[str] = None
    name: Optional[str] = None


class TransportReadyRequest(BaseModel):
    peer_id: str


class TransportErrorRequest(BaseModel):
    error: str


class ConnectRequest(BaseModel):
    peer_id: str


class ItemSubmission(BaseModel):
    text: str


class TopVoteRequest(BaseModel):
    item_ids: List[str] = Field(default_factory=list)


class EstimateRequest(BaseModel):
    value: str


class StateRequest(BaseModel):
    state: str


class DotsPerVoterRequest(BaseModel):
    dots_per_voter: int


class RemoteRecord(BaseModel):
    table: str
    key: str
    value: Any = None


class ItemSummary(BaseModel):
    id: str
    bold_text: str = ""
    text: str = ""
    top_vote_count: int = 0
    total_estimate_count: int = 0
    finished_estimate_count: int = 0
    median_estimate: Optional[str] = None
    average_estimate: Optional[float] = None
    relative_standard_deviation: Optional[float] = None


class CurrentItem(BaseModel):
    id: str
    bold_text: str = ""
    text: str = ""


class SessionLinks(BaseModel):
    admin: str = ""
    voter: str = ""


class SessionStatusResponse(BaseModel):
    phase: str
    name: Optional[str] = None
    peer_id: Optional[str] = None
    role: Optional[str] = None
    admin: bool = False
    state: Optional[str] = None
    dots_per_voter: Optional[int] = None
    voter_count: int = 0
    top_vote: List[str] = Field(default_factory=list)
    current_item: Optional[CurrentItem] = None
    links: SessionLinks = Field(default_factory=SessionLinks)


class SummaryResponse(BaseModel):
    voter_count: int
    top_vote_count: int
    min_finished_estimate_count: int
    max_finished_estimate_count: int
    items: List[ItemSummary] = Field(default_factory=list)
