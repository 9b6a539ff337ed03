from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from fastapi import HTTPException

from distest.config.loader import get_voting_defaults
from distest.services import estimate_codec
from distest.services.item_selection import (
    STATE_ENDED,
    STATE_RUNNING,
    candidate_items,
    select_next_item,
)
from distest.services.vote_summary import (
    ItemStatistics,
    VoteSummary,
    estimate_key,
    own_item_id,
)
from distest.store.base import (
    DOTS_PER_VOTER_TABLE,
    ESTIMATES_TABLE,
    EVENT_ADD,
    EVENT_UPDATE,
    ITEMS_TABLE,
    STATE_TABLE,
    TOP_VOTES_TABLE,
    ReplicatedStore,
)
from distest.utils.identifiers import next_item_key, split_item_text, split_submission

logger = logging.getLogger(__name__)

SESSION_STATES = {STATE_RUNNING, STATE_ENDED}
_WATCHED_TABLES = (ITEMS_TABLE, TOP_VOTES_TABLE, ESTIMATES_TABLE, STATE_TABLE)


class SessionPhase(str, Enum):
    INITIAL = "initial"
    VOTER = "voter"
    ADMIN = "admin"
    RUNNING = "running"
    VOTING = "voting"
    ESTIMATING = "estimating"
    SUMMARY = "summary"
    ENDED = "ended"


class Participant:
    """One participant's view of a collaborative estimation session.

    Owns the memoized VoteSummary. Every local write and every change
    notification from the store bumps a version counter; the summary is
    rebuilt on the next read only if its version is stale.
    """

    def __init__(
        self,
        store: ReplicatedStore,
        name: str,
        *,
        clean: bool,
        admin: bool,
        mark_callback: Optional[Callable[[], None]] = None,
        rng: Optional[random.Random] = None,
        dots_per_voter: Optional[int] = None,
        estimation_enabled: Optional[bool] = None,
        randomize_display_order: Optional[bool] = None,
    ) -> None:
        defaults = get_voting_defaults()
        self.name = name
        self.store = store
        self.admin = admin
        self.mark_callback = mark_callback or (lambda: None)
        self.rng = rng or random.Random()
        self.default_dots_per_voter = dots_per_voter or defaults["dots_per_voter"]
        self.estimation_enabled = (
            defaults["estimation_enabled"]
            if estimation_enabled is None
            else estimation_enabled
        )

        if randomize_display_order is None:
            randomize_display_order = defaults["randomize_display_order"]
        self._random_order: Optional[Dict[str, float]] = (
            {} if randomize_display_order else None
        )
        self._added_item_count = 0
        self._current_item_id: Optional[str] = None
        self._version = 0
        self._cached_summary: Optional[VoteSummary] = None
        self._cached_version = -1
        self.summary_builds = 0

        for table in _WATCHED_TABLES:
            self.store.on(
                [EVENT_ADD, EVENT_UPDATE],
                table,
                False,
                lambda _kind, _key, _value: self.invalidate_cache(),
            )

        if clean and admin:
            self.set_dots_per_voter(self.default_dots_per_voter)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------
    def invalidate_cache(self) -> None:
        self._version += 1
        logger.debug("Invalidate cache: participant=%s version=%s", self.name, self._version)
        self.mark_callback()

    @property
    def vote_summary(self) -> VoteSummary:
        if self._cached_summary is None or self._cached_version != self._version:
            self._cached_summary = VoteSummary(self.store, self._random_order, self.rng)
            self._cached_version = self._version
            self.summary_builds += 1
        return self._cached_summary

    # ------------------------------------------------------------------
    # Shared configuration and lifecycle
    # ------------------------------------------------------------------
    def _require_admin(self) -> None:
        if not self.admin:
            raise HTTPException(
                status_code=403, detail="Only an admin can change the session."
            )

    def get_dots_per_voter(self) -> int:
        value = self.store.get(DOTS_PER_VOTER_TABLE, DOTS_PER_VOTER_TABLE)
        try:
            candidate = int(value)
        except (TypeError, ValueError):
            return self.default_dots_per_voter
        return candidate if candidate > 0 else self.default_dots_per_voter

    def set_dots_per_voter(self, dots_per_voter: int) -> None:
        self._require_admin()
        if int(dots_per_voter) < 1:
            raise HTTPException(
                status_code=400, detail="Each voter needs at least one dot."
            )
        self.store.put(DOTS_PER_VOTER_TABLE, DOTS_PER_VOTER_TABLE, int(dots_per_voter))

    def get_state(self) -> Optional[str]:
        return self.store.get(STATE_TABLE, STATE_TABLE)

    def set_state(self, state: str) -> None:
        self._require_admin()
        if state not in SESSION_STATES:
            raise HTTPException(status_code=400, detail="Invalid session state.")
        self.store.put(STATE_TABLE, STATE_TABLE, state)
        logger.info("Session state set to %s by %s", state, self.name)
        self.invalidate_cache()

    def connect_to(self, peer_id: str) -> None:
        self.store.connect_to_node(peer_id)

    # ------------------------------------------------------------------
    # Items and votes
    # ------------------------------------------------------------------
    def add_item(self, text: str) -> str:
        trimmed = (text or "").strip()
        if not trimmed:
            raise HTTPException(status_code=400, detail="Item text cannot be empty.")
        bold_text, body = split_item_text(trimmed)
        key, self._added_item_count = next_item_key(
            self.name,
            self._added_item_count,
            lambda candidate: self.store.get(ITEMS_TABLE, candidate) is not None,
        )
        self.store.put(ITEMS_TABLE, key, {"boldText": bold_text, "text": body})
        logger.info("Item %s added by %s", key, self.name)
        return key

    def add_items(self, raw: str) -> List[str]:
        """Add one item per blank-line separated block of ``raw``."""
        return [self.add_item(block) for block in split_submission(raw)]

    def has_no_top_vote(self) -> bool:
        return not isinstance(self.store.get(TOP_VOTES_TABLE, self.name), str)

    def get_top_vote(self) -> List[str]:
        value = self.store.get(TOP_VOTES_TABLE, self.name)
        if not isinstance(value, str) or not value:
            return []
        return value.split(",")

    def vote_for_top(self, selection: Union[str, Sequence[str], None]) -> None:
        if self.get_state() == STATE_ENDED:
            raise HTTPException(status_code=400, detail="The session has ended.")
        if isinstance(selection, str):
            item_ids = [selection.strip()]
        else:
            item_ids = [str(item_id).strip() for item_id in (selection or [])]
        item_ids = [item_id for item_id in item_ids if item_id]
        if not item_ids:
            raise HTTPException(status_code=400, detail="Please select an item.")

        dots_per_voter = self.get_dots_per_voter()
        if len(item_ids) > dots_per_voter:
            raise HTTPException(
                status_code=400,
                detail=f"At most {dots_per_voter} dots can be placed.",
            )
        summary = self.vote_summary
        unknown = [item_id for item_id in item_ids if item_id not in summary]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail="Selected item is not valid for this session.",
            )

        self.store.put(TOP_VOTES_TABLE, self.name, ",".join(item_ids))
        logger.info("Top vote by %s: %s", self.name, item_ids)
        self.invalidate_cache()
        if self.estimation_enabled:
            self._ensure_current_item()

    # ------------------------------------------------------------------
    # Estimation loop
    # ------------------------------------------------------------------
    def own_estimates(self) -> Dict[str, Any]:
        """Map item id to this participant's stored estimate value."""
        result: Dict[str, Any] = {}

        def _collect(key: str, value: Any) -> None:
            item_id = own_item_id(key, self.name)
            if item_id is not None:
                result[item_id] = value

        self.store.for_each(ESTIMATES_TABLE, _collect)
        return result

    def _ensure_current_item(self) -> Optional[str]:
        if self._current_item_id is not None or not self.estimation_enabled:
            return self._current_item_id
        item_id = select_next_item(
            self.vote_summary,
            self.own_estimates(),
            session_state=self.get_state(),
            has_top_vote=not self.has_no_top_vote(),
            rng=self.rng,
        )
        if item_id is None:
            return None
        self._current_item_id = item_id
        self.store.put(
            ESTIMATES_TABLE, estimate_key(self.name, item_id), estimate_codec.PENDING
        )
        self.invalidate_cache()
        return item_id

    def recover_active_item(self) -> Optional[str]:
        """Re-adopt an item this participant left pending in the store.

        Not called implicitly: a restarted participant otherwise selects anew.
        """
        if self._current_item_id is not None:
            return self._current_item_id
        own = self.own_estimates()
        for item in self.vote_summary.stable_items:
            if estimate_codec.is_pending(own.get(item.id)):
                self._current_item_id = item.id
                logger.info("Recovered pending item %s for %s", item.id, self.name)
                return item.id
        return None

    def _current_item(self) -> Optional[ItemStatistics]:
        return self.vote_summary.get(self._ensure_current_item())

    def get_current_item_id(self) -> Optional[str]:
        return self._ensure_current_item()

    def get_current_item_text(self) -> Optional[str]:
        item = self._current_item()
        return item.text if item else None

    def get_current_item_bold_text(self) -> Optional[str]:
        item = self._current_item()
        return item.bold_text if item else None

    def has_further_items(self) -> bool:
        return self._ensure_current_item() is not None

    def save_estimate(self, value: Union[str, estimate_codec.Estimate]) -> str:
        item_id = self._current_item_id
        if item_id is None:
            raise HTTPException(
                status_code=400, detail="No item is currently being estimated."
            )
        if not isinstance(value, str):
            value = estimate_codec.encode(value)
        value = value.strip()
        if not value or estimate_codec.is_pending(value):
            raise HTTPException(status_code=400, detail="Please choose an estimate.")

        self.store.put(ESTIMATES_TABLE, estimate_key(self.name, item_id), value)
        logger.info("Estimate saved by %s for %s: %s", self.name, item_id, value)
        self._current_item_id = None
        self.invalidate_cache()
        return item_id

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    @property
    def phase(self) -> SessionPhase:
        state = self.get_state()
        if state == STATE_ENDED:
            return SessionPhase.ENDED
        if self.has_no_top_vote():
            if state != STATE_RUNNING:
                return SessionPhase.ADMIN if self.admin else SessionPhase.VOTER
            return SessionPhase.VOTING if len(self.vote_summary) else SessionPhase.RUNNING
        if not self.estimation_enabled:
            return SessionPhase.SUMMARY
        if self._current_item_id is not None:
            return SessionPhase.ESTIMATING
        if candidate_items(self.vote_summary, self.own_estimates()):
            return SessionPhase.ESTIMATING
        return SessionPhase.SUMMARY
