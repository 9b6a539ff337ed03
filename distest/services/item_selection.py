"""Choice of the next item a participant should estimate.

Each device picks on its own from a possibly stale replica: two candidates are
drawn at random (with replacement) and the one with fewer finished estimates
wins. Several participants may pick the same item at once; the bias toward
under-estimated items corrects that as estimates arrive.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Mapping, Optional, Sequence

from distest.services import estimate_codec
from distest.services.vote_summary import ItemStatistics, VoteSummary

logger = logging.getLogger(__name__)

STATE_RUNNING = "running"
STATE_ENDED = "ended"


def candidate_items(
    summary: VoteSummary,
    own_estimates: Mapping[str, Any],
) -> list[ItemStatistics]:
    """Items (stable order) the participant has not finished estimating."""
    candidates = []
    for item in summary.stable_items:
        value = own_estimates.get(item.id)
        if value is None or estimate_codec.is_pending(value):
            candidates.append(item)
    return candidates


def tournament_winner(
    first: ItemStatistics,
    second: ItemStatistics,
) -> ItemStatistics:
    if second.finished_estimate_count < first.finished_estimate_count:
        return second
    if second.finished_estimate_count > first.finished_estimate_count:
        return first
    if second.total_estimate_count < first.total_estimate_count:
        return second
    return first


def pick_candidate(
    candidates: Sequence[ItemStatistics],
    rng: Optional[random.Random] = None,
) -> Optional[ItemStatistics]:
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]
    rng = rng or random.Random()
    first = rng.choice(candidates)
    second = rng.choice(candidates)
    return tournament_winner(first, second)


def select_next_item(
    summary: VoteSummary,
    own_estimates: Mapping[str, Any],
    *,
    session_state: Optional[str],
    has_top_vote: bool,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """Return the id of the next item to estimate, or None when there is none.

    ``own_estimates`` maps item id to this participant's stored estimate.
    """
    if session_state == STATE_ENDED or not has_top_vote:
        return None
    winner = pick_candidate(candidate_items(summary, own_estimates), rng)
    if winner is None:
        return None
    logger.debug(
        "Selected item %s (finished=%s total=%s)",
        winner.id,
        winner.finished_estimate_count,
        winner.total_estimate_count,
    )
    return winner.id
