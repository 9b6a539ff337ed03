import random

import pytest

from distest.services.item_selection import (
    STATE_ENDED,
    STATE_RUNNING,
    candidate_items,
    pick_candidate,
    select_next_item,
    tournament_winner,
)
from distest.services.vote_summary import ItemStatistics, VoteSummary, estimate_key
from distest.store.base import ESTIMATES_TABLE, ITEMS_TABLE


def _item(item_id: str, finished: int = 0, total: int = 0) -> ItemStatistics:
    return ItemStatistics(
        id=item_id,
        bold_text="",
        text="",
        finished_estimate_count=finished,
        total_estimate_count=total,
    )


class _RecordingRandom(random.Random):
    def __init__(self, seed):
        super().__init__(seed)
        self.draws = []

    def choice(self, seq):
        picked = super().choice(seq)
        self.draws.append(picked)
        return picked


@pytest.mark.parametrize("seed", range(25))
def test_clear_count_difference_always_wins(seed):
    low = _item("low", finished=2, total=2)
    high = _item("high", finished=5, total=5)
    rng = _RecordingRandom(seed)

    for _ in range(20):
        rng.draws.clear()
        winner = pick_candidate([low, high], rng)
        # Draws are with replacement; whenever low is drawn it wins.
        if low in rng.draws:
            assert winner is low
        else:
            assert winner is high

    assert tournament_winner(low, high) is low
    assert tournament_winner(high, low) is low


def test_tie_on_finished_breaks_on_total_then_first_draw():
    first = _item("first", finished=1, total=3)
    second = _item("second", finished=1, total=2)
    assert tournament_winner(first, second) is second

    even = _item("even", finished=1, total=3)
    assert tournament_winner(first, even) is first


def test_pick_candidate_handles_empty_and_single():
    assert pick_candidate([]) is None
    only = _item("only")
    assert pick_candidate([only]) is only


def test_candidates_skip_finished_but_keep_pending(store):
    for item_id in ("a0", "a1", "a2"):
        store.put(ITEMS_TABLE, item_id, {"boldText": "", "text": item_id})
    store.put(ESTIMATES_TABLE, estimate_key("me", "a0"), "Geld,3")
    store.put(ESTIMATES_TABLE, estimate_key("me", "a1"), "pending")
    summary = VoteSummary(store)

    own = {"a0": "Geld,3", "a1": "pending"}
    assert [item.id for item in candidate_items(summary, own)] == ["a1", "a2"]


def test_select_next_item_requires_vote_and_open_session(store):
    store.put(ITEMS_TABLE, "a0", {"boldText": "", "text": "a"})
    summary = VoteSummary(store)

    assert (
        select_next_item(summary, {}, session_state=STATE_RUNNING, has_top_vote=False)
        is None
    )
    assert (
        select_next_item(summary, {}, session_state=STATE_ENDED, has_top_vote=True)
        is None
    )
    assert (
        select_next_item(summary, {}, session_state=STATE_RUNNING, has_top_vote=True)
        == "a0"
    )
    assert (
        select_next_item(
            summary, {"a0": "unknown"}, session_state=None, has_top_vote=True
        )
        is None
    )
