import math

from distest.services.vote_summary import (
    ItemStatistics,
    VoteSummary,
    estimate_key,
    own_item_id,
    possible_item_ids,
)
from distest.store.base import ESTIMATES_TABLE, ITEMS_TABLE, TOP_VOTES_TABLE


def _item(**kwargs) -> ItemStatistics:
    return ItemStatistics(id=kwargs.pop("id", "x0"), bold_text="", text="", **kwargs)


def _seed_items(store, *item_ids):
    for item_id in item_ids:
        store.put(ITEMS_TABLE, item_id, {"boldText": "", "text": item_id})


def test_estimate_key_parsing_tolerates_separator_in_names():
    key = estimate_key("x_for_y", "x_for_y0")
    assert key == "x_for_y_for_x_for_y0"
    assert own_item_id(key, "x_for_y") == "x_for_y0"
    assert own_item_id(key, "anna") is None
    assert own_item_id("anna_for_", "anna") is None
    assert list(possible_item_ids(key)) == [
        "y_for_x_for_y0",
        "x_for_y0",
        "y0",
    ]


def test_summary_attributes_estimates_of_names_containing_separator(store):
    _seed_items(store, "x_for_y0")
    store.put(ESTIMATES_TABLE, estimate_key("x_for_y", "x_for_y0"), "Geld,7")

    summary = VoteSummary(store)

    assert summary.get("x_for_y0").finished_estimate_count == 1
    assert summary.get("x_for_y0").average_estimate == 7


def test_median_uses_upper_middle_element():
    item = _item()
    for amount in (3, 1, 2):
        item.add_estimate(f"Geld,{amount}")
    assert item.median_estimate == "Geld,2"

    item.add_estimate("Geld,4")
    assert item.median_estimate == "Geld,3"
    assert item.median_value == 3


def test_median_orders_by_normalized_value_across_categories():
    item = _item()
    item.add_estimate("Zeit,1,1")  # 50
    item.add_estimate("Geld,10")
    item.add_estimate("Geld,100")
    assert item.median_estimate == "Zeit,1,1"


def test_statistics_are_zero_without_countable_estimates():
    item = _item()
    item.add_estimate("pending")
    item.add_estimate("unknown")

    assert item.total_estimate_count == 2
    assert item.finished_estimate_count == 1
    assert item.pending_estimate_count == 1
    assert item.average_estimate == 0
    assert item.relative_standard_deviation == 0
    assert item.median_estimate is None


def test_average_and_relative_standard_deviation():
    item = _item()
    item.add_estimate("Geld,10")
    item.add_estimate("Geld,30")
    item.add_estimate("unknown")

    assert item.countable_estimate_count == 2
    assert item.average_estimate == 20
    assert math.isclose(item.relative_standard_deviation, 0.5)


def test_nan_estimates_propagate_into_average():
    item = _item()
    item.add_estimate("Geld,10")
    item.add_estimate("Geld,oops")
    assert math.isnan(item.average_estimate)


def test_summary_counts_multi_choice_top_votes(store):
    _seed_items(store, "a0", "a1", "b0")
    store.put(TOP_VOTES_TABLE, "a", "a0,b0")
    store.put(TOP_VOTES_TABLE, "b", "a0")
    store.put(TOP_VOTES_TABLE, "c", "missing")

    summary = VoteSummary(store)

    assert summary.voter_count == 3
    assert summary.get("a0").top_vote_count == 2
    assert summary.get("b0").top_vote_count == 1
    assert summary.get("a1").top_vote_count == 0
    assert summary.top_vote_count == sum(
        item.top_vote_count for item in summary.sorted_items
    )
    assert summary.top_vote_count == 3


def test_summary_ignores_estimates_for_unknown_items(store):
    _seed_items(store, "a0")
    store.put(ESTIMATES_TABLE, estimate_key("a", "a0"), "Geld,5")
    store.put(ESTIMATES_TABLE, estimate_key("a", "zz9"), "Geld,5")

    summary = VoteSummary(store)

    assert len(summary) == 1
    assert summary.get("a0").finished_estimate_count == 1
    assert "zz9" not in summary


def test_sorted_items_prefers_votes_then_average_then_fewer_estimates(store):
    _seed_items(store, "a0", "a1", "a2")
    store.put(TOP_VOTES_TABLE, "v1", "a2")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a0"), "Geld,5")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a1"), "Geld,50")

    summary = VoteSummary(store)

    assert [item.id for item in summary.sorted_items] == ["a2", "a1", "a0"]


def test_stable_items_by_id_without_random_order(store):
    _seed_items(store, "b0", "a0", "a1")
    summary = VoteSummary(store)
    assert [item.id for item in summary.stable_items] == ["a0", "a1", "b0"]


def test_stable_items_reuse_session_random_order(store):
    _seed_items(store, "a0", "a1", "a2")
    random_order = {"a0": 0.9, "a1": 0.1, "a2": 0.5}

    first = VoteSummary(store, random_order)
    second = VoteSummary(store, random_order)

    expected = ["a1", "a2", "a0"]
    assert [item.id for item in first.stable_items] == expected
    assert [item.id for item in second.stable_items] == expected


def test_min_and_max_finished_estimate_counts(store):
    assert VoteSummary(store).min_finished_estimate_count == 0
    _seed_items(store, "a0", "a1")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a0"), "Geld,1")
    store.put(ESTIMATES_TABLE, estimate_key("v2", "a0"), "unknown")
    store.put(ESTIMATES_TABLE, estimate_key("v3", "a1"), "pending")

    summary = VoteSummary(store)

    assert summary.min_finished_estimate_count == 0
    assert summary.max_finished_estimate_count == 2


def test_sorted_items_rank_nan_average_last_among_equal_votes(store):
    _seed_items(store, "a0", "a1", "a2")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a0"), "Geld,oops")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a1"), "Geld,5")
    store.put(ESTIMATES_TABLE, estimate_key("v1", "a2"), "Geld,50")

    summary = VoteSummary(store)

    assert math.isnan(summary.get("a0").average_estimate)
    assert [item.id for item in summary.sorted_items] == ["a2", "a1", "a0"]
