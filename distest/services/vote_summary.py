from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, MutableMapping, Optional

from distest.services import estimate_codec
from distest.store.base import (
    ESTIMATES_TABLE,
    ITEMS_TABLE,
    TOP_VOTES_TABLE,
    ReplicatedStore,
)

logger = logging.getLogger(__name__)

ESTIMATE_KEY_SEPARATOR = "_for_"


def estimate_key(participant_name: str, item_id: str) -> str:
    return f"{participant_name}{ESTIMATE_KEY_SEPARATOR}{item_id}"


def own_item_id(key: str, participant_name: str) -> Optional[str]:
    """Item id of an estimate key written by ``participant_name``, else None."""
    prefix = f"{participant_name}{ESTIMATE_KEY_SEPARATOR}"
    key = str(key)
    if not key.startswith(prefix) or len(key) == len(prefix):
        return None
    return key[len(prefix) :]


def possible_item_ids(key: str) -> Iterator[str]:
    """Item ids an estimate key may refer to, leftmost separator first.

    Participant names may themselves contain the separator.
    """
    key = str(key)
    start = key.find(ESTIMATE_KEY_SEPARATOR)
    while start >= 0:
        yield key[start + len(ESTIMATE_KEY_SEPARATOR) :]
        start = key.find(ESTIMATE_KEY_SEPARATOR, start + 1)


def _rank_value(value: float) -> float:
    return -math.inf if math.isnan(value) else value


@dataclass
class ItemStatistics:
    """Counters and derived statistics for one agenda item."""

    id: str
    bold_text: str
    text: str
    top_vote_count: int = 0
    total_estimate_count: int = 0
    finished_estimate_count: int = 0
    estimate_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def pending_estimate_count(self) -> int:
        return self.total_estimate_count - self.finished_estimate_count

    def add_estimate(self, raw: Any) -> None:
        self.total_estimate_count += 1
        if estimate_codec.is_pending(raw):
            return
        self.finished_estimate_count += 1
        key = raw if isinstance(raw, str) else str(raw)
        self.estimate_counts[key] = self.estimate_counts.get(key, 0) + 1

    def _countable(self) -> List[tuple[float, str]]:
        samples: List[tuple[float, str]] = []
        for raw, count in self.estimate_counts.items():
            if not estimate_codec.shall_count(raw):
                continue
            value = estimate_codec.normalized_value(raw)
            samples.extend([(value, raw)] * count)
        return samples

    @property
    def countable_estimate_count(self) -> int:
        return len(self._countable())

    @property
    def median_estimate(self) -> Optional[str]:
        """Upper-middle countable estimate by numeric value, None without data."""
        samples = self._countable()
        if not samples:
            return None
        samples.sort(key=lambda sample: sample[0])
        return samples[len(samples) // 2][1]

    @property
    def median_value(self) -> Optional[float]:
        median = self.median_estimate
        if median is None:
            return None
        return estimate_codec.normalized_value(median)

    @property
    def average_estimate(self) -> float:
        samples = self._countable()
        if not samples:
            return 0
        return sum(value for value, _ in samples) / len(samples)

    @property
    def relative_standard_deviation(self) -> float:
        """Population standard deviation divided by the mean (0 without data)."""
        samples = self._countable()
        if not samples:
            return 0
        mean = sum(value for value, _ in samples) / len(samples)
        if mean == 0:
            return 0
        variance = sum((value - mean) ** 2 for value, _ in samples) / len(samples)
        return math.sqrt(variance) / mean


class VoteSummary:
    """Statistics for every item of one store snapshot.

    Built by a full rescan of the items, topVotes and estimates tables; never
    updated in place. ``random_order`` holds the session-local tie-break draw
    per item and is shared across rebuilds by the owning session.
    """

    def __init__(
        self,
        store: ReplicatedStore,
        random_order: Optional[MutableMapping[str, float]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._items: Dict[str, ItemStatistics] = {}
        self._random_order = random_order
        self._rng = rng or random.Random()
        self._voter_count = 0
        self._total_vote_count = 0

        store.for_each(ITEMS_TABLE, self._add_item)
        store.for_each(TOP_VOTES_TABLE, self._add_top_vote)
        store.for_each(ESTIMATES_TABLE, self._add_estimate)
        logger.debug(
            "Vote summary built: items=%s voters=%s",
            len(self._items),
            self._voter_count,
        )

    def _add_item(self, item_id: str, payload: Any) -> None:
        payload = payload if isinstance(payload, dict) else {}
        self._items[item_id] = ItemStatistics(
            id=item_id,
            bold_text=str(payload.get("boldText") or ""),
            text=str(payload.get("text") or ""),
        )

    def _add_top_vote(self, _participant: str, value: Any) -> None:
        self._voter_count += 1
        if not isinstance(value, str):
            return
        for item_id in value.split(","):
            item = self._items.get(item_id)
            if item is not None:
                item.top_vote_count += 1
                self._total_vote_count += 1

    def _add_estimate(self, key: str, value: Any) -> None:
        for item_id in possible_item_ids(key):
            item = self._items.get(item_id)
            if item is not None:
                item.add_estimate(value)
                return

    def get(self, item_id: Optional[str]) -> Optional[ItemStatistics]:
        if item_id is None:
            return None
        return self._items.get(item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def sorted_items(self) -> List[ItemStatistics]:
        """Most top votes first, then higher average, then fewer estimates."""
        return sorted(
            self._items.values(),
            key=lambda item: (
                -item.top_vote_count,
                -_rank_value(item.average_estimate),
                item.total_estimate_count,
            ),
        )

    @property
    def stable_items(self) -> List[ItemStatistics]:
        if self._random_order is None:
            return sorted(self._items.values(), key=lambda item: item.id)
        return sorted(
            self._items.values(),
            key=lambda item: (self._random_order_for(item.id), item.id),
        )

    def _random_order_for(self, item_id: str) -> float:
        draw = self._random_order.get(item_id)
        if draw is None:
            draw = self._rng.random()
            self._random_order[item_id] = draw
        return draw

    @property
    def voter_count(self) -> int:
        return self._voter_count

    @property
    def top_vote_count(self) -> int:
        return self._total_vote_count

    @property
    def min_finished_estimate_count(self) -> int:
        if not self._items:
            return 0
        return min(item.finished_estimate_count for item in self._items.values())

    @property
    def max_finished_estimate_count(self) -> int:
        if not self._items:
            return 0
        return max(item.finished_estimate_count for item in self._items.values())
