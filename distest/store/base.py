from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

ITEMS_TABLE = "items"
TOP_VOTES_TABLE = "topVotes"
ESTIMATES_TABLE = "estimates"
STATE_TABLE = "state"
DOTS_PER_VOTER_TABLE = "dotsPerVoter"

EVENT_ADD = "add"
EVENT_UPDATE = "update"

StoreCallback = Callable[[str, str, Any], None]


@dataclass(frozen=True)
class StoreSubscription:
    event_kinds: frozenset
    table: str
    callback: StoreCallback


class ReplicatedStore(ABC):
    """
    Namespaced key/value tables replicated between connected peers.

    Replication, ordering and conflict resolution belong to the implementation;
    callers only see the local replica and opaque change notifications.
    """

    def __init__(self) -> None:
        self._subscriptions: List[StoreSubscription] = []

    @abstractmethod
    def put(self, table: str, key: str, value: Any) -> None:
        """Upsert a record into the local replica."""

    @abstractmethod
    def get(self, table: str, key: str) -> Optional[Any]:
        """Return a record from the local replica, or None when absent."""

    @abstractmethod
    def for_each(self, table: str, callback: Callable[[str, Any], None]) -> None:
        """Invoke ``callback(key, value)`` for every known record of a table."""

    @abstractmethod
    def connect_to_node(self, peer_id: str) -> None:
        """Join the collaborative session hosted by ``peer_id``."""

    def on(
        self,
        event_kinds: Iterable[str],
        table: str,
        immediate: bool,
        callback: StoreCallback,
    ) -> StoreSubscription:
        """Subscribe to add/update notifications on a table.

        With ``immediate`` the callback is replayed once per existing record.
        """
        subscription = StoreSubscription(
            event_kinds=frozenset(event_kinds),
            table=table,
            callback=callback,
        )
        self._subscriptions.append(subscription)
        if immediate:
            self.for_each(
                table, lambda key, value: callback(EVENT_ADD, key, value)
            )
        return subscription

    def off(self, subscription: StoreSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _notify(self, event_kind: str, table: str, key: str, value: Any) -> None:
        for subscription in list(self._subscriptions):
            if subscription.table != table:
                continue
            if event_kind not in subscription.event_kinds:
                continue
            subscription.callback(event_kind, key, value)
