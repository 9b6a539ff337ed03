"""Replicated store adapter: the interface the core consumes and its SQL-backed replica."""

from .base import (
    DOTS_PER_VOTER_TABLE,
    ESTIMATES_TABLE,
    EVENT_ADD,
    EVENT_UPDATE,
    ITEMS_TABLE,
    STATE_TABLE,
    TOP_VOTES_TABLE,
    ReplicatedStore,
    StoreSubscription,
)
from .sql_store import SqlReplicaStore

__all__ = [
    "DOTS_PER_VOTER_TABLE",
    "ESTIMATES_TABLE",
    "EVENT_ADD",
    "EVENT_UPDATE",
    "ITEMS_TABLE",
    "STATE_TABLE",
    "TOP_VOTES_TABLE",
    "ReplicatedStore",
    "StoreSubscription",
    "SqlReplicaStore",
]
