from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from distest.models.replica import ReplicaRecord
from distest.store.base import EVENT_ADD, EVENT_UPDATE, ReplicatedStore

logger = logging.getLogger("store")

PeerConnector = Callable[[str], None]
ErrorHook = Callable[[Exception], None]


class SqlReplicaStore(ReplicatedStore):
    """Local replica of the shared tables, persisted through SQLAlchemy.

    Records written here are handed to the external replication layer by the
    connector; records arriving from peers come back in via ``apply_remote``.
    Both paths raise the same add/update notifications.
    """

    def __init__(
        self,
        db: Session,
        namespace: str,
        *,
        clean: bool = False,
        connector: Optional[PeerConnector] = None,
    ) -> None:
        super().__init__()
        self.db = db
        self.namespace = namespace
        self.connector = connector
        self.connected_peers: List[str] = []
        self._error_hooks: List[ErrorHook] = []
        if clean:
            self.clear()

    def _query(self, table: str):
        return self.db.query(ReplicaRecord).filter(
            ReplicaRecord.namespace == self.namespace,
            ReplicaRecord.table_name == table,
        )

    def _find(self, table: str, key: str) -> Optional[ReplicaRecord]:
        return self._query(table).filter(ReplicaRecord.record_key == key).first()

    def clear(self) -> None:
        removed = (
            self.db.query(ReplicaRecord)
            .filter(ReplicaRecord.namespace == self.namespace)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(
            "Cleared replica namespace=%s removed=%s", self.namespace, removed
        )

    def _upsert(self, table: str, key: str, value: Any, origin: str) -> None:
        record = self._find(table, key)
        if record is None:
            record = ReplicaRecord(
                namespace=self.namespace,
                table_name=table,
                record_key=key,
                value=value,
                origin=origin,
            )
            self.db.add(record)
            self.db.commit()
            logger.debug(
                "Replica add: namespace=%s table=%s key=%s origin=%s",
                self.namespace,
                table,
                key,
                origin,
            )
            self._notify(EVENT_ADD, table, key, value)
            return

        if record.value == value:
            return
        record.value = value
        record.origin = origin
        self.db.commit()
        logger.debug(
            "Replica update: namespace=%s table=%s key=%s origin=%s",
            self.namespace,
            table,
            key,
            origin,
        )
        self._notify(EVENT_UPDATE, table, key, value)

    def put(self, table: str, key: str, value: Any) -> None:
        self._upsert(table, key, value, "local")

    def apply_remote(self, table: str, key: str, value: Any) -> None:
        """Merge a record delivered by the replication layer (last write wins)."""
        self._upsert(table, key, value, "remote")

    def get(self, table: str, key: str) -> Optional[Any]:
        record = self._find(table, key)
        return record.value if record is not None else None

    def for_each(self, table: str, callback: Callable[[str, Any], None]) -> None:
        for record in self._query(table).order_by(ReplicaRecord.id).all():
            callback(record.record_key, record.value)

    def records(self, table: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        self.for_each(table, result.__setitem__)
        return result

    def on_error(self, hook: ErrorHook) -> None:
        self._error_hooks.append(hook)

    def connect_to_node(self, peer_id: str) -> None:
        peer_id = (peer_id or "").strip()
        if not peer_id:
            return
        logger.info("Connecting namespace=%s to peer=%s", self.namespace, peer_id)
        if peer_id not in self.connected_peers:
            self.connected_peers.append(peer_id)
        if self.connector is None:
            return
        try:
            self.connector(peer_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Connection to peer %s failed: %s", peer_id, exc)
            for hook in list(self._error_hooks):
                hook(exc)
