from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, Integer, JSON, String, UniqueConstraint

from ..database import Base


class ReplicaRecord(Base):
    """One key/value record of a namespaced table in the local replica."""

    __tablename__ = "replica_records"
    __table_args__ = (
        UniqueConstraint(
            "namespace",
            "table_name",
            "record_key",
            name="uq_replica_record_scope",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    namespace = Column(String(128), nullable=False, index=True)
    table_name = Column(String(64), nullable=False, index=True)
    record_key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    origin = Column(String(16), nullable=False, default="local")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
