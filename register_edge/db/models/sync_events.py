from sqlalchemy import JSON, BigInteger, Column, Index, String

from register_edge.db.base import Base


class SyncEventRecord(Base):
    """Append-only log of domain events served to client registers.

    Ordered by ``timestamp`` (epoch milliseconds, strictly increasing per
    register). Rows are written in the same transaction as the mutation they
    describe and trimmed to a bounded retention window.
    """

    __tablename__ = "sync_events"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False)
    register_id = Column(String, nullable=False)
    register_name = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    timestamp = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_sync_events_timestamp", "timestamp"),
    )


class SyncReplica(Base):
    """Last-writer-wins copy of an entity received from a peer register."""

    __tablename__ = "sync_replicas"

    entity_type = Column(String, primary_key=True)
    entity_id = Column(String, primary_key=True)

    event_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    register_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    timestamp = Column(BigInteger, nullable=False)
