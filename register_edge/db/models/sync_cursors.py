import uuid

from sqlalchemy import BigInteger, Column, DateTime, String

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class SyncCursor(Base):
    """Tracks how far a client register has consumed a peer's event feed.

    ``last_event_timestamp`` is the high-water-mark: the timestamp of the most
    recent event applied from the stream, so polling resumes after a restart
    without replaying what was already applied.
    """

    __tablename__ = "sync_cursors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    stream_name = Column(String, nullable=False, unique=True)

    last_event_timestamp = Column(BigInteger, nullable=True)
    last_event_id = Column(String, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
