from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, String, Text

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class QueuedRequest(Base):
    """Outbox record for an HTTP side effect that must eventually happen.

    Rows are drained in ``id`` order. Each carries a unique idempotency key
    that is forwarded with every attempt, so a request that reached the
    remote end before a failure was observed is not applied twice.
    """

    __tablename__ = "outbox"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    idempotency_key = Column(String, unique=True, nullable=False, index=True)

    url = Column(Text, nullable=False)
    method = Column(String, nullable=False)
    body = Column(JSON, nullable=True)
    headers = Column(JSON, nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    next_retry_at = Column(DateTime(timezone=True), nullable=True)
