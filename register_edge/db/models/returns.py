import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Numeric, String, Text

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class Return(Base):
    """A customer return recorded against an earlier order."""

    __tablename__ = "returns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="pending")

    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(18, 2), nullable=False, default=0)
    reason = Column(Text, nullable=True)
    refund_method = Column(String, nullable=True)
    cashier_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_returns_order_id", "order_id"),
        Index("ix_returns_status", "status"),
    )
