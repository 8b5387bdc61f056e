import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String, Text

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class BasketStatus(str, enum.Enum):
    ACTIVE = "active"
    CHECKED_OUT = "checked_out"


class Basket(Base):
    """The register's cart.

    Only one row is ``active`` at a time (the most recent one wins); rows
    retired by a completed checkout are kept as ``checked_out``. Items are
    stored as a JSON list and the totals are always recomputed from them.
    """

    __tablename__ = "baskets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String, nullable=False, default=BasketStatus.ACTIVE.value)

    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(18, 2), nullable=False, default=0)
    tax = Column(Numeric(18, 2), nullable=False, default=0)
    total = Column(Numeric(18, 2), nullable=False, default=0)

    discount_code = Column(String, nullable=True)
    discount_amount = Column(Numeric(18, 2), nullable=True)
    customer_email = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_baskets_status_created", "status", "created_at"),
    )
