import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Numeric, String, Text

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    SYNCED = "synced"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SyncStatus(str, enum.Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Order(Base):
    """A sale completed (or in progress) at this register.

    The row is an immutable snapshot of the basket at checkout time (totals,
    discount, customer, cashier) plus the mutable payment and platform sync
    fields. Its line items live in ``order_items``.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    register_id = Column(String, nullable=True)

    platform = Column(String, nullable=True)
    platform_order_id = Column(String, nullable=True)

    subtotal = Column(Numeric(18, 2), nullable=False, default=0)
    tax = Column(Numeric(18, 2), nullable=False, default=0)
    total = Column(Numeric(18, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(18, 2), nullable=True)
    discount_code = Column(String, nullable=True)

    customer_email = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    payment_method = Column(String, nullable=True)
    payment_transaction_id = Column(String, nullable=True)
    cashier_id = Column(String, nullable=True)
    cashier_name = Column(String, nullable=True)

    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    sync_status = Column(String, nullable=False, default=SyncStatus.PENDING.value)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(_in_clause("status", OrderStatus), name="ck_orders_status"),
        CheckConstraint(_in_clause("sync_status", SyncStatus), name="ck_orders_sync_status"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_sync_status", "sync_status"),
        Index("ix_orders_created_at", "created_at"),
    )
