import uuid

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, Numeric, String

from register_edge.db.base import Base


class OrderItem(Base):
    """A single product line within an order.

    Captures the product/variant ids, display name, unit price, quantity and
    tax configuration at the time of sale so that reporting and platform sync
    do not depend on the mutable catalog.
    """

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    line_number = Column(Integer, nullable=False)

    product_id = Column(String, nullable=False)
    variant_id = Column(String, nullable=True)
    sku = Column(String, nullable=True)
    name = Column(String, nullable=False)

    price = Column(Numeric(18, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    taxable = Column(Boolean, nullable=False, default=True)
    tax_rate = Column(Numeric(6, 4), nullable=True)

    properties = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_order_items_order_line", "order_id", "line_number", unique=True),
    )
