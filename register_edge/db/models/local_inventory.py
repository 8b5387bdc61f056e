from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class LocalInventory(Base):
    """On-hand stock for a product (and optional variant) at this register's store."""

    __tablename__ = "local_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String, nullable=False)
    variant_id = Column(String, nullable=False, default="")

    on_hand = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("product_id", "variant_id", name="uq_local_inventory_product_variant"),
    )
