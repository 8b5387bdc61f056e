import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text

from register_edge.core.clock import utcnow
from register_edge.db.base import Base


class Product(Base):
    """The register's local product catalog snapshot.

    Each row is a sellable product (with optional barcode) with the pricing
    and tax configuration known at this register, independent of the
    upstream platform representation.
    """

    __tablename__ = "products"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    platform = Column(String, nullable=True)
    platform_product_id = Column(String, nullable=True)

    sku = Column(String, nullable=True, index=True)
    barcode = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(String, nullable=True)

    price = Column(Numeric(18, 2), nullable=False, default=0)
    taxable = Column(Boolean, nullable=False, default=True)
    tax_rate = Column(Numeric(6, 4), nullable=True)

    active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class TaxProfile(Base):
    __tablename__ = "tax_profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    rate = Column(Numeric(6, 4), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
