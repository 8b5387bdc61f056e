from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel


class PlatformLineItem(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None
    name: str
    quantity: int
    price: Decimal
    taxable: bool
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    properties: Optional[Dict[str, str]] = None


class PlatformDiscount(BaseModel):
    code: Optional[str] = None
    amount: Decimal
    type: str = "fixed_amount"


class PlatformOrder(BaseModel):
    """Platform-agnostic order handed to a ``PlatformOrderService``."""

    idempotency_key: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    line_items: List[PlatformLineItem]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discounts: Optional[List[PlatformDiscount]] = None
    payment_status: str = "paid"
    payment_method: Optional[str] = None
    note: Optional[str] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None


class CreatedPlatformOrder(BaseModel):
    platform_order_id: str


@runtime_checkable
class PlatformOrderService(Protocol):
    """Capability every e-commerce integration implements.

    ``create_order`` raises ``PlatformTransportError`` when the platform is
    unreachable and ``PlatformHTTPError`` when it answers with an error
    status; the sync engine retries the first and 5xx responses only.
    Implementations should honour ``order.idempotency_key`` so a retried
    submission does not create a second order.
    """

    name: str

    async def create_order(self, order: PlatformOrder) -> CreatedPlatformOrder:
        ...
