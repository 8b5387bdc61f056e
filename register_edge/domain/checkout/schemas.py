from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel


class StartCheckout(BaseModel):
    platform: Optional[str] = None
    cashier_id: Optional[str] = None
    cashier_name: Optional[str] = None


class CompletePayment(BaseModel):
    payment_method: str
    transaction_id: Optional[str] = None


class OrderItemOut(BaseModel):
    id: str
    line_number: int
    product_id: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None
    name: str
    price: Decimal
    quantity: int
    taxable: bool
    tax_rate: Optional[Decimal] = None
    properties: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    """An order row as stored, without its items."""

    id: str
    register_id: Optional[str] = None
    platform: Optional[str] = None
    platform_order_id: Optional[str] = None
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discount_amount: Optional[Decimal] = None
    discount_code: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    note: Optional[str] = None
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    cashier_id: Optional[str] = None
    cashier_name: Optional[str] = None
    status: str
    sync_status: str
    sync_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    synced_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocalOrder(OrderOut):
    items: List[OrderItemOut]


class CheckoutResult(BaseModel):
    success: bool
    order_id: str
    platform_order_id: Optional[str] = None
    error: Optional[str] = None
    open_drawer: bool = False
