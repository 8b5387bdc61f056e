from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel


class ProductOut(BaseModel):
    id: str
    platform: Optional[str] = None
    platform_product_id: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    name: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    price: Decimal
    taxable: bool
    tax_rate: Optional[Decimal] = None
    active: bool
    version: int
    updated_at: datetime

    class Config:
        from_attributes = True


class TaxProfileOut(BaseModel):
    id: str
    name: str
    rate: Decimal
    is_default: bool

    class Config:
        from_attributes = True


class ReturnOut(BaseModel):
    id: str
    order_id: str
    status: str
    items: List[Any]
    total: Decimal
    reason: Optional[str] = None
    refund_method: Optional[str] = None
    cashier_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
