from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AddItem(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, gt=0)
    taxable: bool = True
    tax_rate: Optional[Decimal] = Field(default=None, ge=0)
    properties: Optional[Dict[str, str]] = None


class BasketItem(AddItem):
    id: str


class UpdateQuantity(BaseModel):
    quantity: int


class ApplyDiscount(BaseModel):
    code: str
    amount: Decimal = Field(default=Decimal("0"), ge=0)


class SetCustomer(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class SetNote(BaseModel):
    note: str


class BasketOut(BaseModel):
    id: str
    items: List[BasketItem]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discount_code: Optional[str] = None
    discount_amount: Optional[Decimal] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
