from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.base import get_db
from register_edge.domain.basket.schemas import (
    AddItem,
    ApplyDiscount,
    BasketOut,
    SetCustomer,
    SetNote,
    UpdateQuantity,
)

router = APIRouter(prefix="/api/v1/basket", tags=["basket"])


def _basket(request: Request):
    return request.app.state.container.basket


@router.get("", response_model=BasketOut)
async def get_basket_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    return await _basket(request).get_or_create_active(db)


@router.post("/items", response_model=BasketOut)
async def add_item_endpoint(
    payload: AddItem,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await _basket(request).add_item(db, payload)


@router.patch("/items/{item_id}", response_model=BasketOut)
async def update_quantity_endpoint(
    item_id: str,
    payload: UpdateQuantity,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    # quantity <= 0 removes the line
    return await _basket(request).set_item_quantity(db, item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=BasketOut)
async def remove_item_endpoint(item_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await _basket(request).remove_item(db, item_id)


@router.put("/discount", response_model=BasketOut)
async def apply_discount_endpoint(
    payload: ApplyDiscount,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await _basket(request).apply_discount(db, payload.code, payload.amount)


@router.delete("/discount", response_model=BasketOut)
async def remove_discount_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    return await _basket(request).remove_discount(db)


@router.put("/customer", response_model=BasketOut)
async def set_customer_endpoint(
    payload: SetCustomer,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await _basket(request).set_customer(db, payload.email, payload.name)


@router.put("/note", response_model=BasketOut)
async def set_note_endpoint(payload: SetNote, request: Request, db: AsyncSession = Depends(get_db)):
    return await _basket(request).set_note(db, payload.note)


@router.delete("", response_model=BasketOut)
async def clear_basket_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    return await _basket(request).clear(db)
