from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.base import get_db
from register_edge.domain.checkout.schemas import (
    CheckoutResult,
    CompletePayment,
    LocalOrder,
    StartCheckout,
)

router = APIRouter(prefix="/api/v1", tags=["checkout"])


def _checkout(request: Request):
    return request.app.state.container.checkout


@router.post("/checkout", response_model=LocalOrder)
async def start_checkout_endpoint(
    payload: StartCheckout,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await _checkout(request).start_checkout(
        db,
        platform=payload.platform,
        cashier_id=payload.cashier_id,
        cashier_name=payload.cashier_name,
    )


@router.get("/orders", response_model=List[LocalOrder])
async def list_orders_endpoint(
    request: Request,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _checkout(request).get_local_orders(db, status)


@router.get("/orders/unsynced", response_model=List[LocalOrder])
async def list_unsynced_orders_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    return await _checkout(request).get_unsynced_orders(db)


@router.get("/orders/{order_id}", response_model=LocalOrder)
async def get_order_endpoint(order_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    order = await _checkout(request).get_local_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/orders/{order_id}/processing", response_model=LocalOrder)
async def mark_processing_endpoint(order_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await _checkout(request).mark_payment_processing(db, order_id)


@router.post("/orders/{order_id}/payment", response_model=CheckoutResult)
async def complete_payment_endpoint(
    order_id: str,
    payload: CompletePayment,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    result = await _checkout(request).complete_payment(
        db, order_id, payload.payment_method, payload.transaction_id
    )
    if result.success:
        # push straight away; the background sweep picks it up if this fails
        await request.app.state.container.order_sync.sync_order_to_platform(order_id)
    return result


@router.post("/orders/{order_id}/cancel", response_model=LocalOrder)
async def cancel_order_endpoint(order_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await _checkout(request).cancel_order(db, order_id)


@router.delete("/orders/{order_id}", status_code=204)
async def delete_order_endpoint(order_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    await _checkout(request).delete_order(db, order_id)
