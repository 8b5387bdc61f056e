from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.base import get_db

from .deps import require_shared_secret

router = APIRouter(prefix="/api/orders", tags=["orders"], dependencies=[Depends(require_shared_secret)])


def _checkout(request: Request):
    return request.app.state.container.checkout


@router.get("")
async def list_orders_endpoint(
    request: Request,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    orders = await _checkout(request).get_local_orders(db, status)
    return {"orders": [o.model_dump(mode="json") for o in orders]}


# registered before /{order_id} so "unsynced" is never read as an order id
@router.get("/unsynced")
async def list_unsynced_orders_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    orders = await _checkout(request).get_unsynced_orders(db)
    return {"orders": [o.model_dump(mode="json") for o in orders]}


@router.get("/{order_id}")
async def get_order_endpoint(
    order_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    order = await _checkout(request).get_local_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    data = order.model_dump(mode="json")
    items = data.pop("items")
    return {"order": data, "items": items}
