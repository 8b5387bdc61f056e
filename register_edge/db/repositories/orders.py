from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from register_edge.core.clock import utcnow
from register_edge.db.models.line_items import OrderItem
from register_edge.db.models.orders import Order, OrderStatus, SyncStatus


async def get_order_by_id(
    db: AsyncSession,
    order_id: str
) -> Optional[Order]:
    result = await db.execute(
        select(Order).where(Order.id == order_id)
    )
    return result.scalar_one_or_none()


async def get_items_for_order(
    db: AsyncSession,
    order_id: str
) -> List[OrderItem]:
    result = await db.execute(
        select(OrderItem)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.line_number)
    )
    return list(result.scalars().all())


async def list_orders(
    db: AsyncSession,
    status: Optional[str] = None
) -> List[Order]:
    query = select(Order).order_by(Order.created_at.desc())
    if status:
        query = query.where(Order.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_unsynced_orders(db: AsyncSession) -> List[Order]:
    result = await db.execute(
        select(Order)
        .where(
            Order.status == OrderStatus.PAID.value,
            Order.sync_status != SyncStatus.SYNCED.value,
        )
        .order_by(Order.created_at.asc())
    )
    return list(result.scalars().all())


async def set_status(
    db: AsyncSession,
    order: Order,
    status: OrderStatus
) -> Order:
    order.status = status.value
    order.updated_at = utcnow()
    await db.flush()
    return order


async def set_paid(
    db: AsyncSession,
    order: Order,
    payment_method: str,
    transaction_id: Optional[str]
) -> Order:
    now = utcnow()
    order.status = OrderStatus.PAID.value
    order.payment_method = payment_method
    order.payment_transaction_id = transaction_id
    order.paid_at = now
    order.updated_at = now
    await db.flush()
    return order


async def set_sync_success(
    db: AsyncSession,
    order: Order,
    platform_order_id: str
) -> Order:
    now = utcnow()
    order.platform_order_id = platform_order_id
    order.status = OrderStatus.SYNCED.value
    order.sync_status = SyncStatus.SYNCED.value
    order.sync_error = None
    order.synced_at = now
    order.updated_at = now
    await db.flush()
    return order


async def set_sync_error(
    db: AsyncSession,
    order: Order,
    sync_status: SyncStatus,
    error_message: Optional[str]
) -> Order:
    order.sync_status = sync_status.value
    order.sync_error = error_message
    order.updated_at = utcnow()
    await db.flush()
    return order


async def delete_order(db: AsyncSession, order_id: str) -> None:
    await db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
    await db.execute(delete(Order).where(Order.id == order_id))
