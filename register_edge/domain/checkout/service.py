from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.core.errors import EmptyBasketError, InvalidOrderStateError, OrderNotFoundError
from register_edge.db.models.line_items import OrderItem
from register_edge.db.models.orders import Order, OrderStatus, SyncStatus
from register_edge.db.repositories import orders as orders_repo
from register_edge.domain.basket.schemas import BasketItem
from register_edge.domain.basket.service import BasketService
from register_edge.localapi.events import SyncEventBus
from register_edge.localapi.schemas import SyncEventType

from .schemas import CheckoutResult, LocalOrder, OrderItemOut, OrderOut

logger = structlog.get_logger(__name__)

PROCESSABLE = {OrderStatus.PENDING.value, OrderStatus.PROCESSING.value, OrderStatus.FAILED.value}
PAYABLE = PROCESSABLE


async def load_local_order(db: AsyncSession, order: Order) -> LocalOrder:
    items = await orders_repo.get_items_for_order(db, order.id)
    return LocalOrder(
        **OrderOut.model_validate(order).model_dump(),
        items=[OrderItemOut.model_validate(i) for i in items],
    )


def order_payload(order: Order) -> dict:
    return OrderOut.model_validate(order).model_dump(mode="json")


class CheckoutService:
    """Turns the active basket into an order and drives it through payment.

    State machine::

        pending -> processing -> paid -> synced
        pending | processing -> failed
        any non-terminal -> cancelled

    ``synced`` and ``cancelled`` are terminal. Every transition appends a sync
    event in the same transaction as the row change.
    """

    def __init__(
        self,
        basket: BasketService,
        events: SyncEventBus,
        drawer_open_on_cash: bool = True,
    ):
        self.basket = basket
        self.events = events
        self.drawer_open_on_cash = drawer_open_on_cash

    async def start_checkout(
        self,
        db: AsyncSession,
        platform: Optional[str] = None,
        cashier_id: Optional[str] = None,
        cashier_name: Optional[str] = None,
    ) -> LocalOrder:
        async with self.basket.lock:
            basket = await self.basket.active_in_session(db)
            items = [BasketItem.model_validate(raw) for raw in basket.items or []]
            if not items:
                await db.rollback()
                raise EmptyBasketError()

            order = Order(
                register_id=self.events.config.current.register_id,
                platform=platform,
                subtotal=basket.subtotal,
                tax=basket.tax,
                total=basket.total,
                discount_amount=basket.discount_amount,
                discount_code=basket.discount_code,
                customer_email=basket.customer_email,
                customer_name=basket.customer_name,
                note=basket.note,
                cashier_id=cashier_id,
                cashier_name=cashier_name,
                status=OrderStatus.PENDING.value,
                sync_status=SyncStatus.PENDING.value,
            )
            db.add(order)
            await db.flush()

            for line_number, item in enumerate(items, start=1):
                db.add(OrderItem(
                    order_id=order.id,
                    line_number=line_number,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    sku=item.sku,
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                    taxable=item.taxable,
                    tax_rate=item.tax_rate,
                    properties=item.properties,
                ))
            await db.flush()

            event = await self.events.append(db, SyncEventType.ORDER_CREATED, order_payload(order))
            await db.commit()
        await self.events.dispatch(event)

        logger.info("checkout_started", order_id=order.id, total=str(order.total), items=len(items))
        return await load_local_order(db, order)

    async def mark_payment_processing(self, db: AsyncSession, order_id: str) -> LocalOrder:
        order = await self._get_order(db, order_id)
        if order.status not in PROCESSABLE:
            raise InvalidOrderStateError(order_id, order.status, "start payment for")

        await orders_repo.set_status(db, order, OrderStatus.PROCESSING)
        event = await self.events.append(db, SyncEventType.ORDER_UPDATED, order_payload(order))
        await db.commit()
        await self.events.dispatch(event)
        return await load_local_order(db, order)

    async def complete_payment(
        self,
        db: AsyncSession,
        order_id: str,
        payment_method: str,
        transaction_id: Optional[str] = None,
    ) -> CheckoutResult:
        order = await self._get_order(db, order_id)
        if order.status not in PAYABLE:
            raise InvalidOrderStateError(order_id, order.status, "complete payment for")

        async with self.basket.lock:
            try:
                await orders_repo.set_paid(db, order, payment_method, transaction_id)
                await self.basket.retire_in_session(db)
                event = await self.events.append(db, SyncEventType.ORDER_PAID, order_payload(order))
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.error("payment_completion_failed", order_id=order_id, error=str(exc))
                await self._force_failed(db, order_id)
                return CheckoutResult(success=False, order_id=order_id, error=str(exc))

        await self.events.dispatch(event)

        is_cash = payment_method.lower() == "cash"
        logger.info("payment_completed", order_id=order_id, payment_method=payment_method)
        return CheckoutResult(
            success=True,
            order_id=order_id,
            open_drawer=is_cash and self.drawer_open_on_cash,
        )

    async def cancel_order(self, db: AsyncSession, order_id: str) -> LocalOrder:
        order = await self._get_order(db, order_id)
        if order.status == OrderStatus.SYNCED.value:
            raise InvalidOrderStateError(order_id, order.status, "cancel")
        if order.status != OrderStatus.CANCELLED.value:
            await orders_repo.set_status(db, order, OrderStatus.CANCELLED)
            event = await self.events.append(db, SyncEventType.ORDER_UPDATED, order_payload(order))
            await db.commit()
            await self.events.dispatch(event)
            logger.info("order_cancelled", order_id=order_id)
        return await load_local_order(db, order)

    async def delete_order(self, db: AsyncSession, order_id: str) -> None:
        await self._get_order(db, order_id)
        await orders_repo.delete_order(db, order_id)
        await db.commit()
        logger.info("order_deleted", order_id=order_id)

    async def get_local_orders(
        self, db: AsyncSession, status: Optional[str] = None
    ) -> List[LocalOrder]:
        rows = await orders_repo.list_orders(db, status)
        return [await load_local_order(db, row) for row in rows]

    async def get_unsynced_orders(self, db: AsyncSession) -> List[LocalOrder]:
        rows = await orders_repo.list_unsynced_orders(db)
        return [await load_local_order(db, row) for row in rows]

    async def get_local_order(self, db: AsyncSession, order_id: str) -> Optional[LocalOrder]:
        order = await orders_repo.get_order_by_id(db, order_id)
        if order is None:
            return None
        return await load_local_order(db, order)

    async def _get_order(self, db: AsyncSession, order_id: str) -> Order:
        order = await orders_repo.get_order_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _force_failed(self, db: AsyncSession, order_id: str) -> None:
        order = await orders_repo.get_order_by_id(db, order_id)
        if order is None:
            return
        await orders_repo.set_status(db, order, OrderStatus.FAILED)
        await db.commit()
        logger.warning("order_marked_failed", order_id=order_id)
