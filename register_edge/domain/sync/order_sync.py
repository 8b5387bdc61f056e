from decimal import Decimal
from typing import Dict, List, Optional, Set

import httpx
import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from register_edge.core.errors import OrderNotFoundError, PlatformHTTPError, PlatformTransportError
from register_edge.core.money import calculate_line_total
from register_edge.db.models.orders import OrderStatus, SyncStatus
from register_edge.db.repositories import orders as orders_repo
from register_edge.domain.checkout.schemas import LocalOrder, OrderItemOut
from register_edge.domain.checkout.service import load_local_order, order_payload
from register_edge.localapi.events import SyncEventBus
from register_edge.localapi.schemas import SyncEventType
from register_edge.platforms.base import PlatformDiscount, PlatformLineItem, PlatformOrder
from register_edge.platforms.registry import PlatformRegistry

from .schemas import SyncError, SyncOrderResult, SyncSummary

logger = structlog.get_logger(__name__)


def is_retryable(error: BaseException) -> bool:
    """Transport failures and 5xx answers are worth retrying; nothing else is."""
    if isinstance(error, (PlatformTransportError, httpx.TransportError)):
        return True
    if isinstance(error, PlatformHTTPError):
        return error.status_code >= 500
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return False


def items_to_line_items(items: List[OrderItemOut], default_tax_rate: Decimal) -> List[PlatformLineItem]:
    line_items = []
    for item in items:
        rate = item.tax_rate if item.tax_rate is not None else default_tax_rate
        line_total, tax_amount = calculate_line_total(item.price, item.quantity, item.taxable, rate)
        line_items.append(PlatformLineItem(
            product_id=item.product_id,
            variant_id=item.variant_id,
            sku=item.sku,
            name=item.name,
            quantity=item.quantity,
            price=item.price,
            taxable=item.taxable,
            tax_rate=rate,
            tax_amount=tax_amount,
            total=line_total,
            properties=item.properties,
        ))
    return line_items


def build_platform_order(
    order: LocalOrder, default_tax_rate: Decimal, currency: Optional[str] = None
) -> PlatformOrder:
    discounts = None
    if order.discount_code:
        discounts = [PlatformDiscount(
            code=order.discount_code,
            amount=order.discount_amount or Decimal("0"),
        )]
    return PlatformOrder(
        idempotency_key=order.id,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        line_items=items_to_line_items(order.items, default_tax_rate),
        subtotal=order.subtotal,
        tax=order.tax,
        total=order.total,
        discounts=discounts,
        payment_status="paid",
        payment_method=order.payment_method,
        note=order.note,
        currency=currency,
        created_at=order.created_at,
    )


class OrderSyncEngine:
    """Pushes paid orders to their e-commerce platform.

    Delivery is at-least-once: an order already marked synced is never sent
    again, and the local order id travels as the platform idempotency key.
    Retry counts are kept in memory and reset when the process restarts.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        platforms: PlatformRegistry,
        events: SyncEventBus,
        default_tax_rate: Decimal,
        max_retries: int = 3,
        currency: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.platforms = platforms
        self.events = events
        self.default_tax_rate = default_tax_rate
        self.max_retries = max_retries
        self.currency = currency
        self.retry_counts: Dict[str, int] = {}
        self._sweeping = False
        self._in_flight: Set[str] = set()

    @property
    def is_sweeping(self) -> bool:
        return self._sweeping

    def is_syncing(self, order_id: str) -> bool:
        return order_id in self._in_flight

    async def sync_order_to_platform(self, order_id: str) -> SyncOrderResult:
        """Submit one order. A second call for an order already being submitted
        returns ``in_progress`` without touching the platform."""
        if order_id in self._in_flight:
            logger.info("order_sync_in_progress", order_id=order_id)
            return SyncOrderResult(
                success=False, order_id=order_id, error="Order sync already in progress", in_progress=True
            )

        self._in_flight.add(order_id)
        try:
            return await self._sync_order(order_id)
        finally:
            self._in_flight.discard(order_id)

    async def _sync_order(self, order_id: str) -> SyncOrderResult:
        async with self.session_factory() as db:
            order = await orders_repo.get_order_by_id(db, order_id)
            if order is None:
                return SyncOrderResult(success=False, order_id=order_id, error="Order not found")

            if order.sync_status == SyncStatus.SYNCED.value:
                return SyncOrderResult(
                    success=True, order_id=order_id, platform_order_id=order.platform_order_id
                )

            if order.status != OrderStatus.PAID.value:
                return SyncOrderResult(
                    success=False, order_id=order_id, error="Order must be paid before syncing"
                )

            local_order = await load_local_order(db, order)
            payload = build_platform_order(local_order, self.default_tax_rate, self.currency)

            try:
                service = self.platforms.get(order.platform)
                created = await service.create_order(payload)
            except Exception as exc:
                return await self._record_failure(db, order, exc)

            await orders_repo.set_sync_success(db, order, created.platform_order_id)
            event = await self.events.append(db, SyncEventType.ORDER_UPDATED, order_payload(order))
            await db.commit()
            self.retry_counts.pop(order_id, None)

        await self.events.dispatch(event)
        logger.info(
            "order_synced",
            order_id=order_id,
            platform=order.platform or self.platforms.default,
            platform_order_id=created.platform_order_id,
        )
        return SyncOrderResult(
            success=True, order_id=order_id, platform_order_id=created.platform_order_id
        )

    async def sync_all_pending_orders(self) -> SyncSummary:
        if self._sweeping:
            logger.info("order_sync_already_running")
            return SyncSummary()

        self._sweeping = True
        summary = SyncSummary()
        try:
            async with self.session_factory() as db:
                unsynced = await orders_repo.list_unsynced_orders(db)
                order_ids = [
                    (o.id, o.sync_status) for o in unsynced
                ]

            for order_id, sync_status in order_ids:
                if sync_status == SyncStatus.FAILED.value:
                    # exhausted automatic retries; needs retry_failed_order
                    summary.skipped += 1
                    continue
                try:
                    result = await self.sync_order_to_platform(order_id)
                except Exception as exc:
                    logger.exception("order_sync_crashed", order_id=order_id)
                    result = SyncOrderResult(success=False, order_id=order_id, error=str(exc))

                if result.in_progress:
                    summary.skipped += 1
                elif result.success:
                    summary.synced += 1
                else:
                    summary.failed += 1
                    summary.errors.append(SyncError(order_id=order_id, error=result.error or "Unknown error"))
        finally:
            self._sweeping = False

        if summary.synced or summary.failed:
            logger.info("order_sync_completed", synced=summary.synced, failed=summary.failed)
        return summary

    async def retry_failed_order(self, order_id: str) -> SyncOrderResult:
        """Operator action: put a permanently failed order back in the sync queue."""
        if self.is_syncing(order_id):
            return await self.sync_order_to_platform(order_id)
        async with self.session_factory() as db:
            order = await orders_repo.get_order_by_id(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.sync_status == SyncStatus.FAILED.value:
                await orders_repo.set_sync_error(db, order, SyncStatus.PENDING, order.sync_error)
                await db.commit()
        self.retry_counts.pop(order_id, None)
        return await self.sync_order_to_platform(order_id)

    async def _record_failure(self, db, order, error: Exception) -> SyncOrderResult:
        order_id = order.id
        message = str(error) or error.__class__.__name__
        logger.warning(
            "order_sync_failed",
            order_id=order_id,
            error=message,
            error_type=error.__class__.__name__,
        )

        if is_retryable(error):
            retries = self.retry_counts.get(order_id, 0) + 1
            self.retry_counts[order_id] = retries
            if retries < self.max_retries:
                await orders_repo.set_sync_error(db, order, SyncStatus.PENDING, message)
                await db.commit()
                logger.info("order_sync_retry_scheduled", order_id=order_id, retries=retries, max_retries=self.max_retries)
                return SyncOrderResult(
                    success=False,
                    order_id=order_id,
                    error=f"Order queued for retry ({retries}/{self.max_retries}): {message}",
                    will_retry=True,
                    retry_count=retries,
                )
        else:
            retries = self.retry_counts.get(order_id, 0)

        await orders_repo.set_sync_error(db, order, SyncStatus.FAILED, message)
        event = await self.events.append(db, SyncEventType.ORDER_UPDATED, order_payload(order))
        await db.commit()
        self.retry_counts.pop(order_id, None)
        await self.events.dispatch(event)
        return SyncOrderResult(success=False, order_id=order_id, error=message, retry_count=retries)
