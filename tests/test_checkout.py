import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import item, paid_order
from register_edge.core.errors import EmptyBasketError, InvalidOrderStateError, OrderNotFoundError
from register_edge.db.models.orders import OrderStatus, SyncStatus
from register_edge.localapi.schemas import SyncEventType


async def test_checkout_totals(container, db):
    await container.basket.add_item(db, item("p1", "9.99", 2))

    order = await container.checkout.start_checkout(db)

    assert order.subtotal == Decimal("19.98")
    assert order.tax == Decimal("1.60")
    assert order.total == Decimal("21.58")
    assert order.status == OrderStatus.PENDING.value
    assert order.sync_status == SyncStatus.PENDING.value
    assert order.register_id == "reg-local"
    assert [i.line_number for i in order.items] == [1]
    assert order.items[0].quantity == 2


async def test_empty_basket_cannot_checkout(container, db):
    with pytest.raises(EmptyBasketError):
        await container.checkout.start_checkout(db)
    assert await container.checkout.get_local_orders(db) == []


async def test_payment_lifecycle_and_basket_reset(container, db):
    await container.basket.add_item(db, item("p1", "4.00", 1))
    order = await container.checkout.start_checkout(db)

    processing = await container.checkout.mark_payment_processing(db, order.id)
    assert processing.status == OrderStatus.PROCESSING.value

    result = await container.checkout.complete_payment(db, order.id, "card", "txn-1")
    assert result.success
    assert result.open_drawer is False

    stored = await container.checkout.get_local_order(db, order.id)
    assert stored.status == OrderStatus.PAID.value
    assert stored.payment_method == "card"
    assert stored.payment_transaction_id == "txn-1"
    assert stored.paid_at is not None

    basket = await container.basket.get_or_create_active(db)
    assert basket.items == []


async def test_cash_payment_opens_drawer(container, db):
    await container.basket.add_item(db, item())
    order = await container.checkout.start_checkout(db)
    result = await container.checkout.complete_payment(db, order.id, "cash")
    assert result.open_drawer is True


async def test_persistence_failure_marks_order_failed(container, db, monkeypatch):
    await container.basket.add_item(db, item())
    order = await container.checkout.start_checkout(db)

    async def broken(session):
        raise OperationalError("UPDATE baskets", {}, Exception("disk I/O error"))

    monkeypatch.setattr(container.basket, "retire_in_session", broken)
    result = await container.checkout.complete_payment(db, order.id, "card")

    assert result.success is False
    assert "disk I/O error" in result.error
    stored = await container.checkout.get_local_order(db, order.id)
    assert stored.status == OrderStatus.FAILED.value

    # a failed payment can be completed on a second attempt
    monkeypatch.undo()
    retry = await container.checkout.complete_payment(db, order.id, "card")
    assert retry.success


async def test_cannot_pay_cancelled_order(container, db):
    await container.basket.add_item(db, item())
    order = await container.checkout.start_checkout(db)
    await container.checkout.cancel_order(db, order.id)

    with pytest.raises(InvalidOrderStateError):
        await container.checkout.complete_payment(db, order.id, "card")


async def test_cancel_is_idempotent_but_refuses_synced(container, db):
    order_id = await paid_order(container, db)
    await container.order_sync.sync_order_to_platform(order_id)
    # the sync engine committed through its own session
    db.expire_all()

    with pytest.raises(InvalidOrderStateError):
        await container.checkout.cancel_order(db, order_id)

    await container.basket.add_item(db, item())
    other = await container.checkout.start_checkout(db)
    first = await container.checkout.cancel_order(db, other.id)
    second = await container.checkout.cancel_order(db, other.id)
    assert first.status == second.status == OrderStatus.CANCELLED.value


async def test_delete_order_removes_items(container, db):
    await container.basket.add_item(db, item())
    order = await container.checkout.start_checkout(db)
    await container.checkout.delete_order(db, order.id)

    assert await container.checkout.get_local_order(db, order.id) is None
    with pytest.raises(OrderNotFoundError):
        await container.checkout.delete_order(db, order.id)


async def test_unsynced_orders_are_paid_and_pending(container, db):
    paid_id = await paid_order(container, db)
    await container.basket.add_item(db, item())
    await container.checkout.start_checkout(db)

    unsynced = await container.checkout.get_unsynced_orders(db)
    assert [o.id for o in unsynced] == [paid_id]


async def test_each_transition_appends_an_event(container, db):
    seen = []
    container.events.on_any(lambda event: seen.append(event.type))

    await paid_order(container, db)

    assert seen == [SyncEventType.ORDER_CREATED, SyncEventType.ORDER_PAID]
    events = await container.events.get_events_since(db, 0)
    assert [e.type for e in events] == seen


async def test_item_added_during_payment_lands_in_the_fresh_basket(container, db):
    await container.basket.add_item(db, item("p1", "4.00", 1))
    order = await container.checkout.start_checkout(db)

    entered = asyncio.Event()
    release = asyncio.Event()
    retire = container.basket.retire_in_session

    async def slow_retire(session):
        entered.set()
        await release.wait()
        return await retire(session)

    container.basket.retire_in_session = slow_retire
    paying = asyncio.create_task(container.checkout.complete_payment(db, order.id, "card"))
    await entered.wait()

    async with container.session_factory() as other:
        adding = asyncio.create_task(container.basket.add_item(other, item("p2", "2.50", 1)))
        await asyncio.sleep(0.05)
        assert not adding.done()

        release.set()
        assert (await paying).success
        added = await adding

    assert [i.product_id for i in added.items] == ["p2"]
    async with container.session_factory() as fresh:
        basket = await container.basket.get_or_create_active(fresh)
    assert [i.product_id for i in basket.items] == ["p2"]
