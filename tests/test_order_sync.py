import asyncio

from conftest import item, network_error, paid_order, server_error
from register_edge.core.errors import PlatformHTTPError
from register_edge.db.models.orders import OrderStatus, SyncStatus
from register_edge.db.repositories.orders import get_order_by_id
from register_edge.domain.sync.order_sync import is_retryable


async def reload(container, order_id):
    async with container.session_factory() as session:
        return await get_order_by_id(session, order_id)


def test_only_transport_and_server_errors_are_retryable():
    assert is_retryable(network_error())
    assert is_retryable(server_error(502))
    assert not is_retryable(PlatformHTTPError(422))
    assert not is_retryable(ValueError("bad payload"))


async def test_sync_marks_order_synced(container, db, platform):
    order_id = await paid_order(container, db, price="9.99", quantity=2)

    result = await container.order_sync.sync_order_to_platform(order_id)

    assert result.success
    assert result.platform_order_id == f"fake-{order_id[:8]}"
    order = await reload(container, order_id)
    assert order.status == OrderStatus.SYNCED.value
    assert order.sync_status == SyncStatus.SYNCED.value
    assert order.platform_order_id == result.platform_order_id
    assert order.synced_at is not None

    submitted = platform.submitted[0]
    assert submitted.idempotency_key == order_id
    assert str(submitted.total) == "21.58"
    assert submitted.line_items[0].tax_amount == submitted.tax


async def test_synced_order_is_not_sent_twice(container, db, platform):
    order_id = await paid_order(container, db)

    first = await container.order_sync.sync_order_to_platform(order_id)
    second = await container.order_sync.sync_order_to_platform(order_id)

    assert second.success
    assert second.platform_order_id == first.platform_order_id
    assert len(platform.submitted) == 1


async def test_unpaid_and_missing_orders_are_refused(container, db, platform):
    await container.basket.add_item(db, item())
    order = await container.checkout.start_checkout(db)

    unpaid = await container.order_sync.sync_order_to_platform(order.id)
    missing = await container.order_sync.sync_order_to_platform("nope")

    assert not unpaid.success
    assert "paid" in unpaid.error
    assert not missing.success
    assert missing.error == "Order not found"
    assert platform.submitted == []


async def test_server_errors_retry_until_max(container, db, platform):
    order_id = await paid_order(container, db)
    platform.fail_with(server_error(), network_error(), server_error())

    first = await container.order_sync.sync_order_to_platform(order_id)
    assert first.will_retry and first.retry_count == 1
    assert (await reload(container, order_id)).sync_status == SyncStatus.PENDING.value

    second = await container.order_sync.sync_order_to_platform(order_id)
    assert second.will_retry and second.retry_count == 2

    third = await container.order_sync.sync_order_to_platform(order_id)
    assert not third.will_retry
    order = await reload(container, order_id)
    assert order.sync_status == SyncStatus.FAILED.value
    assert order.sync_error
    assert order_id not in container.order_sync.retry_counts

    # no further automatic retries
    summary = await container.order_sync.sync_all_pending_orders()
    assert summary.skipped == 1 and summary.synced == 0
    assert len(platform.submitted) == 3

    retried = await container.order_sync.retry_failed_order(order_id)
    assert retried.success
    assert (await reload(container, order_id)).sync_status == SyncStatus.SYNCED.value


async def test_client_error_fails_immediately(container, db, platform):
    order_id = await paid_order(container, db)
    platform.fail_with(PlatformHTTPError(422, "invalid line items"))

    result = await container.order_sync.sync_order_to_platform(order_id)

    assert not result.success
    assert not result.will_retry
    order = await reload(container, order_id)
    assert order.sync_status == SyncStatus.FAILED.value
    assert order.sync_error == "invalid line items"


async def test_sweep_isolates_failures(container, db, platform):
    first_id = await paid_order(container, db, product_id="p1")
    second_id = await paid_order(container, db, product_id="p2")
    platform.fail_with(PlatformHTTPError(400))

    summary = await container.order_sync.sync_all_pending_orders()

    assert summary.synced == 1
    assert summary.failed == 1
    assert summary.errors[0].order_id == first_id
    assert (await reload(container, second_id)).sync_status == SyncStatus.SYNCED.value


async def test_sweep_is_single_flight(container, db, platform):
    await paid_order(container, db)
    release = asyncio.Event()
    entered = asyncio.Event()
    original = platform.create_order

    async def slow_create(order):
        entered.set()
        await release.wait()
        return await original(order)

    platform.create_order = slow_create
    running = asyncio.create_task(container.order_sync.sync_all_pending_orders())
    await entered.wait()

    concurrent = await container.order_sync.sync_all_pending_orders()
    assert concurrent.synced == concurrent.failed == 0

    release.set()
    summary = await running
    assert summary.synced == 1


async def test_order_already_syncing_is_not_submitted_twice(container, db, platform):
    order_id = await paid_order(container, db)
    release = asyncio.Event()
    entered = asyncio.Event()
    original = platform.create_order

    async def slow_create(order):
        entered.set()
        await release.wait()
        return await original(order)

    platform.create_order = slow_create
    running = asyncio.create_task(container.order_sync.sync_all_pending_orders())
    await entered.wait()

    assert container.order_sync.is_syncing(order_id)
    concurrent = await container.order_sync.sync_order_to_platform(order_id)
    assert not concurrent.success
    assert concurrent.in_progress
    assert len(platform.submitted) == 1
    assert order_id not in container.order_sync.retry_counts

    release.set()
    summary = await running
    assert summary.synced == 1
    assert len(platform.submitted) == 1
    assert not container.order_sync.is_syncing(order_id)
    assert (await reload(container, order_id)).sync_status == SyncStatus.SYNCED.value


async def test_background_sweep_runs_on_start(container, db, platform):
    order_id = await paid_order(container, db)
    synced = asyncio.Event()
    container.events.on_any(lambda event: synced.set())

    container.background.start()
    try:
        await asyncio.wait_for(synced.wait(), timeout=2)
    finally:
        await container.background.stop()

    assert not container.background.is_running
    assert (await reload(container, order_id)).sync_status == SyncStatus.SYNCED.value
