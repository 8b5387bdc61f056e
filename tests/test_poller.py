from decimal import Decimal

import httpx
import pytest

from conftest import make_container
from register_edge.core.clock import now_ms
from register_edge.db.models.local_catalog import Product
from register_edge.db.repositories.catalog import get_inventory
from register_edge.db.repositories.sync import get_cursor
from register_edge.localapi.schemas import SyncEventType


def wire_event(timestamp, type, payload, register_id="reg-server"):
    return {
        "id": f"evt_{timestamp}",
        "type": type.value,
        "registerId": register_id,
        "registerName": "Back Office",
        "payload": payload,
        "timestamp": timestamp,
    }


class EventServer:
    def __init__(self):
        self.events = []
        self.since = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/sync/events"
        since = int(request.url.params["since"])
        self.since.append(since)
        newer = [e for e in self.events if e["timestamp"] > since]
        # deliberately out of order
        return httpx.Response(200, json={"events": list(reversed(newer))})


@pytest.fixture
async def client_register(tmp_path):
    server = EventServer()
    container, _ = await make_container(
        tmp_path,
        server,
        LOCAL_API_MODE="client",
        LOCAL_API_SERVER_ADDRESS="10.0.0.7",
    )
    yield container, server
    await container.aclose()


async def test_applies_events_in_order_and_persists_mark(client_register):
    container, server = client_register
    base = now_ms()
    server.events = [
        wire_event(base + 1, SyncEventType.PRODUCT_UPDATED, {"id": "p1", "name": "Coffee", "price": "3.00"}),
        wire_event(base + 2, SyncEventType.PRODUCT_UPDATED, {"id": "p1", "name": "Coffee", "price": "3.50"}),
        wire_event(base + 3, SyncEventType.INVENTORY_UPDATED, {"productId": "p1", "onHand": 12}),
    ]
    received = []
    container.events.on_any(lambda event: received.append(event.timestamp))

    applied = await container.poller.poll_once()

    assert applied == 3
    assert received == [base + 1, base + 2, base + 3]
    assert container.poller.last_timestamp == base + 3
    async with container.session_factory() as db:
        product = await db.get(Product, "p1")
        assert product.price == Decimal("3.50")
        inventory = await get_inventory(db, "p1")
        assert inventory.on_hand == 12
        cursor = await get_cursor(db, container.poller.stream_name)
        assert cursor.last_event_timestamp == base + 3
        assert cursor.last_event_id == f"evt_{base + 3}"

    assert await container.poller.poll_once() == 0
    assert server.since[-1] == base + 3


async def test_first_poll_looks_back(client_register):
    container, server = client_register
    before = now_ms()
    await container.poller.poll_once()
    lookback = 60_000
    assert before - lookback <= server.since[0] <= now_ms() - lookback


async def test_restart_resumes_from_stored_mark(client_register):
    container, server = client_register
    base = now_ms()
    server.events = [wire_event(base, SyncEventType.ORDER_PAID, {"id": "o1"})]
    await container.poller.poll_once()

    container.poller.last_timestamp = None
    await container.poller.poll_once()
    assert server.since[-1] == base


async def test_own_events_are_skipped_but_advance_the_mark(client_register):
    container, server = client_register
    base = now_ms()
    server.events = [
        wire_event(base + 1, SyncEventType.ORDER_PAID, {"id": "mine"}, register_id="reg-local"),
        wire_event(base + 2, SyncEventType.ORDER_PAID, {"id": "theirs"}),
    ]
    received = []
    container.events.on_any(lambda event: received.append(event.payload["id"]))

    applied = await container.poller.poll_once()

    assert applied == 1
    assert received == ["theirs"]
    assert container.poller.last_timestamp == base + 2


async def test_apply_failure_stops_at_that_event_and_backs_off(client_register, monkeypatch):
    container, server = client_register
    base = now_ms()
    server.events = [
        wire_event(base + 1, SyncEventType.ORDER_PAID, {"id": "o1"}),
        wire_event(base + 2, SyncEventType.ORDER_PAID, {"id": "o2"}),
        wire_event(base + 3, SyncEventType.ORDER_PAID, {"id": "o3"}),
    ]
    poller = container.poller
    original = poller.applier.apply

    async def flaky(db, event):
        if event.payload["id"] == "o2":
            raise RuntimeError("constraint failed")
        return await original(db, event)

    monkeypatch.setattr(poller.applier, "apply", flaky)

    assert await poller.task.run_once() is False
    assert poller.last_timestamp == base + 1
    assert poller.task.consecutive_errors == 1
    assert poller.task.next_delay() == 6.0

    monkeypatch.undo()
    assert await poller.task.run_once() is True
    assert poller.last_timestamp == base + 3
    assert poller.task.next_delay() == 3.0


async def test_unreachable_server_counts_as_failure(tmp_path):
    def down(request):
        raise httpx.ConnectError("refused", request=request)

    container, _ = await make_container(
        tmp_path, down, LOCAL_API_MODE="client", LOCAL_API_SERVER_ADDRESS="10.0.0.7"
    )
    try:
        task = container.poller.task
        for _ in range(5):
            await task.run_once()
        assert task.consecutive_errors == 5
        assert task.next_delay() == 30.0
    finally:
        await container.aclose()


async def test_poller_only_starts_in_client_mode(container):
    container.poller.start()
    assert not container.poller.is_running
