from decimal import Decimal

import httpx
import pytest

from conftest import item, paid_order
from register_edge.db.models.local_catalog import Product, TaxProfile
from register_edge.db.models.returns import Return


@pytest.fixture
async def lan(container):
    await container.server.start(serve=False)
    transport = httpx.ASGITransport(app=container.server.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://register.local") as client:
        yield client
    await container.server.stop()


async def test_health_is_camel_case(lan):
    response = await lan.get("/api/health")
    body = response.json()
    assert response.status_code == 200
    assert body["ok"] is True
    assert body["registerId"] == "reg-local"
    assert body["registerName"] == "Front Counter"
    assert isinstance(body["timestamp"], int)


async def test_stopped_server_answers_503(container, lan):
    await container.server.stop()
    response = await lan.get("/api/health")
    assert response.status_code == 503
    assert "error" in response.json()


async def test_shared_secret_guards_everything_but_health(container, lan):
    await container.local_api_config.save(shared_secret="s3cret")

    assert (await lan.get("/api/health")).status_code == 200
    denied = await lan.get("/api/orders")
    assert denied.status_code == 401
    assert denied.json() == {"error": "Unauthorized"}
    assert (await lan.get("/api/orders", headers={"x-shared-secret": "wrong"})).status_code == 401
    assert (await lan.get("/api/orders", headers={"x-shared-secret": "s3cret"})).status_code == 200


async def test_unknown_route_is_404(lan):
    response = await lan.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


async def test_orders_routes(container, db, lan):
    paid_id = await paid_order(container, db)
    await container.basket.add_item(db, item("p2"))
    pending = await container.checkout.start_checkout(db)

    listed = (await lan.get("/api/orders")).json()["orders"]
    assert {o["id"] for o in listed} == {paid_id, pending.id}

    filtered = (await lan.get("/api/orders", params={"status": "pending"})).json()["orders"]
    assert [o["id"] for o in filtered] == [pending.id]

    unsynced = await lan.get("/api/orders/unsynced")
    assert unsynced.status_code == 200
    assert [o["id"] for o in unsynced.json()["orders"]] == [paid_id]

    detail = (await lan.get(f"/api/orders/{paid_id}")).json()
    assert detail["order"]["id"] == paid_id
    assert detail["order"]["total"] == "10.79"
    assert detail["items"][0]["product_id"] == "p1"

    missing = await lan.get("/api/orders/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Order not found"}


async def test_handler_exception_is_500(container, lan, monkeypatch):
    async def explode(db, status=None):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(container.checkout, "get_local_orders", explode)
    response = await lan.get("/api/orders")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    # the server keeps answering
    assert (await lan.get("/api/health")).status_code == 200


async def test_catalog_routes(container, db, lan):
    paid_id = await paid_order(container, db)
    db.add_all([
        Product(id="p1", name="Coffee", price=Decimal("3.50"), sku="COF"),
        TaxProfile(id="t1", name="Standard", rate=Decimal("0.08"), is_default=True),
        TaxProfile(id="t2", name="Retired", rate=Decimal("0.05"), active=False),
        Return(id="r1", order_id=paid_id, status="completed", items=[{"product_id": "p1"}], total=Decimal("3.50")),
    ])
    await db.commit()

    products = (await lan.get("/api/products")).json()["products"]
    assert [p["id"] for p in products] == ["p1"]
    assert (await lan.get("/api/products/p1")).json()["product"]["price"] == "3.50"
    assert (await lan.get("/api/products/p404")).status_code == 404

    profiles = (await lan.get("/api/tax-profiles")).json()["taxProfiles"]
    assert [p["id"] for p in profiles] == ["t1"]

    assert [r["id"] for r in (await lan.get("/api/returns", params={"status": "completed"})).json()["returns"]] == ["r1"]
    assert (await lan.get("/api/returns", params={"status": "pending"})).json()["returns"] == []
    by_order = (await lan.get(f"/api/returns/order/{paid_id}")).json()["returns"]
    assert [r["id"] for r in by_order] == ["r1"]


async def test_sync_events_since(container, db, lan):
    await paid_order(container, db)
    events = (await lan.get("/api/sync/events", params={"since": 0})).json()["events"]
    assert [e["type"] for e in events] == ["order_created", "order_paid"]
    assert events[0]["registerId"] == "reg-local"

    later = (await lan.get("/api/sync/events", params={"since": events[0]["timestamp"]})).json()["events"]
    assert [e["id"] for e in later] == [events[1]["id"]]
