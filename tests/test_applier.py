from register_edge.db.models.local_catalog import Product
from register_edge.db.repositories.sync import get_replica
from register_edge.localapi.applier import SyncEventApplier, entity_key
from register_edge.localapi.schemas import SyncEvent, SyncEventType


def event(timestamp, type, payload, id=None):
    return SyncEvent(
        id=id or f"evt_{timestamp}",
        type=type,
        register_id="reg-server",
        payload=payload,
        timestamp=timestamp,
    )


def test_entity_keys():
    assert entity_key(event(1, SyncEventType.ORDER_PAID, {"id": "o1"})) == ("order", "o1")
    assert entity_key(event(1, SyncEventType.INVENTORY_UPDATED, {"product_id": "p1", "variant_id": "v"})) == (
        "inventory", "p1:v",
    )
    assert entity_key(event(1, SyncEventType.CONFIG_UPDATED, None)) == ("config", "register")


async def test_last_writer_wins(db):
    applier = SyncEventApplier()
    newer = event(200, SyncEventType.PRODUCT_UPDATED, {"id": "p1", "name": "Tea", "price": "2.00"})
    older = event(100, SyncEventType.PRODUCT_UPDATED, {"id": "p1", "name": "Old Tea", "price": "1.00"})

    assert await applier.apply(db, newer) is True
    assert await applier.apply(db, older) is False
    await db.commit()

    replica = await get_replica(db, "product", "p1")
    assert replica.event_id == "evt_200"
    product = await db.get(Product, "p1")
    assert product.name == "Tea"


async def test_same_timestamp_is_not_reapplied(db):
    applier = SyncEventApplier()
    first = event(100, SyncEventType.ORDER_UPDATED, {"id": "o1", "status": "paid"})
    assert await applier.apply(db, first)
    assert not await applier.apply(db, first)


async def test_incomplete_product_only_updates_replica(db):
    applier = SyncEventApplier()
    assert await applier.apply(db, event(1, SyncEventType.PRODUCT_UPDATED, {"id": "p9"}))
    await db.commit()
    assert await db.get(Product, "p9") is None
    assert await get_replica(db, "product", "p9") is not None
