from decimal import Decimal
from typing import Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.models.local_catalog import Product
from register_edge.db.models.local_inventory import LocalInventory
from register_edge.db.models.sync_events import SyncReplica
from register_edge.db.repositories.catalog import get_inventory
from register_edge.db.repositories.sync import get_replica

from .schemas import SyncEvent, SyncEventType

logger = structlog.get_logger(__name__)

ENTITY_TYPES = {
    SyncEventType.ORDER_CREATED: "order",
    SyncEventType.ORDER_UPDATED: "order",
    SyncEventType.ORDER_PAID: "order",
    SyncEventType.INVENTORY_UPDATED: "inventory",
    SyncEventType.PRODUCT_UPDATED: "product",
    SyncEventType.SHIFT_OPENED: "shift",
    SyncEventType.SHIFT_CLOSED: "shift",
    SyncEventType.USER_UPDATED: "user",
    SyncEventType.RETURN_CREATED: "return",
    SyncEventType.CONFIG_UPDATED: "config",
}


def _field(payload: dict, snake: str) -> Optional[object]:
    if snake in payload:
        return payload[snake]
    head, *rest = snake.split("_")
    return payload.get(head + "".join(part.title() for part in rest))


def entity_key(event: SyncEvent) -> Tuple[str, str]:
    entity_type = ENTITY_TYPES[event.type]
    payload = event.payload if isinstance(event.payload, dict) else {}

    if entity_type == "inventory":
        product_id = _field(payload, "product_id") or ""
        variant_id = _field(payload, "variant_id") or ""
        return entity_type, f"{product_id}:{variant_id}"
    if entity_type == "config":
        return entity_type, str(payload.get("key") or "register")
    return entity_type, str(payload.get("id") or event.id)


class SyncEventApplier:
    """Applies events pulled from the server register to the local store.

    Conflicts resolve last-writer-wins per entity: an event older than the
    one already applied for the same entity is ignored. Product and
    inventory events also refresh the local catalog snapshot.
    """

    async def apply(self, db: AsyncSession, event: SyncEvent) -> bool:
        """Returns False when a newer version of the entity is already present."""
        entity_type, entity_id = entity_key(event)
        replica = await get_replica(db, entity_type, entity_id)
        if replica is not None and replica.timestamp >= event.timestamp:
            logger.debug(
                "sync_event_stale",
                event_id=event.id,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            return False

        if replica is None:
            replica = SyncReplica(entity_type=entity_type, entity_id=entity_id)
            db.add(replica)
        replica.event_id = event.id
        replica.event_type = event.type.value
        replica.register_id = event.register_id
        replica.payload = event.payload
        replica.timestamp = event.timestamp

        if event.type == SyncEventType.PRODUCT_UPDATED:
            await self._upsert_product(db, event.payload or {})
        elif event.type == SyncEventType.INVENTORY_UPDATED:
            await self._upsert_inventory(db, event.payload or {})

        await db.flush()
        return True

    async def _upsert_product(self, db: AsyncSession, payload: dict) -> None:
        product_id = payload.get("id")
        if not product_id or not payload.get("name"):
            logger.warning("product_event_incomplete", product_id=product_id)
            return

        product = await db.get(Product, product_id)
        if product is None:
            product = Product(id=product_id)
            db.add(product)

        product.name = payload["name"]
        for column in ("platform", "sku", "barcode", "description"):
            value = _field(payload, column)
            if value is not None:
                setattr(product, column, value)
        for column in ("platform_product_id", "category_id"):
            value = _field(payload, column)
            if value is not None:
                setattr(product, column, str(value))
        if _field(payload, "price") is not None:
            product.price = Decimal(str(_field(payload, "price")))
        if _field(payload, "tax_rate") is not None:
            product.tax_rate = Decimal(str(_field(payload, "tax_rate")))
        if _field(payload, "taxable") is not None:
            product.taxable = bool(_field(payload, "taxable"))
        if _field(payload, "active") is not None:
            product.active = bool(_field(payload, "active"))
        product.version = (product.version or 0) + 1

    async def _upsert_inventory(self, db: AsyncSession, payload: dict) -> None:
        product_id = _field(payload, "product_id")
        if not product_id:
            logger.warning("inventory_event_incomplete")
            return
        variant_id = _field(payload, "variant_id") or ""

        row = await get_inventory(db, product_id, variant_id)
        if row is None:
            row = LocalInventory(product_id=product_id, variant_id=variant_id, on_hand=0, reserved=0)
            db.add(row)
        if _field(payload, "on_hand") is not None:
            row.on_hand = int(_field(payload, "on_hand"))
        if _field(payload, "reserved") is not None:
            row.reserved = int(_field(payload, "reserved"))
