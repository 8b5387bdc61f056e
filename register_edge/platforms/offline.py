from typing import Dict

import structlog

from .base import CreatedPlatformOrder, PlatformOrder

logger = structlog.get_logger(__name__)


class OfflineOrderService:
    """Local-only platform: the register itself is the system of record.

    Orders are "accepted" immediately and keyed by their idempotency key, so
    a repeated submission returns the same platform order id.
    """

    name = "offline"

    def __init__(self):
        self._accepted: Dict[str, str] = {}

    async def create_order(self, order: PlatformOrder) -> CreatedPlatformOrder:
        platform_order_id = self._accepted.get(order.idempotency_key)
        if platform_order_id is None:
            platform_order_id = f"local-order-{order.idempotency_key}"
            self._accepted[order.idempotency_key] = platform_order_id
            logger.info("offline_order_accepted", platform_order_id=platform_order_id)
        return CreatedPlatformOrder(platform_order_id=platform_order_id)
