from typing import Dict, Optional

import httpx
import structlog

from register_edge.core.errors import PlatformError, PlatformHTTPError, PlatformTransportError

from .base import CreatedPlatformOrder, PlatformOrder

logger = structlog.get_logger(__name__)


class HttpOrderService:
    """Generic REST integration: ``POST {base_url}/orders`` with a JSON order.

    The response must carry the created order's id as ``id`` or
    ``platform_order_id`` (top level or under ``order``). The idempotency key
    goes out as both ``Idempotency-Key`` and ``X-Request-ID``.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient,
        token: Optional[str] = None,
        name: str = "http",
        timeout: float = 15.0,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.token = token
        self.timeout = timeout

    def _headers(self, order: PlatformOrder) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": order.idempotency_key,
            "X-Request-ID": order.idempotency_key,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def create_order(self, order: PlatformOrder) -> CreatedPlatformOrder:
        url = f"{self.base_url}/orders"
        try:
            response = await self.client.post(
                url,
                json={"order": order.model_dump(mode="json")},
                headers=self._headers(order),
                timeout=self.timeout,
            )
        except httpx.TransportError as exc:
            raise PlatformTransportError(f"POST {url} failed: {exc!r}") from exc

        if response.status_code >= 400:
            logger.warning(
                "platform_order_rejected",
                platform=self.name,
                status_code=response.status_code,
                idempotency_key=order.idempotency_key,
            )
            raise PlatformHTTPError(
                response.status_code,
                f"Failed to create order on {self.name}: status {response.status_code}",
            )

        data = response.json()
        created = data.get("order", data) if isinstance(data, dict) else {}
        platform_order_id = created.get("id") or created.get("platform_order_id")
        if not platform_order_id:
            raise PlatformError(f"{self.name} response carried no order id")
        return CreatedPlatformOrder(platform_order_id=str(platform_order_id))
