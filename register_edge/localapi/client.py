from typing import Any, Dict, List, Optional

import httpx
import structlog

from register_edge.core.errors import LocalApiError

from .config import LocalApiConfig
from .schemas import HealthOut, SyncEvent

logger = structlog.get_logger(__name__)


class LocalApiClient:
    """HTTP client for a server register's local API.

    Used by registers in client mode to read the shared dataset, by the sync
    poller to fetch events and by discovery to verify a chosen server.
    """

    def __init__(self, config: LocalApiConfig, client: httpx.AsyncClient, timeout: float = 10.0):
        self.config = config
        self.client = client
        self.timeout = timeout
        self.connected = False

    @property
    def headers(self) -> Dict[str, str]:
        current = self.config.current
        headers = {
            "Content-Type": "application/json",
            "X-Register-Id": current.register_id,
        }
        if current.shared_secret:
            headers["x-shared-secret"] = current.shared_secret
        return headers

    async def test_connection(self) -> Dict[str, Any]:
        try:
            health = HealthOut.model_validate(await self.get("/api/health"))
        except (LocalApiError, httpx.HTTPError, ValueError) as exc:
            self.connected = False
            logger.warning("local_api_connection_failed", base_url=self.config.base_url, error=str(exc))
            return {"ok": False, "error": str(exc) or "Connection failed"}
        self.connected = health.ok
        return {"ok": health.ok, "register_name": health.register_name}

    async def get_orders(self, status: Optional[str] = None) -> List[dict]:
        result = await self.get("/api/orders", {"status": status} if status else None)
        return result["orders"]

    async def get_order(self, order_id: str) -> Optional[dict]:
        try:
            return await self.get(f"/api/orders/{order_id}")
        except LocalApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    async def get_unsynced_orders(self) -> List[dict]:
        result = await self.get("/api/orders/unsynced")
        return result["orders"]

    async def get_products(self) -> List[dict]:
        result = await self.get("/api/products")
        return result["products"]

    async def get_product(self, product_id: str) -> Optional[dict]:
        try:
            result = await self.get(f"/api/products/{product_id}")
        except LocalApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return result["product"]

    async def get_tax_profiles(self) -> List[dict]:
        result = await self.get("/api/tax-profiles")
        return result["taxProfiles"]

    async def get_returns(self, status: Optional[str] = None) -> List[dict]:
        result = await self.get("/api/returns", {"status": status} if status else None)
        return result["returns"]

    async def get_returns_by_order(self, order_id: str) -> List[dict]:
        result = await self.get(f"/api/returns/order/{order_id}")
        return result["returns"]

    async def get_sync_events(self, since: int) -> List[SyncEvent]:
        result = await self.get("/api/sync/events", {"since": str(since)})
        return [SyncEvent.model_validate(e) for e in result.get("events") or []]

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.config.base_url}{path}"
        response = await self.client.get(url, params=params, headers=self.headers, timeout=self.timeout)
        if not response.is_success:
            try:
                message = response.json().get("error")
            except ValueError:
                message = None
            raise LocalApiError(
                message or f"GET {path} failed: {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()
