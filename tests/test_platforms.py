import json
from decimal import Decimal

import httpx
import pytest

from register_edge.core.errors import PlatformHTTPError, PlatformNotConfiguredError, PlatformTransportError
from register_edge.platforms.base import PlatformOrder
from register_edge.platforms.http import HttpOrderService
from register_edge.platforms.offline import OfflineOrderService
from register_edge.platforms.registry import PlatformRegistry


def order(key="order-1"):
    return PlatformOrder(
        idempotency_key=key,
        line_items=[],
        subtotal=Decimal("10.00"),
        tax=Decimal("0.80"),
        total=Decimal("10.80"),
    )


async def test_offline_service_is_idempotent():
    service = OfflineOrderService()
    first = await service.create_order(order())
    second = await service.create_order(order())
    assert first.platform_order_id == second.platform_order_id == "local-order-order-1"


async def test_http_service_posts_order_with_idempotency_key():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"order": {"id": 4501}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = HttpOrderService("https://shop.example/api/", client, token="tok")
        created = await service.create_order(order())

    assert created.platform_order_id == "4501"
    assert seen["url"] == "https://shop.example/api/orders"
    assert seen["headers"]["Idempotency-Key"] == "order-1"
    assert seen["headers"]["Authorization"] == "Bearer tok"
    assert seen["body"]["order"]["total"] == "10.80"


@pytest.mark.parametrize("status_code", [422, 503])
async def test_http_service_raises_on_error_status(status_code):
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code))
    async with httpx.AsyncClient(transport=transport) as client:
        service = HttpOrderService("https://shop.example", client)
        with pytest.raises(PlatformHTTPError) as exc_info:
            await service.create_order(order())
    assert exc_info.value.status_code == status_code


async def test_http_service_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = HttpOrderService("https://shop.example", client)
        with pytest.raises(PlatformTransportError):
            await service.create_order(order())


def test_registry_falls_back_to_default():
    registry = PlatformRegistry(default="offline")
    registry.register(OfflineOrderService())
    assert registry.get(None).name == "offline"
    with pytest.raises(PlatformNotConfiguredError):
        registry.get("shopify")
