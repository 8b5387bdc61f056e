from decimal import Decimal
from typing import List, Optional

import httpx
import pytest

from register_edge.core.config import Settings
from register_edge.core.container import build_container
from register_edge.core.errors import PlatformHTTPError, PlatformTransportError
from register_edge.domain.basket.schemas import AddItem
from register_edge.platforms.base import CreatedPlatformOrder, PlatformOrder


class FakePlatform:
    """Records submissions; raises queued errors before succeeding."""

    name = "fake"

    def __init__(self):
        self.errors: List[Exception] = []
        self.submitted: List[PlatformOrder] = []

    def fail_with(self, *errors: Exception) -> None:
        self.errors.extend(errors)

    async def create_order(self, order: PlatformOrder) -> CreatedPlatformOrder:
        self.submitted.append(order)
        if self.errors:
            raise self.errors.pop(0)
        return CreatedPlatformOrder(platform_order_id=f"fake-{order.idempotency_key[:8]}")


def server_error(status_code: int = 503) -> PlatformHTTPError:
    return PlatformHTTPError(status_code)


def network_error() -> PlatformTransportError:
    return PlatformTransportError("connection refused")


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'register.db'}",
        DEFAULT_PLATFORM="fake",
        REGISTER_ID="reg-local",
        REGISTER_NAME="Front Counter",
        LOG_JSON=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def make_container(tmp_path, handler=None, **overrides):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler)) if handler else None
    container = await build_container(make_settings(tmp_path, **overrides), http=http, setup_logging=False)
    platform = FakePlatform()
    container.platforms.register(platform)
    return container, platform


@pytest.fixture
async def container(tmp_path):
    container, _ = await make_container(tmp_path)
    yield container
    await container.aclose()


@pytest.fixture
def platform(container):
    return container.platforms.get("fake")


@pytest.fixture
async def db(container):
    async with container.session_factory() as session:
        yield session


def item(product_id: str = "p1", price: str = "9.99", quantity: int = 1, **kwargs) -> AddItem:
    return AddItem(
        product_id=product_id,
        name=kwargs.pop("name", f"Product {product_id}"),
        price=Decimal(price),
        quantity=quantity,
        **kwargs,
    )


async def paid_order(container, db, payment_method: str = "card", **item_kwargs):
    await container.basket.add_item(db, item(**item_kwargs))
    order = await container.checkout.start_checkout(db)
    result = await container.checkout.complete_payment(db, order.id, payment_method)
    assert result.success
    return order.id
