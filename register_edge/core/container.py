from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from register_edge.core.config import Settings
from register_edge.core.logging import configure_logging
from register_edge.db.base import build_engine, build_session_factory, init_models
from register_edge.domain.basket.service import BasketService
from register_edge.domain.checkout.service import CheckoutService
from register_edge.domain.sync.order_sync import OrderSyncEngine
from register_edge.domain.sync.outbox import OutboxQueue
from register_edge.domain.sync.scheduler import BackgroundSync
from register_edge.localapi.applier import SyncEventApplier
from register_edge.localapi.client import LocalApiClient
from register_edge.localapi.config import LocalApiConfig
from register_edge.localapi.discovery import LocalApiDiscovery
from register_edge.localapi.events import SyncEventBus
from register_edge.localapi.poller import SyncPoller
from register_edge.localapi.server import LocalApiServer
from register_edge.platforms.registry import PlatformRegistry, build_platform_registry

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    """Every long-lived service of one register process, built once at start-up."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    http: httpx.AsyncClient
    local_api_config: LocalApiConfig
    events: SyncEventBus
    basket: BasketService
    checkout: CheckoutService
    platforms: PlatformRegistry
    order_sync: OrderSyncEngine
    outbox: OutboxQueue
    background: BackgroundSync
    local_api_client: LocalApiClient
    discovery: LocalApiDiscovery
    poller: SyncPoller
    server: Optional[LocalApiServer] = None

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.engine.dispose()


async def build_container(
    settings: Settings,
    http: Optional[httpx.AsyncClient] = None,
    setup_logging: bool = True,
) -> Container:
    if setup_logging:
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    engine = build_engine(settings.DB_URL)
    await init_models(engine)
    session_factory = build_session_factory(engine)
    http = http or httpx.AsyncClient()

    local_api_config = LocalApiConfig(session_factory, settings)
    current = await local_api_config.load()

    events = SyncEventBus(local_api_config, retention=settings.SYNC_EVENT_RETENTION)
    basket = BasketService(settings.DEFAULT_TAX_RATE)
    checkout = CheckoutService(basket, events, drawer_open_on_cash=settings.DRAWER_OPEN_ON_CASH)
    platforms = build_platform_registry(settings, http)
    order_sync = OrderSyncEngine(
        session_factory,
        platforms,
        events,
        default_tax_rate=settings.DEFAULT_TAX_RATE,
        max_retries=settings.MAX_SYNC_RETRIES,
        currency=settings.CURRENCY,
    )
    outbox = OutboxQueue(
        session_factory,
        http,
        base_delay=settings.OUTBOX_BASE_DELAY_SECONDS,
        max_delay=settings.OUTBOX_MAX_DELAY_SECONDS,
        timeout=settings.PLATFORM_TIMEOUT_SECONDS,
    )
    background = BackgroundSync(
        order_sync,
        outbox,
        order_sync_interval=settings.ORDER_SYNC_INTERVAL_SECONDS,
        outbox_interval=settings.OUTBOX_TICK_SECONDS,
    )

    local_api_client = LocalApiClient(local_api_config, http)
    discovery = LocalApiDiscovery(
        local_api_config,
        local_api_client,
        http,
        batch_size=settings.DISCOVERY_BATCH_SIZE,
        probe_timeout=settings.DISCOVERY_PROBE_TIMEOUT_SECONDS,
        default_subnet=settings.DISCOVERY_SUBNET,
    )
    poller = SyncPoller(
        session_factory,
        local_api_config,
        local_api_client,
        events,
        SyncEventApplier(),
        interval=settings.SYNC_POLL_INTERVAL_SECONDS,
        max_backoff=settings.SYNC_POLL_MAX_BACKOFF_SECONDS,
        lookback_seconds=settings.SYNC_POLL_LOOKBACK_SECONDS,
    )

    container = Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        http=http,
        local_api_config=local_api_config,
        events=events,
        basket=basket,
        checkout=checkout,
        platforms=platforms,
        order_sync=order_sync,
        outbox=outbox,
        background=background,
        local_api_client=local_api_client,
        discovery=discovery,
        poller=poller,
    )
    container.server = LocalApiServer(container, host=settings.LOCAL_API_HOST)
    logger.info(
        "container_built",
        register_id=current.register_id,
        mode=current.mode.value,
        platforms=platforms.names(),
    )
    return container
