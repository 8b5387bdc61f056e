import structlog

from register_edge.core.scheduling import PeriodicTask

from .order_sync import OrderSyncEngine
from .outbox import OutboxQueue

logger = structlog.get_logger(__name__)


class BackgroundSync:
    """Owns the periodic order-sync sweep and the outbox retry tick."""

    def __init__(
        self,
        order_sync: OrderSyncEngine,
        outbox: OutboxQueue,
        order_sync_interval: float = 300.0,
        outbox_interval: float = 30.0,
    ):
        self.order_sync = order_sync
        self.outbox = outbox
        self.order_task = PeriodicTask(
            "order-sync",
            self._sweep_orders,
            interval=order_sync_interval,
            run_immediately=True,
        )
        self.outbox_task = PeriodicTask(
            "outbox",
            self._tick_outbox,
            interval=outbox_interval,
        )

    @property
    def is_running(self) -> bool:
        return self.order_task.is_running or self.outbox_task.is_running

    def start(self) -> None:
        self.order_task.start()
        self.outbox_task.start()

    async def stop(self) -> None:
        await self.order_task.stop()
        await self.outbox_task.stop()
        await self.outbox.wait_idle()

    async def _sweep_orders(self) -> None:
        await self.order_sync.sync_all_pending_orders()

    async def _tick_outbox(self) -> None:
        status = await self.outbox.status()
        if status.ready:
            logger.debug("outbox_ready_requests", ready=status.ready)
            await self.outbox.process()
