from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from register_edge.core.clock import now_ms
from register_edge.core.scheduling import PeriodicTask
from register_edge.db.repositories.sync import get_cursor, save_cursor

from .applier import SyncEventApplier
from .client import LocalApiClient
from .config import LocalApiConfig
from .events import SyncEventBus

logger = structlog.get_logger(__name__)


class SyncPoller:
    """Pulls new events from the server register and applies them locally.

    Only runs in client mode. The high-water-mark is the timestamp of the
    last event handled; it advances one event at a time and is persisted in
    ``sync_cursors`` so a restart resumes where the last poll stopped. A
    failure while applying stops the batch at that event, and the tick
    counts as failed so the next poll backs off.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        config: LocalApiConfig,
        client: LocalApiClient,
        bus: SyncEventBus,
        applier: SyncEventApplier,
        interval: float = 3.0,
        max_backoff: float = 30.0,
        lookback_seconds: float = 60.0,
    ):
        self.session_factory = session_factory
        self.config = config
        self.client = client
        self.bus = bus
        self.applier = applier
        self.lookback_seconds = lookback_seconds
        self.last_timestamp: Optional[int] = None
        self.task = PeriodicTask(
            "sync-poller",
            self.poll_once,
            interval=interval,
            max_backoff=max_backoff,
            run_immediately=True,
        )

    @property
    def stream_name(self) -> str:
        current = self.config.current
        return f"localapi:{current.server_address}:{current.port}"

    @property
    def is_running(self) -> bool:
        return self.task.is_running

    def start(self) -> None:
        if not self.config.is_client:
            logger.info("sync_poller_not_started", mode=self.config.current.mode.value)
            return
        self.last_timestamp = None
        self.task.start()

    async def stop(self) -> None:
        await self.task.stop()

    async def poll_once(self) -> int:
        """Fetch and apply one batch; returns the number of events applied."""
        since = await self._high_water_mark()
        events = await self.client.get_sync_events(since)
        own_register = self.config.current.register_id

        applied = 0
        for event in sorted(events, key=lambda e: e.timestamp):
            if event.timestamp <= self.last_timestamp:
                continue

            async with self.session_factory() as db:
                if event.register_id != own_register:
                    try:
                        await self.applier.apply(db, event)
                    except Exception:
                        await db.rollback()
                        logger.exception(
                            "sync_event_apply_failed",
                            event_id=event.id,
                            event_type=event.type.value,
                        )
                        raise
                    applied += 1
                await save_cursor(db, self.stream_name, event.timestamp, event.id)
                await db.commit()

            self.last_timestamp = event.timestamp
            if event.register_id != own_register:
                await self.bus.receive(event)

        if applied:
            logger.info("sync_events_applied", count=applied, high_water_mark=self.last_timestamp)
        return applied

    async def _high_water_mark(self) -> int:
        if self.last_timestamp is None:
            async with self.session_factory() as db:
                cursor = await get_cursor(db, self.stream_name)
            if cursor is not None:
                self.last_timestamp = cursor.last_event_timestamp
            else:
                self.last_timestamp = now_ms() - int(self.lookback_seconds * 1000)
                logger.info("sync_poller_cursor_initialised", since=self.last_timestamp)
        return self.last_timestamp
