import inspect
import uuid
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.core.clock import now_ms
from register_edge.db.models.sync_events import SyncEventRecord
from register_edge.db.repositories.sync import (
    get_events_since,
    get_latest_event_timestamp,
    prune_events,
)

from .config import LocalApiConfig
from .schemas import SyncEvent, SyncEventType

logger = structlog.get_logger(__name__)

SyncEventHandler = Callable[[SyncEvent], Union[None, Awaitable[None]]]


class SyncEventBus:
    """Append-only event log plus in-process dispatch.

    ``append`` writes the event into the caller's session so it commits (or
    rolls back) together with the mutation it describes; ``dispatch`` runs
    local subscribers once the caller has committed. On a server register
    the log backs ``GET /api/sync/events``; on a client register events
    pulled from the server come in through ``receive``.

    Timestamps are epoch milliseconds and strictly increasing, so a consumer
    polling with ``since=<last seen>`` never skips an event written in the
    same millisecond as the last one it saw.
    """

    def __init__(self, config: LocalApiConfig, retention: int = 500):
        self.config = config
        self.retention = retention
        self._handlers: Dict[SyncEventType, Set[SyncEventHandler]] = defaultdict(set)
        self._global_handlers: Set[SyncEventHandler] = set()
        self._last_timestamp: Optional[int] = None

    async def append(
        self, db: AsyncSession, type: SyncEventType, payload: Any
    ) -> SyncEvent:
        if self._last_timestamp is None:
            self._last_timestamp = await get_latest_event_timestamp(db) or 0
        timestamp = max(now_ms(), self._last_timestamp + 1)
        self._last_timestamp = timestamp

        current = self.config.current
        event = SyncEvent(
            id=f"evt_{timestamp}_{uuid.uuid4().hex[:8]}",
            type=type,
            register_id=current.register_id,
            register_name=current.register_name,
            payload=payload,
            timestamp=timestamp,
        )
        db.add(SyncEventRecord(
            id=event.id,
            type=event.type.value,
            register_id=event.register_id,
            register_name=event.register_name,
            payload=event.payload,
            timestamp=event.timestamp,
        ))
        await db.flush()
        await prune_events(db, self.retention)
        return event

    async def emit(
        self, db: AsyncSession, type: SyncEventType, payload: Any
    ) -> SyncEvent:
        """Append, commit and dispatch in one call, for callers with nothing else to commit."""
        event = await self.append(db, type, payload)
        await db.commit()
        await self.dispatch(event)
        return event

    async def get_events_since(
        self, db: AsyncSession, since: int, limit: Optional[int] = None
    ) -> List[SyncEvent]:
        rows = await get_events_since(db, since, limit)
        return [SyncEvent.model_validate(row) for row in rows]

    async def receive(self, event: SyncEvent) -> None:
        """Dispatch an event pulled from a peer, ignoring our own echoes."""
        if event.register_id == self.config.current.register_id:
            return
        await self.dispatch(event)

    def on(self, type: SyncEventType, handler: SyncEventHandler) -> Callable[[], None]:
        self._handlers[type].add(handler)
        return lambda: self._handlers[type].discard(handler)

    def on_any(self, handler: SyncEventHandler) -> Callable[[], None]:
        self._global_handlers.add(handler)
        return lambda: self._global_handlers.discard(handler)

    async def dispatch(self, event: SyncEvent) -> None:
        handlers = list(self._handlers.get(event.type, ())) + list(self._global_handlers)
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "sync_event_handler_failed",
                    event_id=event.id,
                    event_type=event.type.value,
                )
