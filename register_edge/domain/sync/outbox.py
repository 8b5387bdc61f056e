import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

import httpx
import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from register_edge.core.clock import ensure_utc, utcnow
from register_edge.db.models.outbox import QueuedRequest
from register_edge.db.repositories import outbox as outbox_repo

from .schemas import OutboxPassResult, OutboxStatus

logger = structlog.get_logger(__name__)


def backoff_delay(attempts: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2 ** max(attempts - 1, 0)), max_delay)


class OutboxQueue:
    """Persisted FIFO of HTTP side effects, drained with retry.

    - 2xx: the request is done and leaves the queue
    - 4xx: the remote end rejected it for good; dropped without retry
    - 5xx or transport failure: ``attempts`` grows, ``next_retry_at`` is set
      with capped exponential backoff and the pass stops, so later requests
      are never sent ahead of an earlier unresolved one

    ``process`` is single-flight: calling it while a pass is running is a
    no-op. The background scheduler and ``on_connectivity_restored`` call it
    again later.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client: httpx.AsyncClient,
        base_delay: float = 30.0,
        max_delay: float = 300.0,
        timeout: float = 15.0,
    ):
        self.session_factory = session_factory
        self.client = client
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._processing = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def enqueue(
        self,
        url: str,
        method: str = "POST",
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
        trigger: bool = True,
    ) -> QueuedRequest:
        request = QueuedRequest(
            url=url,
            method=method.upper(),
            body=body,
            headers=headers,
            attempts=0,
            idempotency_key=idempotency_key or f"req_{uuid.uuid4().hex}",
            created_at=utcnow(),
        )
        async with self.session_factory() as db:
            db.add(request)
            await db.commit()
        logger.info("outbox_enqueued", request_id=request.id, method=request.method, url=url)

        if trigger and not self._processing:
            task = asyncio.create_task(self.process())
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)
        return request

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("outbox_pass_failed", error=str(error), error_type=error.__class__.__name__)

    async def on_connectivity_restored(self) -> OutboxPassResult:
        logger.info("outbox_connectivity_restored")
        return await self.process(ignore_backoff=True)

    async def process(self, ignore_backoff: bool = False) -> OutboxPassResult:
        result = OutboxPassResult()
        if self._processing:
            return result

        self._processing = True
        try:
            async with self.session_factory() as db:
                queue = await outbox_repo.list_queued(db)
                for request in queue:
                    next_retry_at = ensure_utc(request.next_retry_at)
                    if not ignore_backoff and next_retry_at and next_retry_at > utcnow():
                        result.deferred = True
                        break

                    outcome = await self._send(request)
                    if outcome == "sent":
                        await outbox_repo.remove_queued(db, request.id)
                        await db.commit()
                        result.sent += 1
                    elif outcome == "dropped":
                        await outbox_repo.remove_queued(db, request.id)
                        await db.commit()
                        result.dropped += 1
                    else:
                        self._schedule_retry(request, outcome)
                        await db.commit()
                        result.deferred = True
                        break
        finally:
            self._processing = False
        return result

    async def status(self) -> OutboxStatus:
        async with self.session_factory() as db:
            queue = await outbox_repo.list_queued(db)
        now = utcnow()
        retrying = sum(
            1 for r in queue if r.next_retry_at is not None and ensure_utc(r.next_retry_at) > now
        )
        return OutboxStatus(
            length=len(queue),
            is_processing=self._processing,
            ready=len(queue) - retrying,
            retrying=retrying,
        )

    async def clear(self) -> None:
        async with self.session_factory() as db:
            await outbox_repo.clear_queue(db)
            await db.commit()

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _send(self, request: QueuedRequest) -> str:
        """Send one request; returns ``sent``, ``dropped`` or the retryable error text."""
        headers = {
            "Content-Type": "application/json",
            "X-Request-ID": request.idempotency_key,
            "Idempotency-Key": request.idempotency_key,
            **(request.headers or {}),
        }
        try:
            response = await self.client.request(
                request.method,
                request.url,
                json=request.body,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TransportError as exc:
            logger.warning("outbox_network_error", request_id=request.id, error=repr(exc))
            return f"network error: {exc!r}"

        if response.is_success:
            return "sent"
        if response.status_code >= 500:
            logger.warning("outbox_server_error", request_id=request.id, status_code=response.status_code)
            return f"server error {response.status_code}"
        # 4xx, and any unfollowed redirect, will not get better by retrying
        logger.warning(
            "outbox_client_error_dropped",
            request_id=request.id,
            status_code=response.status_code,
        )
        return "dropped"

    def _schedule_retry(self, request: QueuedRequest, error: str) -> datetime:
        now = utcnow()
        request.attempts = (request.attempts or 0) + 1
        delay = backoff_delay(request.attempts, self.base_delay, self.max_delay)
        request.last_attempt_at = now
        request.next_retry_at = now + timedelta(seconds=delay)
        request.last_error = error
        logger.info(
            "outbox_retry_scheduled",
            request_id=request.id,
            attempts=request.attempts,
            delay_seconds=delay,
        )
        return request.next_retry_at
