import asyncio
import enum
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class TaskState(str, enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    BACKOFF = "backoff"
    STOPPED = "stopped"


class PeriodicTask:
    """Runs an async callable on a fixed interval until stopped.

    A tick that raises counts as a failure: the next delay becomes
    ``min(interval * 2**failures, max_backoff)`` when ``max_backoff`` is set,
    and one successful tick resets it. Failures are logged, never raised,
    and the loop never runs faster than ``interval``.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval: float,
        max_backoff: Optional[float] = None,
        run_immediately: bool = False,
        stop_timeout: float = 10.0,
    ):
        self.name = name
        self.func = func
        self.interval = interval
        self.max_backoff = max_backoff
        self.run_immediately = run_immediately
        self.stop_timeout = stop_timeout
        self.state = TaskState.STOPPED
        self.consecutive_errors = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_delay(self) -> float:
        if self.consecutive_errors > 0 and self.max_backoff is not None:
            return min(self.interval * (2 ** self.consecutive_errors), self.max_backoff)
        return self.interval

    def start(self) -> None:
        if self.is_running:
            logger.info("periodic_task_already_running", task=self.name)
            return
        self._stop_event = asyncio.Event()
        self.consecutive_errors = 0
        self.state = TaskState.IDLE
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("periodic_task_started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        task, self._task = self._task, None
        try:
            await asyncio.wait_for(task, timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.state = TaskState.STOPPED
        logger.info("periodic_task_stopped", task=self.name)

    async def run_once(self) -> bool:
        self.state = TaskState.RUNNING
        try:
            await self.func()
        except Exception as exc:
            self.consecutive_errors += 1
            self.state = TaskState.BACKOFF
            # avoid flooding the log while a peer stays unreachable
            if self.consecutive_errors <= 3:
                logger.warning(
                    "periodic_task_failed",
                    task=self.name,
                    attempt=self.consecutive_errors,
                    error=str(exc) or exc.__class__.__name__,
                )
            return False
        self.consecutive_errors = 0
        self.state = TaskState.IDLE
        return True

    async def _run(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while not self._stop_event.is_set():
            if self.state != TaskState.BACKOFF:
                self.state = TaskState.SCHEDULED
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.next_delay())
                break
            except asyncio.TimeoutError:
                pass
            await self.run_once()
