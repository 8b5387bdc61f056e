from typing import List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from register_edge.db.models.outbox import QueuedRequest


async def list_queued(db: AsyncSession) -> List[QueuedRequest]:
    result = await db.execute(select(QueuedRequest).order_by(QueuedRequest.id.asc()))
    return list(result.scalars().all())


async def remove_queued(db: AsyncSession, request_id: int) -> None:
    await db.execute(delete(QueuedRequest).where(QueuedRequest.id == request_id))


async def clear_queue(db: AsyncSession) -> None:
    await db.execute(delete(QueuedRequest))
