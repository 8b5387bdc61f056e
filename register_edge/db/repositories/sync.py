from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from register_edge.core.clock import utcnow
from register_edge.db.models.sync_cursors import SyncCursor
from register_edge.db.models.sync_events import SyncEventRecord, SyncReplica


async def get_events_since(
    db: AsyncSession,
    since: int,
    limit: Optional[int] = None
) -> List[SyncEventRecord]:
    query = (
        select(SyncEventRecord)
        .where(SyncEventRecord.timestamp > since)
        .order_by(SyncEventRecord.timestamp.asc())
    )
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_latest_event_timestamp(db: AsyncSession) -> Optional[int]:
    result = await db.execute(select(func.max(SyncEventRecord.timestamp)))
    return result.scalar()


async def prune_events(db: AsyncSession, keep: int) -> None:
    """Delete everything older than the ``keep`` most recent events."""
    cutoff = (
        select(SyncEventRecord.timestamp)
        .order_by(SyncEventRecord.timestamp.desc())
        .offset(keep - 1)
        .limit(1)
        .scalar_subquery()
    )
    await db.execute(delete(SyncEventRecord).where(SyncEventRecord.timestamp < cutoff))


async def get_cursor(db: AsyncSession, stream_name: str) -> Optional[SyncCursor]:
    result = await db.execute(
        select(SyncCursor).where(SyncCursor.stream_name == stream_name)
    )
    return result.scalar_one_or_none()


async def save_cursor(
    db: AsyncSession,
    stream_name: str,
    timestamp: int,
    event_id: Optional[str] = None
) -> SyncCursor:
    cursor = await get_cursor(db, stream_name)
    if cursor is None:
        cursor = SyncCursor(stream_name=stream_name)
        db.add(cursor)
    cursor.last_event_timestamp = timestamp
    cursor.last_event_id = event_id
    cursor.last_synced_at = utcnow()
    await db.flush()
    return cursor


async def get_replica(
    db: AsyncSession,
    entity_type: str,
    entity_id: str
) -> Optional[SyncReplica]:
    return await db.get(SyncReplica, (entity_type, entity_id))
