from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.models.key_values import KeyValue


async def get_value(db: AsyncSession, key: str) -> Optional[Any]:
    row = await db.get(KeyValue, key)
    return row.value if row is not None else None


async def set_value(db: AsyncSession, key: str, value: Any) -> None:
    row = await db.get(KeyValue, key)
    if row is None:
        db.add(KeyValue(key=key, value=value))
    else:
        row.value = value
    await db.flush()
