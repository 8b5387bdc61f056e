from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from register_edge.db.models.baskets import Basket, BasketStatus


async def get_active_basket(db: AsyncSession) -> Optional[Basket]:
    result = await db.execute(
        select(Basket)
        .where(Basket.status == BasketStatus.ACTIVE.value)
        .order_by(Basket.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_basket(db: AsyncSession) -> Basket:
    basket = Basket(status=BasketStatus.ACTIVE.value, items=[], subtotal=0, tax=0, total=0)
    db.add(basket)
    await db.flush()
    return basket
