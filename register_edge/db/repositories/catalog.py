from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from register_edge.db.models.local_catalog import Product, TaxProfile
from register_edge.db.models.local_inventory import LocalInventory
from register_edge.db.models.returns import Return


async def list_products(db: AsyncSession) -> List[Product]:
    result = await db.execute(select(Product).order_by(Product.name))
    return list(result.scalars().all())


async def get_product_by_id(db: AsyncSession, product_id: str) -> Optional[Product]:
    return await db.get(Product, product_id)


async def list_active_tax_profiles(db: AsyncSession) -> List[TaxProfile]:
    result = await db.execute(
        select(TaxProfile).where(TaxProfile.active.is_(True)).order_by(TaxProfile.name)
    )
    return list(result.scalars().all())


async def list_returns(db: AsyncSession, status: Optional[str] = None) -> List[Return]:
    query = select(Return).order_by(Return.created_at.desc())
    if status:
        query = query.where(Return.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_returns_for_order(db: AsyncSession, order_id: str) -> List[Return]:
    result = await db.execute(
        select(Return).where(Return.order_id == order_id).order_by(Return.created_at.desc())
    )
    return list(result.scalars().all())


async def get_inventory(
    db: AsyncSession,
    product_id: str,
    variant_id: Optional[str] = None
) -> Optional[LocalInventory]:
    result = await db.execute(
        select(LocalInventory).where(
            LocalInventory.product_id == product_id,
            LocalInventory.variant_id == (variant_id or ""),
        )
    )
    return result.scalar_one_or_none()
