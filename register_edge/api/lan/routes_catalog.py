from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.db.base import get_db
from register_edge.db.repositories import catalog as catalog_repo
from register_edge.domain.catalog.schemas import ProductOut, ReturnOut, TaxProfileOut

from .deps import require_shared_secret

router = APIRouter(prefix="/api", tags=["catalog"], dependencies=[Depends(require_shared_secret)])


@router.get("/products")
async def list_products_endpoint(db: AsyncSession = Depends(get_db)):
    products = await catalog_repo.list_products(db)
    return {"products": [ProductOut.model_validate(p).model_dump(mode="json") for p in products]}


@router.get("/products/{product_id}")
async def get_product_endpoint(product_id: str, db: AsyncSession = Depends(get_db)):
    product = await catalog_repo.get_product_by_id(db, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"product": ProductOut.model_validate(product).model_dump(mode="json")}


@router.get("/tax-profiles")
async def list_tax_profiles_endpoint(db: AsyncSession = Depends(get_db)):
    profiles = await catalog_repo.list_active_tax_profiles(db)
    return {"taxProfiles": [TaxProfileOut.model_validate(p).model_dump(mode="json") for p in profiles]}


@router.get("/returns")
async def list_returns_endpoint(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    returns = await catalog_repo.list_returns(db, status)
    return {"returns": [ReturnOut.model_validate(r).model_dump(mode="json") for r in returns]}


@router.get("/returns/order/{order_id}")
async def list_returns_for_order_endpoint(order_id: str, db: AsyncSession = Depends(get_db)):
    returns = await catalog_repo.list_returns_for_order(db, order_id)
    return {"returns": [ReturnOut.model_validate(r).model_dump(mode="json") for r in returns]}
