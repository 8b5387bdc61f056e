import asyncio
import uuid
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.core.clock import utcnow
from register_edge.core.money import calculate_tax, multiply_money, round_money, sum_money
from register_edge.db.models.baskets import Basket, BasketStatus
from register_edge.db.repositories.baskets import create_basket, get_active_basket

from .schemas import AddItem, BasketItem, BasketOut

logger = structlog.get_logger(__name__)


def calculate_totals(
    items: List[BasketItem],
    default_tax_rate: Decimal,
    discount_amount: Optional[Decimal] = None,
) -> Tuple[Decimal, Decimal, Decimal]:
    """Return ``(subtotal, tax, total)`` for a list of basket lines.

    Taxable amounts are grouped by effective rate (the line's own rate or the
    register default) and each group is taxed and rounded once, so a basket
    with a single rate is taxed as ``taxable_subtotal * rate``.
    """
    line_totals = [multiply_money(item.price, item.quantity) for item in items]
    subtotal = sum_money(line_totals)

    taxable_by_rate: Dict[Decimal, Decimal] = defaultdict(Decimal)
    for item, line_total in zip(items, line_totals):
        if item.taxable:
            rate = item.tax_rate if item.tax_rate is not None else default_tax_rate
            taxable_by_rate[rate] += line_total
    tax = sum_money(calculate_tax(amount, rate) for rate, amount in taxable_by_rate.items())

    total = round_money(subtotal + tax - (discount_amount or Decimal("0")))
    return subtotal, tax, max(Decimal("0.00"), total)


class BasketService:
    """Cart CRUD for the register's single active basket.

    Every mutation loads the active basket, changes it, recomputes the totals
    and flushes in one step under a lock. Public methods commit; the
    ``*_in_session`` helpers leave the commit to the caller so checkout can
    compose them into its own transaction.
    """

    def __init__(self, default_tax_rate: Decimal):
        self.default_tax_rate = default_tax_rate
        self._lock = asyncio.Lock()

    @property
    def lock(self) -> asyncio.Lock:
        """Held by every basket mutation; checkout takes it around its own reads and writes."""
        return self._lock

    async def get_or_create_active(self, db: AsyncSession) -> BasketOut:
        async with self._lock:
            basket = await self.active_in_session(db)
            await db.commit()
            return BasketOut.model_validate(basket)

    async def add_item(self, db: AsyncSession, item: AddItem) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            for existing in items:
                if existing.product_id == item.product_id and existing.variant_id == item.variant_id:
                    existing.quantity += item.quantity
                    return items
            items.append(BasketItem(id=str(uuid.uuid4()), **item.model_dump()))
            return items

        return await self._mutate_items(db, mutate)

    async def set_item_quantity(self, db: AsyncSession, item_id: str, quantity: int) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            if quantity <= 0:
                return [i for i in items if i.id != item_id]
            for existing in items:
                if existing.id == item_id:
                    existing.quantity = quantity
            return items

        return await self._mutate_items(db, mutate)

    async def remove_item(self, db: AsyncSession, item_id: str) -> BasketOut:
        return await self.set_item_quantity(db, item_id, 0)

    async def apply_discount(
        self, db: AsyncSession, code: str, amount: Decimal = Decimal("0")
    ) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            basket.discount_code = code
            basket.discount_amount = round_money(amount)
            return items

        return await self._mutate_items(db, mutate)

    async def remove_discount(self, db: AsyncSession) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            basket.discount_code = None
            basket.discount_amount = None
            return items

        return await self._mutate_items(db, mutate)

    async def set_customer(
        self, db: AsyncSession, email: Optional[str] = None, name: Optional[str] = None
    ) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            basket.customer_email = email
            basket.customer_name = name
            return items

        return await self._mutate_items(db, mutate)

    async def set_note(self, db: AsyncSession, note: str) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            basket.note = note
            return items

        return await self._mutate_items(db, mutate)

    async def clear(self, db: AsyncSession) -> BasketOut:
        async def mutate(items: List[BasketItem], basket: Basket) -> List[BasketItem]:
            basket.discount_code = None
            basket.discount_amount = None
            return []

        return await self._mutate_items(db, mutate)

    # Session-level helpers used by checkout; callers hold ``lock``

    async def active_in_session(self, db: AsyncSession) -> Basket:
        basket = await get_active_basket(db)
        if basket is None:
            basket = await create_basket(db)
            logger.info("basket_created", basket_id=basket.id)
        return basket

    async def retire_in_session(self, db: AsyncSession) -> Basket:
        """Mark the active basket checked out and start a fresh one."""
        basket = await get_active_basket(db)
        if basket is not None:
            basket.status = BasketStatus.CHECKED_OUT.value
            basket.updated_at = utcnow()
        fresh = await create_basket(db)
        logger.info(
            "basket_retired",
            basket_id=basket.id if basket is not None else None,
            fresh_basket_id=fresh.id,
        )
        return fresh

    async def _mutate_items(self, db: AsyncSession, mutate) -> BasketOut:
        async with self._lock:
            basket = await self.active_in_session(db)
            items = [BasketItem.model_validate(raw) for raw in basket.items or []]
            items = await mutate(items, basket)

            subtotal, tax, total = calculate_totals(
                items, self.default_tax_rate, basket.discount_amount
            )
            # a new list so the JSON column registers the change
            basket.items = [i.model_dump(mode="json") for i in items]
            basket.subtotal = subtotal
            basket.tax = tax
            basket.total = total
            basket.updated_at = utcnow()

            await db.commit()
            return BasketOut.model_validate(basket)
