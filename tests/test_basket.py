from decimal import Decimal

from conftest import item


async def test_new_basket_is_empty(container, db):
    basket = await container.basket.get_or_create_active(db)
    assert basket.items == []
    assert basket.total == Decimal("0.00")

    again = await container.basket.get_or_create_active(db)
    assert again.id == basket.id


async def test_add_same_product_merges_lines(container, db):
    await container.basket.add_item(db, item("p1", "9.99", 1))
    basket = await container.basket.add_item(db, item("p1", "9.99", 2))

    assert len(basket.items) == 1
    assert basket.items[0].quantity == 3
    assert basket.subtotal == Decimal("29.97")


async def test_variants_are_separate_lines(container, db):
    await container.basket.add_item(db, item("p1", variant_id="red"))
    basket = await container.basket.add_item(db, item("p1", variant_id="blue"))
    assert len(basket.items) == 2


async def test_set_quantity_zero_removes_line(container, db):
    basket = await container.basket.add_item(db, item("p1"))
    line_id = basket.items[0].id

    basket = await container.basket.set_item_quantity(db, line_id, 4)
    assert basket.items[0].quantity == 4

    basket = await container.basket.set_item_quantity(db, line_id, 0)
    assert basket.items == []
    assert basket.total == Decimal("0.00")


async def test_discount_reduces_total(container, db):
    await container.basket.add_item(db, item("p1", "10.00", 1))
    basket = await container.basket.apply_discount(db, "SAVE2", Decimal("2.00"))
    assert basket.discount_code == "SAVE2"
    assert basket.total == Decimal("8.80")

    basket = await container.basket.remove_discount(db)
    assert basket.discount_code is None
    assert basket.total == Decimal("10.80")


async def test_customer_and_note(container, db):
    await container.basket.set_customer(db, "a@example.com", "Ana")
    basket = await container.basket.set_note(db, "gift wrap")
    assert basket.customer_email == "a@example.com"
    assert basket.customer_name == "Ana"
    assert basket.note == "gift wrap"


async def test_clear_empties_in_place(container, db):
    basket = await container.basket.add_item(db, item("p1"))
    await container.basket.apply_discount(db, "X", Decimal("1"))
    cleared = await container.basket.clear(db)
    assert cleared.id == basket.id
    assert cleared.items == []
    assert cleared.discount_code is None
