"""Currency arithmetic on ``Decimal`` amounts rounded to cents."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple, Union

CENT = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # floats go through str() so 9.99 stays 9.99 and not its binary expansion
    return Decimal(str(value))


def round_money(value: Amount) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def multiply_money(price: Amount, quantity: int) -> Decimal:
    return round_money(to_decimal(price) * quantity)


def sum_money(amounts: Iterable[Amount]) -> Decimal:
    return round_money(sum((to_decimal(a) for a in amounts), Decimal("0")))


def calculate_tax(amount: Amount, rate: Amount) -> Decimal:
    return round_money(to_decimal(amount) * to_decimal(rate))


def calculate_line_total(
    price: Amount, quantity: int, taxable: bool, rate: Amount
) -> Tuple[Decimal, Decimal]:
    """Return ``(line_total, tax_amount)`` for one basket line."""
    line_total = multiply_money(price, quantity)
    tax_amount = calculate_tax(line_total, rate) if taxable else Decimal("0.00")
    return line_total, tax_amount
