from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from utils import config

CENT = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def to_decimal(val: Number) -> Decimal:
    """Convert a db/user value to Decimal without float artefacts."""
    if isinstance(val, Decimal):
        return val
    if isinstance(val, float):
        return Decimal(str(val))
    return Decimal(val)


def parse_amount(val) -> Decimal | None:
    """Parse user input as a finite amount, None if not a number."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, str):
        val = val.strip().lstrip("$")
        if not val:
            return None
    try:
        amount = to_decimal(val)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite():
        return None
    return amount


def round_cents(val: Decimal) -> Decimal:
    return to_decimal(val).quantize(CENT, rounding=ROUND_HALF_UP)


def tax_for(subtotal: Decimal) -> Decimal:
    return subtotal * config.TAX_RATE


def fmt(val: Number) -> str:
    amount = round_cents(to_decimal(val))
    if amount < 0:
        return f"-${-amount}"
    return f"${amount}"
