"""
In-memory cart for the POS screen.

One line per product, kept in insertion order. Stock ceilings are checked
against the most recent Product snapshot added for the line; the store
enforces the real limit at checkout.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

from db.models import Product, SaleLineInput
from utils.logger import get_logger
from utils.money import ZERO, tax_for
from utils.outcome import ErrorKind, Outcome

_logger = get_logger(__name__)


@dataclass
class CartLine:
    product: Product
    quantity: int = 1

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def unit_price(self) -> Decimal:
        return self.product.price

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_sale_line(self) -> SaleLineInput:
        return SaleLineInput(
            product_id=self.product.id,
            name=self.product.name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            subtotal=self.subtotal,
        )


class Cart:
    def __init__(self) -> None:
        self._lines: Dict[int, CartLine] = {}

    def _warn(self, kind: ErrorKind, message: str) -> Outcome[CartLine]:
        _logger.warning(message)
        return Outcome.failure(kind, message)

    def add_item(self, product: Product) -> Outcome[CartLine]:
        """Add one unit of product, creating its line on first add."""
        if product.stock_quantity <= 0:
            return self._warn(ErrorKind.VALIDATION, f"{product.name} is out of stock")

        line = self._lines.get(product.id)
        if line is None:
            line = CartLine(product=product, quantity=1)
            self._lines[product.id] = line
            return Outcome.success(line, f"Added {product.name}")

        # the latest product read wins for price and stock ceiling
        line.product = product
        if line.quantity + 1 > product.stock_quantity:
            return self._warn(
                ErrorKind.VALIDATION,
                f"Only {product.stock_quantity} {product.name} in stock",
            )
        line.quantity += 1
        return Outcome.success(line, f"Added {product.name}")

    def increase_quantity(self, product_id: int) -> Outcome[CartLine]:
        line = self._lines.get(product_id)
        if line is None:
            return self._warn(ErrorKind.NOT_FOUND, f"Product {product_id} is not in the cart")
        if line.quantity + 1 > line.product.stock_quantity:
            return self._warn(
                ErrorKind.VALIDATION,
                f"Only {line.product.stock_quantity} {line.product.name} in stock",
            )
        line.quantity += 1
        return Outcome.success(line)

    def decrease_quantity(self, product_id: int) -> Outcome[CartLine]:
        """Take one unit off. A line never drops below 1; use remove_item."""
        line = self._lines.get(product_id)
        if line is None:
            return self._warn(ErrorKind.NOT_FOUND, f"Product {product_id} is not in the cart")
        if line.quantity > 1:
            line.quantity -= 1
            return Outcome.success(line)
        return Outcome.success(line, "Quantity is already 1, use Remove to delete the line")

    def remove_item(self, product_id: int) -> Outcome[CartLine]:
        line = self._lines.pop(product_id, None)
        if line is None:
            return self._warn(ErrorKind.NOT_FOUND, f"Product {product_id} is not in the cart")
        return Outcome.success(line, f"Removed {line.product.name}")

    def clear(self) -> None:
        self._lines.clear()

    # totals are exact; rounding happens on display and when a sale is stored
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self._lines.values()), ZERO)

    def tax(self) -> Decimal:
        return tax_for(self.subtotal())

    def grand_total(self) -> Decimal:
        return self.subtotal() + self.tax()

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, product_id: int) -> CartLine | None:
        return self._lines.get(product_id)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id: int) -> bool:
        return product_id in self._lines
