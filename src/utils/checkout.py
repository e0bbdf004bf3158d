"""
Turns the cart into a persisted sale and a receipt.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import db.crud as crud
from db.models import Receipt, ReceiptLine
from utils.cart import Cart
from utils.logger import get_logger
from utils.money import round_cents
from utils.outcome import ErrorKind, Outcome, PosError
from utils.state import GlobalState

_logger = get_logger(__name__)

PREVIEW_RECEIPT_NUMBER = "PREVIEW"
PREVIEW_PAYMENT_METHOD = "preview"


def _receipt_lines(cart: Cart) -> List[ReceiptLine]:
    return [
        ReceiptLine(
            product_name=line.product.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            subtotal=line.subtotal,
        )
        for line in cart.lines
    ]


async def checkout(
    state: GlobalState,
    cart: Cart,
    payment_method: str = "cash",
    when: Optional[datetime] = None,
) -> Outcome[Receipt]:
    """
    Record the cart as one sale against the operator's active shift.

    The shift and cart checks run before anything is written. The writes
    themselves are a single transaction, so on failure nothing is stored and
    the cart is left as it was for a retry. On success the cart is cleared.
    Only one checkout per state runs at a time; a second call while one is
    pending is refused without touching the store.
    """
    if state.checkout_pending:
        _logger.warning("Checkout attempted while another one is pending")
        return Outcome.failure(ErrorKind.CONFLICT, "Checkout already in progress")
    state.checkout_pending = True
    try:
        return await _checkout(state, cart, payment_method, when)
    finally:
        state.checkout_pending = False


async def _checkout(
    state: GlobalState,
    cart: Cart,
    payment_method: str,
    when: Optional[datetime],
) -> Outcome[Receipt]:
    try:
        shift = await state.refresh_shift()
    except PosError as err:
        _logger.error(f"Checkout aborted, shift lookup failed: {err.message}")
        return Outcome.from_error(err)
    if shift is None:
        _logger.warning("Checkout attempted without an active shift")
        return Outcome.failure(ErrorKind.CONFLICT, "No active shift")
    if cart.is_empty:
        _logger.warning("Checkout attempted with an empty cart")
        return Outcome.failure(ErrorKind.VALIDATION, "Cart is empty")

    tax = round_cents(cart.tax())
    total = round_cents(cart.subtotal()) + tax
    try:
        sale, _items = await crud.record_sale(
            shift.id,
            state.uid,
            [line.to_sale_line() for line in cart.lines],
            total_amount=total,
            tax_amount=tax,
            payment_method=payment_method,
            when=when,
        )
    except PosError as err:
        _logger.error(f"Checkout failed ({err.kind.value}): {err.message}")
        return Outcome.from_error(err)

    receipt = Receipt(
        receipt_number=sale.receipt_number,
        total_amount=sale.total_amount,
        tax_amount=sale.tax_amount,
        payment_method=sale.payment_method,
        created_at=sale.created_at,
        items=_receipt_lines(cart),
        sale_id=sale.id,
    )
    cart.clear()
    return Outcome.success(receipt, f"Sale {sale.receipt_number} completed")


def preview_receipt(cart: Cart, when: Optional[datetime] = None) -> Outcome[Receipt]:
    """Receipt for the current cart without touching the db."""
    if cart.is_empty:
        return Outcome.failure(ErrorKind.VALIDATION, "Cart is empty")
    tax = round_cents(cart.tax())
    receipt = Receipt(
        receipt_number=PREVIEW_RECEIPT_NUMBER,
        total_amount=round_cents(cart.subtotal()) + tax,
        tax_amount=tax,
        payment_method=PREVIEW_PAYMENT_METHOD,
        created_at=when or datetime.now(),
        items=_receipt_lines(cart),
    )
    return Outcome.success(receipt)


async def reprint_receipt(sale_id: int) -> Outcome[Receipt]:
    """Rebuild the receipt of a stored sale from its price snapshots."""
    try:
        sale, items = await crud.get_sale_detail(sale_id)
        if sale is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Sale {sale_id} not found")
        lines = []
        for item in items:
            product = await crud.get_product(item.product_id)
            lines.append(
                ReceiptLine(
                    product_name=product.name if product else f"Product {item.product_id}",
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
            )
    except PosError as err:
        _logger.error(f"Reprint of sale {sale_id} failed: {err.message}")
        return Outcome.from_error(err)
    return Outcome.success(
        Receipt(
            receipt_number=sale.receipt_number,
            total_amount=sale.total_amount,
            tax_amount=sale.tax_amount,
            payment_method=sale.payment_method,
            created_at=sale.created_at,
            items=lines,
            sale_id=sale.id,
        )
    )
