# formats a Receipt for the receipt modal and for plain-text printing
from typing import List

from db.models import Receipt
from utils import config
from utils.money import fmt
from utils.pure import generate_markdown_table

PAYMENT_LABELS = {"card": "Credit/Debit Card"}


def payment_label(method: str) -> str:
    return PAYMENT_LABELS.get(method, "Cash")


def _item_rows(receipt: Receipt) -> List[List[str]]:
    return [
        [line.product_name, str(line.quantity), fmt(line.unit_price), fmt(line.subtotal)]
        for line in receipt.items
    ]


def render_markdown(receipt: Receipt) -> str:
    """
    Receipt as markdown: store header, item table, totals and footer.
    """
    title = "Receipt Preview" if receipt.is_preview else "Receipt"
    header = (
        f"## {config.STORE_NAME}\n\n"
        f"{config.STORE_ADDRESS}  \n"
        f"Tel: {config.STORE_PHONE}\n\n"
        f"### {title}\n\n"
        f"**Receipt #:** {receipt.receipt_number}  \n"
        f"**Date:** {receipt.created_at.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
    )
    table = generate_markdown_table(
        ["Item", "Qty", "Price", "Total"], _item_rows(receipt), ["l", "c", "r", "r"]
    )
    totals = (
        f"\n\n**Subtotal:** {fmt(receipt.subtotal)}  \n"
        f"**Tax:** {fmt(receipt.tax_amount)}  \n"
        f"**Total:** {fmt(receipt.total_amount)}  \n"
    )
    if not receipt.is_preview:
        totals += f"**Payment Method:** {payment_label(receipt.payment_method)}\n"
    footer = "\n---\n\nThank you for shopping with us!\n"
    return header + table + totals + footer


def render_text(receipt: Receipt, width: int = 40) -> str:
    """Fixed-width receipt for a printer or a log file."""
    rule = "-" * width
    lines = [
        config.STORE_NAME.center(width),
        config.STORE_ADDRESS.center(width),
        f"Tel: {config.STORE_PHONE}".center(width),
        rule,
        f"Receipt #: {receipt.receipt_number}",
        f"Date: {receipt.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        rule,
    ]
    for line in receipt.items:
        lines.append(line.product_name[:width])
        qty_price = f"  {line.quantity} x {fmt(line.unit_price)}"
        total = fmt(line.subtotal)
        lines.append(qty_price + total.rjust(width - len(qty_price)))
    lines.append(rule)

    def _row(label: str, value: str) -> str:
        return label + value.rjust(width - len(label))

    lines.append(_row("Subtotal:", fmt(receipt.subtotal)))
    lines.append(_row("Tax:", fmt(receipt.tax_amount)))
    lines.append(_row("TOTAL:", fmt(receipt.total_amount)))
    if not receipt.is_preview:
        lines.append(_row("Payment:", payment_label(receipt.payment_method)))
    lines.append(rule)
    lines.append("Thank you for shopping with us!".center(width))
    return "\n".join(lines)
