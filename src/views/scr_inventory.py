from __future__ import annotations

from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList, Select
from textual.widgets.option_list import Option

import db.crud as crud
from db.models import Product
from utils.money import fmt
from utils.outcome import PosError
from utils.pure import generate_markdown_table, stock_status
from views.base_screen import BaseScreen

ACTIONS = [
    ("Restock (goods received)", "restock"),
    ("Adjust up", "increase"),
    ("Adjust down", "decrease"),
]


class InventoryScreen(BaseScreen):
    """
    Managers look up a product, then restock it or correct its stock.
    Every change is written to the stock history shown under the product.
    """

    current_pid: Optional[int] = None

    def __init__(self) -> None:
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Search for product...")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Label("Action:")
                    yield Select(ACTIONS, value="restock", allow_blank=False, id="select-action")
                with Vertical():
                    yield Label("Quantity:")
                    yield Input(
                        placeholder="1",
                        id="input-qty",
                        type="integer",
                        validators=[Number(minimum=1)],
                    )
                with Vertical():
                    yield Label("Notes:")
                    yield Input(placeholder="optional", id="input-notes")
                with Horizontal(id="div-button"):
                    yield Button("Apply", id="btn-apply", variant="success")

    def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")
        self.update_optlist("")

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_one("#optlist-prods").remove_class("hidden")
            self.update_optlist(message.value)
        else:
            message.input.remove_class("-invalid")

    def on_option_list_option_selected(self, message: OptionList.OptionSelected):
        self.current_pid = int(message.option.id)
        self.render_product()

        self.query_one("#optlist-prods").add_class("hidden")
        self.query_one("#md-prod").remove_class("hidden")
        self.query_one("#hort-controls").remove_class("hidden")
        self.query_one("#input-qty").focus()

    @work(exclusive=True, group="search")
    async def update_optlist(self, query: str):
        try:
            products: List[Product] = await crud.list_products(query)
        except PosError as err:
            self.notify(err.message, severity="error")
            return

        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [
                Option(f"{p.id} {p.name} ({p.stock_quantity} in stock)", id=str(p.id))
                for p in products
            ]
        )

    @work(exclusive=True, group="detail")
    async def render_product(self) -> None:
        try:
            prod = await crud.get_product(self.current_pid)
            history = await crud.list_inventory_transactions(self.current_pid, limit=20)
        except PosError as err:
            self.notify(err.message, severity="error")
            return
        if prod is None:
            self.notify("Product no longer exists.", severity="error")
            return

        detail = generate_markdown_table(
            ["Attribute", "Value"],
            [
                ["ID", prod.id],
                ["Name", prod.name],
                ["Barcode", prod.barcode or "-"],
                ["Price", fmt(prod.price)],
                ["Stock", prod.stock_quantity],
                ["Status", stock_status(prod.stock_quantity)],
            ],
            ["l", "l"],
        )
        rows = [
            [
                t.created_at.strftime("%Y-%m-%d %H:%M"),
                t.transaction_type,
                f"{t.quantity:+d}",
                t.user_id,
                t.notes or "",
            ]
            for t in history
        ]
        trail = (
            generate_markdown_table(
                ["When", "Type", "Change", "By", "Notes"], rows, ["l", "l", "r", "c", "l"]
            )
            if rows
            else "_No stock movements yet._"
        )
        await self.query_one("#md-prod", MarkdownViewer).document.update(
            f"### {prod.name}\n\n{detail}\n\n#### Stock history\n\n{trail}"
        )

    @on(Button.Pressed, "#btn-apply")
    @work(exclusive=True, group="apply")
    async def handle_apply(self) -> None:
        if self.current_pid is None:
            return
        qty_input = self.query_one("#input-qty", Input)
        action = self.query_one("#select-action", Select).value
        notes = self.query_one("#input-notes", Input).value.strip() or None

        try:
            if action == "restock":
                prod = await crud.restock(
                    self.current_pid, qty_input.value, self.app.state.uid, notes
                )
            else:
                prod = await crud.adjust_stock(
                    self.current_pid, action, qty_input.value, self.app.state.uid, notes
                )
        except PosError as err:
            qty_input.add_class("-invalid")
            qty_input.focus()
            self.notify(err.message, severity="error" if err.kind.is_retryable else "warning")
            return

        self.notify(f"{prod.name}: stock is now {prod.stock_quantity}.")
        qty_input.value = ""
        self.query_one("#input-notes", Input).value = ""
        self.render_product()
