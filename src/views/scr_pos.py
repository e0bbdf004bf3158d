from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, Label, RadioButton, RadioSet, Rule

import db.crud as crud
from db.models import Product
from utils.checkout import checkout, preview_receipt
from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
)
from utils.money import fmt
from utils.outcome import Outcome, PosError
from utils.pure import stock_status
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_receipt import ReceiptModal
from views.modal_shift import EndShiftModal


class PosScreen(BaseScreen):
    """
    Register: product lookup on the left, cart and totals on the right.
    """

    BINDINGS = [
        Binding("f2", "focus_search", "Search", show=True),
        Binding("plus", "increase", "Qty +1", show=True),
        Binding("minus", "decrease", "Qty -1", show=True),
        Binding("delete", "remove", "Remove", show=True),
        Binding("f8", "preview", "Preview", show=True),
        Binding("f9", "checkout", "Checkout", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[int, Product] = {}
        self._checking_out = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-pos"):
            with Vertical(id="div-products"):
                yield Input(id="input-search", placeholder="Search by name or scan barcode...")
                yield DataTable(id="table-products")
            with Vertical(id="div-cart"):
                yield Label("Cart", id="label-cart-title")
                yield DataTable(id="table-cart")
                yield Rule(line_style="dashed")
                yield Label("", id="label-totals")
                with RadioSet(id="radio-payment"):
                    yield RadioButton("Cash", value=True, id="radio-cash")
                    yield RadioButton("Card", id="radio-card")
                with Horizontal(id="hort-cart-buttons"):
                    yield Button("Clear", id="btn-clear-cart")
                    yield Button("Preview", id="btn-preview")
                    yield Button("Checkout", id="btn-checkout", variant="primary")
                yield Button("End Shift", id="btn-end-shift", variant="warning")

    def on_mount(self) -> None:
        products = self.query_one("#table-products", DataTable)
        products.cursor_type = "row"
        products.zebra_stripes = True
        products.add_columns("ID", "Name", "Price", "Stock", "Status")

        cart = self.query_one("#table-cart", DataTable)
        cart.cursor_type = "row"
        cart.add_columns("Item", "Qty", "Price", "Subtotal")

        self.render_cart()
        self.update_products("")
        self.query_one("#input-search").focus()

    @property
    def cart(self):
        return self.app.state.cart

    @property
    def payment_method(self) -> str:
        card = self.query_one("#radio-card", RadioButton)
        return "card" if card.value else "cash"

    def _report(self, outcome: Outcome) -> None:
        if not outcome:
            self.notify(outcome.message, severity=outcome.severity)

    # ---------------------------
    # Products
    # ---------------------------

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.update_products(message.value)

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    def handle_resume(self) -> None:
        self.update_products(self.query_one("#input-search", Input).value)
        self.render_cart()

    @work(exclusive=True, group="products")
    async def update_products(self, query: str) -> None:
        try:
            products = await crud.list_products(query)
        except PosError as err:
            self.notify(err.message, severity="error")
            return
        self._products = {p.id: p for p in products}

        table = self.query_one("#table-products", DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.id, p.name, fmt(p.price), p.stock_quantity, stock_status(p.stock_quantity),
                key=str(p.id),
            )

    @on(Input.Submitted, "#input-search")
    def handle_scan(self, message: Input.Submitted) -> None:
        """A barcode scanner types the code and presses enter."""
        code = message.value.strip()
        match = next((p for p in self._products.values() if p.barcode == code), None)
        if match is None and len(self._products) == 1:
            match = next(iter(self._products.values()))
        if match is None:
            self.query_one("#table-products").focus()
            return
        self.add_to_cart(match)
        message.input.value = ""

    @on(DataTable.RowSelected, "#table-products")
    def handle_product_selected(self, event: DataTable.RowSelected) -> None:
        product = self._products.get(int(event.row_key.value))
        if product:
            self.add_to_cart(product)

    def add_to_cart(self, product: Product) -> None:
        outcome = self.cart.add_item(product)
        self._report(outcome)
        if outcome:
            self.post_message(CartChangedMessage())

    # ---------------------------
    # Cart
    # ---------------------------

    def _selected_cart_pid(self) -> Optional[int]:
        table = self.query_one("#table-cart", DataTable)
        if not table.row_count:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return int(row_key.value)

    @on(CartChangedMessage)
    def render_cart(self) -> None:
        table = self.query_one("#table-cart", DataTable)
        cursor = table.cursor_row
        table.clear()
        for line in self.cart.lines:
            table.add_row(
                line.product.name,
                line.quantity,
                fmt(line.unit_price),
                fmt(line.subtotal),
                key=str(line.product_id),
            )
        if table.row_count:
            table.move_cursor(row=min(cursor, table.row_count - 1))

        self.query_one("#label-totals", Label).update(
            f"Items: {self.cart.item_count()}\n"
            f"Subtotal: {fmt(self.cart.subtotal())}\n"
            f"Tax: {fmt(self.cart.tax())}\n"
            f"Total: {fmt(self.cart.grand_total())}"
        )

    def _change_selected(self, op) -> None:
        pid = self._selected_cart_pid()
        if pid is None:
            return
        outcome = op(pid)
        self._report(outcome)
        if outcome and outcome.message:
            self.notify(outcome.message)
        self.post_message(CartChangedMessage())

    def action_increase(self) -> None:
        self._change_selected(self.cart.increase_quantity)

    def action_decrease(self) -> None:
        self._change_selected(self.cart.decrease_quantity)

    @work
    async def action_remove(self) -> None:
        pid = self._selected_cart_pid()
        if pid is None:
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Remove this item from the cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            self._change_selected(self.cart.remove_item)

    def action_focus_search(self) -> None:
        self.query_one("#input-search").focus()

    @on(Button.Pressed, "#btn-clear-cart")
    @work
    async def handle_clear_cart(self) -> None:
        if self.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Remove all items from the cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.cart.clear()
            self.post_message(CartChangedMessage())

    # ---------------------------
    # Checkout
    # ---------------------------

    @on(Button.Pressed, "#btn-preview")
    def action_preview(self) -> None:
        outcome = preview_receipt(self.cart)
        if not outcome:
            self._report(outcome)
            return
        self.app.push_screen(ReceiptModal(outcome.value))

    @on(Button.Pressed, "#btn-checkout")
    def action_checkout(self) -> None:
        # shared by F9 and the button
        if self._checking_out:
            return
        if self.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return
        self._checking_out = True
        self.query_one("#btn-checkout", Button).disabled = True
        self.run_checkout()

    @work(group="checkout")
    async def run_checkout(self) -> None:
        try:
            await self._confirm_and_checkout()
        finally:
            self._checking_out = False
            self.query_one("#btn-checkout", Button).disabled = False

    async def _confirm_and_checkout(self) -> None:
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Charge {fmt(self.cart.grand_total())} by {self.payment_method}?",
                primary_text="Complete Sale",
                secondary_text="Back",
                tone="positive",
            )
        ):
            return

        outcome = await checkout(self.app.state, self.cart, self.payment_method)
        if not outcome:
            self._report(outcome)
            # stock may have moved under us
            self.update_products(self.query_one("#input-search", Input).value)
            return

        self.notify(outcome.message)
        self.post_message(CartChangedMessage())
        self.update_products(self.query_one("#input-search", Input).value)
        await self.app.push_screen_wait(ReceiptModal(outcome.value))

    @on(Button.Pressed, "#btn-end-shift")
    @work(exclusive=True, group="end-shift")
    async def handle_end_shift(self) -> None:
        shift = self.app.state.current_shift()
        if shift is None:
            self.notify("No active shift.", severity="warning")
            return
        if not self.cart.is_empty:
            self.notify("Complete or clear the current sale first.", severity="warning")
            return
        await self.app.push_screen_wait(EndShiftModal(shift))
