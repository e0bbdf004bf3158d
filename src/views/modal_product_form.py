from typing import List, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, Select

import db.crud as crud
from db.models import Category, Product
from utils.outcome import ErrorKind, PosError


class ProductFormModal(ModalScreen[Optional[Product]]):
    """
    Add a product, or edit one when a Product is passed in.
    Stock of an existing product is changed through the inventory screen,
    so the stock field is only shown when adding.
    Dismisses with the saved Product, or None when cancelled.
    """

    def __init__(self, categories: List[Category], product: Optional[Product] = None):
        super().__init__()
        self.categories = categories
        self.product = product

    def compose(self) -> ComposeResult:
        p = self.product
        with Vertical(id="div-product-form"):
            yield Label("Edit Product" if p else "New Product", id="label-form-title")
            yield Label("Name")
            yield Input(p.name if p else "", placeholder="Whole Milk", id="input-name")
            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Price ($)")
                    yield Input(
                        f"{p.price:.2f}" if p else "",
                        placeholder="0.00",
                        id="input-price",
                        type="number",
                        validators=[Number(minimum=0)],
                    )
                with Vertical():
                    yield Label("Cost price ($)")
                    yield Input(
                        f"{p.cost_price:.2f}" if p and p.cost_price is not None else "",
                        placeholder="optional",
                        id="input-cost",
                        type="number",
                    )
                if p is None:
                    with Vertical():
                        yield Label("Opening stock")
                        yield Input(
                            "0",
                            id="input-stock",
                            type="integer",
                            validators=[Number(minimum=0)],
                        )
            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Category")
                    yield Select(
                        [(c.name, c.id) for c in self.categories],
                        value=p.category_id if p and p.category_id else Select.BLANK,
                        id="select-category",
                    )
                with Vertical():
                    yield Label("Barcode")
                    yield Input((p.barcode or "") if p else "", id="input-barcode")
            yield Label("Description")
            yield Input((p.description or "") if p else "", id="input-description")
            with Horizontal(id="div-form-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("Save", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    def on_input_changed(self, message: Input.Changed) -> None:
        message.input.remove_class("-invalid")

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        category = self.query_one("#select-category", Select).value
        fields = {
            "name": self.query_one("#input-name", Input).value,
            "price": self.query_one("#input-price", Input).value,
            "cost_price": self.query_one("#input-cost", Input).value,
            "category_id": None if category is Select.BLANK else category,
            "barcode": self.query_one("#input-barcode", Input).value,
            "description": self.query_one("#input-description", Input).value,
        }
        try:
            if self.product is None:
                saved = await crud.add_product(
                    stock_quantity=self.query_one("#input-stock", Input).value or 0,
                    **fields,
                )
            else:
                saved = await crud.update_product(self.product.id, **fields)
        except PosError as err:
            if err.kind is ErrorKind.VALIDATION:
                self.notify(err.message, severity="warning")
            else:
                self.notify(err.message, severity="error")
            return
        self.notify(f"Saved {saved.name}.")
        self.dismiss(saved)
