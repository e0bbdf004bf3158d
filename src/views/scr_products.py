from typing import Dict

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, Select

import db.crud as crud
from db.models import Category, Product
from utils.messages import ModeSwitchedMessage
from utils.money import fmt
from utils.outcome import PosError
from utils.pure import stock_status
from views.base_screen import BaseScreen
from views.modal_product_form import ProductFormModal


class ProductsScreen(BaseScreen):
    """
    Product catalogue for managers: filter by name, barcode or category,
    add new products and edit existing ones.
    """

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[int, Product] = {}
        self._categories: Dict[int, Category] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalogue-filter"):
            yield Input(id="input-search", placeholder="Search by name or barcode...")
            yield Select([], prompt="All categories", id="select-category")
        yield DataTable(id="table-catalogue")
        with Horizontal(id="hort-buttons"):
            yield Button("Edit", id="btn-edit-product")
            yield Button("Add Product", id="btn-add-product", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Barcode", "Price", "Cost", "Stock", "Status")
        self.load_categories()

    @work(exclusive=True, group="categories")
    async def load_categories(self) -> None:
        try:
            categories = await crud.list_categories()
        except PosError as err:
            self.notify(err.message, severity="error")
            return
        self._categories = {c.id: c for c in categories}
        self.query_one("#select-category", Select).set_options(
            [(c.name, c.id) for c in categories]
        )
        self.handle_reload()

    def on_input_changed(self, message: Input.Changed) -> None:
        self.handle_reload()

    def on_select_changed(self, message: Select.Changed) -> None:
        self.handle_reload()

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        search = self.query_one("#input-search", Input).value
        category = self.query_one("#select-category", Select).value
        category_id = None if category is Select.BLANK else category
        try:
            products = await crud.list_products(search, category_id)
        except PosError as err:
            self.notify(err.message, severity="error")
            return
        self._products = {p.id: p for p in products}

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            cat = self._categories.get(p.category_id)
            table.add_row(
                p.id,
                p.name,
                cat.name if cat else "-",
                p.barcode or "-",
                fmt(p.price),
                fmt(p.cost_price) if p.cost_price is not None else "-",
                p.stock_quantity,
                stock_status(p.stock_quantity),
                key=str(p.id),
            )

    @on(Button.Pressed, "#btn-add-product")
    @work
    async def handle_add(self) -> None:
        saved = await self.app.push_screen_wait(
            ProductFormModal(list(self._categories.values()))
        )
        if saved:
            self.handle_reload()

    @on(DataTable.RowSelected)
    @on(Button.Pressed, "#btn-edit-product")
    @work
    async def handle_edit(self) -> None:
        table = self.query_one(DataTable)
        if not table.row_count:
            self.notify("No product selected.", severity="warning")
            return
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        product = self._products.get(int(row_key.value))
        if product is None:
            return
        saved = await self.app.push_screen_wait(
            ProductFormModal(list(self._categories.values()), product)
        )
        if saved:
            self.handle_reload()
