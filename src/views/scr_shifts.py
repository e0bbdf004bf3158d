from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import DataTable, Label

import db.crud as crud
from db.models import ShiftSummary
from utils.checkout import reprint_receipt
from utils.messages import ModeSwitchedMessage
from utils.money import fmt
from utils.outcome import PosError
from utils.receipt import payment_label
from views.base_screen import BaseScreen
from views.modal_receipt import ReceiptModal


class ShiftsScreen(BaseScreen):
    """
    The operator's shifts, newest first. Highlighting one lists its sales,
    selecting a sale opens its receipt for a reprint.
    """

    def __init__(self) -> None:
        super().__init__()
        self._summaries: List[ShiftSummary] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-shifts")
            yield Label("", id="label-shift-sales")
            yield DataTable(id="table-shift-sales")

    def on_mount(self) -> None:
        shifts = self.query_one("#table-shifts", DataTable)
        shifts.cursor_type = "row"
        shifts.zebra_stripes = True
        shifts.add_columns(
            "Shift", "Started", "Ended", "Status", "Float", "Sales", "Total",
            "Expected", "Counted", "Variance",
        )
        sales = self.query_one("#table-shift-sales", DataTable)
        sales.cursor_type = "row"
        sales.add_columns("Receipt", "Time", "Payment", "Tax", "Total")
        self.handle_reload()

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        try:
            self._summaries = await crud.list_shifts(self.app.state.uid)
        except PosError as err:
            self.notify(err.message, severity="error")
            return

        def opt(val) -> str:
            return fmt(val) if val is not None else "-"

        table = self.query_one("#table-shifts", DataTable)
        table.clear()
        for s in self._summaries:
            sh = s.shift
            table.add_row(
                f"#{sh.id}",
                sh.start_time.strftime("%Y-%m-%d %H:%M"),
                sh.end_time.strftime("%Y-%m-%d %H:%M") if sh.end_time else "-",
                sh.status,
                fmt(sh.starting_cash),
                s.sales_count,
                fmt(s.sales_total),
                opt(sh.expected_cash),
                opt(sh.closing_cash),
                opt(sh.variance),
                key=str(sh.id),
            )

    @on(DataTable.RowHighlighted, "#table-shifts")
    @work(exclusive=True, group="shift-sales")
    async def handle_shift_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        shift_id = int(event.row_key.value)
        try:
            sales = await crud.list_sales_for_shift(shift_id)
        except PosError as err:
            self.notify(err.message, severity="error")
            return

        caption = f"Sales in shift #{shift_id}"
        if not sales:
            caption += ": none recorded"
        self.query_one("#label-shift-sales", Label).update(caption)

        table = self.query_one("#table-shift-sales", DataTable)
        table.clear()
        for sale in sales:
            table.add_row(
                sale.receipt_number,
                sale.created_at.strftime("%H:%M:%S"),
                payment_label(sale.payment_method),
                fmt(sale.tax_amount),
                fmt(sale.total_amount),
                key=str(sale.id),
            )

    @on(DataTable.RowSelected, "#table-shift-sales")
    @work(exclusive=True, group="reprint")
    async def handle_sale_selected(self, event: DataTable.RowSelected) -> None:
        outcome = await reprint_receipt(int(event.row_key.value))
        if not outcome:
            self.notify(outcome.message, severity=outcome.severity)
            return
        await self.app.push_screen_wait(ReceiptModal(outcome.value))
