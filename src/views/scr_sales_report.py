from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer, Select

import db.crud as crud
from utils.messages import ModeSwitchedMessage
from utils.money import fmt
from utils.outcome import PosError
from utils.pure import generate_markdown_table
from utils.receipt import payment_label
from views.base_screen import BaseScreen

PERIODS = [
    ("Last 7 days", "7days"),
    ("Last 30 days", "30days"),
    ("This month", "month"),
]


class SalesReportScreen(BaseScreen):
    """
    Sales Insights: period summary, daily totals, payment mix and top products.
    """

    def __init__(self) -> None:
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Select(PERIODS, value="7days", allow_blank=False, id="select-period")
            yield MarkdownViewer(id="md-top", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    def on_select_changed(self, message: Select.Changed) -> None:
        self.handle_reload()

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        period = self.query_one("#select-period", Select).value
        start, end = crud.report_window(period)
        try:
            summary = await crud.sales_summary(start, end)
            top = await crud.top_products_by_revenue(start, end, k=5)
        except PosError as err:
            self.notify(err.message, severity="error")
            return

        label = dict((v, k) for k, v in PERIODS)[period]
        md = (
            f"### Sales Summary ({label})\n\n"
            f"- Total Sales: {fmt(summary['total_sales'])}\n"
            f"- Transactions: {summary['transactions']}\n"
            f"- Average Ticket: {fmt(summary['average_ticket'])}\n\n"
        )

        daily_rows = [[d["date"], d["count"], fmt(d["total"])] for d in summary["daily"]]
        md += "#### Daily Sales\n\n"
        md += (
            generate_markdown_table(["Date", "Sales", "Total"], daily_rows, ["l", "r", "r"])
            if daily_rows
            else "_No sales in this period._"
        )

        payment_rows = [
            [payment_label(method), fmt(amount)]
            for method, amount in sorted(summary["by_payment_method"].items())
        ]
        if payment_rows:
            md += "\n\n#### By Payment Method\n\n"
            md += generate_markdown_table(["Method", "Total"], payment_rows, ["l", "r"])

        top_rows = [[pid, name, qty, fmt(revenue)] for pid, name, qty, revenue in top]
        if top_rows:
            md += "\n\n#### Top Products by Revenue\n\n"
            md += generate_markdown_table(
                ["ID", "Name", "Qty Sold", "Revenue"], top_rows, ["r", "l", "r", "r"]
            )

        await self.query_one("#md-top", MarkdownViewer).document.update(md)
