from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

from db.models import Receipt
from utils.logger import get_logger
from utils.receipt import render_markdown, render_text

_logger = get_logger(__name__)


class ReceiptModal(ModalScreen[bool]):
    """
    Shows a completed sale, or a preview of the cart.
    Print writes the plain-text receipt to the log.
    """

    def __init__(self, receipt: Receipt):
        super().__init__()
        self.receipt = receipt

    def compose(self) -> ComposeResult:
        with Vertical(id="div-receipt"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal(id="div-receipt-btns"):
                if not self.receipt.is_preview:
                    yield Button("Print", id="btn-print")
                yield Button("Close", id="btn-close", variant="primary")

    async def on_mount(self):
        await self.query_one(MarkdownViewer).document.update(render_markdown(self.receipt))
        self.query_one("#btn-close").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-print")
    def handle_print(self):
        _logger.info("\n" + render_text(self.receipt))
        self.notify(f"Receipt {self.receipt.receipt_number} sent to printer.")

    @on(Button.Pressed, "#btn-close")
    def handle_close(self):
        self.dismiss(True)
