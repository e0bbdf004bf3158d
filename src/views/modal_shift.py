from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, Markdown

import db.crud as crud
from db.models import Shift
from utils.messages import ShiftChangedMessage
from utils.money import fmt
from utils.outcome import PosError
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal, SimpleDialogModal


class StartShiftModal(ModalScreen[Optional[Shift]]):
    """
    Blocking prompt for the opening float. There is no way past it other
    than starting a shift or logging out; dismisses with the active Shift,
    or None when the operator chose to log out.
    """

    BINDINGS = [("ctrl+z", "quit", "Quit App")]

    def compose(self) -> ComposeResult:
        with Vertical(id="div-shift"):
            yield Label("Start Shift", id="label-shift-title")
            yield Label("No active shift. Count the drawer and enter the starting cash.")
            yield Input(
                placeholder="0.00",
                id="input-starting-cash",
                type="number",
                validators=[Number(minimum=0)],
            )
            with Horizontal(id="div-shift-btns"):
                yield Button("Log out", id="btn-shift-logout", variant="error")
                yield Button("Start Shift", id="btn-shift-start", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-starting-cash").focus()

    @on(Input.Submitted, "#input-starting-cash")
    @on(Button.Pressed, "#btn-shift-start")
    @work(exclusive=True)
    async def handle_start(self) -> None:
        cash_input = self.query_one("#input-starting-cash", Input)
        outcome = await self.app.state.start_shift(cash_input.value)
        if not outcome:
            cash_input.add_class("-invalid")
            cash_input.focus()
            self.notify(outcome.message, severity=outcome.severity)
            return
        self.notify(outcome.message)
        self.app.post_message(ShiftChangedMessage(outcome.value))
        self.dismiss(outcome.value)

    @on(Button.Pressed, "#btn-shift-logout")
    def handle_logout(self) -> None:
        self.dismiss(None)

    @work
    async def action_quit(self) -> None:
        await self.app.push_screen_wait(QuitDialogModal())


class EndShiftModal(ModalScreen[Optional[Shift]]):
    """
    Shows the running figures for the active shift and closes it.
    Closing cash is optional; without it no variance is recorded.
    """

    def __init__(self, shift: Shift) -> None:
        super().__init__()
        self.shift = shift

    def compose(self) -> ComposeResult:
        with Vertical(id="div-shift"):
            yield Label("End Shift", id="label-shift-title")
            yield Markdown("", id="md-shift-figures")
            yield Label("Closing cash (counted)")
            yield Input(
                placeholder="leave blank to skip",
                id="input-closing-cash",
                type="number",
                validators=[Number(minimum=0)],
            )
            with Horizontal(id="div-shift-btns"):
                yield Button("Cancel", id="btn-shift-cancel")
                yield Button("End Shift", id="btn-shift-end", variant="warning")

    async def on_mount(self) -> None:
        try:
            count, total = await crud.shift_sales_total(self.shift.id)
        except PosError as err:
            self.notify(err.message, severity="error")
            count, total = 0, None
        rows = [
            ["Shift", f"#{self.shift.id}"],
            ["Started", self.shift.start_time.strftime("%Y-%m-%d %H:%M")],
            ["Starting cash", fmt(self.shift.starting_cash)],
            ["Sales", count],
        ]
        if total is not None:
            rows.append(["Sales total", fmt(total)])
            rows.append(["Expected cash", fmt(self.shift.starting_cash + total)])
        await self.query_one("#md-shift-figures", Markdown).update(
            generate_markdown_table(None, rows, ["l", "r"])
        )
        self.query_one("#input-closing-cash").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-shift-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#btn-shift-end")
    @work(exclusive=True)
    async def handle_end(self) -> None:
        closing = self.query_one("#input-closing-cash", Input).value.strip()
        if not await self.app.push_screen_wait(
            DialogModal(
                "End this shift? A closed shift cannot be reopened.",
                primary_text="End Shift",
                secondary_text="Cancel",
                tone="warning",
            )
        ):
            return

        outcome = await self.app.state.end_shift(closing or None)
        if not outcome:
            self.notify(outcome.message, severity=outcome.severity)
            return

        closed: Shift = outcome.value
        summary = f"Shift #{closed.id} closed. Expected cash {fmt(closed.expected_cash)}."
        if closed.variance is not None:
            summary += f" Counted {fmt(closed.closing_cash)}, variance {fmt(closed.variance)}."
        await self.app.push_screen_wait(SimpleDialogModal(summary, tone="positive"))
        self.app.post_message(ShiftChangedMessage(None))
        self.dismiss(closed)
