from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label

import db.crud as crud
from utils.logger import get_logger
from utils.outcome import PosError
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal

_logger = get_logger(__name__)


class LoginScreen(BaseScreen):
    """
    Operator login. Dismissed once app.state holds the operator.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-login"):
            yield Label("Operator ID")
            yield Input(placeholder="1001", id="input-login-uid", type="integer")
            yield Label("Password")
            yield Input(placeholder="*********", password=True, id="input-login-pwd")
            with Horizontal(id="div-login-btns"):
                yield Button("Quit", id="btn-quit")
                yield Button("Login", id="btn-login", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-uid").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        uid_input = self.query_one("#input-login-uid", Input)
        pwd_input = self.query_one("#input-login-pwd", Input)
        uid = uid_input.value.strip()
        pwd = pwd_input.value.strip()

        if not uid or not pwd:
            self.notify("Operator ID or password cannot be empty!", severity="error")
            (uid_input if not uid else pwd_input).add_class("-invalid")
            return
        if not uid.isdigit():
            self.notify("Operator ID must be a number.", severity="error")
            uid_input.add_class("-invalid")
            uid_input.focus()
            return

        try:
            operator = await crud.login(int(uid), pwd)
        except PosError as err:
            self.notify(err.message, severity="error")
            return

        if operator:
            self.app.state.login(operator)
            _logger.info(f"Operator {operator.uid} ({operator.role}) logged in")
            self.notify(f"Hello {operator.name}!")
            self.dismiss()
        else:
            self.notify("Invalid operator ID or password.", severity="error")
            pwd_input.value = ""
            pwd_input.focus()
            pwd_input.add_class("-invalid")

    @on(Input.Changed)
    def clear_invalid(self, event: Input.Changed) -> None:
        event.input.remove_class("-invalid")

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
