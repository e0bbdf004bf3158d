from typing import Dict

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    QuitRequestedMessage,
    ShiftChangedMessage,
    UserLogoutMessage,
)
from utils.outcome import PosError
from utils.state import GlobalState
from views.base_screen import BaseScreen
from views.modal_shift import StartShiftModal
from views.scr_inventory import InventoryScreen
from views.scr_login import LoginScreen
from views.scr_pos import PosScreen
from views.scr_products import ProductsScreen
from views.scr_sales_report import SalesReportScreen
from views.scr_shifts import ShiftsScreen

_logger = get_logger(__name__)


class PosApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "pos": PosScreen,
        "shifts": ShiftsScreen,
        "inventory": InventoryScreen,
        "products": ProductsScreen,
        "report": SalesReportScreen,
    }

    CASHIER_MODES = {"pos": "Register", "shifts": "My Shifts"}
    MANAGER_MODES = {
        **CASHIER_MODES,
        "inventory": "Inventory",
        "products": "Products",
        "report": "Sales Report",
    }
    MODE_TITLES = MANAGER_MODES

    CSS_PATH = "styles/pos.tcss"

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def modes_for(self, role: str) -> Dict[str, str]:
        return self.MANAGER_MODES if role == "manager" else self.CASHIER_MODES

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    def handle_user_logout(self):
        _logger.info(f"Operator {self.state.uid} logged out")
        self.state.logout()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @on(ShiftChangedMessage)
    async def handle_shift_changed(self, message: ShiftChangedMessage):
        if isinstance(self.screen, BaseScreen):
            await self.screen.refresh_sidebar()
        if message.shift is None and self.state.uid is not None:
            self.shift_gate()

    async def ensure_shift(self) -> bool:
        """
        Block on the Start Shift prompt until the operator has an open shift.
        Returns False if they chose to log out instead.
        """
        try:
            await self.state.refresh_shift()
        except PosError as err:
            self.notify(err.message, severity="error")
        if not self.state.requires_shift:
            return True
        shift = await self.push_screen_wait(StartShiftModal())
        return shift is not None

    @work(exclusive=True, group="shift-gate")
    async def shift_gate(self):
        if not await self.ensure_shift():
            self.post_message(UserLogoutMessage())

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        while True:
            await self.push_screen_wait(LoginScreen())
            if await self.ensure_shift():
                break
            self.state.logout()

        self.post_message(ModeSwitchedMessage(self.current_mode, "pos"))
        await self.switch_mode("pos")


def main():
    app = PosApp()
    app.run()


if __name__ == "__main__":
    main()
