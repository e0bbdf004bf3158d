from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils import config
from utils.messages import ModeSwitchedMessage, UserLogoutMessage
from utils.money import fmt
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal
from views.modal_resize import ResizeScreenPromptModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Operator", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    menu_role = None

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        await self.render_info()

    async def render_info(self) -> None:
        """Operator and shift table; the menu is rebuilt when the role changes."""
        state = self.app.state
        if not state.role:
            return

        if self.menu_role != state.role:
            list_menu: ListView = self.query_one("#list-menu")
            await list_menu.clear()
            await list_menu.extend(
                [
                    ListItem(Label(v), id="list-menu-item-" + k)
                    for k, v in self.app.modes_for(state.role).items()
                ]
            )
            self.menu_role = state.role
            self.highlight_item(self.init_mode)

        shift = state.current_shift()
        table_rows = [
            ["User ID", state.uid],
            ["Name", state.name],
            ["Role", (state.role or "").title()],
            ["Shift", f"#{shift.id}" if shift else "none"],
        ]
        if shift:
            table_rows.append(["Since", shift.start_time.strftime("%H:%M")])
            table_rows.append(["Float", fmt(shift.starting_cash)])
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Base Screen",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        :return:
        """

        # sub title from the mode this screen is registered under
        self.app.title = config.STORE_NAME
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in self.app.MODE_TITLES:
                self.sub_title = self.app.MODE_TITLES[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 80
        min_height = 24
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    @on(ScreenResume)
    async def refresh_sidebar(self) -> None:
        """Redraw operator and shift info, the shift may have changed elsewhere."""
        for sidebar in self.query(Sidebar):
            await sidebar.render_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
