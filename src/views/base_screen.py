from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.errors import StoreError
from utils.messages import ModeSwitchedMessage, SessionChangedMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    def compose(self) -> ComposeResult:
        yield Label("Account", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log in", id="btn-login", variant="primary")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    def on_mount(self):
        self.render_session()

    @work(exclusive=True)  # must be exclusive, else two renders race and mount duplicate ids
    async def render_session(self) -> None:
        """Re-render user info and the menu for whoever is logged in now."""
        session = self.app.state.session

        if session.is_logged_in:
            rows = [
                ["Email", session.user.email],
                ["Role", "Administrator" if session.is_admin else "Customer"],
            ]
        else:
            rows = [["Browsing as", "Guest"]]
        await self.query_one("#md-userinfo", Markdown).update(
            generate_markdown_table(None, rows, ["l", "l"])
        )
        self.query_one("#btn-login").display = not session.is_logged_in
        self.query_one("#btn-logout").display = session.is_logged_in

        modes = dict(self.app.SHOP_MODES)
        if session.is_admin:
            modes.update(self.app.ADMIN_MODES)

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.app.current_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-login")
    @work()
    async def handle_login(self):
        await self.app.request_login()

    @on(Button.Pressed, "#btn-logout")
    @work()
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
            item.highlighted = item.id == "list-menu-item-" + str(mode_str)


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    SUB_TITLE = "Storefront"

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self, show_sidebar: bool = True):
        super().__init__()
        self._show_sidebar = show_sidebar
        self.app.title = "Storefront"
        self.sub_title = self.SUB_TITLE

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    @on(SessionChangedMessage)
    def handle_session_changed(self) -> None:
        for sidebar in self.query(Sidebar):
            if sidebar.is_mounted:
                sidebar.render_session()

    def notify_error(self, error: StoreError) -> None:
        """Turn a store failure into a toast."""
        self.notify(error.description, title=error.title, severity="error")

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
