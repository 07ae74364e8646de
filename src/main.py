import argparse
import asyncio
from typing import Optional

from rich.console import Console
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from services.accounts import complete_external_sign_in, grant_admin
from services.catalog import fetch_products
from utils.config import settings
from utils.errors import StoreError
from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    OrderPlacedMessage,
    QuitRequestedMessage,
    SessionChangedMessage,
    UserLogoutMessage,
)
from utils.state import AppState
from utils.storage import LocalStorage
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_assistant import AssistantScreen
from views.scr_cart import CartScreen
from views.scr_catalog import ProductCatalogScreen
from views.scr_login import LoginScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": ProductCatalogScreen,
        "cart": CartScreen,
        "assistant": AssistantScreen,
        "admin_orders": AdminOrdersScreen,
    }

    SHOP_MODES = {
        "catalog": "Browse Products",
        "cart": "Cart",
        "assistant": "Shopping Assistant",
    }
    ADMIN_MODES = {"admin_orders": "Order Management"}

    CSS_PATH = "views/styles/storefront.tcss"

    state: AppState

    def __init__(self, state: Optional[AppState] = None, access_token: Optional[str] = None):
        super().__init__()
        self.state = state or AppState(LocalStorage(settings.storage_path))
        self._access_token = access_token

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.state.restore()
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    async def request_login(self, reason: str = "") -> bool:
        """
        Show the login screen on top of the current one and wait for it.
        Must be awaited from a worker. Returns True if the user logged in.
        """
        logged_in = await self.push_screen_wait(LoginScreen(reason))
        if logged_in:
            self.screen.post_message(SessionChangedMessage())
        return bool(logged_in)

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        remote_ok = await self.state.session.logout()
        if remote_ok:
            self.notify("Logout successful.")
        else:
            self.notify(
                "Signed out locally, but the server could not be reached.",
                title="Logout",
                severity="warning",
            )
        if self.current_mode == "admin_orders":
            await self.switch_mode("catalog")
        self.screen.post_message(SessionChangedMessage())

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage):
        _logger.debug(f"Mode switched: {message.old_mode} -> {message.new_mode}")

    @on(OrderPlacedMessage)
    def handle_order_placed(self, message: OrderPlacedMessage):
        _logger.info(f"Order {message.order_id} placed from the cart screen")

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work
    async def main_flow(self):
        if self._access_token:
            try:
                session = await complete_external_sign_in(self._access_token)
            except StoreError as e:
                self.notify(e.description, title=e.title, severity="error")
            else:
                self.state.session.login(session)
                role = "admin" if self.state.session.is_admin else "user"
                self.notify(f"You have successfully logged in as {role}!")

        try:
            self.state.replace_products(await fetch_products())
        except StoreError as e:
            self.notify(
                "Failed to load products. Please try again later.",
                title=e.title,
                severity="error",
            )

        await self.switch_mode("catalog")


def _set_admin_command(email: str, is_admin: bool) -> int:
    console = Console()
    try:
        asyncio.run(grant_admin(email, is_admin))
    except StoreError as e:
        console.print(f"[bold red]{e.title}:[/] {e.description}")
        return 1
    action = "is now an administrator" if is_admin else "is no longer an administrator"
    console.print(f"[green]{email.strip()} {action}.[/]")
    return 0


def run(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="storefront", description="Terminal storefront.")
    parser.add_argument(
        "--access-token",
        help="complete a sign-in started with an external provider",
    )
    admin = parser.add_mutually_exclusive_group()
    admin.add_argument(
        "--grant-admin",
        metavar="EMAIL",
        help="give an existing account access to order management, then exit",
    )
    admin.add_argument(
        "--revoke-admin",
        metavar="EMAIL",
        help="remove order management access from an account, then exit",
    )
    args = parser.parse_args(argv)

    if args.grant_admin or args.revoke_admin:
        raise SystemExit(
            _set_admin_command(args.grant_admin or args.revoke_admin, bool(args.grant_admin))
        )

    StorefrontApp(access_token=args.access_token).run()


if __name__ == "__main__":
    run()
