from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from services.accounts import login_user, register_user
from utils.errors import StoreError
from views.base_screen import BaseScreen


class LoginScreen(BaseScreen):
    """
    Login / sign up. Dismisses with True once a session is established,
    False if the user backs out.
    """

    SUB_TITLE = "Login"

    def __init__(self, reason: str = ""):
        super().__init__(show_sidebar=False)
        self._reason = reason

    def compose(self) -> ComposeResult:
        yield from super().compose()
        if self._reason:
            yield Label(self._reason, id="label-login-reason")
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-login-pwd")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Back", id="btn-back")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password (6+ characters)")
                    yield Input(placeholder="*********", password=True, id="input-reg-pwd")
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-login")
    @on(Input.Submitted, "#input-login-pwd")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        try:
            session = await login_user(email, pwd)
        except StoreError as e:
            self.notify_error(e)
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        self.app.state.session.login(session)
        role = "admin" if self.app.state.session.is_admin else "user"
        self.notify(f"You have successfully logged in as {role}!", title="Welcome")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-reg")
    @on(Input.Submitted, "#input-reg-pwd")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value

        try:
            await register_user(email, pwd)
        except StoreError as e:
            self.notify_error(e)
            return

        # hand over to the login tab with the fields prefilled
        self.query_one(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = pwd
        input_login_pwd.focus()

        self.notify("Registration successful. You can log in now.", title="Account Created")

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.dismiss(False)
