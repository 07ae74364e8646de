from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, Label, Rule

from db.models import CartItem
from services.catalog import fetch_products
from services.checkout import checkout
from utils.config import settings
from utils.errors import AuthenticationError, StoreError
from utils.messages import CartChangedMessage, OrderPlacedMessage
from utils.pure import compute_totals, format_money
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


class CartItemWidget(HorizontalGroup):
    """One cart line with a quantity stepper."""

    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:
        with Container(classes="div-item"):
            yield Label(self.item.name, classes="label-item-name")
            yield Label(format_money(self.item.price), classes="label-item-price")
            yield Label(format_money(self.item.line_total), classes="label-item-total")
        with Container(classes="div-actions"):
            yield Button("-", classes="btn-dec", disabled=self.item.quantity <= 1)
            yield Label(str(self.item.quantity), classes="label-item-qty")
            yield Button("+", classes="btn-inc")
            yield Button("Remove", classes="btn-remove", variant="error")

    def _set_quantity(self, quantity: int) -> None:
        state = self.app.state
        try:
            changed = state.cart.set_quantity(
                self.item.product_id, quantity, stock=state.known_stock(self.item.product_id)
            )
        except StoreError as e:
            self.notify(e.description, title=e.title, severity="error")
            return
        if changed:
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, ".btn-inc")
    def handle_increment(self):
        self._set_quantity(self.item.quantity + 1)

    @on(Button.Pressed, ".btn-dec")
    def handle_decrement(self):
        self._set_quantity(self.item.quantity - 1)

    @on(Button.Pressed, ".btn-remove")
    def handle_remove(self):
        self.app.state.cart.remove(self.item.product_id)
        self.notify("Item has been removed from your cart.", title="Removed from Cart")
        self.post_message(CartChangedMessage())


class CartScreen(BaseScreen):
    """
    Cart lines with steppers, running totals and checkout.
    """

    SUB_TITLE = "Cart"

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("", id="label-cart-subtotal")
        yield Label("", id="label-cart-tax")
        yield Label("", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # must be exclusive, else two rebuilds race and duplicate rows
    async def handle_cart_change(self):
        cart_items = self.app.state.cart.items

        content = self.query_one("#vertscroll-content")
        shown = [c.item for c in content.children if isinstance(c, CartItemWidget)]
        if shown != cart_items or not cart_items:
            await content.remove_children()
            await content.mount_all([CartItemWidget(item) for item in cart_items])

        content.set_class(not cart_items, "no-items")

        subtotal, tax, total = compute_totals(cart_items, settings.tax_rate)
        self.sub_title = f"Cart ({len(cart_items)})"
        self.query_one("#label-cart-subtotal", Label).update(f"Subtotal: {format_money(subtotal)}")
        self.query_one("#label-cart-tax", Label).update(
            f"Tax ({settings.tax_rate:.0%}): {format_money(tax)}"
        )
        self.query_one("#label-cart-total", Label).update(f"Total: {format_money(total)}")
        self.query_one("#btn-checkout", Button).disabled = not cart_items

    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="refresh")
    async def handle_refresh(self) -> None:
        """Re-read stock for the snapshot the stepper and checkout rely on."""
        try:
            self.app.state.replace_products(await fetch_products())
        except StoreError as e:
            self.notify_error(e)
            return
        self.notify("Stock levels refreshed.")
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not len(self.app.state.cart):
            self.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.cart.clear()
            self.notify("All items have been removed from your cart.", title="Cart Cleared")
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work(exclusive=True, group="checkout")
    async def handle_checkout(self) -> None:
        if not len(self.app.state.cart):
            self.notify("Cart is empty.", severity="warning")
            return

        if not await self.app.push_screen_wait(CheckoutModal()):
            return

        btn_checkout = self.query_one("#btn-checkout", Button)
        btn_checkout.disabled = True  # no duplicate submissions while in flight
        try:
            result = await checkout(self.app.state)
        except AuthenticationError as e:
            self.notify_error(e)
            # the cart screen stays underneath, so a successful login returns here
            if await self.app.request_login(reason=e.description):
                self.notify("You can place your order now.")
            return
        except StoreError as e:
            self.notify_error(e)
            return
        finally:
            btn_checkout.disabled = not len(self.app.state.cart)

        self.notify(
            f"Order #: {result.order.id}\n"
            f"Total: {format_money(result.total)}\n"
            f"Items: {result.item_count}",
            title="Order Placed Successfully",
            timeout=5,
        )
        self.post_message(OrderPlacedMessage(result.order.id))
        self.post_message(CartChangedMessage())
