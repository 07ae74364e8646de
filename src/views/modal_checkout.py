from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

from utils.config import settings
from utils.pure import compute_totals, format_money, generate_markdown_table


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary shown before placing an order.
    Return True when the user confirms, False otherwise.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart_items = self.app.state.cart.items
        subtotal, tax, total = compute_totals(cart_items, settings.tax_rate)

        headers = ["Product Name", "Unit Price", "Quantity", "Total Price"]
        rows = [
            [item.name, format_money(item.price), item.quantity, format_money(item.line_total)]
            for item in cart_items
        ]
        md = "### Order Summary\n\n" + generate_markdown_table(headers, rows, ["l", "r", "c", "r"])
        md += (
            f"\n\n**Subtotal:** {format_money(subtotal)}  \n"
            f"**Tax ({settings.tax_rate:.0%}):** {format_money(tax)}  \n"
            f"**Total:** {format_money(total)}"
        )
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#btn-submit").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    def handle_submit(self):
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
