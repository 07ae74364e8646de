from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer, Select

from db.models import ORDER_STATUSES, Order
from services.orders import ALL_STATUSES, change_order_status, fetch_orders
from utils.errors import AuthorizationError, StoreError
from utils.pure import format_money, generate_markdown_table
from views.base_screen import BaseScreen

ORDER_SORT_LABELS = {
    "newest": "Newest first",
    "oldest": "Oldest first",
    "total_desc": "Total: High to Low",
    "total_asc": "Total: Low to High",
}


class AdminOrdersScreen(BaseScreen):
    """
    Admins browse every order with search, status filter, sort and
    pagination, and move the highlighted order to a new status.

    Layout:
    - Filters row on top.
    - Orders table, with Prev/Next paging below it.
    - Markdown detail of the highlighted order plus the status controls.
    """

    SUB_TITLE = "Order Management"

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[int, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-order-filters"):
            yield Input(id="input-order-search", placeholder="Order # or customer email...")
            yield Select(
                [("All statuses", ALL_STATUSES)] + [(s.title(), s) for s in ORDER_STATUSES],
                value=ALL_STATUSES,
                allow_blank=False,
                id="select-status-filter",
            )
            yield Select(
                [(label, key) for key, label in ORDER_SORT_LABELS.items()],
                value="newest",
                allow_blank=False,
                id="select-order-sort",
            )
        with Vertical():
            yield DataTable(id="table-orders")
            with Horizontal(id="hort-table-control"):
                yield Button("Refresh", id="btn-refresh")
                yield Button("<", id="btn-prev")
                yield Label(" 1 / 1 ", id="label-page")
                yield Button(">", id="btn-next")
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            with Horizontal(id="hort-status-update"):
                yield Select(
                    [(s.title(), s) for s in ORDER_STATUSES],
                    value="pending",
                    allow_blank=False,
                    id="select-new-status",
                )
                yield Button("Update Status", id="btn-update-status", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order #", "Customer", "Items", "Total", "Status", "Date")

    @on(ScreenResume)
    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self._load_orders(self.page_idx)

    @on(Input.Changed, "#input-order-search")
    @on(Select.Changed, "#select-status-filter")
    @on(Select.Changed, "#select-order-sort")
    def handle_filters_changed(self) -> None:
        if self.page_idx == 1:
            self._load_orders(1)
        else:
            self.page_idx = 1

    def watch_page_idx(self, old: int, new: int) -> None:
        self._load_orders(new)

    def _refresh_buttons(self) -> None:
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        self.query_one("#label-page", Label).update(f" {self.page_idx} / {self.page_cnt} ")

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    @work(exclusive=True, group="orders")
    async def _load_orders(self, page: int) -> None:
        try:
            result = await fetch_orders(
                self.app.state.session,
                search=self.query_one("#input-order-search", Input).value,
                status=self.query_one("#select-status-filter", Select).value,
                sort_by=self.query_one("#select-order-sort", Select).value,
                page=page,
            )
        except AuthorizationError as e:
            self.notify_error(e)
            await self.app.switch_mode("catalog")
            return
        except StoreError as e:
            self.notify_error(e)
            return

        table = self.query_one(DataTable)
        table.clear()
        self._orders = {o.id: o for o in result.orders}
        for o in result.orders:
            table.add_row(
                o.id,
                o.user_email or o.user_id,
                sum(i.quantity for i in o.items),
                format_money(o.total),
                o.status,
                o.created_at[:19].replace("T", " "),
                key=str(o.id),
            )

        self.page_cnt = result.page_count
        self.set_reactive(AdminOrdersScreen.page_idx, result.page)
        self._refresh_buttons()
        if result.orders:
            table.move_cursor(row=0)
            await self._render_detail(result.orders[0])
        else:
            await self._render_detail(None)

    @on(DataTable.RowHighlighted, "#table-orders")
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        await self._render_detail(self._orders.get(int(event.row_key.value)))

    def _selected_order(self) -> Optional[Order]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._orders.get(int(row_key.value))

    async def _render_detail(self, order: Optional[Order]) -> None:
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if not order:
            await viewer.document.update("### Select an order to view its details.")
            return

        self.query_one("#select-new-status", Select).value = order.status
        header = (
            f"### Order #{order.id}\n"
            f"Customer: {order.user_email or order.user_id}  \n"
            f"Placed: {order.created_at}  \n"
            f"Status: **{order.status}**\n\n"
        )
        state = self.app.state
        rows: List[list] = []
        for item in order.items:
            product = state.product(item.product_id)
            name = product.name if product else f"Product {item.product_id}"
            rows.append(
                [name, item.quantity, format_money(item.unit_price), format_money(item.total_price)]
            )
        table_md = generate_markdown_table(
            ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
        )
        footer = (
            f"\n\n**Subtotal:** {format_money(order.subtotal)}  \n"
            f"**Tax:** {format_money(order.tax)}  \n"
            f"**Total:** {format_money(order.total)}"
        )
        await viewer.document.update(header + table_md + footer)

    @on(Button.Pressed, "#btn-update-status")
    @work(exclusive=True, group="status")
    async def handle_update_status(self) -> None:
        order = self._selected_order()
        if order is None:
            self.notify("Select an order first.", severity="warning")
            return
        new_status = self.query_one("#select-new-status", Select).value
        if new_status == order.status:
            self.notify("Nothing to update.", severity="warning")
            return

        try:
            updated = await change_order_status(self.app.state.session, order.id, new_status)
        except StoreError as e:
            self.notify_error(e)
            return

        self.notify(f"Order #{updated.id} is now {updated.status}.", title="Order Updated")
        self._load_orders(self.page_idx)
