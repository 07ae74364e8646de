from dataclasses import replace
from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, Label, Select, SelectionList, Switch

from db.models import Product
from services.catalog import (
    SORT_LABELS,
    ProductFilters,
    fetch_categories,
    fetch_products,
    filter_products,
)
from utils.errors import StoreError
from utils.messages import CartChangedMessage
from utils.pure import format_money
from views.base_screen import BaseScreen

LOW_STOCK_THRESHOLD = 5


def _stock_label(product: Product) -> str:
    if product.stock <= 0:
        return "Out of Stock"
    if product.stock <= LOW_STOCK_THRESHOLD:
        return f"Only {product.stock} left"
    return f"{product.stock} in stock"


def _parse_price(raw: str) -> Optional[float]:
    try:
        return float(raw) if raw.strip() else None
    except ValueError:
        return None


class ProductCatalogScreen(BaseScreen):
    """
    Product grid with search, category, price and stock filters, and sorting.
    Filters and sorting are answered by the store; typing in the search box
    narrows the rows already on screen until Enter asks the store again.
    """

    SUB_TITLE = "Browse Products"

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "Add to Cart", show=True, key_display="⏎"),
    ]

    def __init__(self):
        super().__init__()
        self._fetched: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalog"):
            with VerticalScroll(id="div-filters"):
                yield Label("Search")
                yield Input(id="input-search", placeholder="Search products...")
                yield Label("Categories")
                yield SelectionList[str](id="sel-categories")
                yield Label("Min Price ($)")
                yield Input(id="input-min-price", type="number", placeholder="any")
                yield Label("Max Price ($)")
                yield Input(id="input-max-price", type="number", placeholder="any")
                with Horizontal(id="hort-in-stock"):
                    yield Switch(value=False, id="switch-in-stock")
                    yield Label("In stock only")
                yield Label("Sort by")
                yield Select(
                    [(label, key) for key, label in SORT_LABELS.items()],
                    value="newest",
                    allow_blank=False,
                    id="select-sort",
                )
                yield Button("Clear Filters", id="btn-clear-filters")
            with Vertical(id="div-products"):
                yield DataTable(id="table-products")
                yield Label("", id="label-result-count")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Availability")

        self.load_categories()
        self.reload_products()
        table.focus()

    def _current_filters(self) -> ProductFilters:
        return ProductFilters(
            categories=tuple(self.query_one("#sel-categories", SelectionList).selected),
            min_price=_parse_price(self.query_one("#input-min-price", Input).value),
            max_price=_parse_price(self.query_one("#input-max-price", Input).value),
            in_stock_only=self.query_one("#switch-in-stock", Switch).value,
            search_query=self.query_one("#input-search", Input).value.strip() or None,
        )

    @work(exclusive=True, group="categories")
    async def load_categories(self) -> None:
        try:
            categories = await fetch_categories()
        except StoreError as e:
            self.notify_error(e)
            return
        sel = self.query_one("#sel-categories", SelectionList)
        selected = set(sel.selected)
        sel.clear_options()
        sel.add_options([(c, c, c in selected) for c in categories])

    @on(ScreenResume)
    @on(SelectionList.SelectedChanged, "#sel-categories")
    @on(Switch.Changed, "#switch-in-stock")
    @on(Select.Changed, "#select-sort")
    @on(Input.Changed, "#input-min-price")
    @on(Input.Changed, "#input-max-price")
    @on(Input.Submitted, "#input-search")
    def handle_filters_changed(self) -> None:
        self.reload_products()

    @on(Input.Changed, "#input-search")
    def handle_search_typed(self) -> None:
        # answer from what is already fetched; the store is asked on Enter
        self._render_products(filter_products(self._fetched, self._current_filters()))

    @work(exclusive=True, group="products")
    async def reload_products(self) -> None:
        filters = self._current_filters()
        sort_by = self.query_one("#select-sort", Select).value
        try:
            products = await fetch_products(filters, sort_by)
        except StoreError as e:
            self.notify_error(e)
            return
        # keep the unsearched page so typing can narrow it locally
        if filters.search_query:
            try:
                self._fetched = await fetch_products(replace(filters, search_query=None), sort_by)
            except StoreError as e:
                self.notify_error(e)
                self._fetched = products
        else:
            self._fetched = products
        self.app.state.merge_products(self._fetched)
        self._render_products(products)

    def _render_products(self, products: List[Product]) -> None:
        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.id,
                p.name,
                p.category or "-",
                format_money(p.price),
                _stock_label(p),
                key=str(p.id),
            )
        if products:
            self.query_one("#label-result-count", Label).update(f"{len(products)} product(s)")
        else:
            self.query_one("#label-result-count", Label).update(
                "No products found matching your criteria."
            )

    @on(DataTable.RowSelected, "#table-products")
    def handle_add_to_cart(self, event: DataTable.RowSelected) -> None:
        product = self.app.state.product(int(event.row_key.value))
        if product is None:
            return
        try:
            self.app.state.cart.add(product)
        except StoreError as e:
            self.notify_error(e)
            return
        self.notify(f"{product.name} has been added to your cart.", title="Added to Cart")
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-filters")
    def handle_clear_filters(self) -> None:
        self.query_one("#input-search", Input).value = ""
        self.query_one("#input-min-price", Input).value = ""
        self.query_one("#input-max-price", Input).value = ""
        self.query_one("#sel-categories", SelectionList).deselect_all()
        self.query_one("#switch-in-stock", Switch).value = False
        self.reload_products()
