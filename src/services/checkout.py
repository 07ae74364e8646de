"""
Turning a cart into an order.

The sequence is: authorization gate, stock preflight against the local
snapshot, order creation with stock decrement (one store transaction), and
local reconciliation. A failure at any step leaves the cart, its saved copy and
the product snapshot untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

import db.crud as crud
from db.models import CartItem, Order, OrderItem
from services.catalog import fetch_products
from utils.config import settings
from utils.errors import (
    AuthenticationError,
    InsufficientStockError,
    RemoteError,
    ValidationError,
    remote_call,
)
from utils.logger import get_logger
from utils.pure import compute_totals
from utils.state import AppState

_logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    total: float
    item_count: int
    # False when the post-order catalogue refresh failed and stock was patched locally
    snapshot_refreshed: bool = True


def _order_items(cart_items: List[CartItem]) -> List[OrderItem]:
    return [
        OrderItem(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.price,
            total_price=round(item.price * item.quantity, 2),
        )
        for item in cart_items
    ]


def _preflight(state: AppState, cart_items: List[CartItem]) -> None:
    # best effort: the snapshot may be stale, the store has the final word
    for item in cart_items:
        product = state.product(item.product_id)
        if product is None or product.stock < item.quantity:
            raise InsufficientStockError(item.product_id, item.name)


async def checkout(state: AppState, tax_rate: Optional[float] = None) -> CheckoutResult:
    """
    Place an order for everything in the cart.

    Raises AuthenticationError (with return_to="cart") when nobody is logged
    in, ValidationError subclasses for an empty cart or short stock, and
    RemoteError when the store fails.
    """
    if tax_rate is None:
        tax_rate = settings.tax_rate

    if not state.session.is_logged_in:
        raise AuthenticationError(
            "Please login to place your order.", return_to="cart"
        )

    cart_items = state.cart.items
    if not cart_items:
        raise ValidationError("Cart is empty.")

    _preflight(state, cart_items)

    items = _order_items(cart_items)
    subtotal, tax, total = compute_totals(cart_items, tax_rate)

    async with remote_call("place your order"):
        user = await crud.get_session_user(state.session.access_token)
        if user is None:
            raise AuthenticationError("User not authenticated", return_to="cart")
        order = await crud.place_order(user.id, items, subtotal, tax, total, "pending")

    # the order is committed from here on; only local bookkeeping remains
    state.cart.clear()
    refreshed = True
    try:
        state.replace_products(await fetch_products())
    except RemoteError:
        refreshed = False
        _logger.warning(
            f"Order {order.id} placed but the catalogue refresh failed, patching stock locally"
        )
        patched = []
        for item in items:
            product = state.product(item.product_id)
            if product is not None:
                patched.append(replace(product, stock=max(product.stock - item.quantity, 0)))
        state.merge_products(patched)

    _logger.info(f"Checkout complete: order {order.id}, {len(items)} line(s), {total:.2f}")
    return CheckoutResult(
        order=order,
        total=total,
        item_count=len(items),
        snapshot_refreshed=refreshed,
    )
