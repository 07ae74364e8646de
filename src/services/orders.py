"""Admin order management: browsing all orders and moving them through statuses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple

import db.crud as crud
from db.models import ORDER_STATUSES, Order
from db.query import Query
from utils.config import settings
from utils.errors import AuthorizationError, ValidationError, remote_call
from utils.logger import get_logger
from utils.pure import page_count
from utils.state import SessionState

_logger = get_logger(__name__)

OrderSort = Literal["newest", "oldest", "total_desc", "total_asc"]

ORDER_SORT_COLUMNS: Dict[str, Tuple[str, bool]] = {
    "newest": ("created_at", False),
    "oldest": ("created_at", True),
    "total_desc": ("total", False),
    "total_asc": ("total", True),
}

ALL_STATUSES = "all"


@dataclass(frozen=True)
class OrderPage:
    orders: List[Order]
    total: int
    page: int
    page_count: int


def require_admin(session: SessionState) -> None:
    if not session.is_logged_in:
        raise AuthorizationError("Please sign in as admin.")
    if not session.is_admin:
        raise AuthorizationError("Only administrators can manage orders.")


def build_order_query(
    search: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: OrderSort = "newest",
) -> Query:
    query = Query("order_overview")
    term = (search or "").strip()
    if term:
        if term.isascii() and term.isdigit():
            query.eq("id", int(term))
        else:
            query.ilike_any(("user_email", "user_id"), term)
    if status and status != ALL_STATUSES:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        query.eq("status", status)
    if sort_by not in ORDER_SORT_COLUMNS:
        raise ValidationError(f"Unknown sort option: {sort_by}")
    column, ascending = ORDER_SORT_COLUMNS[sort_by]
    query.order(column, ascending).order("id", ascending)
    return query


async def fetch_orders(
    session: SessionState,
    search: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: OrderSort = "newest",
    page: int = 1,
    page_size: Optional[int] = None,
) -> OrderPage:
    """
    One page of orders for the admin table. A page past the end is clamped to
    the last page.
    """
    require_admin(session)
    page_size = page_size or settings.page_size
    query = build_order_query(search, status, sort_by)

    async with remote_call("fetch orders"):
        pages = page_count(await crud.count_rows(query), page_size)
        page = max(1, min(page, pages))
        query.range((page - 1) * page_size, page_size)
        orders, total = await crud.select_orders(query)

    return OrderPage(orders=orders, total=total, page=page, page_count=page_count(total, page_size))


async def change_order_status(session: SessionState, order_id: int, status: str) -> Order:
    """Move one order to `status`; return the order as the store now has it."""
    require_admin(session)
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")

    async with remote_call("update the order status"):
        if not await crud.update_order_status(order_id, status):
            raise ValidationError(f"Order {order_id} does not exist.")
        order = await crud.get_order(order_id)

    _logger.info(f"Admin {session.user.email} set order {order_id} to {status}")
    return order
