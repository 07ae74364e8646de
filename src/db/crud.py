# src/db/crud.py
from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import aiosqlite
from passlib.context import CryptContext

from db import models
from db.database import connect, transaction
from db.query import Query
from utils.errors import AuthenticationError, InsufficientStockError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=int(row["id"]),
        name=row["name"],
        description=row["description"] or "",
        category=row["category"],
        image_url=row["image_url"],
        price=float(row["price"]),
        stock=int(row["stock"]),
        created_at=row["created_at"],
    )


def _row_to_profile(row) -> models.Profile:
    return models.Profile(
        user_id=row["user_id"],
        is_admin=bool(row["is_admin"]),
        created_at=row["created_at"],
    )


def _row_to_order_item(row) -> models.OrderItem:
    return models.OrderItem(
        product_id=int(row["product_id"]),
        quantity=int(row["quantity"]),
        unit_price=float(row["unit_price"]),
        total_price=float(row["total_price"]),
    )


def _row_to_order(row, items: Sequence[models.OrderItem]) -> models.Order:
    return models.Order(
        id=int(row["id"]),
        user_id=row["user_id"],
        items=tuple(items),
        subtotal=float(row["subtotal"]),
        tax=float(row["tax"]),
        total=float(row["total"]),
        status=row["status"],
        created_at=row["created_at"],
        user_email=row["user_email"],
    )


# ---------------------------
# Auth & Registration
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no user already registered with the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE unicode_lower(email) = unicode_lower(?) LIMIT 1;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def sign_up(email: str, password: str) -> models.User:
    """
    Create a new user account together with its (non-admin) profile.
    """
    email = (email or "").strip()
    if "@" not in email:
        raise ValidationError("A valid email address is required.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password should be at least {MIN_PASSWORD_LENGTH} characters."
        )
    if not await email_available(email):
        raise ValidationError("User already registered.")

    user_id = str(uuid.uuid4())
    created_at = _now()
    try:
        async with connect() as conn:
            async with transaction(conn):
                await conn.execute(
                    "INSERT INTO users(id, email, pwd_hash, created_at) VALUES (?, ?, ?, ?);",
                    (user_id, email, _pwd_context.hash(password), created_at),
                )
                await conn.execute(
                    "INSERT INTO profiles(user_id, is_admin, created_at) VALUES (?, 0, ?);",
                    (user_id, created_at),
                )
    except aiosqlite.IntegrityError as e:
        # lost a race against a concurrent registration of the same email
        raise ValidationError("User already registered.") from e
    _logger.info(f"Registered user {user_id}")
    return models.User(
        id=user_id,
        email=email,
        profile=models.Profile(user_id=user_id, is_admin=False, created_at=created_at),
    )


async def sign_in(email: str, password: str) -> models.AuthSession:
    """Open an auth session for matching credentials; the profile is not loaded."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, email, pwd_hash FROM users WHERE unicode_lower(email) = unicode_lower(?);",
            ((email or "").strip(),),
        )
        row = await cur.fetchone()
        await cur.close()
        if not row or not _pwd_context.verify(password or "", row["pwd_hash"]):
            raise AuthenticationError("Invalid login credentials", title="Login Failed")

        token = secrets.token_urlsafe(32)
        await conn.execute(
            "INSERT INTO auth_sessions(token, user_id, created_at) VALUES (?, ?, ?);",
            (token, row["id"], _now()),
        )
        await conn.commit()
    _logger.info(f"User {row['id']} signed in")
    return models.AuthSession(
        access_token=token, user=models.User(id=row["id"], email=row["email"])
    )


async def sign_out(access_token: str) -> None:
    """Invalidate an auth session. Unknown tokens are ignored."""
    async with connect() as conn:
        await conn.execute("DELETE FROM auth_sessions WHERE token = ?;", (access_token,))
        await conn.commit()


async def get_session_user(access_token: str) -> Optional[models.User]:
    """Return the user (with profile) owning a live auth session, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT u.id, u.email
            FROM auth_sessions s
                     JOIN users u ON u.id = s.user_id
            WHERE s.token = ?;
            """,
            (access_token,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.User(id=row["id"], email=row["email"], profile=await get_profile(row["id"]))


async def get_profile(user_id: str) -> Optional[models.Profile]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT user_id, is_admin, created_at FROM profiles WHERE user_id = ?;",
            (user_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_profile(row) if row else None


async def set_admin(email: str, is_admin: bool = True) -> bool:
    """Grant (or revoke) admin rights by email. Return False if no such user."""
    async with connect() as conn:
        res = await conn.execute(
            """
            UPDATE profiles
            SET is_admin = ?
            WHERE user_id = (SELECT id FROM users WHERE unicode_lower(email) = unicode_lower(?));
            """,
            (1 if is_admin else 0, (email or "").strip()),
        )
        await conn.commit()
        updated = res.rowcount > 0
        await res.close()
    if updated:
        _logger.info(f"Admin rights {'granted to' if is_admin else 'revoked from'} {email}")
    return updated


# ---------------------------
# Products
# ---------------------------


async def select_products(query: Query) -> List[models.Product]:
    """Run a product query built by the caller."""
    sql, params = query.to_sql()
    async with connect() as conn:
        cur = await conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def get_product(pid: int) -> Optional[models.Product]:
    """Fetch a product by id."""
    products = await select_products(Query("products").eq("id", pid))
    return products[0] if products else None


async def list_categories() -> List[str]:
    """Distinct, non-null product categories in alphabetical order."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT DISTINCT category FROM products WHERE category IS NOT NULL ORDER BY category;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row[0] for row in rows]


async def _decrement_stock(conn: aiosqlite.Connection, pid: int, qty: int) -> bool:
    if qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    cur = await conn.execute(
        "UPDATE products SET stock = stock - ? WHERE id = ? AND stock >= ?;",
        (qty, pid, qty),
    )
    updated = cur.rowcount > 0
    await cur.close()
    return updated


async def decrement_stock(pid: int, qty: int) -> bool:
    """
    Atomically take `qty` units of a product if at least that many remain.
    Return False (and change nothing) when stock is short or the product is unknown.
    """
    async with connect() as conn:
        async with transaction(conn):
            return await _decrement_stock(conn, pid, qty)


# ---------------------------
# Orders
# ---------------------------


async def place_order(
    user_id: str,
    items: Sequence[models.OrderItem],
    subtotal: float,
    tax: float,
    total: float,
    status: str = "pending",
) -> models.Order:
    """
    Create an order and take its stock in a single transaction.

    Lines are decremented in the given order; if any product is short the whole
    transaction is rolled back and InsufficientStockError is raised, so either
    the order exists and all stock is taken, or nothing changed.
    """
    if status not in models.ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    if not items:
        raise ValidationError("An order needs at least one item.")

    created_at = _now()
    async with connect() as conn:
        async with transaction(conn):
            cur = await conn.execute("SELECT email FROM users WHERE id = ?;", (user_id,))
            user_row = await cur.fetchone()
            await cur.close()

            cur = await conn.execute(
                """
                INSERT INTO orders(user_id, subtotal, tax, total, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (user_id, subtotal, tax, total, status, created_at),
            )
            order_id = cur.lastrowid
            await cur.close()

            for line_no, item in enumerate(items, start=1):
                if not await _decrement_stock(conn, item.product_id, item.quantity):
                    _logger.warning(
                        f"Order for user {user_id} rolled back, product {item.product_id} is short"
                    )
                    raise InsufficientStockError(item.product_id)
                await conn.execute(
                    """
                    INSERT INTO order_items(order_id, line_no, product_id, quantity, unit_price, total_price)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        order_id,
                        line_no,
                        item.product_id,
                        item.quantity,
                        item.unit_price,
                        item.total_price,
                    ),
                )

    _logger.info(f"Order {order_id} placed for user {user_id}, total {total:.2f}")
    # built from the written values, nothing is read back after commit
    return models.Order(
        id=order_id,
        user_id=user_id,
        items=tuple(items),
        subtotal=subtotal,
        tax=tax,
        total=total,
        status=status,
        created_at=created_at,
        user_email=user_row["email"] if user_row else None,
    )


async def _items_for(
    conn: aiosqlite.Connection, order_ids: Sequence[int]
) -> Dict[int, List[models.OrderItem]]:
    items: Dict[int, List[models.OrderItem]] = {oid: [] for oid in order_ids}
    if not order_ids:
        return items
    marks = ", ".join("?" for _ in order_ids)
    cur = await conn.execute(
        f"""
        SELECT order_id, product_id, quantity, unit_price, total_price
        FROM order_items
        WHERE order_id IN ({marks})
        ORDER BY order_id, line_no;
        """,
        tuple(order_ids),
    )
    rows = await cur.fetchall()
    await cur.close()
    for row in rows:
        items[int(row["order_id"])].append(_row_to_order_item(row))
    return items


async def get_order(order_id: int) -> Optional[models.Order]:
    """Return an order with its lines, or None."""
    async with connect() as conn:
        cur = await conn.execute("SELECT * FROM order_overview WHERE id = ?;", (order_id,))
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return None
        items = await _items_for(conn, [int(row["id"])])
    return _row_to_order(row, items[int(row["id"])])


async def count_rows(query: Query) -> int:
    """Number of rows matching the query's predicates, ignoring its range."""
    sql, params = query.count_sql()
    async with connect() as conn:
        cur = await conn.execute(sql, params)
        total = (await cur.fetchone())[0]
        await cur.close()
    return int(total)


async def select_orders(query: Query) -> Tuple[List[models.Order], int]:
    """
    Run an order query (over the order_overview view).
    Return (orders for the requested range, total matching count).
    """
    total = await count_rows(query)
    sql, params = query.to_sql()
    async with connect() as conn:
        cur = await conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()

        items = await _items_for(conn, [int(row["id"]) for row in rows])
    orders = [_row_to_order(row, items[int(row["id"])]) for row in rows]
    return orders, total


async def update_order_status(order_id: int, status: str) -> bool:
    """Set the status of one order. Return True if a row was updated."""
    if status not in models.ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    async with connect() as conn:
        res = await conn.execute(
            "UPDATE orders SET status = ? WHERE id = ?;", (status, order_id)
        )
        await conn.commit()
        updated = res.rowcount > 0
        await res.close()
    if updated:
        _logger.info(f"Order {order_id} status set to {status}")
    return updated
