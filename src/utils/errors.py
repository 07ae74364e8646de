"""
Failures surfaced to the user.

Every error carries a short ``title`` and a ``description`` so that screens can
turn it straight into a notification.
"""

from contextlib import asynccontextmanager
from typing import Optional

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)


class StoreError(Exception):
    title = "Error"

    def __init__(self, description: str, title: Optional[str] = None):
        super().__init__(description)
        self.description = description
        if title:
            self.title = title


class AuthenticationError(StoreError):
    """Invalid credentials, or an action that needs a logged-in user."""

    title = "Authentication Required"

    def __init__(
        self,
        description: str,
        title: Optional[str] = None,
        return_to: Optional[str] = None,
    ):
        super().__init__(description, title)
        # where to send the user back to after logging in
        self.return_to = return_to


class AuthorizationError(StoreError):
    title = "Access Denied"


class ValidationError(StoreError):
    title = "Invalid Input"


class OutOfStockError(ValidationError):
    title = "Out of Stock"

    def __init__(self, product_id: int):
        super().__init__("This product is currently out of stock.")
        self.product_id = product_id


class StockLimitError(ValidationError):
    title = "Stock Limit Reached"

    def __init__(self, product_id: int, stock: int):
        super().__init__(f"Only {stock} units available in stock.")
        self.product_id = product_id
        self.stock = stock


class InsufficientStockError(ValidationError):
    title = "Insufficient Stock"

    def __init__(self, product_id: int, name: Optional[str] = None):
        label = name if name else f"product {product_id}"
        super().__init__(f"Insufficient stock for {label}")
        self.product_id = product_id
        self.name = name


class RemoteError(StoreError):
    """The data store could not be reached or rejected the call."""


class AssistantError(StoreError):
    """The shopping assistant is not configured, unreachable or failed."""

    title = "Assistant Unavailable"


@asynccontextmanager
async def remote_call(action: str):
    """
    Translate data store failures raised inside the block into RemoteError.

    `action` completes the sentence "Failed to ...", e.g. "load products".
    """
    try:
        yield
    except aiosqlite.Error as e:
        _logger.error(f"Store call failed while trying to {action}: {e}")
        raise RemoteError(f"Failed to {action}. Please try again later.") from e
