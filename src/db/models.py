# provide dataclass models

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES: Tuple[str, ...] = (
    "pending",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
)


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    description: str
    category: Optional[str]
    image_url: Optional[str]
    price: float
    stock: int
    created_at: str


@dataclass(frozen=True)
class CartItem:
    product_id: int
    name: str  # snapshot at add time
    price: float  # snapshot at add time
    quantity: int

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int
    unit_price: float
    total_price: float


@dataclass(frozen=True)
class Order:
    id: int
    user_id: str
    items: Tuple[OrderItem, ...]
    subtotal: float
    tax: float
    total: float  # charged total, tax included
    status: OrderStatus
    created_at: str
    user_email: Optional[str] = None


@dataclass(frozen=True)
class Profile:
    user_id: str
    is_admin: bool
    created_at: str


@dataclass(frozen=True)
class User:
    id: str
    email: str
    profile: Optional[Profile] = None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: User


ChatSender = Literal["user", "bot"]


@dataclass(frozen=True)
class ChatMessage:
    sender: ChatSender
    text: str
    timestamp: float


@dataclass(frozen=True)
class Chat:
    id: str
    title: str
    messages: Tuple[ChatMessage, ...] = ()
