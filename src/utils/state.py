from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, Iterable, List, Optional

import aiosqlite

import db.crud as crud
from db.models import AuthSession, CartItem, Chat, ChatMessage, Product, Profile, User
from utils.errors import OutOfStockError, StockLimitError
from utils.logger import get_logger
from utils.pure import NEW_CHAT_TITLE, chat_title
from utils.storage import LocalStorage

_logger = get_logger(__name__)

CART_STORAGE_KEY = "shopping-cart"
SESSION_STORAGE_KEY = "user"
CHATS_STORAGE_KEY = "chats"
PENDING_ANSWER = "Generating answer..."


def _parse_cart_line(raw) -> Optional[CartItem]:
    if not isinstance(raw, dict):
        return None
    try:
        item = CartItem(
            product_id=int(raw["product_id"]),
            name=str(raw["name"]),
            price=float(raw["price"]),
            quantity=int(raw["quantity"]),
        )
    except (KeyError, TypeError, ValueError):
        return None
    if item.quantity < 1 or item.price < 0:
        return None
    return item


class CartState:
    """
    In-memory cart with a write-through mirror in local storage.

    Lines keep insertion order. Mutations never touch the data store; stock
    limits are checked against the stock the caller last saw.
    """

    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._items: List[CartItem] = []

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def subtotal(self) -> float:
        return round(sum(item.line_total for item in self._items), 2)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, product_id: int) -> Optional[CartItem]:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def _replace(self, new_item: CartItem) -> None:
        self._items = [
            new_item if item.product_id == new_item.product_id else item
            for item in self._items
        ]

    def _persist(self) -> None:
        # an empty cart is only erased from storage by clear(), so a transient
        # empty state never wipes the saved cart
        if self._items:
            payload = [asdict(item) for item in self._items]
            self._storage.set_item(CART_STORAGE_KEY, json.dumps(payload))

    def load(self) -> None:
        """Restore the cart from local storage, dropping anything malformed."""
        raw = self._storage.get_item(CART_STORAGE_KEY)
        self._items = []
        if raw is None:
            return
        try:
            payload = json.loads(raw)
        except ValueError as e:
            _logger.warning(f"Discarding unreadable saved cart: {e}")
            return
        if not isinstance(payload, list):
            _logger.warning("Discarding saved cart, expected a list of lines.")
            return
        seen = set()
        for raw_line in payload:
            item = _parse_cart_line(raw_line)
            if item is None or item.product_id in seen:
                _logger.warning(f"Dropping malformed cart line: {raw_line!r}")
                continue
            seen.add(item.product_id)
            self._items.append(item)
        _logger.debug(f"Restored {len(self._items)} cart line(s)")

    def add(self, product: Product) -> CartItem:
        """
        Add one unit of `product`.
        Raises OutOfStockError / StockLimitError instead of exceeding known stock.
        """
        if product.stock <= 0:
            raise OutOfStockError(product.id)

        existing = self.get(product.id)
        if existing:
            if existing.quantity >= product.stock:
                raise StockLimitError(product.id, product.stock)
            item = CartItem(
                product_id=existing.product_id,
                name=existing.name,
                price=existing.price,
                quantity=existing.quantity + 1,
            )
            self._replace(item)
        else:
            item = CartItem(
                product_id=product.id,
                name=product.name,
                price=product.price,
                quantity=1,
            )
            self._items.append(item)

        self._persist()
        return item

    def set_quantity(self, product_id: int, quantity: int, stock: Optional[int]) -> bool:
        """
        Overwrite the quantity of a line.

        Quantities below 1, unknown lines and unknown stock are ignored
        (returns False). Raises StockLimitError when an increase would go
        above stock; decreases are always allowed, so a line left over stock
        by a refresh can be stepped back down.
        """
        existing = self.get(product_id)
        if quantity < 1 or existing is None or stock is None:
            return False
        if quantity > stock and quantity > existing.quantity:
            raise StockLimitError(product_id, stock)
        self._replace(
            CartItem(
                product_id=existing.product_id,
                name=existing.name,
                price=existing.price,
                quantity=quantity,
            )
        )
        self._persist()
        return True

    def remove(self, product_id: int) -> None:
        self._items = [item for item in self._items if item.product_id != product_id]
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._storage.remove_item(CART_STORAGE_KEY)


def _session_to_json(session: AuthSession) -> str:
    user = session.user
    return json.dumps(
        {
            "id": user.id,
            "email": user.email,
            "access_token": session.access_token,
            "profile": asdict(user.profile) if user.profile else None,
        }
    )


def _session_from_json(raw: str) -> AuthSession:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("session record is not an object")
    for key in ("id", "email", "access_token"):
        if not isinstance(data.get(key), str) or not data[key]:
            raise ValueError(f"session record has no valid {key!r}")

    profile = None
    raw_profile = data.get("profile")
    if raw_profile is not None:
        if not isinstance(raw_profile, dict) or not isinstance(
            raw_profile.get("is_admin"), bool
        ):
            raise ValueError("session record has a malformed profile")
        profile = Profile(
            user_id=str(raw_profile.get("user_id", data["id"])),
            is_admin=raw_profile["is_admin"],
            created_at=str(raw_profile.get("created_at", "")),
        )
    return AuthSession(
        access_token=data["access_token"],
        user=User(id=data["id"], email=data["email"], profile=profile),
    )


class SessionState:
    """Who is logged in, and whether they are an admin."""

    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._session: Optional[AuthSession] = None

    @property
    def user(self) -> Optional[User]:
        return self._session.user if self._session else None

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def is_logged_in(self) -> bool:
        return self._session is not None

    @property
    def is_admin(self) -> bool:
        user = self.user
        return bool(user and user.profile and user.profile.is_admin)

    def load(self) -> None:
        """Restore a saved session; a malformed record is erased, not raised."""
        raw = self._storage.get_item(SESSION_STORAGE_KEY)
        self._session = None
        if raw is None:
            return
        try:
            self._session = _session_from_json(raw)
        except ValueError as e:
            _logger.warning(f"Discarding malformed saved session: {e}")
            self._storage.remove_item(SESSION_STORAGE_KEY)

    def login(self, session: AuthSession) -> None:
        self._session = session
        self._storage.set_item(SESSION_STORAGE_KEY, _session_to_json(session))
        _logger.info(f"Session started for {session.user.email}")

    async def logout(self) -> bool:
        """
        Sign out remotely, then drop the local session no matter what.
        Return whether the remote sign-out succeeded.
        """
        token = self.access_token
        remote_ok = True
        try:
            if token:
                await crud.sign_out(token)
        except aiosqlite.Error as e:
            remote_ok = False
            _logger.warning(f"Remote sign-out failed, clearing local session anyway: {e}")
        finally:
            self._session = None
            self._storage.remove_item(SESSION_STORAGE_KEY)
        return remote_ok


def _parse_chat(raw) -> Optional[Chat]:
    if not isinstance(raw, dict):
        return None
    try:
        messages = tuple(
            ChatMessage(
                sender=m["sender"],
                text=str(m["text"]),
                timestamp=float(m["timestamp"]),
            )
            for m in raw.get("messages", [])
        )
        chat = Chat(id=str(raw["id"]), title=str(raw["title"]), messages=messages)
    except (KeyError, TypeError, ValueError):
        return None
    if any(m.sender not in ("user", "bot") for m in messages):
        return None
    return chat


class ChatHistory:
    """
    Conversations with the shopping assistant, newest first, mirrored to
    local storage. There is always a current conversation once loaded.
    """

    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._chats: List[Chat] = []
        self._current_id: Optional[str] = None

    @property
    def chats(self) -> List[Chat]:
        return list(self._chats)

    @property
    def current(self) -> Optional[Chat]:
        return self.get(self._current_id) if self._current_id else None

    def get(self, chat_id: str) -> Optional[Chat]:
        for chat in self._chats:
            if chat.id == chat_id:
                return chat
        return None

    def _save(self) -> None:
        payload = [asdict(chat) for chat in self._chats]
        self._storage.set_item(CHATS_STORAGE_KEY, json.dumps(payload))

    def _update(self, new_chat: Chat) -> None:
        self._chats = [new_chat if c.id == new_chat.id else c for c in self._chats]

    @staticmethod
    def _blank() -> Chat:
        return Chat(id=uuid.uuid4().hex, title=NEW_CHAT_TITLE)

    def load(self) -> None:
        """Restore saved conversations; start (and save) an empty one if none survive."""
        self._chats = []
        raw = self._storage.get_item(CHATS_STORAGE_KEY)
        payload = []
        if raw is not None:
            try:
                payload = json.loads(raw)
            except ValueError as e:
                _logger.warning(f"Discarding unreadable chat history: {e}")
            if not isinstance(payload, list):
                _logger.warning("Discarding chat history, expected a list of chats.")
                payload = []

        seen = set()
        for raw_chat in payload:
            chat = _parse_chat(raw_chat)
            if chat is None or chat.id in seen:
                _logger.warning("Dropping malformed saved chat")
                continue
            seen.add(chat.id)
            self._chats.append(chat)

        if not self._chats:
            self._chats = [self._blank()]
            self._save()
        self._current_id = self._chats[0].id

    def new_chat(self) -> Chat:
        chat = self._blank()
        self._chats.insert(0, chat)
        self._current_id = chat.id
        self._save()
        return chat

    def select(self, chat_id: str) -> bool:
        if self.get(chat_id) is None:
            return False
        self._current_id = chat_id
        return True

    def delete(self, chat_id: str) -> None:
        """
        Drop a conversation. Deleting the current one moves to the newest
        remaining, or to a fresh conversation when it was the last.
        """
        self._chats = [c for c in self._chats if c.id != chat_id]
        if chat_id == self._current_id:
            if not self._chats:
                self._chats.append(self._blank())
            self._current_id = self._chats[0].id
        self._save()

    def begin_exchange(self, question: str) -> Optional[str]:
        """
        Append the question and a pending answer to the current conversation.

        A fresh conversation is named after its first question. Returns the
        conversation id to finish later, or None for a blank question.
        """
        chat = self.current
        if chat is None or not question.strip():
            return None
        title = chat.title
        if title == NEW_CHAT_TITLE and not chat.messages:
            title = chat_title(question)
        now = time.time()
        self._update(
            replace(
                chat,
                title=title,
                messages=chat.messages
                + (
                    ChatMessage(sender="user", text=question, timestamp=now),
                    ChatMessage(sender="bot", text=PENDING_ANSWER, timestamp=now),
                ),
            )
        )
        return chat.id

    def finish_exchange(self, chat_id: str, answer: str) -> None:
        """Swap the pending answer for the real one and save."""
        chat = self.get(chat_id)
        if chat is not None and chat.messages:
            last = chat.messages[-1]
            if last.sender == "bot" and last.text == PENDING_ANSWER:
                answered = ChatMessage(sender="bot", text=answer, timestamp=time.time())
                self._update(replace(chat, messages=chat.messages[:-1] + (answered,)))
        self._save()


@dataclass
class AppState:
    """
    Centralized application state shared by screens through `app.state`.

    Fields:
      - storage: local storage backing the cart and session mirrors
      - cart: the shopper's cart
      - session: the logged-in user, if any
      - chats: conversations with the shopping assistant
      - products: last product snapshot fetched from the store, by id
    """

    storage: LocalStorage
    cart: CartState = field(init=False)
    session: SessionState = field(init=False)
    chats: ChatHistory = field(init=False)
    _products: Dict[int, Product] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.cart = CartState(self.storage)
        self.session = SessionState(self.storage)
        self.chats = ChatHistory(self.storage)

    def restore(self) -> None:
        """Reload session and cart from local storage (application start)."""
        self.session.load()
        self.cart.load()

    @property
    def products(self) -> List[Product]:
        return list(self._products.values())

    def product(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def known_stock(self, product_id: int) -> Optional[int]:
        product = self._products.get(product_id)
        return product.stock if product else None

    def replace_products(self, products: Iterable[Product]) -> None:
        """Swap in a full snapshot."""
        self._products = {p.id: p for p in products}

    def merge_products(self, products: Iterable[Product]) -> None:
        """Refresh the snapshot with a partial (e.g. filtered) fetch."""
        for p in products:
            self._products[p.id] = p
