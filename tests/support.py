import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.models import AuthSession  # noqa: E402
from utils.state import AppState  # noqa: E402
from utils.storage import LocalStorage  # noqa: E402

DEFAULT_PASSWORD = "secret123"


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Points the data store at a fresh temporary sqlite file (seeded catalogue,
    no users) and local storage at a temporary json file.
    """

    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

        self.storage = LocalStorage(os.path.join(self.temp_dir.name, "local_storage.json"))

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            await cur.fetchall()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- helpers ----------

    async def execute(self, sql: str, params=()):
        async with db_database.connect() as conn:
            cur = await conn.execute(sql, params)
            lastrowid = cur.lastrowid
            await cur.close()
            await conn.commit()
        return lastrowid

    async def fetch_value(self, sql: str, params=()):
        async with db_database.connect() as conn:
            cur = await conn.execute(sql, params)
            row = await cur.fetchone()
            await cur.close()
        return row[0] if row else None

    async def add_product(self, name: str, price: float, stock: int, category: str = "Test") -> int:
        return await self.execute(
            """
            INSERT INTO products(name, description, category, image_url, price, stock, created_at)
            VALUES (?, '', ?, NULL, ?, ?, '2025-01-01T00:00:00+00:00');
            """,
            (name, category, price, stock),
        )

    async def stock_of(self, pid: int) -> int:
        return await self.fetch_value("SELECT stock FROM products WHERE id = ?;", (pid,))

    async def order_count(self) -> int:
        return await self.fetch_value("SELECT COUNT(*) FROM orders;")

    async def register(self, email: str, admin: bool = False) -> str:
        user = await crud.sign_up(email, DEFAULT_PASSWORD)
        if admin:
            await self.execute("UPDATE profiles SET is_admin = 1 WHERE user_id = ?;", (user.id,))
        return user.id

    async def open_session(self, email: str, admin: bool = False) -> AuthSession:
        """Register and sign in, returning a session with its profile attached."""
        await self.register(email, admin=admin)
        session = await crud.sign_in(email, DEFAULT_PASSWORD)
        user = await crud.get_session_user(session.access_token)
        return AuthSession(access_token=session.access_token, user=user)

    def new_state(self) -> AppState:
        return AppState(self.storage)
