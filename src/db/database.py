# manages connection to the data store, provides helper methods internal to db package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from db.query import UNICODE_LOWER
from utils.config import settings
from utils.logger import get_logger

_logger = get_logger(__name__)

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

DB_PATH = settings.db_path
DB_INIT_SCRIPTS = [
    os.path.join(_SCRIPT_DIR, "schema.sql"),
    os.path.join(_SCRIPT_DIR, "seed.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Running init script {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Creates the schema and seeds the catalogue on first use against a fresh file.
    """
    global _initialized
    db_dir = os.path.dirname(os.path.abspath(DB_PATH))
    os.makedirs(db_dir, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.create_function(UNICODE_LOWER, 1, _unicode_lower, deterministic=True)

    try:
        if not _initialized:
            async with _init_lock:
                if not _initialized:
                    if not await _table_exists(conn, "products"):
                        _logger.info(f"Initializing data store at {DB_PATH}...")
                        await _init_db(conn)
                    _initialized = True
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction(conn: aiosqlite.Connection):
    """
    Run the block inside one write transaction on `conn`.

    Commits on success, rolls back and re-raises on any failure.
    """
    await conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    else:
        await conn.commit()
