# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
import sqlite3
from contextlib import asynccontextmanager
from decimal import Decimal
from sqlite3 import Row

import aiosqlite

from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

DB_PATH = config.DB_PATH
DB_SCHEMA_SCRIPT = os.path.join(_HERE, "schema.sql")
DB_SEED_SCRIPT = os.path.join(_HERE, "seed.sql")
SEED_DEMO_DATA = config.SEED_DEMO_DATA

# seconds a writer waits on a locked database before giving up
BUSY_TIMEOUT = 10.0

_initialized = False
_init_lock = asyncio.Lock()

# money is kept as Decimal in python, sqlite stores it as NUMERIC
sqlite3.register_adapter(Decimal, str)


def _init_scripts() -> list[str]:
    scripts = [DB_SCHEMA_SCRIPT]
    if SEED_DEMO_DATA:
        scripts.append(DB_SEED_SCRIPT)
    return scripts


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in _init_scripts():
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {script}...")
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

    Ensures the database is initialized (tables and seed data) on first use.
    """
    global _initialized
    db_dir = os.path.dirname(DB_PATH)
    if db_dir and not os.path.isdir(db_dir):
        os.makedirs(db_dir, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH, timeout=BUSY_TIMEOUT)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                exists = await _table_exists(conn, "operators")
                if not exists:
                    _logger.info("Initializing database...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction(conn: aiosqlite.Connection):
    """Run the enclosed statements as one write transaction.

    BEGIN IMMEDIATE takes the write lock up front, so two writers never both
    read a stale value and then race to update it. Commits on success, rolls
    back on any exception and re-raises it.
    """
    await conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    else:
        await conn.commit()
