import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import database as db_database  # noqa: E402

CASHIER = 1001
MANAGER = 9001

BANANAS = 2001
MILK = 2003
CHEDDAR = 2004  # 3.00, 5 in stock
SOURDOUGH = 2005  # 5.00, 8 in stock
SPARKLING = 2006  # out of stock


class DbTestCase(unittest.IsolatedAsyncioTestCase):
    """Each test gets a fresh seeded database in a temp dir."""

    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            await cur.fetchall()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def count(self, table: str, where: str = "", params: tuple = ()) -> int:
        sql = f"SELECT COUNT(*) FROM {table}"
        if where:
            sql += f" WHERE {where}"
        async with db_database.connect() as conn:
            cur = await conn.execute(sql + ";", params)
            row = await cur.fetchone()
            await cur.close()
        return int(row[0])

    async def stock_of(self, product_id: int) -> int:
        async with db_database.connect() as conn:
            cur = await conn.execute(
                "SELECT stock_quantity FROM products WHERE id = ?;", (product_id,)
            )
            row = await cur.fetchone()
            await cur.close()
        return int(row[0])
