import asyncio
import sqlite3
import unittest
from decimal import Decimal

from helpers import CASHIER, CHEDDAR, MANAGER, SOURDOUGH, DbTestCase
from db import crud
from db.models import SHIFT_ACTIVE, SHIFT_CLOSED
from utils.checkout import checkout
from utils.outcome import ConflictError, ErrorKind
from utils.state import GlobalState


class ShiftGuardTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.state = GlobalState()
        self.state.login(await crud.get_operator(CASHIER))

    async def test_fresh_operator_requires_shift(self):
        self.assertIsNone(await self.state.refresh_shift())
        self.assertTrue(self.state.requires_shift)
        self.assertFalse(GlobalState().requires_shift)  # nobody logged in

    async def test_start_rejects_invalid_amounts(self):
        for bad in ("abc", "-5", -1, "", None, float("nan"), "inf"):
            outcome = await self.state.start_shift(bad)
            self.assertFalse(outcome, bad)
            self.assertEqual(outcome.kind, ErrorKind.VALIDATION)
        self.assertEqual(await self.count("shifts"), 0)

    async def test_start_accepts_zero_and_strings(self):
        outcome = await self.state.start_shift("$150.50")
        self.assertTrue(outcome)
        self.assertEqual(outcome.value.starting_cash, Decimal("150.50"))
        self.assertEqual(outcome.value.status, SHIFT_ACTIVE)

        manager = GlobalState()
        manager.login(await crud.get_operator(MANAGER))
        self.assertTrue(await manager.start_shift(0))

    async def test_start_is_idempotent(self):
        first = await self.state.start_shift("100")
        second = await self.state.start_shift("250")
        self.assertTrue(second)
        self.assertEqual(second.message, "Shift already active")
        self.assertEqual(first.value.id, second.value.id)
        self.assertEqual(second.value.starting_cash, Decimal("100"))
        self.assertEqual(await self.count("shifts"), 1)
        self.assertFalse(self.state.requires_shift)

    async def test_concurrent_starts_open_one_shift(self):
        results = await asyncio.gather(
            crud.start_shift(CASHIER, "100"),
            crud.start_shift(CASHIER, "100"),
            crud.start_shift(CASHIER, "100"),
        )
        ids = {shift.id for shift, _ in results}
        self.assertEqual(len(ids), 1)
        self.assertEqual(sum(created for _, created in results), 1)
        self.assertEqual(await self.count("shifts", "status = 'active'"), 1)

    async def test_store_rejects_second_active_shift(self):
        await crud.start_shift(CASHIER, "100")
        with self.assertRaises(sqlite3.IntegrityError):
            async with crud.connect() as conn:
                async with crud.transaction(conn):
                    await conn.execute(
                        "INSERT INTO shifts(user_id, starting_cash, status, start_time) "
                        "VALUES (?, 10, 'active', '2024-01-01T08:00:00');",
                        (CASHIER,),
                    )
        self.assertEqual(await self.count("shifts"), 1)

    async def test_end_without_shift_is_conflict(self):
        outcome = await self.state.end_shift("100")
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)

    async def test_end_computes_expected_cash_and_variance(self):
        await self.state.start_shift("100")
        for pid in (CHEDDAR, CHEDDAR, SOURDOUGH):
            self.state.cart.add_item(await crud.get_product(pid))
        self.assertTrue(await checkout(self.state, self.state.cart))

        outcome = await self.state.end_shift("110.00")
        self.assertTrue(outcome)
        closed = outcome.value
        self.assertEqual(closed.status, SHIFT_CLOSED)
        self.assertIsNotNone(closed.end_time)
        self.assertEqual(closed.expected_cash, Decimal("111.88"))
        self.assertEqual(closed.closing_cash, Decimal("110.00"))
        self.assertEqual(closed.variance, Decimal("-1.88"))
        self.assertIsNone(self.state.current_shift())
        self.assertTrue(self.state.requires_shift)

    async def test_end_without_closing_cash(self):
        await self.state.start_shift("40")
        outcome = await self.state.end_shift()
        self.assertTrue(outcome)
        self.assertEqual(outcome.value.expected_cash, Decimal("40"))
        self.assertIsNone(outcome.value.closing_cash)
        self.assertIsNone(outcome.value.variance)

    async def test_end_rejects_bad_closing_cash(self):
        await self.state.start_shift("40")
        outcome = await self.state.end_shift("-3")
        self.assertEqual(outcome.kind, ErrorKind.VALIDATION)
        self.assertIsNotNone(await crud.get_active_shift(CASHIER))

    async def test_closed_shift_cannot_be_reopened(self):
        shift = (await self.state.start_shift("40")).value
        await self.state.end_shift()
        with self.assertRaises(ConflictError):
            await crud.end_shift(shift.id)

        # a new start opens a new shift
        again = await self.state.start_shift("60")
        self.assertTrue(again)
        self.assertNotEqual(again.value.id, shift.id)

    async def test_logout_keeps_shift_open(self):
        shift = (await self.state.start_shift("75")).value
        self.state.logout()
        self.assertIsNone(self.state.uid)
        self.assertIsNone(self.state.current_shift())

        active = await crud.get_active_shift(CASHIER)
        self.assertEqual(active.id, shift.id)

        self.state.login(await crud.get_operator(CASHIER))
        self.assertEqual((await self.state.refresh_shift()).id, shift.id)

    async def test_list_shifts_with_totals(self):
        await self.state.start_shift("100")
        self.state.cart.add_item(await crud.get_product(SOURDOUGH))
        await checkout(self.state, self.state.cart)
        await self.state.end_shift("105.40")
        await self.state.start_shift("50")

        summaries = await crud.list_shifts(CASHIER)
        self.assertEqual(len(summaries), 2)
        newest, oldest = summaries
        self.assertTrue(newest.shift.is_active)
        self.assertEqual(newest.sales_count, 0)
        self.assertEqual(oldest.sales_count, 1)
        self.assertEqual(oldest.sales_total, Decimal("5.40"))
        self.assertEqual(oldest.shift.variance, Decimal("0.00"))


if __name__ == "__main__":
    unittest.main()
