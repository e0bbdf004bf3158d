import asyncio
import re
import unittest
from datetime import datetime
from decimal import Decimal

from helpers import CASHIER, CHEDDAR, MILK, SOURDOUGH, DbTestCase
from db import crud
from db.models import TXN_SALE
from utils.checkout import checkout, preview_receipt, reprint_receipt
from utils.outcome import ErrorKind
from utils.receipt import render_markdown
from utils.state import GlobalState


class CheckoutTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.state = GlobalState()
        self.state.login(await crud.get_operator(CASHIER))
        self.cart = self.state.cart

    async def fill_example_cart(self):
        # 2 x cheddar @ 3.00 + 1 x sourdough @ 5.00
        cheddar = await crud.get_product(CHEDDAR)
        sourdough = await crud.get_product(SOURDOUGH)
        self.cart.add_item(cheddar)
        self.cart.add_item(cheddar)
        self.cart.add_item(sourdough)

    # ---------- happy path ----------

    async def test_checkout_records_sale(self):
        await self.state.start_shift("100")
        await self.fill_example_cart()

        when = datetime(2024, 3, 5, 14, 30, 0)
        outcome = await checkout(self.state, self.cart, "cash", when=when)
        self.assertTrue(outcome, outcome.message)
        receipt = outcome.value

        self.assertEqual(receipt.total_amount, Decimal("11.88"))
        self.assertEqual(receipt.tax_amount, Decimal("0.88"))
        self.assertEqual(receipt.subtotal, Decimal("11.00"))
        self.assertEqual(receipt.receipt_number, "RCP-20240305-0001")
        self.assertEqual(len(receipt.items), 2)
        self.assertFalse(receipt.is_preview)
        self.assertTrue(self.cart.is_empty)

        # stock and ledger
        self.assertEqual(await self.stock_of(CHEDDAR), 3)
        self.assertEqual(await self.stock_of(SOURDOUGH), 7)
        ledger = await crud.list_inventory_transactions()
        self.assertEqual(
            sorted((t.product_id, t.quantity) for t in ledger),
            [(CHEDDAR, -2), (SOURDOUGH, -1)],
        )
        for txn in ledger:
            self.assertEqual(txn.transaction_type, TXN_SALE)
            self.assertEqual(txn.reference_id, receipt.sale_id)
            self.assertEqual(txn.user_id, CASHIER)

        # sale and item snapshots
        sale, items = await crud.get_sale_detail(receipt.sale_id)
        self.assertEqual(sale.total_amount, Decimal("11.88"))
        self.assertEqual(sale.tax_amount, Decimal("0.88"))
        self.assertEqual(sale.shift_id, self.state.current_shift().id)
        self.assertEqual(sale.payment_method, "cash")
        self.assertEqual(sale.created_at, when)
        self.assertEqual(sum(i.subtotal for i in items), Decimal("11.00"))
        by_pid = {i.product_id: i for i in items}
        self.assertEqual(by_pid[CHEDDAR].quantity, 2)
        self.assertEqual(by_pid[CHEDDAR].unit_price, Decimal("3.00"))

    async def test_card_payment_and_receipt_rendering(self):
        await self.state.start_shift("100")
        self.cart.add_item(await crud.get_product(MILK))
        outcome = await checkout(self.state, self.cart, "card")
        self.assertTrue(outcome)
        self.assertEqual(outcome.value.payment_method, "card")
        md = render_markdown(outcome.value)
        self.assertIn("Credit/Debit Card", md)
        self.assertIn(outcome.value.receipt_number, md)

    async def test_receipt_numbers_are_sequential_per_day(self):
        await self.state.start_shift("100")
        numbers = []
        for when in (
            datetime(2024, 3, 5, 9, 0),
            datetime(2024, 3, 5, 9, 5),
            datetime(2024, 3, 6, 8, 0),
        ):
            self.cart.add_item(await crud.get_product(MILK))
            outcome = await checkout(self.state, self.cart, when=when)
            numbers.append(outcome.value.receipt_number)
        self.assertEqual(
            numbers, ["RCP-20240305-0001", "RCP-20240305-0002", "RCP-20240306-0001"]
        )
        self.assertEqual(await self.count("sales"), 3)

    async def test_price_snapshot_survives_price_change(self):
        await self.state.start_shift("100")
        self.cart.add_item(await crud.get_product(SOURDOUGH))
        outcome = await checkout(self.state, self.cart)
        await crud.update_product(SOURDOUGH, price="7.25")

        _, items = await crud.get_sale_detail(outcome.value.sale_id)
        self.assertEqual(items[0].unit_price, Decimal("5.00"))

    # ---------- preconditions ----------

    async def test_no_active_shift(self):
        await self.fill_example_cart()
        outcome = await checkout(self.state, self.cart)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)
        self.assertEqual(outcome.message, "No active shift")
        self.assertEqual(len(self.cart), 2)
        self.assertEqual(await self.count("sales"), 0)
        self.assertEqual(await self.count("inventory_transactions"), 0)

    async def test_shift_is_checked_before_cart(self):
        outcome = await checkout(self.state, self.cart)
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)

    async def test_empty_cart(self):
        await self.state.start_shift("100")
        outcome = await checkout(self.state, self.cart)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.VALIDATION)
        self.assertEqual(outcome.message, "Cart is empty")
        self.assertEqual(await self.count("sales"), 0)

    async def test_shift_closed_elsewhere(self):
        await self.state.start_shift("100")
        await self.fill_example_cart()
        shift = self.state.current_shift()
        await crud.end_shift(shift.id)

        outcome = await checkout(self.state, self.cart)
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)
        self.assertEqual(await self.count("sales"), 0)

    async def test_unknown_payment_method(self):
        await self.state.start_shift("100")
        self.cart.add_item(await crud.get_product(MILK))
        outcome = await checkout(self.state, self.cart, "bitcoin")
        self.assertEqual(outcome.kind, ErrorKind.VALIDATION)
        self.assertEqual(len(self.cart), 1)

    # ---------- failure rolls back everything ----------

    async def test_insufficient_stock_rolls_back(self):
        await self.state.start_shift("100")
        await self.fill_example_cart()

        # another till sells cheddar after our cart was built: 1 left, we want 2
        await crud.adjust_stock(CHEDDAR, "decrease", 4, CASHIER, "sold at till 2")
        ledger_before = await self.count("inventory_transactions")

        outcome = await checkout(self.state, self.cart)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.STOCK)
        self.assertIn("Cheddar", outcome.message)

        self.assertEqual(await self.count("sales"), 0)
        self.assertEqual(await self.count("sale_items"), 0)
        self.assertEqual(await self.count("inventory_transactions"), ledger_before)
        self.assertEqual(await self.stock_of(CHEDDAR), 1)
        self.assertEqual(await self.stock_of(SOURDOUGH), 8)
        # cart kept for a retry
        self.assertEqual(self.cart.item_count(), 3)

        # the failed attempt did not use up a receipt number
        self.cart.decrease_quantity(CHEDDAR)
        when = datetime.now()
        retry = await checkout(self.state, self.cart, when=when)
        self.assertTrue(retry, retry.message)
        self.assertEqual(retry.value.receipt_number, f"RCP-{when:%Y%m%d}-0001")
        self.assertEqual(await self.stock_of(CHEDDAR), 0)

    # ---------- one checkout at a time ----------

    async def test_second_checkout_while_pending_is_refused(self):
        await self.state.start_shift("100")
        await self.fill_example_cart()

        first, second = await asyncio.gather(
            checkout(self.state, self.cart), checkout(self.state, self.cart)
        )
        self.assertTrue(first, first.message)
        self.assertFalse(second)
        self.assertEqual(second.kind, ErrorKind.CONFLICT)
        self.assertEqual(second.message, "Checkout already in progress")
        self.assertEqual(await self.count("sales"), 1)
        self.assertEqual(await self.stock_of(CHEDDAR), 3)
        self.assertFalse(self.state.checkout_pending)

        # the guard is released, the next sale goes through
        self.cart.add_item(await crud.get_product(MILK))
        self.assertTrue(await checkout(self.state, self.cart))
        self.assertEqual(await self.count("sales"), 2)

    async def test_guard_released_after_failed_checkout(self):
        outcome = await checkout(self.state, self.cart)
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)
        self.assertFalse(self.state.checkout_pending)

    # ---------- reprint ----------

    async def test_reprint_uses_stored_snapshots(self):
        await self.state.start_shift("100")
        await self.fill_example_cart()
        original = (await checkout(self.state, self.cart, "card")).value
        await crud.update_product(CHEDDAR, price="9.99")

        outcome = await reprint_receipt(original.sale_id)
        self.assertTrue(outcome, outcome.message)
        copy = outcome.value
        self.assertEqual(copy.receipt_number, original.receipt_number)
        self.assertEqual(copy.total_amount, Decimal("11.88"))
        self.assertEqual(copy.payment_method, "card")
        self.assertFalse(copy.is_preview)
        by_name = {line.product_name: line for line in copy.items}
        self.assertEqual(by_name["Cheddar Cheese 8oz"].unit_price, Decimal("3.00"))
        self.assertEqual(by_name["Cheddar Cheese 8oz"].quantity, 2)
        self.assertIn("Sourdough Loaf", by_name)

    async def test_reprint_unknown_sale(self):
        outcome = await reprint_receipt(999999)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.NOT_FOUND)

    # ---------- preview ----------

    async def test_preview_does_not_touch_store(self):
        await self.fill_example_cart()
        outcome = preview_receipt(self.cart)
        self.assertTrue(outcome)
        receipt = outcome.value
        self.assertEqual(receipt.receipt_number, "PREVIEW")
        self.assertEqual(receipt.payment_method, "preview")
        self.assertTrue(receipt.is_preview)
        self.assertEqual(receipt.total_amount, Decimal("11.88"))
        self.assertEqual(len(self.cart), 2)
        self.assertEqual(await self.count("sales"), 0)
        self.assertEqual(await self.count("receipt_sequences"), 0)
        self.assertNotIn("Payment Method", render_markdown(receipt))

    async def test_preview_of_empty_cart(self):
        outcome = preview_receipt(self.cart)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.VALIDATION)

    async def test_receipt_number_format(self):
        await self.state.start_shift("100")
        self.cart.add_item(await crud.get_product(MILK))
        outcome = await checkout(self.state, self.cart)
        self.assertRegex(outcome.value.receipt_number, re.compile(r"^RCP-\d{8}-\d{4}$"))


if __name__ == "__main__":
    unittest.main()
