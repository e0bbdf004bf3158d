import unittest
from decimal import Decimal

import helpers  # noqa: F401  (puts src/ on sys.path)
from db.models import Product
from utils.cart import Cart
from utils.money import fmt, round_cents
from utils.outcome import ErrorKind


def make_product(pid=1, name="Widget", price="3.00", stock=5) -> Product:
    return Product(id=pid, name=name, price=Decimal(price), stock_quantity=stock)


class CartTestCase(unittest.TestCase):
    def setUp(self):
        self.cart = Cart()

    # ---------- adding ----------

    def test_add_new_line_and_increment(self):
        prod = make_product()
        self.assertTrue(self.cart.add_item(prod))
        self.assertEqual(self.cart.get(1).quantity, 1)

        self.assertTrue(self.cart.add_item(prod))
        self.assertEqual(len(self.cart), 1)
        self.assertEqual(self.cart.get(1).quantity, 2)
        self.assertEqual(self.cart.get(1).subtotal, Decimal("6.00"))

    def test_add_respects_stock_ceiling(self):
        prod = make_product(stock=2)
        self.cart.add_item(prod)
        self.cart.add_item(prod)

        outcome = self.cart.add_item(prod)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.VALIDATION)
        self.assertEqual(outcome.severity, "warning")
        self.assertEqual(self.cart.get(1).quantity, 2)

    def test_readd_uses_lower_fresh_stock(self):
        self.cart.add_item(make_product(stock=5))
        self.cart.add_item(make_product(stock=5))

        # stock dropped to 2 elsewhere; the re-read product must cap the line
        outcome = self.cart.add_item(make_product(stock=2))
        self.assertFalse(outcome)
        self.assertIn("Only 2", outcome.message)
        self.assertEqual(self.cart.get(1).quantity, 2)
        self.assertFalse(self.cart.increase_quantity(1))
        self.assertLessEqual(self.cart.get(1).quantity, 2)

    def test_readd_uses_higher_fresh_stock_and_price(self):
        self.cart.add_item(make_product(name="Cheddar", stock=1))

        # restocked and repriced since the line was created
        outcome = self.cart.add_item(make_product(name="Cheddar", price="3.50", stock=10))
        self.assertTrue(outcome, outcome.message)
        line = self.cart.get(1)
        self.assertEqual(line.quantity, 2)
        self.assertEqual(line.unit_price, Decimal("3.50"))
        self.assertEqual(line.subtotal, Decimal("7.00"))

    def test_out_of_stock_product_is_rejected(self):
        with self.assertLogs("utils.cart", level="WARNING"):
            outcome = self.cart.add_item(make_product(stock=0))
        self.assertFalse(outcome)
        self.assertIn("out of stock", outcome.message)
        self.assertTrue(self.cart.is_empty)

    def test_one_line_per_product_in_insertion_order(self):
        a, b, c = make_product(1, "A"), make_product(2, "B"), make_product(3, "C")
        for p in (b, a, c, a):
            self.cart.add_item(p)
        self.assertEqual([line.product_id for line in self.cart.lines], [2, 1, 3])
        self.assertEqual(self.cart.item_count(), 4)

    # ---------- quantity changes ----------

    def test_increase_quantity(self):
        self.cart.add_item(make_product(stock=2))
        self.assertTrue(self.cart.increase_quantity(1))
        self.assertEqual(self.cart.get(1).quantity, 2)

        at_ceiling = self.cart.increase_quantity(1)
        self.assertFalse(at_ceiling)
        self.assertEqual(self.cart.get(1).quantity, 2)

    def test_increase_unknown_product(self):
        outcome = self.cart.increase_quantity(99)
        self.assertFalse(outcome)
        self.assertEqual(outcome.kind, ErrorKind.NOT_FOUND)

    def test_decrease_has_floor_of_one(self):
        prod = make_product()
        self.cart.add_item(prod)
        self.cart.add_item(prod)

        self.assertTrue(self.cart.decrease_quantity(1))
        self.assertEqual(self.cart.get(1).quantity, 1)

        # stays at 1, line is kept, and the operator is pointed at Remove
        at_floor = self.cart.decrease_quantity(1)
        self.assertTrue(at_floor)
        self.assertIn("use Remove", at_floor.message)
        self.assertEqual(self.cart.get(1).quantity, 1)
        self.assertIn(1, self.cart)

    def test_remove_ignores_quantity(self):
        prod = make_product()
        for _ in range(3):
            self.cart.add_item(prod)
        self.assertTrue(self.cart.remove_item(1))
        self.assertTrue(self.cart.is_empty)
        self.assertFalse(self.cart.remove_item(1))

    def test_clear(self):
        self.cart.add_item(make_product(1))
        self.cart.add_item(make_product(2))
        self.cart.clear()
        self.assertEqual(len(self.cart), 0)
        self.assertEqual(self.cart.subtotal(), Decimal("0"))

    # ---------- totals ----------

    def test_totals_example_sale(self):
        cheddar = make_product(1, "Cheddar", "3.00", 5)
        sourdough = make_product(2, "Sourdough", "5.00", 8)
        self.cart.add_item(cheddar)
        self.cart.add_item(cheddar)
        self.cart.add_item(sourdough)

        self.assertEqual(self.cart.subtotal(), Decimal("11.00"))
        self.assertEqual(self.cart.tax(), Decimal("0.88"))
        self.assertEqual(self.cart.grand_total(), Decimal("11.88"))

    def test_totals_are_exact_and_rounded_on_display(self):
        self.cart.add_item(make_product(price="0.99"))
        self.assertEqual(self.cart.tax(), Decimal("0.0792"))
        self.assertEqual(self.cart.grand_total(), Decimal("1.0692"))
        self.assertEqual(round_cents(self.cart.tax()), Decimal("0.08"))
        self.assertEqual(fmt(self.cart.grand_total()), "$1.07")

    def test_grand_total_is_subtotal_plus_tax(self):
        for pid, price in enumerate(["0.59", "1.49", "3.99", "6.49"], start=1):
            self.cart.add_item(make_product(pid, price=price, stock=10))
            self.cart.increase_quantity(pid)
        self.assertEqual(self.cart.grand_total(), self.cart.subtotal() + self.cart.tax())
        self.assertEqual(self.cart.subtotal(), sum(l.subtotal for l in self.cart.lines))


if __name__ == "__main__":
    unittest.main()
