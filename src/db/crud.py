# src/db/crud.py
from __future__ import annotations

import functools
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional, Tuple

import aiosqlite

from db import models
from db.database import connect, transaction
from utils.logger import get_logger
from utils.money import ZERO, parse_amount, round_cents, to_decimal
from utils.outcome import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PosError,
    StoreError,
    ValidationError,
)

_logger = get_logger(__name__)

_PRODUCT_COLS = (
    "id, name, price, stock_quantity, category_id, barcode, description, cost_price"
)
_SHIFT_COLS = (
    "id, user_id, starting_cash, status, start_time, end_time, "
    "closing_cash, expected_cash, notes"
)
_SHIFT_COLS_JOINED = ", ".join("sh." + c.strip() for c in _SHIFT_COLS.split(","))
_SALE_COLS = (
    "id, shift_id, user_id, total_amount, tax_amount, payment_method, "
    "receipt_number, created_at"
)
_TXN_COLS = (
    "id, product_id, quantity, transaction_type, user_id, created_at, "
    "notes, reference_id"
)

PAYMENT_METHODS = ("cash", "card")


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _money(val) -> Optional[Decimal]:
    return None if val is None else to_decimal(val)


def _ts(when: datetime) -> str:
    return when.isoformat(timespec="seconds")


def _dt(val) -> Optional[datetime]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val)


@contextmanager
def _store_errors(action: str):
    """Re-raise sqlite failures as StoreError so callers see one error type."""
    try:
        yield
    except PosError:
        raise
    except sqlite3.Error as exc:
        _logger.error(f"{action} failed: {exc}")
        raise StoreError(f"{action} failed: {exc}") from exc


def _reads(action: str):
    """Decorator form of _store_errors for query functions."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            with _store_errors(action):
                return await fn(*args, **kwargs)

        return wrapper

    return decorator


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=row[0],
        name=row[1],
        price=to_decimal(row[2]),
        stock_quantity=int(row[3]),
        category_id=row[4],
        barcode=row[5],
        description=row[6],
        cost_price=_money(row[7]),
    )


def _row_to_shift(row) -> models.Shift:
    return models.Shift(
        id=row[0],
        user_id=row[1],
        starting_cash=to_decimal(row[2]),
        status=row[3],
        start_time=_dt(row[4]),
        end_time=_dt(row[5]),
        closing_cash=_money(row[6]),
        expected_cash=_money(row[7]),
        notes=row[8],
    )


def _row_to_sale(row) -> models.Sale:
    return models.Sale(
        id=row[0],
        shift_id=row[1],
        user_id=row[2],
        total_amount=to_decimal(row[3]),
        tax_amount=to_decimal(row[4]),
        payment_method=row[5],
        receipt_number=row[6],
        created_at=_dt(row[7]),
    )


def _row_to_txn(row) -> models.InventoryTransaction:
    return models.InventoryTransaction(
        id=row[0],
        product_id=row[1],
        quantity=int(row[2]),
        transaction_type=row[3],
        user_id=row[4],
        created_at=_dt(row[5]),
        notes=row[6],
        reference_id=row[7],
    )


def _require_positive_qty(quantity) -> int:
    if isinstance(quantity, str):
        quantity = quantity.strip()
        qty = int(quantity) if quantity.isdigit() else None
    elif isinstance(quantity, int) and not isinstance(quantity, bool):
        qty = quantity
    else:
        qty = None
    if qty is None or qty <= 0:
        raise ValidationError("Please enter a valid quantity")
    return qty


# ---------------------------
# Operators
# ---------------------------


@_reads("Login")
async def login(uid: int, pwd: str) -> Optional[models.Operator]:
    """Return Operator if uid/pwd match; otherwise None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid, pwd, name, role FROM operators WHERE uid = ? AND pwd = ?;",
            (uid, pwd),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Operator(uid=int(row[0]), pwd=row[1], name=row[2], role=row[3])


@_reads("Load operator")
async def get_operator(uid: int) -> Optional[models.Operator]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid, pwd, name, role FROM operators WHERE uid = ?;", (uid,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Operator(uid=int(row[0]), pwd=row[1], name=row[2], role=row[3])


# ---------------------------
# Catalogue
# ---------------------------


@_reads("List categories")
async def list_categories() -> List[models.Category]:
    async with connect() as conn:
        cur = await conn.execute("SELECT id, name FROM categories ORDER BY name;")
        rows = await cur.fetchall()
        await cur.close()
    return [models.Category(id=row[0], name=row[1]) for row in rows]


@_reads("Product search")
async def list_products(
    search: str = "", category_id: Optional[int] = None
) -> List[models.Product]:
    """
    Case-insensitive match on name or exact barcode, optionally limited to one
    category. Empty search returns everything. Ordered by name.
    """
    phrase = (search or "").strip().lower()
    clauses: List[str] = []
    params: List[str | int] = []
    if phrase:
        clauses.append("(LOWER(name) LIKE ? OR LOWER(barcode) = ?)")
        params.extend([f"%{phrase}%", phrase])
    if category_id is not None:
        clauses.append("category_id = ?")
        params.append(category_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLS} FROM products {where} ORDER BY name, id;",
            tuple(params),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def _fetch_product(
    conn: aiosqlite.Connection, product_id: int
) -> Optional[models.Product]:
    cur = await conn.execute(
        f"SELECT {_PRODUCT_COLS} FROM products WHERE id = ?;", (product_id,)
    )
    row = await cur.fetchone()
    await cur.close()
    return _row_to_product(row) if row else None


@_reads("Load product")
async def get_product(product_id: int) -> Optional[models.Product]:
    """Point lookup, used to re-read live stock."""
    async with connect() as conn:
        return await _fetch_product(conn, product_id)


def _validate_product_fields(fields: Dict) -> Dict:
    clean = dict(fields)
    if "name" in clean:
        name = (clean["name"] or "").strip()
        if not name:
            raise ValidationError("Name is required")
        clean["name"] = name
    if "price" in clean:
        price = parse_amount(clean["price"])
        if price is None or price < 0:
            raise ValidationError("Price must be a non-negative number")
        clean["price"] = round_cents(price)
    if "cost_price" in clean and clean["cost_price"] not in (None, ""):
        cost = parse_amount(clean["cost_price"])
        if cost is None or cost < 0:
            raise ValidationError("Cost price must be a non-negative number")
        clean["cost_price"] = round_cents(cost)
    elif "cost_price" in clean:
        clean["cost_price"] = None
    if "stock_quantity" in clean:
        qty = _to_int(clean["stock_quantity"])
        if qty is None or qty < 0:
            raise ValidationError("Stock quantity must be a non-negative integer")
        clean["stock_quantity"] = qty
    for key in ("barcode", "description"):
        if key in clean:
            clean[key] = (clean[key] or "").strip() or None
    return clean


async def add_product(
    name: str,
    price,
    stock_quantity=0,
    category_id: Optional[int] = None,
    barcode: Optional[str] = None,
    description: Optional[str] = None,
    cost_price=None,
) -> models.Product:
    fields = _validate_product_fields(
        {
            "name": name,
            "price": price,
            "stock_quantity": stock_quantity,
            "barcode": barcode,
            "description": description,
            "cost_price": cost_price,
        }
    )
    with _store_errors("Add product"):
        async with connect() as conn:
            async with transaction(conn):
                cur = await conn.execute(
                    """
                    INSERT INTO products(name, price, cost_price, stock_quantity,
                                         category_id, barcode, description)
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        fields["name"],
                        fields["price"],
                        fields["cost_price"],
                        fields["stock_quantity"],
                        category_id,
                        fields["barcode"],
                        fields["description"],
                    ),
                )
                product_id = cur.lastrowid
            product = await _fetch_product(conn, product_id)
    _logger.info(f"Product {product.id} '{product.name}' added")
    return product


_UPDATABLE = {
    "name",
    "price",
    "cost_price",
    "stock_quantity",
    "category_id",
    "barcode",
    "description",
}


async def update_product(product_id: int, **fields) -> models.Product:
    """
    Update only the given product fields. Raises NotFoundError for an unknown
    product and ValidationError for bad values or unknown field names.
    """
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValidationError(f"Unknown product field(s): {', '.join(sorted(unknown))}")
    clean = _validate_product_fields(fields)
    with _store_errors("Update product"):
        async with connect() as conn:
            if clean:
                assignments = ", ".join(f"{k} = ?" for k in clean)
                async with transaction(conn):
                    cur = await conn.execute(
                        f"UPDATE products SET {assignments} WHERE id = ?;",
                        (*clean.values(), product_id),
                    )
                    updated = cur.rowcount
                if not updated:
                    raise NotFoundError(f"Product {product_id} not found")
            product = await _fetch_product(conn, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


# ---------------------------
# Shifts
# ---------------------------


async def _fetch_shift(conn: aiosqlite.Connection, shift_id: int) -> Optional[models.Shift]:
    cur = await conn.execute(
        f"SELECT {_SHIFT_COLS} FROM shifts WHERE id = ?;", (shift_id,)
    )
    row = await cur.fetchone()
    await cur.close()
    return _row_to_shift(row) if row else None


async def _fetch_active_shift(
    conn: aiosqlite.Connection, user_id: int
) -> Optional[models.Shift]:
    cur = await conn.execute(
        f"""
        SELECT {_SHIFT_COLS}
        FROM shifts
        WHERE user_id = ? AND status = ?
        ORDER BY start_time DESC, id DESC
        LIMIT 1;
        """,
        (user_id, models.SHIFT_ACTIVE),
    )
    row = await cur.fetchone()
    await cur.close()
    return _row_to_shift(row) if row else None


async def get_active_shift(user_id: int) -> Optional[models.Shift]:
    """Most recent active shift for the operator, or None."""
    with _store_errors("Load active shift"):
        async with connect() as conn:
            return await _fetch_active_shift(conn, user_id)


@_reads("Load shift")
async def get_shift(shift_id: int) -> Optional[models.Shift]:
    async with connect() as conn:
        return await _fetch_shift(conn, shift_id)


async def start_shift(
    user_id: int, starting_cash, when: Optional[datetime] = None
) -> Tuple[models.Shift, bool]:
    """
    Open a shift for the operator. Returns (shift, created).

    If the operator already has an active shift it is returned as is and
    nothing is written. The partial unique index on shifts decides races:
    the loser gets the winner's shift back.
    """
    amount = parse_amount(starting_cash)
    if amount is None or amount < 0:
        raise ValidationError("Please enter a valid starting cash amount")
    when = when or datetime.now()

    with _store_errors("Start shift"):
        async with connect() as conn:
            existing = await _fetch_active_shift(conn, user_id)
            if existing:
                _logger.info(f"Operator {user_id} already has active shift {existing.id}")
                return existing, False
            try:
                async with transaction(conn):
                    cur = await conn.execute(
                        """
                        INSERT INTO shifts(user_id, starting_cash, status, start_time)
                        VALUES (?, ?, ?, ?);
                        """,
                        (user_id, round_cents(amount), models.SHIFT_ACTIVE, _ts(when)),
                    )
                    shift_id = cur.lastrowid
            except sqlite3.IntegrityError:
                winner = await _fetch_active_shift(conn, user_id)
                if winner is None:
                    raise
                _logger.info(f"Operator {user_id} shift was opened concurrently")
                return winner, False
            shift = await _fetch_shift(conn, shift_id)
    _logger.info(f"Shift {shift.id} started for operator {user_id}")
    return shift, True


async def _shift_sales(conn: aiosqlite.Connection, shift_id: int) -> Tuple[int, Decimal]:
    cur = await conn.execute(
        "SELECT total_amount FROM sales WHERE shift_id = ?;", (shift_id,)
    )
    rows = await cur.fetchall()
    await cur.close()
    return len(rows), sum((to_decimal(r[0]) for r in rows), ZERO)


@_reads("Shift sales total")
async def shift_sales_total(shift_id: int) -> Tuple[int, Decimal]:
    """(number of sales, sum of sale totals) recorded against a shift."""
    async with connect() as conn:
        return await _shift_sales(conn, shift_id)


async def end_shift(
    shift_id: int, closing_cash=None, when: Optional[datetime] = None
) -> models.Shift:
    """
    Close an active shift, storing expected_cash = starting_cash + total sales
    and the counted closing cash when one is given.
    """
    closing: Optional[Decimal] = None
    if closing_cash is not None and closing_cash != "":
        closing = parse_amount(closing_cash)
        if closing is None or closing < 0:
            raise ValidationError("Please enter a valid amount")
        closing = round_cents(closing)
    when = when or datetime.now()

    with _store_errors("End shift"):
        async with connect() as conn:
            async with transaction(conn):
                shift = await _fetch_shift(conn, shift_id)
                if shift is None:
                    raise NotFoundError(f"Shift {shift_id} not found")
                if not shift.is_active:
                    raise ConflictError("Shift is already closed")
                _, total_sales = await _shift_sales(conn, shift_id)
                expected = round_cents(shift.starting_cash + total_sales)
                await conn.execute(
                    """
                    UPDATE shifts
                    SET status = ?, end_time = ?, closing_cash = ?, expected_cash = ?
                    WHERE id = ? AND status = ?;
                    """,
                    (
                        models.SHIFT_CLOSED,
                        _ts(when),
                        closing,
                        expected,
                        shift_id,
                        models.SHIFT_ACTIVE,
                    ),
                )
            closed = await _fetch_shift(conn, shift_id)
    _logger.info(
        f"Shift {shift_id} closed, expected cash {closed.expected_cash}, "
        f"counted {closed.closing_cash}"
    )
    return closed


@_reads("List shifts")
async def list_shifts(user_id: int) -> List[models.ShiftSummary]:
    """Operator's shifts, newest first, with sale count and sales total."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {_SHIFT_COLS_JOINED},
                   COUNT(s.id), COALESCE(SUM(s.total_amount), 0)
            FROM shifts sh
            LEFT JOIN sales s ON s.shift_id = sh.id
            WHERE sh.user_id = ?
            GROUP BY sh.id
            ORDER BY sh.start_time DESC, sh.id DESC;
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.ShiftSummary(
            shift=_row_to_shift(row),
            sales_count=int(row[9]),
            sales_total=round_cents(to_decimal(row[10])),
        )
        for row in rows
    ]


# ---------------------------
# Store primitives used by checkout and stock control
# ---------------------------


async def generate_receipt_number(
    conn: aiosqlite.Connection, when: Optional[datetime] = None
) -> str:
    """
    Next receipt number, RCP-YYYYMMDD-NNNN, from a per-day counter row.
    Must run inside the caller's write transaction.
    """
    when = when or datetime.now()
    day = when.strftime("%Y%m%d")
    await conn.execute(
        """
        INSERT INTO receipt_sequences(day, last_no) VALUES (?, 1)
        ON CONFLICT(day) DO UPDATE SET last_no = last_no + 1;
        """,
        (day,),
    )
    cur = await conn.execute(
        "SELECT last_no FROM receipt_sequences WHERE day = ?;", (day,)
    )
    row = await cur.fetchone()
    await cur.close()
    return f"RCP-{day}-{int(row[0]):04d}"


async def insert_sale(
    conn: aiosqlite.Connection,
    shift_id: int,
    user_id: int,
    total_amount: Decimal,
    tax_amount: Decimal,
    payment_method: str,
    receipt_number: str,
    when: datetime,
) -> models.Sale:
    cur = await conn.execute(
        """
        INSERT INTO sales(shift_id, user_id, total_amount, tax_amount,
                          payment_method, receipt_number, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?);
        """,
        (
            shift_id,
            user_id,
            round_cents(total_amount),
            round_cents(tax_amount),
            payment_method,
            receipt_number,
            _ts(when),
        ),
    )
    return models.Sale(
        id=cur.lastrowid,
        shift_id=shift_id,
        user_id=user_id,
        total_amount=round_cents(total_amount),
        tax_amount=round_cents(tax_amount),
        payment_method=payment_method,
        receipt_number=receipt_number,
        created_at=datetime.fromisoformat(_ts(when)),
    )


async def insert_sale_items(
    conn: aiosqlite.Connection,
    sale_id: int,
    lines: Iterable[models.SaleLineInput],
) -> List[models.SaleItem]:
    items: List[models.SaleItem] = []
    for line in lines:
        cur = await conn.execute(
            """
            INSERT INTO sale_items(sale_id, product_id, quantity, unit_price, subtotal)
            VALUES (?, ?, ?, ?, ?);
            """,
            (sale_id, line.product_id, line.quantity, line.unit_price, line.subtotal),
        )
        items.append(
            models.SaleItem(
                id=cur.lastrowid,
                sale_id=sale_id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
        )
    return items


async def insert_inventory_transaction(
    conn: aiosqlite.Connection,
    product_id: int,
    quantity: int,
    transaction_type: str,
    user_id: int,
    notes: Optional[str] = None,
    reference_id: Optional[int] = None,
    when: Optional[datetime] = None,
) -> models.InventoryTransaction:
    when = when or datetime.now()
    cur = await conn.execute(
        """
        INSERT INTO inventory_transactions(product_id, quantity, transaction_type,
                                           user_id, notes, reference_id, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?);
        """,
        (product_id, quantity, transaction_type, user_id, notes, reference_id, _ts(when)),
    )
    return models.InventoryTransaction(
        id=cur.lastrowid,
        product_id=product_id,
        quantity=quantity,
        transaction_type=transaction_type,
        user_id=user_id,
        created_at=datetime.fromisoformat(_ts(when)),
        notes=notes,
        reference_id=reference_id,
    )


async def _current_stock(conn: aiosqlite.Connection, product_id: int) -> Optional[int]:
    cur = await conn.execute(
        "SELECT stock_quantity FROM products WHERE id = ?;", (product_id,)
    )
    row = await cur.fetchone()
    await cur.close()
    return int(row[0]) if row else None


async def decrement_product_stock(
    conn: aiosqlite.Connection, product_id: int, quantity: int, name: str = ""
) -> int:
    """
    Atomically take quantity off the stock counter, only if enough is left.
    Returns the new stock level.
    """
    cur = await conn.execute(
        """
        UPDATE products
        SET stock_quantity = stock_quantity - ?
        WHERE id = ? AND stock_quantity >= ?;
        """,
        (quantity, product_id, quantity),
    )
    if cur.rowcount == 0:
        stock = await _current_stock(conn, product_id)
        if stock is None:
            raise NotFoundError(f"Product {product_id} not found")
        label = name or f"product {product_id}"
        raise InsufficientStockError(
            f"Insufficient stock for {label}: {stock} left, {quantity} requested",
            product_id=product_id,
        )
    return await _current_stock(conn, product_id)


async def increment_product_stock(
    conn: aiosqlite.Connection, product_id: int, quantity: int
) -> int:
    cur = await conn.execute(
        "UPDATE products SET stock_quantity = stock_quantity + ? WHERE id = ?;",
        (quantity, product_id),
    )
    if cur.rowcount == 0:
        raise NotFoundError(f"Product {product_id} not found")
    return await _current_stock(conn, product_id)


# ---------------------------
# Checkout
# ---------------------------


async def record_sale(
    shift_id: int,
    user_id: int,
    lines: List[models.SaleLineInput],
    total_amount: Decimal,
    tax_amount: Decimal,
    payment_method: str = "cash",
    when: Optional[datetime] = None,
) -> Tuple[models.Sale, List[models.SaleItem]]:
    """
    Persist one checkout as a single transaction: receipt number, sale row,
    sale items, and per line an inventory transaction plus a conditional stock
    decrement. Any failure rolls back every write of the checkout.
    """
    if not lines:
        raise ValidationError("Cart is empty")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}")
    when = when or datetime.now()

    with _store_errors("Checkout"):
        async with connect() as conn:
            async with transaction(conn):
                shift = await _fetch_shift(conn, shift_id)
                if shift is None or not shift.is_active or shift.user_id != user_id:
                    raise ConflictError("No active shift")

                receipt_number = await generate_receipt_number(conn, when)
                sale = await insert_sale(
                    conn,
                    shift_id,
                    user_id,
                    total_amount,
                    tax_amount,
                    payment_method,
                    receipt_number,
                    when,
                )
                items = await insert_sale_items(conn, sale.id, lines)
                for line in lines:
                    await insert_inventory_transaction(
                        conn,
                        line.product_id,
                        -line.quantity,
                        models.TXN_SALE,
                        user_id,
                        reference_id=sale.id,
                        when=when,
                    )
                    await decrement_product_stock(
                        conn, line.product_id, line.quantity, line.name
                    )
    _logger.info(
        f"Sale {sale.receipt_number} recorded: {len(items)} line(s), "
        f"total {sale.total_amount}"
    )
    return sale, items


@_reads("Load sale")
async def get_sale_detail(
    sale_id: int,
) -> Tuple[Optional[models.Sale], List[models.SaleItem]]:
    """Return (sale, items) for a sale id, (None, []) if it does not exist."""
    async with connect() as conn:
        cur = await conn.execute(f"SELECT {_SALE_COLS} FROM sales WHERE id = ?;", (sale_id,))
        sale_row = await cur.fetchone()
        await cur.close()
        if not sale_row:
            return None, []
        cur = await conn.execute(
            """
            SELECT id, sale_id, product_id, quantity, unit_price, subtotal
            FROM sale_items WHERE sale_id = ? ORDER BY id;
            """,
            (sale_id,),
        )
        item_rows = await cur.fetchall()
        await cur.close()
    items = [
        models.SaleItem(
            id=r[0],
            sale_id=r[1],
            product_id=r[2],
            quantity=int(r[3]),
            unit_price=to_decimal(r[4]),
            subtotal=to_decimal(r[5]),
        )
        for r in item_rows
    ]
    return _row_to_sale(sale_row), items


@_reads("List shift sales")
async def list_sales_for_shift(shift_id: int) -> List[models.Sale]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_SALE_COLS} FROM sales WHERE shift_id = ? ORDER BY created_at, id;",
            (shift_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_sale(row) for row in rows]


# ---------------------------
# Stock control
# ---------------------------


async def restock(
    product_id: int, quantity, user_id: int, notes: Optional[str] = None
) -> models.Product:
    """Add received goods: ledger entry (+qty) and stock increment together."""
    qty = _require_positive_qty(quantity)
    with _store_errors("Restock"):
        async with connect() as conn:
            async with transaction(conn):
                if await _fetch_product(conn, product_id) is None:
                    raise NotFoundError(f"Product {product_id} not found")
                await insert_inventory_transaction(
                    conn, product_id, qty, models.TXN_RESTOCK, user_id, notes or None
                )
                await increment_product_stock(conn, product_id, qty)
            product = await _fetch_product(conn, product_id)
    _logger.info(f"Restocked product {product_id} by {qty}, now {product.stock_quantity}")
    return product


async def adjust_stock(
    product_id: int,
    direction: Literal["increase", "decrease"],
    quantity,
    user_id: int,
    notes: Optional[str] = None,
) -> models.Product:
    """
    Manual correction of a stock counter. A decrease larger than the current
    stock is rejected before anything is written.
    """
    if direction not in ("increase", "decrease"):
        raise ValidationError(f"Unknown adjustment direction: {direction}")
    qty = _require_positive_qty(quantity)
    delta = qty if direction == "increase" else -qty

    with _store_errors("Stock adjustment"):
        async with connect() as conn:
            async with transaction(conn):
                product = await _fetch_product(conn, product_id)
                if product is None:
                    raise NotFoundError(f"Product {product_id} not found")
                if direction == "decrease" and qty > product.stock_quantity:
                    raise InsufficientStockError(
                        "Cannot reduce stock below zero", product_id=product_id
                    )
                await insert_inventory_transaction(
                    conn, product_id, delta, models.TXN_ADJUSTMENT, user_id, notes or None
                )
                if direction == "decrease":
                    await decrement_product_stock(conn, product_id, qty, product.name)
                else:
                    await increment_product_stock(conn, product_id, qty)
            product = await _fetch_product(conn, product_id)
    _logger.info(f"Adjusted product {product_id} by {delta}, now {product.stock_quantity}")
    return product


@_reads("Load stock history")
async def list_inventory_transactions(
    product_id: Optional[int] = None, limit: int = 50
) -> List[models.InventoryTransaction]:
    """Ledger entries, newest first."""
    where = "WHERE product_id = ?" if product_id is not None else ""
    params: Tuple = (product_id, limit) if product_id is not None else (limit,)
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {_TXN_COLS}
            FROM inventory_transactions
            {where}
            ORDER BY created_at DESC, id DESC
            LIMIT ?;
            """,
            params,
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_txn(row) for row in rows]


# ---------------------------
# Sales Reports
# ---------------------------


def report_window(period: str, as_of: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    [start, end) datetimes for a report period: "7days", "30days" or "month"
    (calendar month containing as_of).
    """
    as_of = as_of or date.today()
    end = datetime.combine(as_of + timedelta(days=1), datetime.min.time())
    if period == "30days":
        return end - timedelta(days=30), end
    if period == "month":
        start = datetime(as_of.year, as_of.month, 1)
        if as_of.month == 12:
            month_end = datetime(as_of.year + 1, 1, 1)
        else:
            month_end = datetime(as_of.year, as_of.month + 1, 1)
        return start, month_end
    return end - timedelta(days=7), end


@_reads("Sales summary")
async def sales_summary(start: datetime, end: datetime) -> Dict:
    """
    Summarize sales created in [start, end).
    Returns totals, transaction count, average ticket, per-day and
    per-payment-method totals.
    """
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT total_amount, payment_method, created_at
            FROM sales
            WHERE created_at >= ? AND created_at < ?
            ORDER BY created_at;
            """,
            (_ts(start), _ts(end)),
        )
        rows = await cur.fetchall()
        await cur.close()

    total = ZERO
    daily: Dict[str, Dict] = {}
    by_payment: Dict[str, Decimal] = {}
    for amount_raw, method, created in rows:
        amount = to_decimal(amount_raw)
        total += amount
        day = _dt(created).date().isoformat()
        bucket = daily.setdefault(day, {"date": day, "total": ZERO, "count": 0})
        bucket["total"] += amount
        bucket["count"] += 1
        by_payment[method] = by_payment.get(method, ZERO) + amount

    count = len(rows)
    return {
        "total_sales": total,
        "transactions": count,
        "average_ticket": round_cents(total / count) if count else ZERO,
        "daily": [daily[d] for d in sorted(daily)],
        "by_payment_method": by_payment,
    }


@_reads("Top products")
async def top_products_by_revenue(
    start: datetime, end: datetime, k: int = 5
) -> List[Tuple[int, str, int, Decimal]]:
    """[(product_id, name, quantity sold, revenue), ...] best revenue first."""
    if k < 1:
        return []
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT si.product_id, COALESCE(p.name, 'Product ' || si.product_id),
                   SUM(si.quantity), SUM(si.subtotal)
            FROM sale_items si
            JOIN sales s ON s.id = si.sale_id
            LEFT JOIN products p ON p.id = si.product_id
            WHERE s.created_at >= ? AND s.created_at < ?
            GROUP BY si.product_id
            ORDER BY SUM(si.subtotal) DESC, si.product_id
            LIMIT ?;
            """,
            (_ts(start), _ts(end), k),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        (int(r[0]), r[1], int(r[2]), round_cents(to_decimal(r[3]))) for r in rows
    ]
