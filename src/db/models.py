# provide dataclass models

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

SHIFT_ACTIVE = "active"
SHIFT_CLOSED = "closed"

TXN_SALE = "sale"
TXN_RESTOCK = "restock"
TXN_ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class Operator:
    uid: int
    pwd: str
    name: str
    role: str  # "cashier" or "manager"


@dataclass(frozen=True)
class Category:
    id: int
    name: str


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: Decimal
    stock_quantity: int
    category_id: Optional[int] = None
    barcode: Optional[str] = None
    description: Optional[str] = None
    cost_price: Optional[Decimal] = None


@dataclass(frozen=True)
class Shift:
    id: int
    user_id: int
    starting_cash: Decimal
    status: str  # SHIFT_ACTIVE or SHIFT_CLOSED
    start_time: datetime
    end_time: Optional[datetime] = None
    closing_cash: Optional[Decimal] = None
    expected_cash: Optional[Decimal] = None
    notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SHIFT_ACTIVE

    @property
    def variance(self) -> Optional[Decimal]:
        if self.closing_cash is None or self.expected_cash is None:
            return None
        return self.closing_cash - self.expected_cash


@dataclass(frozen=True)
class ShiftSummary:
    shift: Shift
    sales_count: int
    sales_total: Decimal


@dataclass(frozen=True)
class Sale:
    id: int
    shift_id: int
    user_id: int
    total_amount: Decimal
    tax_amount: Decimal
    payment_method: str
    receipt_number: str
    created_at: datetime


@dataclass(frozen=True)
class SaleItem:
    id: int
    sale_id: int
    product_id: int
    quantity: int
    unit_price: Decimal  # snapshot at time of sale
    subtotal: Decimal


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class InventoryTransaction:
    id: int
    product_id: int
    quantity: int  # signed delta
    transaction_type: str
    user_id: int
    created_at: datetime
    notes: Optional[str] = None
    reference_id: Optional[int] = None


@dataclass(frozen=True)
class ReceiptLine:
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class Receipt:
    receipt_number: str
    total_amount: Decimal
    tax_amount: Decimal
    payment_method: str
    created_at: datetime
    items: List[ReceiptLine] = field(default_factory=list)
    sale_id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return self.total_amount - self.tax_amount

    @property
    def is_preview(self) -> bool:
        return self.sale_id is None
