"""
Error kinds, exceptions and the result type shared by the cart, shift and
checkout layers.

The data layer raises ``PosError`` subclasses. Callers that sit between the
data layer and the screens convert them into ``Outcome`` values, so a screen
only has to decide how to render a result, never how to classify it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Literal, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    VALIDATION = "validation"  # bad input, nothing written
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"  # wrong state, e.g. no active shift
    STOCK = "stock"  # not enough stock for the requested change
    STORE = "store"  # database failure, safe to retry

    @property
    def is_retryable(self) -> bool:
        return self is ErrorKind.STORE


class PosError(Exception):
    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PosError):
    kind = ErrorKind.VALIDATION


class NotFoundError(PosError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(PosError):
    kind = ErrorKind.CONFLICT


class InsufficientStockError(PosError):
    kind = ErrorKind.STOCK

    def __init__(self, message: str, product_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.product_id = product_id


class StoreError(PosError):
    kind = ErrorKind.STORE


Severity = Literal["information", "warning", "error"]

_SEVERITY: dict[ErrorKind, Severity] = {
    ErrorKind.VALIDATION: "warning",
    ErrorKind.NOT_FOUND: "warning",
    ErrorKind.CONFLICT: "warning",
    ErrorKind.STOCK: "warning",
    ErrorKind.STORE: "error",
}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    ok: bool
    value: Optional[T] = None
    kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = "") -> "Outcome[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome[T]":
        return cls(ok=False, kind=kind, message=message)

    @classmethod
    def from_error(cls, err: PosError) -> "Outcome[T]":
        return cls(ok=False, kind=err.kind, message=err.message)

    @property
    def severity(self) -> Severity:
        """Textual notification severity for this outcome."""
        if self.ok:
            return "information"
        return _SEVERITY.get(self.kind, "error")

    def __bool__(self) -> bool:
        return self.ok
