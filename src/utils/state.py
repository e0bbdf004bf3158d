from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

import db.crud as crud
from db.models import Operator, Shift
from utils.cart import Cart
from utils.logger import get_logger
from utils.outcome import ConflictError, ErrorKind, Outcome, PosError

_logger = get_logger(__name__)


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - uid: current logged-in operator id (operators.uid)
      - role: "cashier" | "manager" | None if nobody is logged in
      - name: display name of the operator
      - active_shift: cached open shift of the operator, refreshed from the db
      - cart: the in-progress sale
      - checkout_pending: True while a checkout is being written
    """

    uid: Optional[int] = None
    role: Optional[Literal["cashier", "manager"]] = None
    name: str = ""

    active_shift: Optional[Shift] = None
    cart: Cart = field(default_factory=Cart)
    checkout_pending: bool = False

    @property
    def is_manager(self) -> bool:
        return self.role == "manager"

    @property
    def requires_shift(self) -> bool:
        """True while a logged-in operator has no open shift."""
        return self.uid is not None and self.active_shift is None

    def login(self, operator: Operator) -> None:
        self.uid = operator.uid
        self.role = operator.role
        self.name = operator.name
        self.active_shift = None
        self.cart.clear()

    def current_shift(self) -> Optional[Shift]:
        return self.active_shift

    async def refresh_shift(self) -> Optional[Shift]:
        """Reload the operator's active shift from the db."""
        if self.uid is None:
            self.active_shift = None
            return None
        self.active_shift = await crud.get_active_shift(self.uid)
        return self.active_shift

    async def start_shift(
        self, starting_cash, when: Optional[datetime] = None
    ) -> Outcome[Shift]:
        """
        Open a shift with the given float. An already open shift is returned
        as a success without writing anything.
        """
        if self.uid is None:
            return Outcome.failure(ErrorKind.CONFLICT, "Please log in first")
        try:
            shift, created = await crud.start_shift(self.uid, starting_cash, when)
        except PosError as err:
            _logger.warning(f"Start shift failed: {err.message}")
            return Outcome.from_error(err)
        self.active_shift = shift
        if created:
            return Outcome.success(shift, "Shift started")
        return Outcome.success(shift, "Shift already active")

    async def end_shift(
        self, closing_cash=None, when: Optional[datetime] = None
    ) -> Outcome[Shift]:
        """
        Close the active shift. expected_cash is computed from the sales
        recorded against it; variance is available when closing_cash is given.
        """
        try:
            shift = await self.refresh_shift()
            if shift is None:
                raise ConflictError("No active shift")
            closed = await crud.end_shift(shift.id, closing_cash, when)
        except PosError as err:
            _logger.warning(f"End shift failed: {err.message}")
            return Outcome.from_error(err)
        self.active_shift = None
        return Outcome.success(closed, "Shift ended")

    def logout(self) -> None:
        """Forget the operator. An open shift stays open in the db."""
        self.uid = None
        self.role = None
        self.name = ""
        self.active_shift = None
        self.cart.clear()
