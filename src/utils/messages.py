from textual.message import Message

from db.models import Shift


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the operator logs out
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever a line is added, changed or removed in the cart.
    The POS screen redraws the cart panel and totals on it.
    """

    bubble = True


class ShiftChangedMessage(Message):
    """
    Fired after a shift is started or ended. shift is None once it is closed.
    Must be posted at App level.
    """

    bubble = True

    def __init__(self, shift: Shift | None) -> None:
        super().__init__()
        self.shift = shift


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
