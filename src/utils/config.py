# runtime settings, read once from the environment
import os
from decimal import Decimal, InvalidOperation


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_decimal(name: str, default: str) -> Decimal:
    try:
        return Decimal(os.getenv(name, default))
    except InvalidOperation:
        return Decimal(default)


DB_PATH = os.getenv("POS_DB_PATH", "data/pos.sqlite")
SEED_DEMO_DATA = _env_bool("POS_SEED_DEMO_DATA", True)

TAX_RATE = _env_decimal("POS_TAX_RATE", "0.08")

STORE_NAME = os.getenv("POS_STORE_NAME", "Grocery Store POS")
STORE_ADDRESS = os.getenv("POS_STORE_ADDRESS", "123 Main Street, Anytown USA")
STORE_PHONE = os.getenv("POS_STORE_PHONE", "(555) 123-4567")

LOG_LEVEL = os.getenv("POS_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("POS_LOG_FILE")
