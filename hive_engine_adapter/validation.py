"""
Account name and token quantity helpers

Quantities travel as fixed-precision decimal strings on the wire and are
handled as Decimal everywhere; nothing here goes through float.
"""

import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, str]

ACCOUNT_NAME_MIN_LENGTH = 3
ACCOUNT_NAME_MAX_LENGTH = 16

_ACCOUNT_NAME_RE = re.compile(r"^[a-z][a-z0-9.-]*[a-z0-9]$")
_DOUBLED_SEPARATOR_RE = re.compile(r"\.\.|--|\.-|-\.")
_SYMBOL_RE = re.compile(r"^[A-Z][A-Z.]{0,9}$")

ZERO = Decimal(0)


def to_decimal(value: Number) -> Decimal:
    """Convert int/str/Decimal to Decimal (floats go through str to avoid binary drift)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def is_valid_account_name(name) -> bool:
    """
    Validate a Hive account name

    Rules:
    - 3-16 characters
    - Starts with a letter
    - Only lowercase letters, digits, dots and hyphens
    - Ends with a letter or digit
    - No doubled separators and no dot-hyphen combinations
    """
    if not name or not isinstance(name, str):
        return False
    if not ACCOUNT_NAME_MIN_LENGTH <= len(name) <= ACCOUNT_NAME_MAX_LENGTH:
        return False
    if not _ACCOUNT_NAME_RE.fullmatch(name):
        return False
    if _DOUBLED_SEPARATOR_RE.search(name):
        return False
    return True


def is_valid_symbol(symbol) -> bool:
    """Token symbols are 1-10 uppercase letters or dots (e.g. MEDALS, SWAP.HIVE)"""
    return isinstance(symbol, str) and bool(_SYMBOL_RE.fullmatch(symbol))


def is_valid_quantity(quantity, precision: int = 3) -> bool:
    """
    Validate a quantity string against the token precision

    The string must be a plain decimal with at most `precision` fractional
    ASCII digits, finite and strictly greater than zero.
    """
    if not isinstance(quantity, str):
        return False
    if precision > 0:
        pattern = rf"^[0-9]+(\.[0-9]{{1,{precision}}})?$"
    else:
        pattern = r"^[0-9]+$"
    if not re.fullmatch(pattern, quantity):
        return False
    try:
        value = Decimal(quantity)
    except InvalidOperation:
        return False
    return value.is_finite() and value > 0


def parse_quantity(quantity) -> Decimal:
    """
    Parse a quantity string to Decimal

    Returns 0 for empty, malformed or non-finite input rather than raising,
    so read paths degrade instead of crashing on bad feed data.
    """
    if quantity is None or isinstance(quantity, bool):
        return ZERO
    if isinstance(quantity, Decimal):
        return quantity if quantity.is_finite() else ZERO
    try:
        value = to_decimal(quantity) if not isinstance(quantity, str) else Decimal(quantity.strip())
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not value.is_finite():
        return ZERO
    return value


def parse_int(value, field: str = "value") -> int:
    """
    Parse an integer feed field (timestamps, counters, cooldowns)

    Missing values are 0. Malformed values are logged and read as 0.
    """
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Malformed integer for {field}: {value!r}, using 0")
        return 0


def _exponent(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def format_quantity(amount: Number, precision: int = 3) -> str:
    """Format an amount with exactly `precision` decimals (half-up rounding)"""
    value = to_decimal(amount).quantize(_exponent(precision), rounding=ROUND_HALF_UP)
    return f"{value:.{precision}f}"


def round_quantity(amount: Number, precision: int = 3) -> Decimal:
    """Round to `precision` decimals the same way format_quantity does"""
    return to_decimal(amount).quantize(_exponent(precision), rounding=ROUND_HALF_UP)


def truncate(amount: Number, places: int = 3) -> Decimal:
    """Truncate (floor) an amount to `places` decimals"""
    return to_decimal(amount).quantize(_exponent(places), rounding=ROUND_FLOOR)
