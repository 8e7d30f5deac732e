"""Exact conversions between raw token units and decimal amounts.

Every conversion is integer or Decimal-tuple arithmetic; floats never
appear. ``to_raw(to_decimal(r, d), d) == r`` holds for all ``r >= 0``.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from fractions import Fraction
from typing import Union

from swapsim.errors import InvalidInput

MAX_UINT256 = 2**256 - 1
MAX_DECIMALS = 77

_AMOUNT_RE = re.compile(r"^(\d+\.?\d*|\.\d+)$")

Number = Union[Decimal, Fraction, int, str]


def _check_decimals(decimals: int) -> None:
    if not 0 <= decimals <= MAX_DECIMALS:
        raise InvalidInput(f"Unsupported token decimals: {decimals}")


def to_decimal(raw: int, decimals: int) -> Decimal:
    """Scale a raw integer amount down by ``10**decimals`` without rounding."""
    _check_decimals(decimals)
    if raw < 0:
        raise InvalidInput(f"Raw amount cannot be negative: {raw}")
    digits = tuple(int(c) for c in str(raw))
    return Decimal((0, digits, -decimals))


def to_raw(amount: Decimal, decimals: int) -> int:
    """Scale a decimal amount up to raw units.

    Digits beyond the token's precision are truncated.

    Raises:
        InvalidInput: for negative, non-finite or out-of-range amounts.
    """
    _check_decimals(decimals)
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if not amount.is_finite():
        raise InvalidInput(f"Amount must be finite: {amount}")
    if amount < 0:
        raise InvalidInput(f"Amount cannot be negative: {amount}")

    _, digits, exponent = amount.as_tuple()
    coefficient = int("".join(map(str, digits)) or "0")
    shift = exponent + decimals
    if shift >= 0:
        raw = coefficient * 10**shift
    else:
        raw = coefficient // 10**-shift

    if raw > MAX_UINT256:
        raise InvalidInput(f"Amount {amount} overflows uint256 at {decimals} decimals")
    return raw


def parse_decimal(text: str) -> Decimal:
    """Parse a plain decimal string ("1.5", ".25", "10"); no signs or exponents."""
    text = text.strip()
    if not _AMOUNT_RE.match(text):
        raise InvalidInput(f"Invalid amount: {text!r}", {"field": "amount"})
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise InvalidInput(f"Invalid amount: {text!r}", {"field": "amount"}) from e


def parse_units(text: str, decimals: int) -> int:
    """Parse a plain decimal string into raw units."""
    return to_raw(parse_decimal(text), decimals)


def format_units(raw: int, decimals: int) -> str:
    """Render raw units as a trimmed decimal string ("1.5", "0", "1000")."""
    _check_decimals(decimals)
    if raw < 0:
        raise InvalidInput(f"Raw amount cannot be negative: {raw}")
    if decimals == 0:
        return str(raw)

    whole, frac = divmod(raw, 10**decimals)
    if frac == 0:
        return str(whole)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac_str}"


def to_fraction(value: Number) -> Fraction:
    """Exact rational view of a Decimal, int or decimal string."""
    if isinstance(value, Fraction):
        return value
    if isinstance(value, str):
        value = Decimal(value)
    if isinstance(value, Decimal) and not value.is_finite():
        raise InvalidInput(f"Value must be finite: {value}")
    return Fraction(value)


def percent_to_fraction(percent: Number) -> Fraction:
    """Convert a slippage percentage (0.5 means 0.5%) to a fraction in [0, 1)."""
    try:
        fraction = to_fraction(percent) / 100
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidInput(
            f"Invalid percentage: {percent!r}", {"field": "slippage_tolerance"}
        ) from e
    if not 0 <= fraction < 1:
        raise InvalidInput(
            f"Slippage must be in [0, 100) percent, got {percent}",
            {"field": "slippage_tolerance"},
        )
    return fraction


def minimum_output(amount_out: int, slippage: Number) -> int:
    """``floor(amount_out * (1 - slippage))`` with ``slippage`` in [0, 1)."""
    slippage = to_fraction(slippage)
    if not 0 <= slippage < 1:
        raise InvalidInput(f"Slippage must be in [0, 1), got {slippage}")
    return math.floor(Fraction(amount_out) * (1 - slippage))


def format_fraction(value: Fraction, places: int = 18) -> str:
    """Render a non-negative fraction truncated to ``places`` digits."""
    return format_units(value.numerator * 10**places // value.denominator, places)


def format_percent(fraction: Fraction, places: int = 4) -> str:
    """Render a fraction as a percentage string rounded half-up."""
    percent = Decimal(fraction.numerator * 100) / Decimal(fraction.denominator)
    return str(percent.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))
