"""
Values -- Decimal coercion and rounding helpers for currency amounts.

Responsibility:
    Converts raw numeric input (strings, ints, floats, Decimals) into finite
    Decimal values and provides cent-level rounding used by renderers and
    the audit comparison.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All amounts leaving this module are finite Decimals (never float).
    - Floats are converted through ``str`` so that 0.1 stays Decimal("0.1").
    - Booleans are rejected even though ``bool`` subclasses ``int``.

Failure modes:
    - InvalidNumberError for non-numeric, NaN or infinite input.
    - MissingFieldError for None or blank strings.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from payapp_kernel.exceptions import InvalidNumberError, MissingFieldError

ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")
CENT = Decimal("0.01")
HALF_CENT = Decimal("0.005")


def is_finite_decimal(value: Any) -> bool:
    """True when value is a Decimal (or int) holding a finite number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, Decimal) and value.is_finite()


def to_decimal(
    value: Any,
    field: str,
    item_index: int | None = None,
) -> Decimal:
    """
    Coerce a raw value into a finite Decimal.

    Accepts Decimal, int, float and numeric strings. Strings may carry a
    leading dollar sign, thousands separators and surrounding whitespace.

    Raises:
        MissingFieldError: value is None or a blank string.
        InvalidNumberError: value is not a finite number.
    """
    if value is None:
        raise MissingFieldError(field, item_index=item_index)
    if isinstance(value, bool):
        raise InvalidNumberError(field, value, item_index=item_index)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        if not text:
            raise MissingFieldError(field, item_index=item_index)
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidNumberError(field, value, item_index=item_index) from exc
    else:
        raise InvalidNumberError(field, value, item_index=item_index)

    if not result.is_finite():
        raise InvalidNumberError(field, value, item_index=item_index)
    return result


def to_cents(amount: Decimal) -> Decimal:
    """Round an amount to whole cents (half-up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def within_cent(left: Decimal, right: Decimal) -> bool:
    """True when two amounts agree to the currency unit (half a cent)."""
    return abs(left - right) < HALF_CENT


def percent_to_rate(percent: Decimal) -> Decimal:
    """Convert an entered percentage (0-100) to a fraction."""
    return percent / ONE_HUNDRED
